# ========================= config.py =========================
from dataclasses import dataclass, field

@dataclass
class AudioConfig:
    sample_rate: int = 44100
    tone_seconds: float = 2.0   # length of every synthesized tone
    attack: float = 0.10        # linear fade-in
    release: float = 0.10       # linear fade-out
    mixer_buffer: int = 512
    mixer_channels: int = 32    # pygame mixer channels = max simultaneous voices

@dataclass
class PlaybackConfig:
    track: str = "Track 3"
    poll_interval: float = 0.005  # upper bound on one wait between dispatch batches
    rate: float = 1.0             # 1.0 = original speed
    carry_tempo: bool = False     # keep the last tempo of a track for the next one

@dataclass
class AppConfig:
    audio: AudioConfig = field(default_factory=AudioConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
