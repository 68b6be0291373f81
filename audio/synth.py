# audio/synth.py
import logging
import numpy as np
import pygame

log = logging.getLogger(__name__)

SAMPLE_RATE = 44100

def note_to_frequency(note: int) -> float:
    return 440.0 * 2.0 ** ((note - 69) / 12.0)

def generate_tone(frequency: float, duration: float, attack: float = 0.10, release: float = 0.10,
                  sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Full-scale sine as int16 samples with a linear fade-in and fade-out.

    Where the two ramps overlap (tones shorter than attack + release) the
    fade-in wins.
    """
    length = int(duration * sample_rate)
    i = np.arange(length)
    attack_n = int(attack * sample_rate)
    release_n = int(release * sample_rate)

    env = np.ones(length)
    if release_n > 0:
        tail = i >= length - release_n
        env[tail] = (length - i[tail]) / release_n
    if attack_n > 0:
        head = i < attack_n
        env[head] = i[head] / attack_n

    wave = np.sin(2 * np.pi * frequency / sample_rate * i) * 32767 * env
    return wave.astype(np.int16)


class AudioSink:
    """What the player needs from an audio backend."""
    def start_voice(self, frequency: float, samples: np.ndarray):
        raise NotImplementedError

    def stop_voice(self, handle):
        raise NotImplementedError

    def close(self):
        pass


class NullSink(AudioSink):
    """Plays nothing. Used with --silent or when no output device is available."""
    def __init__(self):
        self._next = 1

    def start_voice(self, frequency, samples):
        h = self._next; self._next += 1
        return h

    def stop_voice(self, handle):
        pass


class Synth(AudioSink):
    """
    pygame.mixer output, one Sound per voice:
    - start_voice(freq, samples) -> pygame.mixer.Sound (the handle)
    - stop_voice(sound) stops every channel playing that sound
    """
    def __init__(self, cfg):
        self.cfg = cfg
        pygame.mixer.init(frequency=cfg.sample_rate, size=-16, channels=1, buffer=cfg.mixer_buffer)
        pygame.mixer.set_num_channels(cfg.mixer_channels)
        # the device may not honour the request
        self.rate, _, self.channels = pygame.mixer.get_init()
        log.info("mixer open: %d Hz, %d channel(s), %d voices", self.rate, self.channels, cfg.mixer_channels)
        if self.rate != cfg.sample_rate:
            log.warning("mixer runs at %d Hz instead of %d Hz, pitch will be off", self.rate, cfg.sample_rate)

    def start_voice(self, frequency, samples):
        if self.channels > 1:
            samples = np.column_stack([samples] * self.channels)
        sound = pygame.sndarray.make_sound(np.ascontiguousarray(samples))
        if sound.play() is None:
            log.debug("no free mixer channel for %.1f Hz", frequency)
        return sound

    def stop_voice(self, handle):
        handle.stop()

    def close(self):
        pygame.mixer.stop()
        pygame.mixer.quit()


def open_sink(cfg, silent: bool = False) -> AudioSink:
    if silent:
        return NullSink()
    try:
        return Synth(cfg)
    except pygame.error as e:
        log.warning("audio output unavailable (%s), playing silently", e)
        return NullSink()
