# midi/tempo.py
import mido

DEFAULT_TEMPO = 500000  # µs per quarter note = 120 bpm

class TempoTracker:
    """Current tempo of one track; converts tick deltas to seconds.

    A tempo change only affects deltas converted after it.
    """
    def __init__(self, ticks_per_beat: int, tempo: int = DEFAULT_TEMPO):
        self.ticks_per_beat = ticks_per_beat
        self.tempo = tempo

    def set_tempo(self, tempo: int):
        self.tempo = tempo

    @property
    def bpm(self) -> float:
        return mido.tempo2bpm(self.tempo)

    def seconds(self, ticks: int) -> float:
        return mido.tick2second(ticks, self.ticks_per_beat, self.tempo)
