# timeline/scheduler.py
import logging
import threading
import time
from typing import Callable, Iterable, List, Optional

from audio.synth import generate_tone, note_to_frequency
from audio.voices import VoiceTable
from config import AudioConfig, PlaybackConfig
from notes.model import TimedEvent

log = logging.getLogger(__name__)

class Scheduler:
    """Plays a time-ordered event list against the wall clock.

    Events whose timestamp has been reached are dispatched in list order;
    between batches the loop waits (at most ``poll_interval``) on the stop
    signal. Every voice is released when playback ends, is stopped, or fails.
    """
    def __init__(self, sink, audio: AudioConfig = None, playback: PlaybackConfig = None,
                 clock: Callable[[], float] = time.perf_counter,
                 sleep: Optional[Callable[[float], object]] = None):
        self.audio = audio or AudioConfig()
        self.playback = playback or PlaybackConfig()
        if self.playback.rate <= 0:
            raise ValueError(f"playback rate must be positive, got {self.playback.rate}")
        self.voices = VoiceTable(sink)
        self.clock = clock
        self._stop = threading.Event()
        self._wait = sleep or self._stop.wait
        self.events: List[TimedEvent] = []
        self.i = 0
        self.time = 0.0

    def stop(self):
        """Ask play() to return; if it has not started yet, the next play() returns at once.
        Safe to call from another thread."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def due_events(self):
        t = self.time
        while self.i < len(self.events) and self.events[self.i].time <= t:
            yield self.events[self.i]
            self.i += 1

    def dispatch(self, ev: TimedEvent):
        log.debug("%s note %d vel %d at %.3fs (clock %.3fs)", ev.kind.value, ev.note, ev.velocity, ev.time, self.time)
        if ev.is_note_on:
            freq = note_to_frequency(ev.note)
            samples = generate_tone(freq, self.audio.tone_seconds, self.audio.attack, self.audio.release,
                                    self.audio.sample_rate)
            self.voices.start(ev.note, freq, samples)
        elif ev.is_note_off:
            self.voices.stop(ev.note)

    def _release_after_error(self):
        # keep the original failure as the one that propagates
        try:
            self.voices.release_all()
        except Exception as e:
            log.error("voice cleanup after a failed playback also failed: %s", e)

    def play(self, events: Iterable[TimedEvent]) -> int:
        """Block until every event is dispatched or stop() is called.

        A stop() that arrives before play() makes it return at once. The stop
        signal is re-armed when play() returns. Returns the number of
        dispatched events.
        """
        self.events = list(events)
        self.i = 0
        self.time = 0.0
        try:
            if not self.events:
                log.info("nothing to play")
                return 0

            rate = self.playback.rate
            t0 = self.clock()
            try:
                while self.i < len(self.events) and not self._stop.is_set():
                    self.time = (self.clock() - t0) * rate
                    for ev in self.due_events():
                        self.dispatch(ev)
                    if self.i < len(self.events):
                        ahead = (self.events[self.i].time - self.time) / rate
                        self._wait(max(0.0, min(self.playback.poll_interval, ahead)))
            except BaseException:
                self._release_after_error()
                raise
            self.voices.release_all()
        finally:
            self._stop.clear()

        if self.i < len(self.events):
            log.info("playback stopped after %d of %d events", self.i, len(self.events))
        else:
            log.info("playback finished, %d events", self.i)
        return self.i
