import threading
import time

import pytest

from audio.synth import NullSink
from config import AudioConfig, PlaybackConfig
from fakes import FakeClock, FakeSink
from notes.model import EventKind, TimedEvent
from timeline.scheduler import Scheduler

AUDIO = AudioConfig(tone_seconds=0.05, attack=0.01, release=0.01)

def on(t, note, vel=100):
    return TimedEvent(EventKind.NOTE_ON, "Track 1", t, 0, note, vel)

def off(t, note):
    return TimedEvent(EventKind.NOTE_OFF, "Track 1", t, 0, note, 0)


class RecordingScheduler(Scheduler):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.trace = []

    def dispatch(self, ev):
        super().dispatch(ev)
        self.trace.append((self.time, ev.kind, len(self.voices)))


def make(sink=None, clock=None, **playback):
    clock = clock or FakeClock()
    s = RecordingScheduler(sink or FakeSink(), AUDIO, PlaybackConfig(**playback), clock=clock, sleep=clock.sleep)
    return s, clock


def test_events_wait_for_their_time():
    s, clock = make(poll_interval=0.01)
    assert s.play([on(0.0, 60), off(0.25, 60), on(1.0, 62)]) == 3
    times = [t for t, _, _ in s.trace]
    assert times[0] == pytest.approx(0.0)
    assert times[1] >= 0.25 - 1e-9
    assert times[2] >= 1.0 - 1e-9
    assert times[2] == pytest.approx(1.0, abs=1e-6)
    assert max(clock.waits) <= 0.01 + 1e-12


def test_same_note_off_then_on_at_same_time():
    sink = FakeSink()
    s, _ = make(sink)
    s.play([on(0.0, 60), off(0.5, 60), on(0.5, 60)])
    assert [(k, n) for _, k, n in s.trace] == [
        (EventKind.NOTE_ON, 1), (EventKind.NOTE_OFF, 0), (EventKind.NOTE_ON, 1),
    ]
    assert [entry[:2] for entry in sink.log] == [("start", 1), ("stop", 1), ("start", 2), ("stop", 2)]


def test_double_note_on_leaves_one_voice():
    sink = FakeSink()
    s, _ = make(sink)
    s.play([on(0.0, 60), on(0.1, 60), on(0.2, 64)])
    assert [n for _, _, n in s.trace] == [1, 1, 2]
    assert sink.playing == set()


def test_velocity_zero_note_on_stops_voice():
    sink = FakeSink()
    s, _ = make(sink)
    s.play([on(0.0, 60), on(0.1, 60, vel=0), on(0.2, 62)])
    assert [n for _, _, n in s.trace] == [1, 0, 1]


def test_note_off_without_voice_is_ignored():
    sink = FakeSink()
    s, _ = make(sink)
    assert s.play([off(0.0, 60), on(0.1, 61)]) == 2
    assert [entry[0] for entry in sink.log] == ["start", "stop"]


def test_frequency_of_note():
    sink = FakeSink()
    s, _ = make(sink)
    s.play([on(0.0, 69), on(0.0, 81)])
    freqs = [entry[2] for entry in sink.log if entry[0] == "start"]
    assert freqs == [pytest.approx(440.0), pytest.approx(880.0)]


def test_all_voices_released_at_end():
    sink = FakeSink()
    s, _ = make(sink)
    s.play([on(0.0, 60), on(0.0, 64), on(0.1, 67)])
    assert sink.playing == set()
    assert len(s.voices) == 0


def test_playback_rate():
    s, _ = make(rate=2.0)
    s.play([on(0.0, 60), on(1.0, 62)])
    assert s.trace[-1][0] == pytest.approx(1.0, abs=1e-6)
    assert s.clock.now == pytest.approx(0.5, abs=1e-6)


def test_stop_releases_voices():
    sink = FakeSink()
    clock = FakeClock()
    s = Scheduler(sink, AUDIO, PlaybackConfig(), clock=clock, sleep=lambda dt: (clock.sleep(dt), s.stop()))
    assert s.play([on(0.0, 60), on(0.0, 64), off(5.0, 60)]) == 2
    assert not s.stopped  # re-armed for the next play()
    assert sink.playing == set()


def test_sink_error_still_releases_voices():
    class Exploding(FakeSink):
        def start_voice(self, frequency, samples):
            if self._next == 2:
                raise RuntimeError("device lost")
            return super().start_voice(frequency, samples)

    sink = Exploding()
    s, _ = make(sink)
    with pytest.raises(RuntimeError, match="device lost"):
        s.play([on(0.0, 60), on(0.1, 62), on(0.2, 64), on(0.3, 65)])
    assert sink.playing == set()


def test_empty_sequence():
    s, clock = make()
    assert s.play([]) == 0
    assert clock.waits == []


def test_real_clock_and_stop_from_another_thread():
    sink = FakeSink()
    s = Scheduler(sink, AUDIO, PlaybackConfig(poll_interval=0.005))
    result = {}
    th = threading.Thread(target=lambda: result.setdefault("n", s.play([on(0.0, 60), off(30.0, 60)])))
    th.start()
    time.sleep(0.05)
    s.stop()
    th.join(timeout=2.0)
    assert not th.is_alive()
    assert result["n"] == 1
    assert sink.playing == set()


def test_real_clock_plays_short_sequence():
    s = Scheduler(NullSink(), AUDIO, PlaybackConfig())
    t0 = time.perf_counter()
    assert s.play([on(0.0, 60), off(0.02, 60), on(0.03, 62)]) == 3
    assert 0.03 <= time.perf_counter() - t0 < 1.0


def test_stop_before_play_returns_at_once():
    sink = FakeSink()
    s, clock = make(sink)
    s.stop()
    assert s.play([on(0.0, 60), on(1.0, 62)]) == 0
    assert sink.log == []
    assert clock.waits == []
    # the next session plays normally
    assert s.play([on(0.0, 60), on(1.0, 62)]) == 2


def test_stop_before_empty_play_is_not_kept():
    s, _ = make()
    s.stop()
    assert s.play([]) == 0
    assert s.play([on(0.0, 60)]) == 1


@pytest.mark.parametrize("rate", [0.0, -1.0])
def test_rate_must_be_positive(rate):
    with pytest.raises(ValueError):
        Scheduler(FakeSink(), AUDIO, PlaybackConfig(rate=rate))


def test_sink_error_wins_over_cleanup_error():
    class Exploding(FakeSink):
        def start_voice(self, frequency, samples):
            if self._next == 2:
                raise RuntimeError("device lost")
            return super().start_voice(frequency, samples)

    sink = Exploding(fail_stop={1})
    s, _ = make(sink)
    with pytest.raises(RuntimeError, match="device lost"):
        s.play([on(0.0, 60), on(0.1, 62), on(0.2, 64)])
    assert [entry[1] for entry in sink.log if entry[0] == "stop"] == [1, 2]
    assert sink.playing == set()
