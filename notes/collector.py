# notes/collector.py
from typing import Dict, Iterable, List, Tuple
from notes.model import Note, TimedEvent

def select_track(events: Iterable[TimedEvent], track: str) -> List[TimedEvent]:
    """Events of one track, ordered by time. Same-time events keep their decode order."""
    return sorted((e for e in events if e.track == track), key=lambda e: e.time)

def track_names(events: Iterable[TimedEvent]) -> List[str]:
    seen: Dict[str, None] = {}
    for e in events:
        seen.setdefault(e.track, None)
    return list(seen)

def track_summary(events: Iterable[TimedEvent]) -> List[Tuple[str, int, float]]:
    """(name, event count, last timestamp) per track, in first-seen order."""
    counts: Dict[str, int] = {}
    last: Dict[str, float] = {}
    for e in events:
        counts[e.track] = counts.get(e.track, 0) + 1
        last[e.track] = max(last.get(e.track, 0.0), e.time)
    return [(name, counts[name], last[name]) for name in counts]

def pair_notes(events: Iterable[TimedEvent]) -> List[Note]:
    """Match every note-on with the next note-off of the same channel/pitch.

    Unlike ``TimedEvent.duration`` this gives the real sounding length.
    """
    ordered = sorted(events, key=lambda e: e.time)
    active = {}
    notes: List[Note] = []
    end_time = 0.0
    for e in ordered:
        end_time = e.time
        key = (e.channel, e.note)
        if e.is_note_on:
            if key in active:  # retrigger closes the previous one
                st, vel = active.pop(key)
                notes.append(Note(pitch=e.note, start=st, end=e.time, velocity=vel, channel=e.channel))
            active[key] = (e.time, e.velocity)
        elif e.is_note_off and key in active:
            st, vel = active.pop(key)
            notes.append(Note(pitch=e.note, start=st, end=e.time, velocity=vel, channel=e.channel))
    # close dangling
    for (ch, p), (st, vel) in active.items():
        notes.append(Note(pitch=p, start=st, end=end_time, velocity=vel, channel=ch))
    notes.sort(key=lambda n: (n.start, n.pitch))
    return notes
