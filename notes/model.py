# notes/model.py
from dataclasses import dataclass
from enum import Enum

class EventKind(Enum):
    NOTE_ON = "NoteOn"
    NOTE_OFF = "NoteOff"

@dataclass(frozen=True)
class FileHeader:
    format: int     # 0 single track, 1 parallel tracks, 2 independent songs
    ntracks: int
    division: int   # ticks per quarter note

@dataclass(frozen=True)
class TimedEvent:
    kind: EventKind
    track: str
    time: float     # seconds from start of file
    channel: int
    note: int       # MIDI note number
    velocity: int
    duration: float = 0.0  # gap to the previously decoded event, NOT the note length

    @property
    def is_note_on(self) -> bool:
        return self.kind is EventKind.NOTE_ON and self.velocity > 0

    @property
    def is_note_off(self) -> bool:
        return self.kind is EventKind.NOTE_OFF or (self.kind is EventKind.NOTE_ON and self.velocity == 0)

@dataclass(frozen=True)
class Note:
    pitch: int      # MIDI note number
    start: float    # seconds
    end: float      # seconds
    velocity: int
    channel: int

    @property
    def dur(self) -> float:
        return max(0.001, self.end - self.start)
