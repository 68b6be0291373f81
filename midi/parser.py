# midi/parser.py
import logging
from dataclasses import dataclass, field
from typing import Dict, List

from notes.model import EventKind, FileHeader, TimedEvent
from midi.reader import ByteReader, Malformed, UnsupportedDivision
from midi.tempo import DEFAULT_TEMPO, TempoTracker

log = logging.getLogger(__name__)

META = 0xFF
META_TRACK_NAME = 0x03
META_SET_TEMPO = 0x51
META_END_OF_TRACK = 0x2F

NOTE_OFF = 0x80
NOTE_ON = 0x90


@dataclass
class TrackContext:
    """Decode state of one track. Thrown away once the track is done."""
    reader: ByteReader
    tempo: TempoTracker
    name: str
    running_status: int = 0
    time: float = 0.0


@dataclass
class ParseResult:
    header: FileHeader
    events: List[TimedEvent] = field(default_factory=list)
    track_durations: Dict[str, float] = field(default_factory=dict)

    @property
    def total_duration(self) -> float:
        return max(self.track_durations.values(), default=0.0)


class _Cursor:
    # time of the previously decoded event, shared by all tracks
    def __init__(self):
        self.last = 0.0


def read_header(r: ByteReader) -> FileHeader:
    start, end = r.read_chunk(b"MThd")
    if end - start < 6:
        raise Malformed(f"MThd chunk is {end - start} bytes, need at least 6")
    fmt = r.read_u16()
    ntracks = r.read_u16()
    division = r.read_u16()
    r.pos = end  # longer headers: ignore the extra bytes
    if division & 0x8000:
        raise UnsupportedDivision(f"SMPTE time division 0x{division:04X} is not supported")
    if division == 0:
        raise Malformed("division of 0 ticks per quarter note")
    return FileHeader(format=fmt, ntracks=ntracks, division=division)


def _data_length(status: int) -> int:
    # program change / channel pressure carry one data byte
    return 1 if status & 0xF0 in (0xC0, 0xD0) else 2


def _meta(ctx: TrackContext) -> bool:
    """Read one meta event. Returns False on end of track."""
    r = ctx.reader
    mtype = r.read_u8()
    data = r.read(r.read_varlen())
    if mtype == META_TRACK_NAME:
        ctx.name = data.decode("utf-8", errors="replace")
        log.debug("track name: %s", ctx.name)
    elif mtype == META_SET_TEMPO:
        ctx.tempo.set_tempo(ByteReader(data).read_u24())  # short payload raises Malformed
        log.debug("%s: tempo %d us/qn (%.2f bpm) at %.3fs", ctx.name, ctx.tempo.tempo, ctx.tempo.bpm, ctx.time)
    elif mtype == META_END_OF_TRACK:
        return False
    return True


def decode_track(ctx: TrackContext, cursor: _Cursor, out: List[TimedEvent]):
    r = ctx.reader
    while not r.at_end():
        ctx.time += ctx.tempo.seconds(r.read_varlen())

        # running status: a data byte where the status should be; leave it for the data read below
        status = r.peek_u8()
        if status & 0x80:
            r.read_u8()
            if status < 0xF0:
                ctx.running_status = status
        elif ctx.running_status:
            status = ctx.running_status
        else:
            raise Malformed(f"data byte 0x{status:02X} at offset {r.pos} with no running status")

        if status == META:
            if not _meta(ctx):
                break
        elif status & 0xF0 == 0xF0:
            r.skip(r.read_varlen())  # sysex
        else:
            data = r.read(_data_length(status))
            kind = None
            if status & 0xF0 == NOTE_ON:
                kind = EventKind.NOTE_ON if data[1] > 0 else EventKind.NOTE_OFF
            elif status & 0xF0 == NOTE_OFF:
                kind = EventKind.NOTE_OFF
            if kind is not None:
                out.append(TimedEvent(
                    kind=kind,
                    track=ctx.name,
                    time=ctx.time,
                    channel=status & 0x0F,
                    note=data[0],
                    velocity=data[1],
                    duration=ctx.time - cursor.last,
                ))
        cursor.last = ctx.time


def parse_bytes(data: bytes, carry_tempo: bool = False) -> ParseResult:
    r = ByteReader(data)
    header = read_header(r)
    log.debug("header: format %d, %d tracks, %d ticks/qn", header.format, header.ntracks, header.division)

    result = ParseResult(header=header)
    cursor = _Cursor()
    tempo = DEFAULT_TEMPO
    for i in range(header.ntracks):
        start, end = r.read_chunk(b"MTrk")
        ctx = TrackContext(
            reader=r.sub(start, end),
            tempo=TempoTracker(header.division, tempo),
            name=f"Track {i + 1}",
        )
        decode_track(ctx, cursor, result.events)
        r.pos = end
        if carry_tempo:
            tempo = ctx.tempo.tempo
        result.track_durations[ctx.name] = max(ctx.time, result.track_durations.get(ctx.name, 0.0))
        log.debug("track %d (%s): %.2f seconds", i + 1, ctx.name, ctx.time)

    log.info("decoded %d note events from %d tracks, total %.2f minutes",
             len(result.events), header.ntracks, result.total_duration / 60)
    return result


def parse_file(path: str, carry_tempo: bool = False) -> ParseResult:
    with open(path, "rb") as f:
        data = f.read()
    return parse_bytes(data, carry_tempo=carry_tempo)


def parse(path: str, carry_tempo: bool = False) -> List[TimedEvent]:
    return parse_file(path, carry_tempo=carry_tempo).events
