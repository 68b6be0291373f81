# midi/reader.py
from typing import Tuple

MAX_VARLEN_BYTES = 4  # SMF caps variable-length quantities at 0x0FFFFFFF


class FormatError(ValueError):
    """Base class for every error raised while decoding a MIDI file."""

class BadChunkTag(FormatError):
    pass

class Malformed(FormatError):
    pass

class UnsupportedDivision(FormatError):
    pass


class ByteReader:
    """Big-endian cursor over a bytes object.

    Every read is bounded by ``end``; running past it raises ``Malformed``
    instead of returning short data.
    """
    def __init__(self, data: bytes, start: int = 0, end: int = None):
        self.data = data
        self.pos = start
        self.end = len(data) if end is None else end

    def remaining(self) -> int:
        return self.end - self.pos

    def at_end(self) -> bool:
        return self.pos >= self.end

    def read(self, n: int) -> bytes:
        if n < 0 or self.pos + n > self.end:
            raise Malformed(f"unexpected end of data at offset {self.pos} (wanted {n} bytes, {self.remaining()} left)")
        b = self.data[self.pos:self.pos + n]
        self.pos += n
        return b

    def peek_u8(self) -> int:
        if self.pos >= self.end:
            raise Malformed(f"unexpected end of data at offset {self.pos}")
        return self.data[self.pos]

    def read_u8(self) -> int:
        b = self.peek_u8()
        self.pos += 1
        return b

    def read_u16(self) -> int:
        return int.from_bytes(self.read(2), "big")

    def read_u24(self) -> int:
        return int.from_bytes(self.read(3), "big")

    def read_u32(self) -> int:
        return int.from_bytes(self.read(4), "big")

    def skip(self, n: int):
        self.read(n)

    def read_varlen(self) -> int:
        value = 0
        for _ in range(MAX_VARLEN_BYTES):
            b = self.read_u8()
            value = (value << 7) | (b & 0x7F)
            if not b & 0x80:
                return value
        raise Malformed(f"variable-length value longer than {MAX_VARLEN_BYTES} bytes at offset {self.pos}")

    def read_chunk(self, tag: bytes) -> Tuple[int, int]:
        """Consume an 8-byte chunk header and return (body_start, body_end)."""
        got = self.read(4)
        if got != tag:
            raise BadChunkTag(f"expected {tag.decode('ascii')!r} chunk at offset {self.pos - 4}, got {got!r}")
        length = self.read_u32()
        if length > self.remaining():
            raise Malformed(f"{tag.decode('ascii')} chunk declares {length} bytes but only {self.remaining()} remain")
        return self.pos, self.pos + length

    def sub(self, start: int, end: int) -> "ByteReader":
        return ByteReader(self.data, start, end)
