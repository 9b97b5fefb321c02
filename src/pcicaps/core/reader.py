"""Bounds-checked little-endian field extraction from a byte buffer."""

from __future__ import annotations

import struct

from pcicaps.exceptions import MandatoryFieldsUnreadableError, OutOfDataError

_U16 = struct.Struct("<H")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


class ByteReader:
    """Sequential reader over an immutable byte view.

    Every read advances ``offset``; a read that would cross the end of the
    view raises OutOfDataError and leaves the offset unchanged. Views
    returned by read_exact() borrow the source buffer, so the buffer must
    outlive them.
    """

    def __init__(self, data: bytes | bytearray | memoryview, offset: int = 0) -> None:
        view = memoryview(data)
        self._view = view if view.format == "B" else view.cast("B")
        self.offset = offset

    def __len__(self) -> int:
        return len(self._view)

    @property
    def remaining(self) -> int:
        return max(0, len(self._view) - self.offset)

    def _take(self, size: int) -> memoryview:
        if size < 0:
            raise ValueError(f"Invalid read size {size}")
        if self.offset + size > len(self._view):
            raise OutOfDataError(self.offset, size, self.remaining)
        chunk = self._view[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def read_u8(self) -> int:
        return self._take(1)[0]

    def read_u16(self) -> int:
        return _U16.unpack(self._take(2))[0]

    def read_u32(self) -> int:
        return _U32.unpack(self._take(4))[0]

    def read_u64(self) -> int:
        return _U64.unpack(self._take(8))[0]

    def read_exact(self, size: int) -> memoryview:
        """Return a view of exactly ``size`` bytes, or raise OutOfDataError."""
        return self._take(size)

    def read_rest(self) -> memoryview:
        """Return a view of every remaining byte."""
        return self._take(self.remaining)

    def skip(self, size: int) -> None:
        self._take(size)

    def peek_u8(self, offset: int) -> int:
        """Read a byte at an absolute offset without moving the cursor."""
        if not 0 <= offset < len(self._view):
            raise OutOfDataError(offset, 1, max(0, len(self._view) - offset))
        return self._view[offset]

    def peek_u16(self, offset: int) -> int:
        """Read a little-endian u16 at an absolute offset without moving the cursor."""
        if offset < 0 or offset + 2 > len(self._view):
            raise OutOfDataError(offset, 2, max(0, len(self._view) - offset))
        return _U16.unpack(self._view[offset:offset + 2])[0]

    def peek_u32(self, offset: int) -> int:
        """Read a little-endian u32 at an absolute offset without moving the cursor."""
        if offset < 0 or offset + 4 > len(self._view):
            raise OutOfDataError(offset, 4, max(0, len(self._view) - offset))
        return _U32.unpack(self._view[offset:offset + 4])[0]


def mandatory(data: bytes | bytearray | memoryview, size: int, name: str) -> ByteReader:
    """Return a reader over ``data`` after checking its required prefix.

    Raises MandatoryFieldsUnreadableError naming the structure when fewer
    than ``size`` bytes are available.
    """
    reader = ByteReader(data)
    if len(reader) < size:
        raise MandatoryFieldsUnreadableError(name, size, len(reader))
    return reader
