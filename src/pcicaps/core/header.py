"""Capability header encodings.

Legacy (first 256 bytes of config space), 2 bytes:
    [0] capability ID (u8)
    [1] next capability pointer (u8)

Extended (offset >= 0x100), one little-endian dword:
    bits 15:0   capability ID
    bits 19:16  capability version
    bits 31:20  next capability offset (bits 1:0 reserved)
"""

from __future__ import annotations

from dataclasses import dataclass

from pcicaps.core.bitfield import layout
from pcicaps.core.reader import ByteReader

LEGACY_HEADER_SIZE = 2
EXTENDED_HEADER_SIZE = 4

LEGACY_REGION = (0x40, 0x100)
EXTENDED_REGION = (0x100, 0x1000)

# Status register bit 4 = Capabilities List, pointer at 0x34
STATUS_REGISTER = 0x06
STATUS_CAP_LIST = 1 << 4
CAPABILITIES_POINTER = 0x34

EXTENDED_HEADER = layout(32, 16, 4, 12, name="extended capability header")

# All-ones is what a missing device or an unimplemented region reads back as
_EXTENDED_ABSENT = 0xFFFFFFFF


@dataclass(frozen=True)
class CapabilityHeader:
    """Decoded header common to every capability structure."""

    cap_id: int
    next_ptr: int
    version: int | None = None

    @property
    def size(self) -> int:
        return LEGACY_HEADER_SIZE if self.version is None else EXTENDED_HEADER_SIZE


def read_legacy_header(reader: ByteReader, offset: int) -> CapabilityHeader:
    """Read the 2-byte header at ``offset``. Raises OutOfDataError."""
    reader.offset = offset
    cap_id = reader.read_u8()
    next_ptr = reader.read_u8()
    return CapabilityHeader(cap_id=cap_id, next_ptr=next_ptr)


def read_extended_header(reader: ByteReader, offset: int) -> CapabilityHeader | None:
    """Read the 4-byte header at ``offset``.

    Returns None for a terminating header (all zeros or all ones).
    Raises OutOfDataError if fewer than 4 bytes remain.
    """
    reader.offset = offset
    dword = reader.read_u32()
    if dword in (0, _EXTENDED_ABSENT):
        return None
    cap_id, version, next_ptr = EXTENDED_HEADER.decompose(dword)
    return CapabilityHeader(cap_id=cap_id, next_ptr=next_ptr & 0xFFC, version=version)


def capabilities_root(data: bytes | bytearray | memoryview) -> int | None:
    """Return the legacy list root from the Capabilities Pointer register.

    None when the Status register does not advertise a capability list or
    the buffer is too short to hold the standard header.
    """
    reader = ByteReader(data)
    if len(reader) <= CAPABILITIES_POINTER:
        return None
    if not reader.peek_u16(STATUS_REGISTER) & STATUS_CAP_LIST:
        return None
    # Bottom two bits are reserved
    return reader.peek_u8(CAPABILITIES_POINTER) & 0xFC
