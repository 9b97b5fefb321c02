"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import struct

import pytest


class ConfigSpaceBuilder:
    """Zero-filled config space with helpers to place capability structures."""

    def __init__(self, size: int, vendor_id: int = 0x8086, device_id: int = 0x1234) -> None:
        self.buf = bytearray(size)
        struct.pack_into("<HH", self.buf, 0x00, vendor_id, device_id)

    def enable_capability_list(self, root: int = 0x40) -> ConfigSpaceBuilder:
        """Set Status bit 4 and the Capabilities Pointer."""
        struct.pack_into("<H", self.buf, 0x06, 0x0010)
        self.buf[0x34] = root
        return self

    def legacy(
        self, offset: int, cap_id: int, next_ptr: int, body: bytes = b""
    ) -> ConfigSpaceBuilder:
        self.buf[offset] = cap_id
        self.buf[offset + 1] = next_ptr
        self.buf[offset + 2:offset + 2 + len(body)] = body
        return self

    def extended(
        self,
        offset: int,
        cap_id: int,
        next_ptr: int,
        body: bytes = b"",
        version: int = 1,
    ) -> ConfigSpaceBuilder:
        struct.pack_into("<I", self.buf, offset, cap_id | (version << 16) | (next_ptr << 20))
        self.buf[offset + 4:offset + 4 + len(body)] = body
        return self

    def __bytes__(self) -> bytes:
        return bytes(self.buf)


@pytest.fixture
def legacy_space():
    """Provide a 256-byte config space with the capability list enabled at 0x40."""
    return ConfigSpaceBuilder(0x100).enable_capability_list()


@pytest.fixture
def config_space():
    """Provide a 4096-byte PCIe config space with the capability list enabled at 0x40."""
    return ConfigSpaceBuilder(0x1000).enable_capability_list()
