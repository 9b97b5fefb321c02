"""Unit tests for the decoder registry and whole-list decoding."""

from __future__ import annotations

import struct

import pytest

import pcicaps
from pcicaps import (
    CapabilityId,
    DecodedCapability,
    DecodeFailure,
    DecoderConfig,
    ExtendedCapabilityId,
    UnknownCapability,
    WalkState,
    decode,
    decode_capabilities,
    decode_config_space,
    decode_extended_capabilities,
    is_registered,
    walk_extended_capabilities,
)
from pcicaps.exceptions import (
    ArityOutOfRangeError,
    CycleDetectedError,
    MandatoryFieldsUnreadableError,
    NestedDecodeError,
)
from pcicaps.decoders.extended import NAMED_EXTENDED
from pcicaps.models.extended import DesignatedVendorSpecific, UnspecifiedDvsec

_DSN = struct.pack("<II", 0x455485FE, 0xFF565000)


def _virtio_body(cfg_type: int = 1) -> bytes:
    registers = struct.pack("<BB3xII", cfg_type, 4, 0, 0x1000)
    return bytes([3 + len(registers)]) + registers


class TestRegistry:
    """Test decoder table membership."""

    @pytest.mark.parametrize(
        "cap_id, extended, expected",
        [
            (CapabilityId.POWER_MANAGEMENT, False, True),
            (CapabilityId.VENDOR_SPECIFIC, False, True),
            (0x14, False, False),
            (ExtendedCapabilityId.DESIGNATED_VENDOR_SPECIFIC, True, True),
            (ExtendedCapabilityId.VIRTUAL_CHANNEL, True, True),
            (ExtendedCapabilityId.PHYSICAL_LAYER_64GT, True, False),
            (CapabilityId.HYPERTRANSPORT, False, True),
            (0x00FF, True, False),
        ],
    )
    def test_is_registered(self, cap_id, extended, expected):
        assert is_registered(cap_id, extended=extended) is expected

    @pytest.mark.parametrize("cap_id", sorted(NAMED_EXTENDED))
    def test_named_extended_registered(self, cap_id):
        assert is_registered(cap_id, extended=True)

    def test_package_exports(self):
        assert pcicaps.decode_config_space is decode_config_space
        assert pcicaps.__version__ == "0.1.0"


class TestExtendedListing:
    """Test decoding the extended capability list."""

    def test_designated_vendor_specific(self, config_space):
        config_space.buf[0x100:0x110] = bytes.fromhex("23000100 86800201 2300 001122334455")
        listing = decode_extended_capabilities(config_space.buf)
        assert listing.ok
        assert len(listing) == 1
        entry = listing.capabilities[0]
        assert entry.offset == 0x100
        assert entry.cap_id == 0x0023
        assert entry.version == 1
        assert entry.extended
        body = entry.body
        assert isinstance(body, DesignatedVendorSpecific)
        assert body.dvsec_vendor_id == 0x8086
        assert body.dvsec_revision == 2
        assert body.dvsec_length == 0x10
        assert body.dvsec_id == 0x23
        assert body.dvsec_type == UnspecifiedDvsec(data=bytes.fromhex("001122334455"))

    def test_resizable_bar_entries(self, config_space):
        body = struct.pack("<IIII", 0x000001F0, 0x0340, 0x00003000, 0x0002)
        config_space.extended(0x100, ExtendedCapabilityId.RESIZABLE_BAR, 0x000, body)
        entry = decode_extended_capabilities(config_space.buf).capabilities[0]
        assert entry.kind == "resizable_bar"
        assert len(entry.body.entries) == 2

    @pytest.mark.parametrize("count", [0, 7])
    def test_resizable_bar_bad_count(self, config_space, count):
        body = struct.pack("<II", 0x10, count << 5)
        config_space.extended(0x100, ExtendedCapabilityId.RESIZABLE_BAR, 0x000, body)
        listing = decode_extended_capabilities(config_space.buf)
        assert listing.capabilities == []
        failure = listing.failures[0]
        assert isinstance(failure.error, ArityOutOfRangeError)
        assert failure.error.value == count
        assert failure.offset == 0x100
        assert failure.cap_id == ExtendedCapabilityId.RESIZABLE_BAR

    def test_unknown_capability(self, config_space):
        config_space.extended(0x100, 0x00FF, 0x140, b"\x01\x02")
        config_space.extended(0x140, ExtendedCapabilityId.DEVICE_SERIAL_NUMBER, 0x000, _DSN)
        listing = decode_extended_capabilities(config_space.buf)
        assert listing.ok
        unknown = listing.capabilities[0]
        assert not unknown.known
        assert unknown.kind == "unknown"
        assert isinstance(unknown.body, UnknownCapability)
        assert unknown.body.cap_id == 0x00FF
        assert unknown.body.data[:2] == b"\x01\x02"
        assert len(unknown.body.data) == 0x140 - 0x104
        assert str(listing.capabilities[1].body) == "ff-56-50-00-45-54-85-fe"

    def test_named_extended_capability(self, config_space):
        config_space.extended(0x100, ExtendedCapabilityId.SR_IOV, 0x140, b"\x01\x02")
        config_space.extended(0x140, ExtendedCapabilityId.L1_PM_SUBSTATES, 0x000, bytes(12))
        listing = decode_extended_capabilities(config_space.buf)
        assert listing.ok
        sriov, l1pm = listing.capabilities
        assert sriov.known
        assert sriov.kind == "named_extended"
        assert sriov.body.cap_id == 0x0010
        assert sriov.body.name == "Single Root I/O Virtualization"
        assert sriov.body.data[:2] == b"\x01\x02"
        assert len(sriov.body.data) == 0x140 - 0x104
        assert l1pm.kind == "l1_pm_substates"

    def test_failure_isolated_from_siblings(self, config_space):
        # AER needs 40 bytes; only 12 fit before the next capability
        config_space.extended(0x100, ExtendedCapabilityId.ADVANCED_ERROR_REPORTING, 0x110)
        config_space.extended(0x110, ExtendedCapabilityId.DEVICE_SERIAL_NUMBER, 0x000, _DSN)
        listing = decode_extended_capabilities(config_space.buf)
        assert [type(e) for e in listing] == [DecodeFailure, DecodedCapability]
        failure = listing.failures[0]
        assert isinstance(failure.error, MandatoryFieldsUnreadableError)
        assert failure.error.offset == 0x100
        assert failure.error.cap_id == 0x0001
        assert "expected 40 bytes, real: 12" in failure.message
        assert listing.find(ExtendedCapabilityId.DEVICE_SERIAL_NUMBER) is not None
        assert listing.walk_state is WalkState.TERMINATED
        assert not listing.ok

    def test_fail_fast(self, config_space):
        config_space.extended(0x100, ExtendedCapabilityId.ADVANCED_ERROR_REPORTING, 0x110)
        config_space.extended(0x110, ExtendedCapabilityId.DEVICE_SERIAL_NUMBER, 0x000, _DSN)
        with pytest.raises(MandatoryFieldsUnreadableError):
            decode_extended_capabilities(config_space.buf, DecoderConfig(fail_fast=True))

    def test_walk_error_keeps_decoded_prefix(self, config_space):
        config_space.extended(0x100, ExtendedCapabilityId.DEVICE_SERIAL_NUMBER, 0x140, _DSN)
        config_space.extended(0x140, ExtendedCapabilityId.DEVICE_SERIAL_NUMBER, 0x100, _DSN)
        # Walk errors are reported even with fail_fast
        listing = decode_extended_capabilities(config_space.buf, DecoderConfig(fail_fast=True))
        assert len(listing.capabilities) == 2
        assert listing.walk_state is WalkState.ERROR
        assert isinstance(listing.walk_error, CycleDetectedError)
        assert not listing.ok

    def test_decode_single_record(self, config_space):
        config_space.extended(0x100, ExtendedCapabilityId.DEVICE_SERIAL_NUMBER, 0x000, _DSN)
        raw = walk_extended_capabilities(config_space.buf).records[0]
        decoded = decode(raw)
        assert decoded.offset == 0x100
        assert decoded.body.serial_number == 0xFF565000455485FE

    def test_decode_single_record_locates_error(self, config_space):
        config_space.extended(0x100, ExtendedCapabilityId.PRECISION_TIME_MEASUREMENT, 0x104)
        config_space.extended(0x104, ExtendedCapabilityId.DEVICE_SERIAL_NUMBER, 0x000, _DSN)
        raw = walk_extended_capabilities(config_space.buf).records[0]
        with pytest.raises(MandatoryFieldsUnreadableError) as exc_info:
            decode(raw)
        assert exc_info.value.offset == 0x100
        assert exc_info.value.cap_id == ExtendedCapabilityId.PRECISION_TIME_MEASUREMENT


class TestLegacyListing:
    """Test decoding the legacy capability list."""

    def _populate(self, space):
        pm = struct.pack("<HHBB", 0x0003, 0x0000, 0x00, 0x00)
        msix = struct.pack("<HII", 0x001F, 0x00002000, 0x00003000)
        pcie = struct.pack("<HIHH", 0x0002, 0x00000002, 0x0000, 0x0000)
        space.legacy(0x40, CapabilityId.POWER_MANAGEMENT, 0x50, pm)
        space.legacy(0x50, CapabilityId.MSI_X, 0x60, msix)
        space.legacy(0x60, CapabilityId.PCI_EXPRESS, 0x00, pcie)

    def test_root_from_capabilities_pointer(self, legacy_space):
        self._populate(legacy_space)
        listing = decode_capabilities(legacy_space.buf)
        kinds = [c.kind for c in listing.capabilities]
        assert kinds == ["power_management", "msi_x", "pci_express"]
        assert [c.offset for c in listing] == [0x40, 0x50, 0x60]
        assert all(not c.extended for c in listing.capabilities)
        assert listing.find(CapabilityId.MSI_X).body.message_control.table_entries == 32

    def test_explicit_root(self, legacy_space):
        self._populate(legacy_space)
        listing = decode_capabilities(legacy_space.buf, root=0x50)
        assert [c.offset for c in listing] == [0x50, 0x60]

    def test_no_capability_list(self, legacy_space):
        self._populate(legacy_space)
        legacy_space.buf[0x06] = 0x00
        listing = decode_capabilities(legacy_space.buf)
        assert len(listing) == 0
        assert listing.walk_state is WalkState.TERMINATED

    def test_unknown_legacy_id(self, legacy_space):
        legacy_space.legacy(0x40, 0x14, 0x00, b"\xaa")
        entry = decode_capabilities(legacy_space.buf).capabilities[0]
        assert entry.body == UnknownCapability(cap_id=0x14, data=b"\xaa" + bytes(0x100 - 0x43))

    def test_virtio_identity_from_buffer(self, legacy_space):
        struct.pack_into("<HH", legacy_space.buf, 0x00, 0x1AF4, 0x1041)
        legacy_space.legacy(0x40, CapabilityId.VENDOR_SPECIFIC, 0x00, _virtio_body())
        body = decode_capabilities(legacy_space.buf).capabilities[0].body
        assert body.virtio.cfg_name == "common"
        assert body.virtio.bar == 4

    def test_identity_from_config(self, legacy_space):
        struct.pack_into("<HH", legacy_space.buf, 0x00, 0x1AF4, 0x1041)
        legacy_space.legacy(0x40, CapabilityId.VENDOR_SPECIFIC, 0x00, _virtio_body())
        config = DecoderConfig(vendor_id=0x8086, device_id=0x1234)
        body = decode_capabilities(legacy_space.buf, config=config).capabilities[0].body
        assert body.virtio is None

    def test_virtio_failure_recorded(self, legacy_space):
        struct.pack_into("<HH", legacy_space.buf, 0x00, 0x1AF4, 0x1041)
        legacy_space.legacy(0x40, CapabilityId.VENDOR_SPECIFIC, 0x00, bytes([8, 1, 4, 0, 0, 0]))
        listing = decode_capabilities(legacy_space.buf)
        failure = listing.failures[0]
        assert failure.cap_id == CapabilityId.VENDOR_SPECIFIC
        assert isinstance(failure.error, NestedDecodeError)
        assert failure.error.vendor_id == 0x1AF4


class TestConfigSpace:
    """Test decoding both lists of one config space."""

    def _populate(self, space):
        space.legacy(0x40, CapabilityId.POWER_MANAGEMENT, 0x00, struct.pack("<HHBB", 3, 0, 0, 0))
        space.extended(0x100, ExtendedCapabilityId.DEVICE_SERIAL_NUMBER, 0x000, _DSN)

    def test_both_lists(self, config_space):
        self._populate(config_space)
        result = decode_config_space(config_space.buf)
        assert [c.kind for c in result.legacy.capabilities] == ["power_management"]
        assert [c.kind for c in result.extended.capabilities] == ["device_serial_number"]

    def test_legacy_only_dump(self, legacy_space):
        legacy_space.legacy(0x40, CapabilityId.POWER_MANAGEMENT, 0x00, bytes(6))
        result = decode_config_space(bytes(legacy_space))
        assert len(result.legacy) == 1
        assert len(result.extended) == 0
        assert result.extended.walk_state is WalkState.TERMINATED

    def test_idempotent(self, config_space):
        self._populate(config_space)
        first = decode_config_space(bytes(config_space))
        second = decode_config_space(bytes(config_space))
        assert first == second

    def test_idempotent_with_failed_entry(self, config_space):
        body = struct.pack("<II", 0x10, 0)
        config_space.extended(0x100, ExtendedCapabilityId.RESIZABLE_BAR, 0x140, body)
        config_space.extended(0x140, ExtendedCapabilityId.DEVICE_SERIAL_NUMBER, 0x000, _DSN)
        first = decode_extended_capabilities(bytes(config_space))
        second = decode_extended_capabilities(bytes(config_space))
        assert len(first.failures) == 1
        assert first == second

    def test_idempotent_with_cycle(self, config_space):
        config_space.extended(0x100, ExtendedCapabilityId.DEVICE_SERIAL_NUMBER, 0x100, _DSN)
        first = decode_extended_capabilities(bytes(config_space))
        second = decode_extended_capabilities(bytes(config_space))
        assert isinstance(first.walk_error, CycleDetectedError)
        assert first == second

    def test_idempotent_with_nested_failure(self, legacy_space):
        legacy_space.buf[0:4] = struct.pack("<HH", 0x1AF4, 0x1041)
        legacy_space.legacy(0x40, CapabilityId.VENDOR_SPECIFIC, 0x00, bytes([8, 1, 4, 0, 0, 0]))
        first = decode_capabilities(bytes(legacy_space))
        second = decode_capabilities(bytes(legacy_space))
        assert isinstance(first.failures[0].error, NestedDecodeError)
        assert first == second

    def test_decoded_model_revalidates(self, config_space):
        self._populate(config_space)
        entry = decode_config_space(config_space.buf).extended.capabilities[0]
        assert DecodedCapability.model_validate(entry.model_dump()) == entry
