"""Vendor-defined capability containers and their nested decoders.

- 000Bh VSEC: self-declared length, registers kept as bytes.
- 0023h DVSEC: self-declared length, registers dispatched on
  (DVSEC vendor id, DVSEC id). Vendor 1E98h (CXL) has nested decoders.
- 09h legacy Vendor Specific: registers dispatched on the device's own
  (vendor id, device id); virtio devices have a nested decoder.
"""

from __future__ import annotations

from pcicaps.core.bitfield import layout
from pcicaps.core.header import EXTENDED_HEADER_SIZE
from pcicaps.core.reader import mandatory
from pcicaps.core.vendor import VendorDispatcher
from pcicaps.exceptions import LengthMismatchError
from pcicaps.models.capabilities import VirtioCapability
from pcicaps.models.extended import (
    CXL_VENDOR_ID,
    ComputeExpressLink,
    CxlCapability,
    CxlCapability2,
    CxlControl,
    CxlControl2,
    CxlRangeSize,
    CxlStatus,
    CxlStatus2,
    DesignatedVendorSpecific,
    PcieDvsecForCxlDevice,
    UnspecifiedDvsec,
    VendorSpecificExtended,
)

# Vendor/revision/length header shared by VSEC and DVSEC
VENDOR_HEADER = layout(32, 16, 4, 12, name="vendor-specific header")

VSEC_HEADER_SIZE = 8
# Capability header + DVSEC header 1 + DVSEC header 2
DVSEC_MIN_SIZE = 0x0A

# --- CXL -------------------------------------------------------------------------
CXL_CAPABILITY = layout(16, 1, 1, 1, 1, 2, 1, 1, 3, 1, 1, 1, 1, 1, name="CXL capability")
CXL_CONTROL = layout(16, 1, 1, 1, 5, 3, 1, 2, 1, 1, name="CXL control")
CXL_STATUS = layout(16, 14, 1, 1, name="CXL status")
CXL_CONTROL2 = layout(16, 1, 1, 1, 1, 12, name="CXL control2")
CXL_STATUS2 = layout(16, 1, 1, 1, 12, 1, name="CXL status2")
CXL_LOCK = layout(16, 1, 15, name="CXL lock")
CXL_CAPABILITY2 = layout(16, 4, 4, 8, name="CXL capability2")
CXL_RANGE_SIZE_LOW = layout(32, 1, 1, 3, 3, 5, 3, 12, 4, name="CXL range size low")
CXL_RANGE_BASE_LOW = layout(32, 28, 4, name="CXL range base low")
CXL_DEVICE_SIZE = 7 * 2 + 8 * 4

CXL_STRUCTURES = {
    0x00: "pcie_dvsec_for_cxl_device",
    0x02: "non_cxl_function_map",
    0x03: "cxl_extensions_for_ports",
    0x04: "gpf_for_cxl_ports",
    0x05: "gpf_for_cxl_devices",
    0x07: "pcie_dvsec_for_flex_bus_port",
    0x08: "register_locator",
    0x09: "mld",
    0x0A: "pcie_dvsec_for_test_capability",
}

# --- virtio --------------------------------------------------------------------
VIRTIO_VENDOR_ID = 0x1AF4
VIRTIO_DEVICE_IDS = range(0x1000, 0x1080)
VIRTIO_CFG_NOTIFY = 2
# cfg_type, bar, 3 bytes padding, offset, length
VIRTIO_SIZE = 13


def decode_vendor_specific_extended(payload: memoryview) -> VendorSpecificExtended:
    """000Bh VSEC.

    The VSEC length counts from the capability header, so the registers
    are ``vsec_length - 8`` bytes following the VSEC header. A bad or
    overlong length is reported in ``registers_state``, not raised.
    """
    reader = mandatory(payload, 4, "Vendor-Specific Extended Capability")
    vsec_id, vsec_rev, vsec_length = VENDOR_HEADER.decompose(reader.read_u32())
    tail = reader.read_rest()
    if vsec_length < VSEC_HEADER_SIZE:
        state, registers = "invalid_length", b""
    elif vsec_length - VSEC_HEADER_SIZE <= len(tail):
        state, registers = "valid", bytes(tail[: vsec_length - VSEC_HEADER_SIZE])
    else:
        state, registers = "incomplete", bytes(tail)
    return VendorSpecificExtended(
        vsec_id=vsec_id,
        vsec_rev=vsec_rev,
        vsec_length=vsec_length,
        registers_state=state,
        registers=registers,
    )


def decode_designated_vendor_specific(payload: memoryview) -> DesignatedVendorSpecific:
    """0023h DVSEC.

    The walker's payload is an upper bound; the registers are re-sliced
    to the declared DVSEC length. A nested decoder failure fails the
    whole capability.
    """
    reader = mandatory(payload, DVSEC_MIN_SIZE - EXTENDED_HEADER_SIZE, "Designated Vendor-Specific")
    vendor_id, revision, length = VENDOR_HEADER.decompose(reader.read_u32())
    dvsec_id = reader.read_u16()
    available = len(payload) + EXTENDED_HEADER_SIZE
    if not DVSEC_MIN_SIZE <= length <= available:
        raise LengthMismatchError(vendor_id, revision, length, dvsec_id, available)
    registers = payload[reader.offset : length - EXTENDED_HEADER_SIZE]

    dvsec_type = DVSEC_DISPATCH.dispatch(
        vendor_id, dvsec_id, registers, revision=revision, length=length
    )
    if dvsec_type is None:
        dvsec_type = UnspecifiedDvsec(data=bytes(registers))
    return DesignatedVendorSpecific(
        dvsec_vendor_id=vendor_id,
        dvsec_revision=revision,
        dvsec_length=length,
        dvsec_id=dvsec_id,
        dvsec_type=dvsec_type,
    )


def _cxl_range_size(high: int, low: int) -> CxlRangeSize:
    valid, active, media_type, memory_class, interleave, timeout, _, size_low = (
        CXL_RANGE_SIZE_LOW.decompose(low)
    )
    return CxlRangeSize(
        memory_info_valid=valid,
        memory_active=active,
        media_type=media_type,
        memory_class=memory_class,
        desired_interleave=interleave,
        memory_active_timeout=timeout,
        memory_size=(high << 32) | (size_low << 28),
    )


def _cxl_range_base(high: int, low: int) -> int:
    _, base_low = CXL_RANGE_BASE_LOW.decompose(low)
    return (high << 32) | (base_low << 28)


def decode_cxl_device(registers: memoryview, dvsec_id: int) -> ComputeExpressLink:
    """CXL DVSEC ID 0000h. Registers follow DVSEC header 2 (offset 0Ah)."""
    reader = mandatory(registers, CXL_DEVICE_SIZE, "PCIe DVSEC for CXL Device")
    (
        cache,
        io,
        mem,
        mem_hwinit,
        hdm_count,
        cache_wbi,
        reset_capable,
        reset_timeout,
        reset_mem_clr,
        _,
        mld,
        viral,
        pm_init,
    ) = CXL_CAPABILITY.decompose(reader.read_u16())
    cache_en, io_en, mem_en, sf_coverage, sf_granularity, clean_eviction, _, viral_en, _ = (
        CXL_CONTROL.decompose(reader.read_u16())
    )
    _, viral_status, _ = CXL_STATUS.decompose(reader.read_u16())
    disable_caching, initiate_wbi, initiate_reset, mem_clr_enable, _ = CXL_CONTROL2.decompose(
        reader.read_u16()
    )
    cache_invalid, reset_complete, reset_error, _, pm_init_complete = CXL_STATUS2.decompose(
        reader.read_u16()
    )
    config_lock, _ = CXL_LOCK.decompose(reader.read_u16())
    cache_size_unit, _, cache_size = CXL_CAPABILITY2.decompose(reader.read_u16())
    # Each range is Size High, Size Low, Base High, Base Low
    ranges = [reader.read_u32() for _ in range(8)]

    device = PcieDvsecForCxlDevice(
        cxl_capability=CxlCapability(
            cache_capable=cache,
            io_capable=io,
            mem_capable=mem,
            mem_hwinit_mode=mem_hwinit,
            hdm_count=hdm_count,
            cache_writeback_and_invalidate_capable=cache_wbi,
            cxl_reset_capable=reset_capable,
            cxl_reset_timeout=reset_timeout,
            cxl_reset_mem_clr_capable=reset_mem_clr,
            multiple_logical_device=mld,
            viral_capable=viral,
            pm_init_completion_reporting_capable=pm_init,
        ),
        cxl_control=CxlControl(
            cache_enable=cache_en,
            io_enable=io_en,
            mem_enable=mem_en,
            cache_sf_coverage=sf_coverage,
            cache_sf_granularity=sf_granularity,
            cache_clean_eviction=clean_eviction,
            viral_enable=viral_en,
        ),
        cxl_status=CxlStatus(viral_status=viral_status),
        cxl_control2=CxlControl2(
            disable_caching=disable_caching,
            initiate_cache_write_back_and_invalidation=initiate_wbi,
            initiate_cxl_reset=initiate_reset,
            cxl_reset_mem_clr_enable=mem_clr_enable,
        ),
        cxl_status2=CxlStatus2(
            cache_invalid=cache_invalid,
            cxl_reset_complete=reset_complete,
            cxl_reset_error=reset_error,
            power_management_initialization_complete=pm_init_complete,
        ),
        config_lock=config_lock,
        cxl_capability2=CxlCapability2(cache_size_unit=cache_size_unit, cache_size=cache_size),
        range_1_size=_cxl_range_size(ranges[0], ranges[1]),
        range_1_base=_cxl_range_base(ranges[2], ranges[3]),
        range_2_size=_cxl_range_size(ranges[4], ranges[5]),
        range_2_base=_cxl_range_base(ranges[6], ranges[7]),
    )
    return ComputeExpressLink(structure=CXL_STRUCTURES[dvsec_id], dvsec_id=dvsec_id, device=device)


def decode_cxl_structure(registers: memoryview, dvsec_id: int) -> ComputeExpressLink:
    """CXL DVSEC whose registers are not decoded. Unassigned IDs are ``undefined``."""
    return ComputeExpressLink(
        structure=CXL_STRUCTURES.get(dvsec_id, "undefined"), dvsec_id=dvsec_id
    )


def decode_virtio(registers: memoryview, device_id: int) -> VirtioCapability:
    """virtio_pci_cap body (the bytes after cap_vndr, cap_next and cap_len)."""
    reader = mandatory(registers, VIRTIO_SIZE, "Virtio")
    cfg_type = reader.read_u8()
    bar = reader.read_u8()
    reader.skip(3)
    offset = reader.read_u32()
    size = reader.read_u32()
    multiplier = None
    if cfg_type == VIRTIO_CFG_NOTIFY and reader.remaining >= 4:
        multiplier = reader.read_u32()
    return VirtioCapability(
        cfg_type=cfg_type, bar=bar, offset=offset, size=size, notify_off_multiplier=multiplier
    )


DVSEC_DISPATCH = VendorDispatcher(
    "Designated Vendor-Specific",
    {
        (CXL_VENDOR_ID, dvsec_id): (decode_cxl_device if dvsec_id == 0x00 else decode_cxl_structure)
        for dvsec_id in CXL_STRUCTURES
    },
    vendor_defaults={CXL_VENDOR_ID: decode_cxl_structure},
)

VIRTIO_DISPATCH = VendorDispatcher(
    "Vendor Specific",
    {(VIRTIO_VENDOR_ID, device_id): decode_virtio for device_id in VIRTIO_DEVICE_IDS},
)
