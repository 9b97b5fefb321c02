"""Decoder registry: capability ID -> decode function.

IDs without a registered decoder decode to UnknownCapability carrying the
raw payload. A decoder failure is confined to its own capability: the
list-level functions record it as a DecodeFailure and carry on with the
siblings, unless ``DecoderConfig.fail_fast`` is set.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Iterable

from pcicaps.config import DEFAULT_CONFIG, DecoderConfig
from pcicaps.core.header import capabilities_root
from pcicaps.core.reader import ByteReader
from pcicaps.core.walker import iter_capabilities, iter_extended_capabilities
from pcicaps.decoders import extended, hypertransport, legacy, vendor
from pcicaps.exceptions import PcicapsError
from pcicaps.models.capabilities import CapabilityId
from pcicaps.models.extended import ExtendedCapabilityId
from pcicaps.models.records import (
    CapabilityListing,
    ConfigSpaceCapabilities,
    DecodedCapability,
    DecodeFailure,
    RawCapability,
    UnknownCapability,
)
from pcicaps.utils.logging import get_logger

logger = get_logger(__name__)

Decoder = Callable[[memoryview], Any]

_LEGACY_DECODERS: dict[int, Decoder] = {
    CapabilityId.NULL: legacy.decode_null,
    CapabilityId.POWER_MANAGEMENT: legacy.decode_power_management,
    CapabilityId.VITAL_PRODUCT_DATA: legacy.decode_vital_product_data,
    CapabilityId.SLOT_IDENTIFICATION: legacy.decode_slot_identification,
    CapabilityId.MSI: legacy.decode_msi,
    CapabilityId.COMPACT_PCI_HOT_SWAP: legacy.decode_compact_pci_hot_swap,
    CapabilityId.DEBUG_PORT: legacy.decode_debug_port,
    CapabilityId.COMPACT_PCI_RESOURCE_CONTROL: legacy.decode_compact_pci_resource_control,
    CapabilityId.PCI_HOT_PLUG: legacy.decode_pci_hot_plug,
    CapabilityId.BRIDGE_SUBSYSTEM_VENDOR_ID: legacy.decode_bridge_subsystem_vendor_id,
    CapabilityId.HYPERTRANSPORT: hypertransport.decode_hypertransport,
    CapabilityId.AGP_8X: legacy.decode_agp_8x,
    CapabilityId.SECURE_DEVICE: legacy.decode_secure_device,
    CapabilityId.PCI_EXPRESS: legacy.decode_pci_express,
    CapabilityId.MSI_X: legacy.decode_msi_x,
    CapabilityId.SATA: legacy.decode_sata,
    CapabilityId.ADVANCED_FEATURES: legacy.decode_advanced_features,
}

# Legacy decoders that also need the device's (vendor id, device id)
_LEGACY_IDENTITY_DECODERS: dict[int, Callable[[memoryview, int | None, int | None], Any]] = {
    CapabilityId.VENDOR_SPECIFIC: legacy.decode_vendor_specific,
}

_EXTENDED_DECODERS: dict[int, Decoder] = {
    ExtendedCapabilityId.NULL: extended.decode_extended_null,
    ExtendedCapabilityId.ADVANCED_ERROR_REPORTING: extended.decode_advanced_error_reporting,
    ExtendedCapabilityId.DEVICE_SERIAL_NUMBER: extended.decode_device_serial_number,
    ExtendedCapabilityId.VENDOR_SPECIFIC: vendor.decode_vendor_specific_extended,
    ExtendedCapabilityId.ACCESS_CONTROL_SERVICES: extended.decode_access_control_services,
    ExtendedCapabilityId.ALTERNATIVE_ROUTING_ID: extended.decode_alternative_routing_id,
    ExtendedCapabilityId.ADDRESS_TRANSLATION_SERVICES: extended.decode_address_translation_services,
    ExtendedCapabilityId.PAGE_REQUEST_INTERFACE: extended.decode_page_request_interface,
    ExtendedCapabilityId.RESIZABLE_BAR: extended.decode_resizable_bar,
    ExtendedCapabilityId.LATENCY_TOLERANCE_REPORTING: extended.decode_latency_tolerance_reporting,
    ExtendedCapabilityId.PROCESS_ADDRESS_SPACE_ID: extended.decode_process_address_space_id,
    ExtendedCapabilityId.PRECISION_TIME_MEASUREMENT: extended.decode_precision_time_measurement,
    ExtendedCapabilityId.DESIGNATED_VENDOR_SPECIFIC: vendor.decode_designated_vendor_specific,
    ExtendedCapabilityId.VF_RESIZABLE_BAR: extended.decode_vf_resizable_bar,
    ExtendedCapabilityId.VIRTUAL_CHANNEL: extended.decode_virtual_channel,
    ExtendedCapabilityId.POWER_BUDGETING: extended.decode_power_budgeting,
    ExtendedCapabilityId.TPH_REQUESTER: extended.decode_tph_requester,
    ExtendedCapabilityId.SECONDARY_PCI_EXPRESS: extended.decode_secondary_pci_express,
    ExtendedCapabilityId.DOWNSTREAM_PORT_CONTAINMENT: extended.decode_downstream_port_containment,
    ExtendedCapabilityId.L1_PM_SUBSTATES: extended.decode_l1_pm_substates,
}
_EXTENDED_DECODERS.update(
    (cap_id, extended.named_decoder(int(cap_id), name))
    for cap_id, name in extended.NAMED_EXTENDED.items()
)


def is_registered(cap_id: int, extended: bool = False) -> bool:
    """True if ``cap_id`` has a decoder in the legacy or extended table."""
    if extended:
        return cap_id in _EXTENDED_DECODERS
    return cap_id in _LEGACY_DECODERS or cap_id in _LEGACY_IDENTITY_DECODERS


def decode(raw: RawCapability, config: DecoderConfig | None = None) -> DecodedCapability:
    """Decode one capability record.

    Raises PcicapsError (located at the record's offset and ID) when the
    payload does not hold a valid structure for its ID.
    """
    config = config or DEFAULT_CONFIG
    try:
        if raw.extended:
            body = _decode_body(_EXTENDED_DECODERS.get(raw.cap_id), raw)
        elif raw.cap_id in _LEGACY_IDENTITY_DECODERS:
            body = _LEGACY_IDENTITY_DECODERS[raw.cap_id](
                raw.payload, config.vendor_id, config.device_id
            )
        else:
            body = _decode_body(_LEGACY_DECODERS.get(raw.cap_id), raw)
    except PcicapsError as exc:
        exc.locate(raw.offset, raw.cap_id)
        raise
    return DecodedCapability(offset=raw.offset, cap_id=raw.cap_id, version=raw.version, body=body)


def _decode_body(decoder: Decoder | None, raw: RawCapability) -> Any:
    if decoder is None:
        logger.debug(
            "capability_unknown",
            offset=f"0x{raw.offset:X}",
            cap_id=f"0x{raw.cap_id:X}",
            extended=raw.extended,
        )
        return UnknownCapability(cap_id=raw.cap_id, data=raw.data)
    return decoder(raw.payload)


def decode_all(
    records: Iterable[RawCapability],
    config: DecoderConfig | None = None,
) -> list[DecodedCapability | DecodeFailure]:
    """Decode every record, recording failures in place of the failed entry."""
    config = config or DEFAULT_CONFIG
    entries: list[DecodedCapability | DecodeFailure] = []
    for raw in records:
        try:
            entries.append(decode(raw, config))
        except PcicapsError as exc:
            if config.fail_fast:
                raise
            logger.warning(
                "capability_decode_failed",
                offset=f"0x{raw.offset:X}",
                cap_id=f"0x{raw.cap_id:X}",
                error=exc.message,
            )
            entries.append(DecodeFailure(raw.offset, raw.cap_id, raw.version, exc))
    return entries


def _with_identity(data: bytes | bytearray | memoryview, config: DecoderConfig) -> DecoderConfig:
    """Fill vendor/device ID from the config space header unless already set."""
    if config.vendor_id is not None and config.device_id is not None:
        return config
    reader = ByteReader(data)
    if len(reader) < 4:
        return config
    return replace(
        config,
        vendor_id=config.vendor_id if config.vendor_id is not None else reader.peek_u16(0x00),
        device_id=config.device_id if config.device_id is not None else reader.peek_u16(0x02),
    )


def decode_capabilities(
    data: bytes | bytearray | memoryview,
    root: int | None = None,
    config: DecoderConfig | None = None,
) -> CapabilityListing:
    """Walk and decode the legacy capability list.

    When ``root`` is None it is read from the Capabilities Pointer (0x34),
    provided the Status register advertises a capability list.
    """
    config = _with_identity(data, config or DEFAULT_CONFIG)
    if root is None:
        root = capabilities_root(data)
        if root is None:
            logger.debug("capability_list_absent")
            return CapabilityListing(entries=[])
    run = iter(iter_capabilities(data, root, config))
    entries = decode_all(run, config)
    return CapabilityListing(
        entries=entries, walk_state=run.state, walk_error=run.error, notes=list(run.notes)
    )


def decode_extended_capabilities(
    data: bytes | bytearray | memoryview,
    config: DecoderConfig | None = None,
) -> CapabilityListing:
    """Walk and decode the extended capability list starting at 0x100."""
    config = config or DEFAULT_CONFIG
    run = iter(iter_extended_capabilities(data, config))
    entries = decode_all(run, config)
    return CapabilityListing(
        entries=entries, walk_state=run.state, walk_error=run.error, notes=list(run.notes)
    )


def decode_config_space(
    data: bytes | bytearray | memoryview,
    config: DecoderConfig | None = None,
) -> ConfigSpaceCapabilities:
    """Decode both capability lists of a 256- or 4096-byte config space dump."""
    return ConfigSpaceCapabilities(
        legacy=decode_capabilities(data, config=config),
        extended=decode_extended_capabilities(data, config),
    )
