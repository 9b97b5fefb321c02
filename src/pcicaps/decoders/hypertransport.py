"""Field tables for the HyperTransport (08h) capability.

The payload starts at the Command register. Its bits 15:11 pick the
register block; interface types use the top two or three bits only.
"""

from __future__ import annotations

from pcicaps.core.bitfield import layout
from pcicaps.core.reader import mandatory
from pcicaps.models.hypertransport import (
    HtErrorHandling,
    HtFeatureCapability,
    HtHostCommand,
    HtHostOrSecondaryInterface,
    HtLinkConfiguration,
    HtLinkControl,
    HtLinkError,
    HtLinkFrequency,
    HtMsiMapping,
    HtRevisionId,
    HtSlaveCommand,
    HtSlaveOrPrimaryInterface,
    HyperTransport,
    ht_type_name,
)

HT_COMMAND_TYPE = layout(16, 11, 5, name="HT capability type")
HT_SLAVE_COMMAND = layout(16, 5, 5, 1, 1, 1, 3, name="HT slave command")
HT_HOST_COMMAND = layout(16, 1, 1, 5, 1, 1, 1, 1, 1, 1, 3, name="HT host command")
HT_LINK_CONTROL = layout(16, 1, 1, 1, 1, 1, 1, 1, 1, 4, 1, 1, 1, 1, name="HT link control")
HT_LINK_CONFIG = layout(16, 3, 1, 3, 1, 3, 1, 3, 1, name="HT link configuration")
HT_REVISION = layout(8, 5, 3, name="HT revision ID")
HT_LINK_FREQ = layout(8, 4, 1, 1, 1, 1, name="HT link frequency/error")
HT_FEATURE = layout(16, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 6, name="HT feature")
HT_ERROR_HANDLING = layout(16, *([1] * 16), name="HT error handling")
HT_MSI_MAPPING = layout(16, 1, 1, 14, name="HT MSI mapping")

HT_SLAVE_SIZE = 26
HT_HOST_SIZE = 22
HT_MSI_MAPPING_SIZE = 10

_LINK_CONTROL_FIELDS = tuple(HtLinkControl.model_fields)
_LINK_CONFIG_FIELDS = tuple(HtLinkConfiguration.model_fields)
_ERROR_HANDLING_FIELDS = tuple(HtErrorHandling.model_fields)


def _link_control(word: int) -> HtLinkControl:
    return HtLinkControl(**dict(zip(_LINK_CONTROL_FIELDS, HT_LINK_CONTROL.decompose(word))))


def _link_config(word: int) -> HtLinkConfiguration:
    return HtLinkConfiguration(**dict(zip(_LINK_CONFIG_FIELDS, HT_LINK_CONFIG.decompose(word))))


def _error_handling(word: int) -> HtErrorHandling:
    return HtErrorHandling(
        **dict(zip(_ERROR_HANDLING_FIELDS, HT_ERROR_HANDLING.decompose(word)))
    )


def _revision(byte: int) -> HtRevisionId:
    minor, major = HT_REVISION.decompose(byte)
    return HtRevisionId(minor=minor, major=major)


def _link_freq(byte: int) -> HtLinkFrequency:
    link_freq, protocol, overflow, end_of_chain, ctl_timeout = HT_LINK_FREQ.decompose(byte)
    return HtLinkFrequency(
        link_freq=link_freq,
        error=HtLinkError(
            protocol_error=protocol,
            overflow_error=overflow,
            end_of_chain_error=end_of_chain,
            ctl_timeout=ctl_timeout,
        ),
    )


def _feature(word: int) -> HtFeatureCapability:
    (
        isochronous,
        ldtstop,
        crc_test_mode,
        extended_ctl_time_required,
        qword_addressing,
        unitid_reorder_disable,
        source_id_extension,
        _,
        extended_register_set,
        upstream_configuration_enable,
        _,
    ) = HT_FEATURE.decompose(word)
    return HtFeatureCapability(
        isochronous_flow_control_mode=isochronous,
        ldtstop=ldtstop,
        crc_test_mode=crc_test_mode,
        extended_ctl_time_required=extended_ctl_time_required,
        qword_addressing=qword_addressing,
        unitid_reorder_disable=unitid_reorder_disable,
        source_identification_extension=source_id_extension,
        extended_register_set=extended_register_set,
        upstream_configuration_enable=upstream_configuration_enable,
    )


def _slave_or_primary(payload: memoryview) -> HtSlaveOrPrimaryInterface:
    reader = mandatory(payload, HT_SLAVE_SIZE, "HyperTransport Slave/Primary Interface")
    base_unitid, unit_count, master_host, default_direction, drop, _ = (
        HT_SLAVE_COMMAND.decompose(reader.read_u16())
    )
    link_control_0 = _link_control(reader.read_u16())
    link_config_0 = _link_config(reader.read_u16())
    link_control_1 = _link_control(reader.read_u16())
    link_config_1 = _link_config(reader.read_u16())
    revision_id = _revision(reader.read_u8())
    link_freq_0 = _link_freq(reader.read_u8())
    link_freq_cap_0 = reader.read_u16()
    feature = _feature(reader.read_u8())
    link_freq_1 = _link_freq(reader.read_u8())
    link_freq_cap_1 = reader.read_u16()
    return HtSlaveOrPrimaryInterface(
        command=HtSlaveCommand(
            base_unitid=base_unitid,
            unit_count=unit_count,
            master_host=master_host,
            default_direction=default_direction,
            drop_on_uninitialized_link=drop,
        ),
        link_control_0=link_control_0,
        link_config_0=link_config_0,
        link_control_1=link_control_1,
        link_config_1=link_config_1,
        revision_id=revision_id,
        link_freq_0=link_freq_0,
        link_freq_cap_0=link_freq_cap_0,
        feature=feature,
        link_freq_1=link_freq_1,
        link_freq_cap_1=link_freq_cap_1,
        enumeration_scratchpad=reader.read_u16(),
        error_handling=_error_handling(reader.read_u16()),
        mem_base_upper=reader.read_u8(),
        mem_limit_upper=reader.read_u8(),
        bus_number=reader.read_u8(),
    )


def _host_or_secondary(payload: memoryview) -> HtHostOrSecondaryInterface:
    reader = mandatory(payload, HT_HOST_SIZE, "HyperTransport Host/Secondary Interface")
    (
        warm_reset,
        double_ended,
        device_number,
        chain_side,
        host_hide,
        _,
        act_as_slave,
        inbound_eoc_error,
        drop,
        _,
    ) = HT_HOST_COMMAND.decompose(reader.read_u16())
    link_control = _link_control(reader.read_u16())
    link_config = _link_config(reader.read_u16())
    revision_id = _revision(reader.read_u8())
    link_freq = _link_freq(reader.read_u8())
    link_freq_cap = reader.read_u16()
    feature = _feature(reader.read_u16())
    reader.skip(2)
    return HtHostOrSecondaryInterface(
        command=HtHostCommand(
            warm_reset=warm_reset,
            double_ended=double_ended,
            device_number=device_number,
            chain_side=chain_side,
            host_hide=host_hide,
            act_as_slave=act_as_slave,
            host_inbound_end_of_chain_error=inbound_eoc_error,
            drop_on_uninitialized_link=drop,
        ),
        link_control=link_control,
        link_config=link_config,
        revision_id=revision_id,
        link_freq=link_freq,
        link_freq_cap=link_freq_cap,
        feature=feature,
        enumeration_scratchpad=reader.read_u16(),
        error_handling=_error_handling(reader.read_u16()),
        mem_base_upper=reader.read_u8(),
        mem_limit_upper=reader.read_u8(),
    )


def _revision_block(payload: memoryview) -> HtRevisionId:
    # Revision ID sits in the low byte of the Command register
    return _revision(mandatory(payload, 1, "HyperTransport Revision ID").read_u8())


def _msi_mapping(payload: memoryview) -> HtMsiMapping:
    reader = mandatory(payload, HT_MSI_MAPPING_SIZE, "HyperTransport MSI Mapping")
    enabled, fixed, _ = HT_MSI_MAPPING.decompose(reader.read_u16())
    return HtMsiMapping(
        enabled=enabled,
        fixed=fixed,
        base_address_lower=reader.read_u32(),
        base_address_upper=reader.read_u32(),
    )


_BLOCK_DECODERS = {
    "slave_or_primary_interface": _slave_or_primary,
    "host_or_secondary_interface": _host_or_secondary,
    "revision_id": _revision_block,
    "msi_mapping": _msi_mapping,
}


def decode_hypertransport(payload: memoryview) -> HyperTransport:
    """08h HyperTransport.

    A register block too short for its type fails the whole capability.
    """
    reader = mandatory(payload, 2, "HyperTransport")
    _, capability_type = HT_COMMAND_TYPE.decompose(reader.peek_u16(0))
    type_name = ht_type_name(capability_type)
    block_decoder = _BLOCK_DECODERS.get(type_name)
    return HyperTransport(
        capability_type=capability_type,
        type_name=type_name,
        block=block_decoder(payload) if block_decoder else None,
    )
