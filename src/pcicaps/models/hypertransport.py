"""Pydantic models for the HyperTransport (08h) capability family.

The Command register's top five bits select one of several unrelated
register blocks. Only the interface blocks, Revision ID and MSI Mapping
carry registers worth decoding; the rest are identified by type only.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

HT_TYPE_NAMES = {
    0b01000: "switch",
    0b01001: "reserved_host",
    0b10000: "interrupt_discovery_and_configuration",
    0b10001: "revision_id",
    0b10010: "unit_id_clumping",
    0b10011: "extended_configuration_space_access",
    0b10100: "address_mapping",
    0b10101: "msi_mapping",
    0b10110: "direct_route",
    0b10111: "vc_set",
    0b11000: "retry_mode",
    0b11001: "x86_encoding",
    0b11010: "gen3",
    0b11011: "function_level_extension",
    0b11100: "power_management",
    0b11101: "high_node_count",
}

# Link frequency encodings (MHz) without and with the Link Frequency Extension bit
_LINK_FREQUENCIES = (
    200, 300, 400, 500, 600, 800, 1000, 1200, 1400, 1600, 1800, 2000, 2200, 2400, 2600,
)
_LINK_FREQUENCIES_EXT = {0b0001: 2800, 0b0010: 3000, 0b0011: 3200}
_LINK_WIDTHS = {0b000: 8, 0b001: 16, 0b011: 32, 0b100: 2, 0b101: 4}


def ht_type_name(capability_type: int) -> str:
    if capability_type <= 0b00011:
        return "slave_or_primary_interface"
    if capability_type <= 0b00111:
        return "host_or_secondary_interface"
    return HT_TYPE_NAMES.get(capability_type, "reserved")


class HtRevisionId(BaseModel):
    minor: int
    major: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor:02}"


class HtLinkControl(BaseModel):
    source_id_enable: bool
    crc_flood_enable: bool
    crc_start_test: bool
    crc_force_error: bool
    link_failure: bool
    initialization_complete: bool
    end_of_chain: bool
    transmitter_off: bool
    crc_error: int
    isochronous_flow_control_enable: bool
    ldtstop_tristate_enable: bool
    extended_ctl_time: bool
    enable_64_bit_addressing: bool


class HtLinkConfiguration(BaseModel):
    """Link widths are raw 3-bit encodings; see ``width_bits``."""

    max_link_width_in: int
    doubleword_flow_control_in: bool
    max_link_width_out: int
    doubleword_flow_control_out: bool
    link_width_in: int
    doubleword_flow_control_in_enable: bool
    link_width_out: int
    doubleword_flow_control_out_enable: bool

    @staticmethod
    def width_bits(encoding: int) -> int | None:
        """Width in bits, 0 for not connected, None for reserved encodings."""
        if encoding == 0b111:
            return 0
        return _LINK_WIDTHS.get(encoding)


class HtLinkError(BaseModel):
    protocol_error: bool
    overflow_error: bool
    end_of_chain_error: bool
    ctl_timeout: bool


class HtLinkFrequency(BaseModel):
    """Link Frequency field and its error bits (one byte)."""

    link_freq: int
    error: HtLinkError

    def megahertz(self, link_freq_ext: bool = False) -> int | None:
        """None for the vendor-specific and reserved encodings."""
        if link_freq_ext:
            return _LINK_FREQUENCIES_EXT.get(self.link_freq)
        if self.link_freq < len(_LINK_FREQUENCIES):
            return _LINK_FREQUENCIES[self.link_freq]
        return None


class HtFeatureCapability(BaseModel):
    isochronous_flow_control_mode: bool
    ldtstop: bool
    crc_test_mode: bool
    extended_ctl_time_required: bool
    qword_addressing: bool
    unitid_reorder_disable: bool
    source_identification_extension: bool
    extended_register_set: bool
    upstream_configuration_enable: bool


class HtErrorHandling(BaseModel):
    protocol_error_flood_enable: bool
    overflow_error_flood_enable: bool
    protocol_error_fatal_enable: bool
    overflow_error_fatal_enable: bool
    end_of_chain_error_fatal_enable: bool
    response_error_fatal_enable: bool
    crc_error_fatal_enable: bool
    system_error_fatal_enable: bool
    chain_fail: bool
    response_error: bool
    protocol_error_nonfatal_enable: bool
    overflow_error_nonfatal_enable: bool
    end_of_chain_error_nonfatal_enable: bool
    response_error_nonfatal_enable: bool
    crc_error_nonfatal_enable: bool
    system_error_nonfatal_enable: bool


class HtSlaveCommand(BaseModel):
    base_unitid: int
    unit_count: int
    master_host: bool
    default_direction: bool
    drop_on_uninitialized_link: bool


class HtHostCommand(BaseModel):
    warm_reset: bool
    double_ended: bool
    device_number: int
    chain_side: bool
    host_hide: bool
    act_as_slave: bool
    host_inbound_end_of_chain_error: bool
    drop_on_uninitialized_link: bool


class HtSlaveOrPrimaryInterface(BaseModel):
    """Slave/Primary Interface block. The supported frequency maps are raw bitmaps."""

    command: HtSlaveCommand
    link_control_0: HtLinkControl
    link_config_0: HtLinkConfiguration
    link_control_1: HtLinkControl
    link_config_1: HtLinkConfiguration
    revision_id: HtRevisionId
    link_freq_0: HtLinkFrequency
    link_freq_cap_0: int
    feature: HtFeatureCapability
    link_freq_1: HtLinkFrequency
    link_freq_cap_1: int
    enumeration_scratchpad: int
    error_handling: HtErrorHandling
    mem_base_upper: int
    mem_limit_upper: int
    bus_number: int


class HtHostOrSecondaryInterface(BaseModel):
    command: HtHostCommand
    link_control: HtLinkControl
    link_config: HtLinkConfiguration
    revision_id: HtRevisionId
    link_freq: HtLinkFrequency
    link_freq_cap: int
    feature: HtFeatureCapability
    enumeration_scratchpad: int
    error_handling: HtErrorHandling
    mem_base_upper: int
    mem_limit_upper: int


class HtMsiMapping(BaseModel):
    enabled: bool
    fixed: bool
    base_address_lower: int
    base_address_upper: int

    @property
    def base_address(self) -> int:
        return (self.base_address_upper << 32) | (self.base_address_lower & ~0xFFFFF & 0xFFFFFFFF)


class HyperTransport(BaseModel):
    """08h HyperTransport.

    ``block`` holds the decoded register block for the interface,
    Revision ID and MSI Mapping types and is None for the others.
    """

    kind: Literal["hypertransport"] = "hypertransport"
    capability_type: int
    type_name: str
    block: (
        HtSlaveOrPrimaryInterface | HtHostOrSecondaryInterface | HtRevisionId | HtMsiMapping | None
    ) = None
