"""Pydantic models for PCI Express extended capabilities (offset >= 0x100)."""

from __future__ import annotations

from enum import IntEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class ExtendedCapabilityId(IntEnum):
    """Extended capability IDs assigned by the PCI-SIG."""

    NULL = 0x0000
    ADVANCED_ERROR_REPORTING = 0x0001
    VIRTUAL_CHANNEL = 0x0002
    DEVICE_SERIAL_NUMBER = 0x0003
    POWER_BUDGETING = 0x0004
    ROOT_COMPLEX_LINK_DECLARATION = 0x0005
    ROOT_COMPLEX_INTERNAL_LINK_CONTROL = 0x0006
    ROOT_COMPLEX_EVENT_COLLECTOR_ENDPOINT_ASSOCIATION = 0x0007
    MULTI_FUNCTION_VIRTUAL_CHANNEL = 0x0008
    VIRTUAL_CHANNEL_MFVC_PRESENT = 0x0009
    ROOT_COMPLEX_REGISTER_BLOCK = 0x000A
    VENDOR_SPECIFIC = 0x000B
    CONFIGURATION_ACCESS_CORRELATION = 0x000C
    ACCESS_CONTROL_SERVICES = 0x000D
    ALTERNATIVE_ROUTING_ID = 0x000E
    ADDRESS_TRANSLATION_SERVICES = 0x000F
    SR_IOV = 0x0010
    MR_IOV = 0x0011
    MULTICAST = 0x0012
    PAGE_REQUEST_INTERFACE = 0x0013
    AMD_RESERVED = 0x0014
    RESIZABLE_BAR = 0x0015
    DYNAMIC_POWER_ALLOCATION = 0x0016
    TPH_REQUESTER = 0x0017
    LATENCY_TOLERANCE_REPORTING = 0x0018
    SECONDARY_PCI_EXPRESS = 0x0019
    PROTOCOL_MULTIPLEXING = 0x001A
    PROCESS_ADDRESS_SPACE_ID = 0x001B
    LN_REQUESTER = 0x001C
    DOWNSTREAM_PORT_CONTAINMENT = 0x001D
    L1_PM_SUBSTATES = 0x001E
    PRECISION_TIME_MEASUREMENT = 0x001F
    PCI_EXPRESS_OVER_MPHY = 0x0020
    FRS_QUEUEING = 0x0021
    READINESS_TIME_REPORTING = 0x0022
    DESIGNATED_VENDOR_SPECIFIC = 0x0023
    VF_RESIZABLE_BAR = 0x0024
    DATA_LINK_FEATURE = 0x0025
    PHYSICAL_LAYER_16GT = 0x0026
    LANE_MARGINING = 0x0027
    HIERARCHY_ID = 0x0028
    NATIVE_PCIE_ENCLOSURE_MANAGEMENT = 0x0029
    PHYSICAL_LAYER_32GT = 0x002A
    ALTERNATE_PROTOCOL = 0x002B
    SYSTEM_FIRMWARE_INTERMEDIARY = 0x002C
    PHYSICAL_LAYER_64GT = 0x0031


class ExtendedNull(BaseModel):
    """0000h Null Capability."""

    kind: Literal["extended_null"] = "extended_null"


# ---------------------------------------------------------------------------
# 0001h Advanced Error Reporting
# ---------------------------------------------------------------------------


class AerUncorrectableErrors(BaseModel):
    """Uncorrectable Error Status/Mask/Severity register (same layout for all three)."""

    raw_value: int = 0
    link_training_error: bool = False
    data_link_protocol_error: bool = False
    surprise_down_error: bool = False
    poisoned_tlp_received: bool = False
    flow_control_protocol_error: bool = False
    completion_timeout: bool = False
    completer_abort: bool = False
    unexpected_completion: bool = False
    receiver_overflow: bool = False
    malformed_tlp: bool = False
    ecrc_error: bool = False
    unsupported_request_error: bool = False
    acs_violation: bool = False
    uncorrectable_internal_error: bool = False
    mc_blocked_tlp: bool = False
    atomicop_egress_blocked: bool = False
    tlp_prefix_blocked_error: bool = False
    poisoned_tlp_egress_blocked: bool = False


class AerCorrectableErrors(BaseModel):
    """Correctable Error Status/Mask register."""

    raw_value: int = 0
    receiver_error: bool = False
    bad_tlp: bool = False
    bad_dllp: bool = False
    replay_num_rollover: bool = False
    replay_timer_timeout: bool = False
    advisory_non_fatal_error: bool = False
    corrected_internal_error: bool = False
    header_log_overflow: bool = False


class AerCapabilitiesAndControl(BaseModel):
    """Advanced Error Capabilities and Control register."""

    first_error_pointer: int
    ecrc_generation_capable: bool
    ecrc_generation_enable: bool
    ecrc_check_capable: bool
    ecrc_check_enable: bool
    multiple_header_recording_capable: bool
    multiple_header_recording_enable: bool
    tlp_prefix_log_present: bool
    completion_timeout_prefix_or_header_log_capable: bool


class AerRootErrorCommand(BaseModel):
    correctable_error_reporting_enable: bool
    non_fatal_error_reporting_enable: bool
    fatal_error_reporting_enable: bool


class AerRootErrorStatus(BaseModel):
    err_cor_received: bool
    multiple_err_cor_received: bool
    err_fatal_or_nonfatal_received: bool
    multiple_err_fatal_or_nonfatal_received: bool
    first_uncorrectable_fatal: bool
    non_fatal_error_messages_received: bool
    fatal_error_messages_received: bool
    advanced_error_interrupt_message_number: int


class AerErrorSourceIdentification(BaseModel):
    err_cor_source_identification: int
    err_fatal_or_nonfatal_source_identification: int


class AdvancedErrorReporting(BaseModel):
    """0001h Advanced Error Reporting.

    Root port registers are only present on Root Ports and Root Complex
    Event Collectors and are None when the structure is too short.
    """

    kind: Literal["advanced_error_reporting"] = "advanced_error_reporting"
    uncorrectable_error_status: AerUncorrectableErrors
    uncorrectable_error_mask: AerUncorrectableErrors
    uncorrectable_error_severity: AerUncorrectableErrors
    correctable_error_status: AerCorrectableErrors
    correctable_error_mask: AerCorrectableErrors
    capabilities_and_control: AerCapabilitiesAndControl
    header_log: list[int]
    root_error_command: AerRootErrorCommand | None = None
    root_error_status: AerRootErrorStatus | None = None
    error_source_identification: AerErrorSourceIdentification | None = None
    tlp_prefix_log: list[int] | None = None


# ---------------------------------------------------------------------------
# 0003h Device Serial Number
# ---------------------------------------------------------------------------


class DeviceSerialNumber(BaseModel):
    """0003h Device Serial Number (IEEE EUI-64)."""

    kind: Literal["device_serial_number"] = "device_serial_number"
    lower_dword: int
    upper_dword: int

    @property
    def serial_number(self) -> int:
        return (self.upper_dword << 32) | self.lower_dword

    def __str__(self) -> str:
        return "-".join(f"{b:02x}" for b in self.serial_number.to_bytes(8, "big"))


# ---------------------------------------------------------------------------
# 000Bh Vendor-Specific Extended Capability
# ---------------------------------------------------------------------------


class VendorSpecificExtended(BaseModel):
    """000Bh Vendor-Specific Extended Capability (VSEC).

    ``registers_state`` is ``valid`` when the declared length fits the
    available bytes, ``invalid_length`` when it is shorter than the VSEC
    header itself, and ``incomplete`` when it runs past the available
    bytes. ``registers`` holds whatever could be read.
    """

    kind: Literal["vendor_specific_extended"] = "vendor_specific_extended"
    vsec_id: int
    vsec_rev: int
    vsec_length: int
    registers_state: Literal["valid", "invalid_length", "incomplete"]
    registers: bytes


# ---------------------------------------------------------------------------
# 000Dh ACS, 000Eh ARI, 000Fh ATS
# ---------------------------------------------------------------------------


class AcsCapability(BaseModel):
    source_validation: bool
    translation_blocking: bool
    p2p_request_redirect: bool
    p2p_completion_redirect: bool
    upstream_forwarding: bool
    p2p_egress_control: bool
    direct_translated_p2p: bool
    enhanced_capability: bool
    egress_control_vector_size: int


class AcsControl(BaseModel):
    source_validation_enable: bool
    translation_blocking_enable: bool
    p2p_request_redirect_enable: bool
    p2p_completion_redirect_enable: bool
    upstream_forwarding_enable: bool
    p2p_egress_control_enable: bool
    direct_translated_p2p_enable: bool


class AccessControlServices(BaseModel):
    """000Dh Access Control Services."""

    kind: Literal["access_control_services"] = "access_control_services"
    capability: AcsCapability
    control: AcsControl
    egress_control_vector: int | None = None


class AriCapability(BaseModel):
    mfvc_function_groups_capability: bool
    acs_function_groups_capability: bool
    next_function_number: int


class AriControl(BaseModel):
    mfvc_function_groups_enable: bool
    acs_function_groups_enable: bool
    function_group: int


class AlternativeRoutingIdInterpretation(BaseModel):
    """000Eh Alternative Routing-ID Interpretation."""

    kind: Literal["alternative_routing_id"] = "alternative_routing_id"
    capability: AriCapability
    control: AriControl


class AtsCapability(BaseModel):
    invalidate_queue_depth: int
    page_aligned_request: bool
    global_invalidate_supported: bool


class AtsControl(BaseModel):
    smallest_translation_unit: int
    enable: bool


class AddressTranslationServices(BaseModel):
    """000Fh Address Translation Services."""

    kind: Literal["address_translation_services"] = "address_translation_services"
    capability: AtsCapability
    control: AtsControl


# ---------------------------------------------------------------------------
# 0013h PRI
# ---------------------------------------------------------------------------


class PriControl(BaseModel):
    enable: bool
    reset: bool


class PriStatus(BaseModel):
    response_failure: bool
    unexpected_page_request_group_index: bool
    stopped: bool
    prg_response_pasid_required: bool


class PageRequestInterface(BaseModel):
    """0013h Page Request Interface."""

    kind: Literal["page_request_interface"] = "page_request_interface"
    control: PriControl
    status: PriStatus
    outstanding_page_request_capacity: int
    outstanding_page_request_allocation: int


# ---------------------------------------------------------------------------
# 0015h Resizable BAR, 0024h VF Resizable BAR
# ---------------------------------------------------------------------------

_BAR_SIZE_UNITS = ("MB", "GB", "TB", "PB", "EB")


def _bar_size_name(power: int) -> str:
    """Human readable size of 2**power bytes, power >= 20."""
    step = (power - 20) // 10
    return f"{1 << ((power - 20) % 10)}{_BAR_SIZE_UNITS[step]}"


class ResizableBarControl(BaseModel):
    bar_index: int
    number_of_resizable_bars: int
    bar_size: int
    support_map_from_256tb_to_8eb: int


class ResizableBarEntry(BaseModel):
    """One Capability/Control register pair."""

    support_map_from_1mb_to_128tb: int
    control: ResizableBarControl

    def supports_power_of_two(self, power: int) -> bool:
        """True if the BAR can be sized to ``2**power`` bytes."""
        if 20 <= power <= 47:
            return bool(self.support_map_from_1mb_to_128tb & (1 << (power - 16)))
        if 48 <= power <= 63:
            return bool(self.control.support_map_from_256tb_to_8eb & (1 << (power - 48)))
        return False

    @property
    def supported_sizes(self) -> list[str]:
        return [_bar_size_name(p) for p in range(20, 64) if self.supports_power_of_two(p)]

    @property
    def current_size(self) -> str:
        return _bar_size_name(20 + self.control.bar_size)


class ResizableBar(BaseModel):
    """0015h Resizable BAR."""

    kind: Literal["resizable_bar"] = "resizable_bar"
    entries: list[ResizableBarEntry]


class VfResizableBar(BaseModel):
    """0024h VF Resizable BAR. Same entry table as Resizable BAR."""

    kind: Literal["vf_resizable_bar"] = "vf_resizable_bar"
    entries: list[ResizableBarEntry]


# ---------------------------------------------------------------------------
# 0018h LTR, 001Bh PASID, 001Fh PTM
# ---------------------------------------------------------------------------


class MaxLatency(BaseModel):
    value: int
    scale: int

    @property
    def nanoseconds(self) -> int | None:
        """None for the reserved scale encodings (6, 7)."""
        if self.scale > 5:
            return None
        return self.value * (1 << (5 * self.scale))


class LatencyToleranceReporting(BaseModel):
    """0018h Latency Tolerance Reporting."""

    kind: Literal["latency_tolerance_reporting"] = "latency_tolerance_reporting"
    max_snoop_latency: MaxLatency
    max_no_snoop_latency: MaxLatency


class PasidCapability(BaseModel):
    execute_permission_supported: bool
    privileged_mode_supported: bool
    max_pasid_width: int


class PasidControl(BaseModel):
    pasid_enable: bool
    execute_permission_enable: bool
    privileged_mode_enable: bool


class ProcessAddressSpaceId(BaseModel):
    """001Bh Process Address Space ID."""

    kind: Literal["process_address_space_id"] = "process_address_space_id"
    capability: PasidCapability
    control: PasidControl


class PtmCapability(BaseModel):
    requester_capable: bool
    responder_capable: bool
    root_capable: bool
    local_clock_granularity: int


class PtmControl(BaseModel):
    enable: bool
    root_select: bool
    effective_granularity: int


class PrecisionTimeMeasurement(BaseModel):
    """001Fh Precision Time Measurement."""

    kind: Literal["precision_time_measurement"] = "precision_time_measurement"
    capability: PtmCapability
    control: PtmControl


# ---------------------------------------------------------------------------
# 0002h Virtual Channel
# ---------------------------------------------------------------------------


class VcPortCapability1(BaseModel):
    extended_vc_count: int
    low_priority_extended_vc_count: int
    reference_clock: int
    port_arbitration_table_entry_size: int

    @property
    def port_arbitration_entry_bits(self) -> int:
        return 1 << self.port_arbitration_table_entry_size


class VcPortCapability2(BaseModel):
    hardware_fixed_arbitration: bool
    wrr_32_phases: bool
    wrr_64_phases: bool
    wrr_128_phases: bool
    vc_arbitration_table_offset: int


class VcPortControl(BaseModel):
    load_vc_arbitration_table: bool
    vc_arbitration_select: int


class VcResourceCapability(BaseModel):
    hardware_fixed_arbitration: bool
    wrr_32_phases: bool
    wrr_64_phases: bool
    wrr_128_phases: bool
    time_based_wrr_128_phases: bool
    wrr_256_phases: bool
    advanced_packet_switching: bool
    reject_snoop_transactions: bool
    maximum_time_slots: int
    port_arbitration_table_offset: int


class VcResourceControl(BaseModel):
    tc_vc_map: int
    load_port_arbitration_table: bool
    port_arbitration_select: int
    vc_id: int
    vc_enable: bool


class VcResourceStatus(BaseModel):
    port_arbitration_table_status: bool
    vc_negotiation_pending: bool


class VcResource(BaseModel):
    """One VC Resource Capability/Control/Status triple."""

    capability: VcResourceCapability
    control: VcResourceControl
    status: VcResourceStatus


class VirtualChannel(BaseModel):
    """0002h Virtual Channel.

    ``resources`` lists VC0 first, then every extended VC whose
    registers are present.
    """

    kind: Literal["virtual_channel"] = "virtual_channel"
    port_vc_capability_1: VcPortCapability1
    port_vc_capability_2: VcPortCapability2
    port_vc_control: VcPortControl
    vc_arbitration_table_status: bool
    resources: list[VcResource]


# ---------------------------------------------------------------------------
# 0004h Power Budgeting
# ---------------------------------------------------------------------------

_POWER_SCALES = (1.0, 0.1, 0.01, 0.001)


class PowerBudgetData(BaseModel):
    base_power: int
    data_scale: int
    pm_sub_state: int
    pm_state: int
    operation_condition_type: int
    power_rail: int

    @property
    def watts(self) -> float | None:
        """None for the 0xF0..0xFF range encodings."""
        if self.base_power > 0xEF:
            return None
        return self.base_power * _POWER_SCALES[self.data_scale]


class PowerBudgeting(BaseModel):
    """0004h Power Budgeting."""

    kind: Literal["power_budgeting"] = "power_budgeting"
    data_select: int
    data: PowerBudgetData
    system_allocated: bool


# ---------------------------------------------------------------------------
# 0017h TPH Requester
# ---------------------------------------------------------------------------


class TphRequesterCapability(BaseModel):
    no_st_mode_supported: bool
    interrupt_vector_mode_supported: bool
    device_specific_mode_supported: bool
    extended_tph_requester_supported: bool
    st_table_location: int
    st_table_size: int


class TphRequesterControl(BaseModel):
    st_mode_select: int
    tph_requester_enable: int


class TphStEntry(BaseModel):
    st_lower: int
    st_upper: int


class TphRequester(BaseModel):
    """0017h TPH Requester.

    The Steering Tag table is decoded only when it lives in this
    capability and its ``st_table_size + 1`` entries are all present;
    otherwise ``st_table_state`` says why ``st_table`` is empty.
    """

    kind: Literal["tph_requester"] = "tph_requester"
    capability: TphRequesterCapability
    control: TphRequesterControl
    st_table_state: Literal["not_present", "valid", "invalid", "msi_x_table", "reserved"]
    st_table: list[TphStEntry] = []


# ---------------------------------------------------------------------------
# 0019h Secondary PCI Express
# ---------------------------------------------------------------------------


class SecondaryLinkControl3(BaseModel):
    perform_equalization: bool
    link_equalization_request_interrupt_enable: bool
    lower_skp_os_generation_vector: int


class LaneEqualizationControl(BaseModel):
    downstream_port_transmitter_preset: int
    downstream_port_receiver_preset_hint: int
    upstream_port_transmitter_preset: int
    upstream_port_receiver_preset_hint: int


class SecondaryPciExpress(BaseModel):
    """0019h Secondary PCI Express.

    The number of lanes is set by the PCIe capability's link width, which
    this structure does not know, so ``lane_equalization_control`` holds
    every complete entry (at most 32). Use lanes() to cut it down.
    """

    kind: Literal["secondary_pci_express"] = "secondary_pci_express"
    link_control_3: SecondaryLinkControl3
    lane_error_status: int
    lane_equalization_control: list[LaneEqualizationControl]

    def lanes(self, link_width: int) -> list[LaneEqualizationControl]:
        return self.lane_equalization_control[:link_width]


# ---------------------------------------------------------------------------
# 001Dh Downstream Port Containment
# ---------------------------------------------------------------------------

_DPC_TRIGGER_REASONS = (
    "unmasked_uncorrectable_error",
    "err_nonfatal_received",
    "err_fatal_received",
)
_DPC_TRIGGER_REASON_EXTENSIONS = ("rp_pio_error", "software_trigger")


class DpcCapability(BaseModel):
    interrupt_message_number: int
    rp_extensions_for_dpc: bool
    poisoned_tlp_egress_blocking_supported: bool
    software_triggering_supported: bool
    rp_pio_log_size: int
    dl_active_err_cor_signaling_supported: bool


class DpcControl(BaseModel):
    trigger_enable: int
    completion_control: bool
    interrupt_enable: bool
    err_cor_enable: bool
    poisoned_tlp_egress_blocking_enable: bool
    software_trigger: bool
    dl_active_err_cor_enable: bool


class DpcStatus(BaseModel):
    trigger_status: bool
    trigger_reason: int
    interrupt_status: bool
    rp_busy: bool
    trigger_reason_extension: int
    rp_pio_first_error_pointer: int

    @property
    def trigger_reason_name(self) -> str:
        if self.trigger_reason < 3:
            return _DPC_TRIGGER_REASONS[self.trigger_reason]
        if self.trigger_reason_extension < 2:
            return _DPC_TRIGGER_REASON_EXTENSIONS[self.trigger_reason_extension]
        return "reserved"


class RpPioErrors(BaseModel):
    """RP PIO Status/Mask/Severity/SysError/Exception register (shared layout)."""

    raw_value: int = 0
    cfg_ur_cpl: bool = False
    cfg_ca_cpl: bool = False
    cfg_cto: bool = False
    io_ur_cpl: bool = False
    io_ca_cpl: bool = False
    io_cto: bool = False
    mem_ur_cpl: bool = False
    mem_ca_cpl: bool = False
    mem_cto: bool = False


class DpcRpExtensions(BaseModel):
    rp_pio_status: RpPioErrors
    rp_pio_mask: RpPioErrors
    rp_pio_severity: RpPioErrors
    rp_pio_syserr: RpPioErrors
    rp_pio_exception: RpPioErrors
    rp_pio_header_log: list[int]
    rp_pio_impspec_log: int | None = None
    rp_pio_tlp_prefix_log: list[int] | None = None


class DownstreamPortContainment(BaseModel):
    """001Dh Downstream Port Containment.

    Root Port extension registers are present only when the capability
    advertises them, and then they must be readable.
    """

    kind: Literal["downstream_port_containment"] = "downstream_port_containment"
    capability: DpcCapability
    control: DpcControl
    status: DpcStatus
    error_source_id: int
    rp_extensions: DpcRpExtensions | None = None


# ---------------------------------------------------------------------------
# 001Eh L1 PM Substates
# ---------------------------------------------------------------------------

_T_POWER_ON_SCALES_US = (2, 10, 100)


class TPowerOn(BaseModel):
    value: int
    scale: int

    @property
    def microseconds(self) -> int | None:
        """None for the reserved scale encoding."""
        if self.scale >= len(_T_POWER_ON_SCALES_US):
            return None
        return self.value * _T_POWER_ON_SCALES_US[self.scale]


class L1PmSubstatesCapabilities(BaseModel):
    pci_pm_l1_2_supported: bool
    pci_pm_l1_1_supported: bool
    aspm_l1_2_supported: bool
    aspm_l1_1_supported: bool
    l1_pm_substates_supported: bool
    port_common_mode_restore_time: int
    port_t_power_on: TPowerOn


class L1PmSubstatesControl1(BaseModel):
    pci_pm_l1_2_enable: bool
    pci_pm_l1_1_enable: bool
    aspm_l1_2_enable: bool
    aspm_l1_1_enable: bool
    common_mode_restore_time: int
    ltr_l1_2_threshold: MaxLatency


class L1PmSubstates(BaseModel):
    """001Eh L1 PM Substates."""

    kind: Literal["l1_pm_substates"] = "l1_pm_substates"
    capabilities: L1PmSubstatesCapabilities
    control_1: L1PmSubstatesControl1
    t_power_on: TPowerOn


# ---------------------------------------------------------------------------
# Named capabilities without a register decoder
# ---------------------------------------------------------------------------


class NamedExtendedCapability(BaseModel):
    """A recognized extended capability whose registers are kept verbatim."""

    kind: Literal["named_extended"] = "named_extended"
    cap_id: int
    name: str
    data: bytes


# ---------------------------------------------------------------------------
# 0023h Designated Vendor-Specific (DVSEC) and CXL
# ---------------------------------------------------------------------------

CXL_VENDOR_ID = 0x1E98


class CxlCapability(BaseModel):
    cache_capable: bool
    io_capable: bool
    mem_capable: bool
    mem_hwinit_mode: bool
    hdm_count: int
    cache_writeback_and_invalidate_capable: bool
    cxl_reset_capable: bool
    cxl_reset_timeout: int
    cxl_reset_mem_clr_capable: bool
    multiple_logical_device: bool
    viral_capable: bool
    pm_init_completion_reporting_capable: bool


class CxlControl(BaseModel):
    cache_enable: bool
    io_enable: bool
    mem_enable: bool
    cache_sf_coverage: int
    cache_sf_granularity: int
    cache_clean_eviction: bool
    viral_enable: bool

    @property
    def snoop_filter_bytes(self) -> int:
        """0 means no snoop filter."""
        return 0 if self.cache_sf_coverage == 0 else 1 << (self.cache_sf_coverage + 15)


class CxlStatus(BaseModel):
    viral_status: bool


class CxlControl2(BaseModel):
    disable_caching: bool
    initiate_cache_write_back_and_invalidation: bool
    initiate_cxl_reset: bool
    cxl_reset_mem_clr_enable: bool


class CxlStatus2(BaseModel):
    cache_invalid: bool
    cxl_reset_complete: bool
    cxl_reset_error: bool
    power_management_initialization_complete: bool


class CxlCapability2(BaseModel):
    cache_size_unit: int
    cache_size: int


class CxlRangeSize(BaseModel):
    memory_info_valid: bool
    memory_active: bool
    media_type: int
    memory_class: int
    desired_interleave: int
    memory_active_timeout: int
    memory_size: int


class PcieDvsecForCxlDevice(BaseModel):
    """CXL DVSEC ID 0000h: PCIe DVSEC for CXL Device."""

    cxl_capability: CxlCapability
    cxl_control: CxlControl
    cxl_status: CxlStatus
    cxl_control2: CxlControl2
    cxl_status2: CxlStatus2
    config_lock: bool
    cxl_capability2: CxlCapability2
    range_1_size: CxlRangeSize
    range_1_base: int
    range_2_size: CxlRangeSize
    range_2_base: int


class ComputeExpressLink(BaseModel):
    """DVSEC registers owned by the CXL consortium (vendor 1E98h).

    ``structure`` names the DVSEC ID; ``undefined`` for IDs without an
    assignment. Only the device DVSEC has its registers decoded.
    """

    kind: Literal["compute_express_link"] = "compute_express_link"
    structure: str
    dvsec_id: int
    device: PcieDvsecForCxlDevice | None = None


class UnspecifiedDvsec(BaseModel):
    """Registers of a vendor without a registered decoder, kept verbatim."""

    kind: Literal["unspecified"] = "unspecified"
    data: bytes


DvsecType = Annotated[
    Union[ComputeExpressLink, UnspecifiedDvsec],
    Field(discriminator="kind"),
]


class DesignatedVendorSpecific(BaseModel):
    """0023h Designated Vendor-Specific Extended Capability."""

    kind: Literal["designated_vendor_specific"] = "designated_vendor_specific"
    dvsec_vendor_id: int
    dvsec_revision: int
    dvsec_length: int
    dvsec_id: int
    dvsec_type: DvsecType
