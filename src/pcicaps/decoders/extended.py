"""Field tables for PCI Express extended capabilities.

Every decoder receives the payload that follows the 4-byte extended
header, so register offsets are 4 less than the capability-relative ones.
"""

from __future__ import annotations

from pcicaps.core.bitfield import layout
from pcicaps.core.reader import ByteReader, mandatory
from pcicaps.exceptions import ArityOutOfRangeError, MandatoryFieldsUnreadableError
from pcicaps.models.extended import (
    AccessControlServices,
    AcsCapability,
    AcsControl,
    AddressTranslationServices,
    AdvancedErrorReporting,
    AerCapabilitiesAndControl,
    AerCorrectableErrors,
    AerErrorSourceIdentification,
    AerRootErrorCommand,
    AerRootErrorStatus,
    AerUncorrectableErrors,
    AlternativeRoutingIdInterpretation,
    AriCapability,
    AriControl,
    AtsCapability,
    AtsControl,
    DeviceSerialNumber,
    DownstreamPortContainment,
    DpcCapability,
    DpcControl,
    DpcRpExtensions,
    DpcStatus,
    ExtendedCapabilityId,
    ExtendedNull,
    L1PmSubstates,
    L1PmSubstatesCapabilities,
    L1PmSubstatesControl1,
    LaneEqualizationControl,
    LatencyToleranceReporting,
    MaxLatency,
    NamedExtendedCapability,
    PageRequestInterface,
    PasidCapability,
    PasidControl,
    PowerBudgetData,
    PowerBudgeting,
    PrecisionTimeMeasurement,
    PriControl,
    PriStatus,
    ProcessAddressSpaceId,
    PtmCapability,
    PtmControl,
    ResizableBar,
    ResizableBarControl,
    ResizableBarEntry,
    RpPioErrors,
    SecondaryLinkControl3,
    SecondaryPciExpress,
    TphRequester,
    TphRequesterCapability,
    TphRequesterControl,
    TphStEntry,
    TPowerOn,
    VcPortCapability1,
    VcPortCapability2,
    VcPortControl,
    VcResource,
    VcResourceCapability,
    VcResourceControl,
    VcResourceStatus,
    VfResizableBar,
    VirtualChannel,
)

# --- 0001h AER -----------------------------------------------------------------
AER_UNCORRECTABLE = layout(32, 1, 3, 1, 1, 6, *([1] * 15), 5, name="AER uncorrectable")
AER_CORRECTABLE = layout(32, 1, 5, 1, 1, 1, 3, 1, 1, 1, 1, 16, name="AER correctable")
AER_CAP_CONTROL = layout(32, 5, 1, 1, 1, 1, 1, 1, 1, 1, 19, name="AER capabilities and control")
AER_ROOT_COMMAND = layout(32, 1, 1, 1, 29, name="AER root error command")
AER_ROOT_STATUS = layout(32, 1, 1, 1, 1, 1, 1, 1, 20, 5, name="AER root error status")

# Field names in layout order; None marks reserved bits
_UNCORRECTABLE_FIELDS = (
    "link_training_error",
    None,
    "data_link_protocol_error",
    "surprise_down_error",
    None,
    "poisoned_tlp_received",
    "flow_control_protocol_error",
    "completion_timeout",
    "completer_abort",
    "unexpected_completion",
    "receiver_overflow",
    "malformed_tlp",
    "ecrc_error",
    "unsupported_request_error",
    "acs_violation",
    "uncorrectable_internal_error",
    "mc_blocked_tlp",
    "atomicop_egress_blocked",
    "tlp_prefix_blocked_error",
    "poisoned_tlp_egress_blocked",
    None,
)
_CORRECTABLE_FIELDS = (
    "receiver_error",
    None,
    "bad_tlp",
    "bad_dllp",
    "replay_num_rollover",
    None,
    "replay_timer_timeout",
    "advisory_non_fatal_error",
    "corrected_internal_error",
    "header_log_overflow",
    None,
)

AER_COMMON_SIZE = 0x2C - 0x04
AER_ROOT_SIZE = 0x38 - 0x04
AER_FULL_SIZE = 0x48 - 0x04

# --- 000Dh ACS, 000Eh ARI, 000Fh ATS ---------------------------------------
ACS_CAPABILITY = layout(16, 1, 1, 1, 1, 1, 1, 1, 1, 8, name="ACS capability")
ACS_CONTROL = layout(16, 1, 1, 1, 1, 1, 1, 1, 9, name="ACS control")
ARI_CAPABILITY = layout(16, 1, 1, 6, 8, name="ARI capability")
ARI_CONTROL = layout(16, 1, 1, 2, 3, 9, name="ARI control")
ATS_CAPABILITY = layout(16, 5, 1, 1, 9, name="ATS capability")
ATS_CONTROL = layout(16, 5, 10, 1, name="ATS control")

# --- 0002h Virtual Channel, 0004h Power Budgeting ----------------------------
VC_PORT_CAPABILITY_1 = layout(32, 3, 1, 3, 1, 2, 2, 20, name="VC port capability 1")
VC_PORT_CAPABILITY_2 = layout(32, 1, 1, 1, 1, 4, 16, 8, name="VC port capability 2")
VC_PORT_CONTROL = layout(16, 1, 3, 12, name="VC port control")
VC_PORT_STATUS = layout(16, 1, 15, name="VC port status")
VC_RESOURCE_CAPABILITY = layout(
    32, 1, 1, 1, 1, 1, 1, 2, 6, 1, 1, 7, 1, 8, name="VC resource capability"
)
VC_RESOURCE_CONTROL = layout(32, 8, 8, 1, 3, 4, 3, 4, 1, name="VC resource control")
VC_RESOURCE_STATUS = layout(16, 1, 1, 14, name="VC resource status")
VC_PORT_SIZE = 12
VC_RESOURCE_SIZE = 12
POWER_BUDGET_DATA = layout(32, 8, 2, 3, 2, 3, 3, 11, name="power budget data")

# --- 0017h TPH Requester, 0019h Secondary PCIe -------------------------------
TPH_CAPABILITY = layout(32, 1, 1, 1, 5, 1, 2, 5, 11, 5, name="TPH requester capability")
TPH_CONTROL = layout(32, 3, 5, 2, 22, name="TPH requester control")
TPH_ST_TABLE_MAX_SIZE = 63
_TPH_ST_LOCATIONS = {0b00: "not_present", 0b10: "msi_x_table", 0b11: "reserved"}
SECONDARY_LINK_CONTROL_3 = layout(32, 1, 1, 7, 7, 16, name="link control 3")
LANE_EQUALIZATION_CONTROL = layout(16, 4, 3, 1, 4, 3, 1, name="lane equalization control")
MAX_LANES = 32

# --- 001Dh DPC, 001Eh L1 PM Substates ----------------------------------------
DPC_CAPABILITY = layout(16, 5, 1, 1, 1, 4, 1, 3, name="DPC capability")
DPC_CONTROL = layout(16, 2, 1, 1, 1, 1, 1, 1, 8, name="DPC control")
DPC_STATUS = layout(16, 1, 2, 1, 1, 2, 1, 5, 3, name="DPC status")
RP_PIO = layout(32, 1, 1, 1, 5, 1, 1, 1, 5, 1, 1, 1, 13, name="RP PIO errors")
_RP_PIO_FIELDS = (
    "cfg_ur_cpl",
    "cfg_ca_cpl",
    "cfg_cto",
    None,
    "io_ur_cpl",
    "io_ca_cpl",
    "io_cto",
    None,
    "mem_ur_cpl",
    "mem_ca_cpl",
    "mem_cto",
    None,
)
# Status, Mask, Severity, SysError, Exception, then four Header Log dwords
DPC_RP_EXTENSIONS_SIZE = 8 + 4 * 9
L1PM_CAPABILITIES = layout(
    32, 1, 1, 1, 1, 1, 3, 8, 2, 1, 5, 8, name="L1 PM substates capabilities"
)
L1PM_CONTROL_1 = layout(32, 1, 1, 1, 1, 4, 8, 10, 3, 3, name="L1 PM substates control 1")
L1PM_CONTROL_2 = layout(32, 2, 1, 5, 24, name="L1 PM substates control 2")

# --- 0013h PRI ---------------------------------------------------------------
PRI_CONTROL = layout(16, 1, 1, 14, name="PRI control")
PRI_STATUS = layout(16, 1, 1, 6, 1, 6, 1, name="PRI status")

# --- 0015h / 0024h Resizable BAR ---------------------------------------------
REBAR_CONTROL = layout(32, 3, 2, 3, 6, 2, 16, name="resizable BAR control")
REBAR_ENTRY_SIZE = 8
REBAR_MAX_ENTRIES = 6

# --- 0018h LTR, 001Bh PASID, 001Fh PTM ----------------------------------------
LTR_LATENCY = layout(16, 10, 3, 3, name="LTR max latency")
PASID_CAPABILITY = layout(16, 1, 1, 1, 5, 5, 3, name="PASID capability")
PASID_CONTROL = layout(16, 1, 1, 1, 13, name="PASID control")
PTM_CAPABILITY = layout(32, 1, 1, 1, 5, 8, 16, name="PTM capability")
PTM_CONTROL = layout(32, 1, 1, 6, 8, 16, name="PTM control")


def _flags(values: tuple, names: tuple) -> dict[str, bool]:
    return {name: value for name, value in zip(names, values) if name is not None}


def decode_extended_null(payload: memoryview) -> ExtendedNull:
    return ExtendedNull()


def _uncorrectable(dword: int) -> AerUncorrectableErrors:
    return AerUncorrectableErrors(
        raw_value=dword, **_flags(AER_UNCORRECTABLE.decompose(dword), _UNCORRECTABLE_FIELDS)
    )


def _correctable(dword: int) -> AerCorrectableErrors:
    return AerCorrectableErrors(
        raw_value=dword, **_flags(AER_CORRECTABLE.decompose(dword), _CORRECTABLE_FIELDS)
    )


def decode_advanced_error_reporting(payload: memoryview) -> AdvancedErrorReporting:
    """0001h AER.

    Registers through the Header Log exist on every function. Root Port
    registers follow when present; the TLP Prefix Log after them is
    required whenever the capability says it is present.
    """
    reader = mandatory(payload, AER_COMMON_SIZE, "Advanced Error Reporting")
    uncorrectable_status = _uncorrectable(reader.read_u32())
    uncorrectable_mask = _uncorrectable(reader.read_u32())
    uncorrectable_severity = _uncorrectable(reader.read_u32())
    correctable_status = _correctable(reader.read_u32())
    correctable_mask = _correctable(reader.read_u32())
    (
        first_error_pointer,
        ecrc_gen_capable,
        ecrc_gen_enable,
        ecrc_check_capable,
        ecrc_check_enable,
        multi_header_capable,
        multi_header_enable,
        tlp_prefix_log_present,
        completion_timeout_log_capable,
        _,
    ) = AER_CAP_CONTROL.decompose(reader.read_u32())
    header_log = [reader.read_u32() for _ in range(4)]

    root_command = root_status = source_id = None
    if reader.remaining >= AER_ROOT_SIZE - AER_COMMON_SIZE:
        cor_en, nonfatal_en, fatal_en, _ = AER_ROOT_COMMAND.decompose(reader.read_u32())
        root_command = AerRootErrorCommand(
            correctable_error_reporting_enable=cor_en,
            non_fatal_error_reporting_enable=nonfatal_en,
            fatal_error_reporting_enable=fatal_en,
        )
        (
            cor_received,
            multi_cor_received,
            uncor_received,
            multi_uncor_received,
            first_fatal,
            nonfatal_received,
            fatal_received,
            _,
            interrupt_message_number,
        ) = AER_ROOT_STATUS.decompose(reader.read_u32())
        root_status = AerRootErrorStatus(
            err_cor_received=cor_received,
            multiple_err_cor_received=multi_cor_received,
            err_fatal_or_nonfatal_received=uncor_received,
            multiple_err_fatal_or_nonfatal_received=multi_uncor_received,
            first_uncorrectable_fatal=first_fatal,
            non_fatal_error_messages_received=nonfatal_received,
            fatal_error_messages_received=fatal_received,
            advanced_error_interrupt_message_number=interrupt_message_number,
        )
        source_id = AerErrorSourceIdentification(
            err_cor_source_identification=reader.read_u16(),
            err_fatal_or_nonfatal_source_identification=reader.read_u16(),
        )

    tlp_prefix_log = None
    if tlp_prefix_log_present:
        if len(payload) < AER_FULL_SIZE:
            raise MandatoryFieldsUnreadableError(
                "Advanced Error Reporting TLP Prefix Log", AER_FULL_SIZE, len(payload)
            )
        reader.offset = AER_ROOT_SIZE
        tlp_prefix_log = [reader.read_u32() for _ in range(4)]

    return AdvancedErrorReporting(
        uncorrectable_error_status=uncorrectable_status,
        uncorrectable_error_mask=uncorrectable_mask,
        uncorrectable_error_severity=uncorrectable_severity,
        correctable_error_status=correctable_status,
        correctable_error_mask=correctable_mask,
        capabilities_and_control=AerCapabilitiesAndControl(
            first_error_pointer=first_error_pointer,
            ecrc_generation_capable=ecrc_gen_capable,
            ecrc_generation_enable=ecrc_gen_enable,
            ecrc_check_capable=ecrc_check_capable,
            ecrc_check_enable=ecrc_check_enable,
            multiple_header_recording_capable=multi_header_capable,
            multiple_header_recording_enable=multi_header_enable,
            tlp_prefix_log_present=tlp_prefix_log_present,
            completion_timeout_prefix_or_header_log_capable=completion_timeout_log_capable,
        ),
        header_log=header_log,
        root_error_command=root_command,
        root_error_status=root_status,
        error_source_identification=source_id,
        tlp_prefix_log=tlp_prefix_log,
    )


def decode_device_serial_number(payload: memoryview) -> DeviceSerialNumber:
    reader = mandatory(payload, 8, "Device Serial Number")
    return DeviceSerialNumber(lower_dword=reader.read_u32(), upper_dword=reader.read_u32())


def decode_access_control_services(payload: memoryview) -> AccessControlServices:
    """000Dh ACS. The Egress Control Vector exists only with P2P Egress Control."""
    reader = mandatory(payload, 4, "Access Control Services")
    (
        source_validation,
        translation_blocking,
        request_redirect,
        completion_redirect,
        upstream_forwarding,
        egress_control,
        direct_translated,
        enhanced,
        vector_size,
    ) = ACS_CAPABILITY.decompose(reader.read_u16())
    control = ACS_CONTROL.decompose(reader.read_u16())

    egress_control_vector = None
    if egress_control:
        # Size 0 encodes 256 bits
        bits = vector_size or 256
        size = 4 + 4 * ((bits + 31) // 32)
        if len(payload) < size:
            raise MandatoryFieldsUnreadableError("Access Control Services", size, len(payload))
        vector = reader.read_exact(size - 4)
        egress_control_vector = int.from_bytes(vector, "little") & ((1 << bits) - 1)

    return AccessControlServices(
        capability=AcsCapability(
            source_validation=source_validation,
            translation_blocking=translation_blocking,
            p2p_request_redirect=request_redirect,
            p2p_completion_redirect=completion_redirect,
            upstream_forwarding=upstream_forwarding,
            p2p_egress_control=egress_control,
            direct_translated_p2p=direct_translated,
            enhanced_capability=enhanced,
            egress_control_vector_size=vector_size,
        ),
        control=AcsControl(
            source_validation_enable=control[0],
            translation_blocking_enable=control[1],
            p2p_request_redirect_enable=control[2],
            p2p_completion_redirect_enable=control[3],
            upstream_forwarding_enable=control[4],
            p2p_egress_control_enable=control[5],
            direct_translated_p2p_enable=control[6],
        ),
        egress_control_vector=egress_control_vector,
    )


def decode_alternative_routing_id(payload: memoryview) -> AlternativeRoutingIdInterpretation:
    reader = mandatory(payload, 4, "Alternative Routing-ID Interpretation")
    mfvc, acs, _, next_function = ARI_CAPABILITY.decompose(reader.read_u16())
    mfvc_en, acs_en, _, function_group, _ = ARI_CONTROL.decompose(reader.read_u16())
    return AlternativeRoutingIdInterpretation(
        capability=AriCapability(
            mfvc_function_groups_capability=mfvc,
            acs_function_groups_capability=acs,
            next_function_number=next_function,
        ),
        control=AriControl(
            mfvc_function_groups_enable=mfvc_en,
            acs_function_groups_enable=acs_en,
            function_group=function_group,
        ),
    )


def decode_address_translation_services(payload: memoryview) -> AddressTranslationServices:
    reader = mandatory(payload, 4, "Address Translation Services")
    queue_depth, page_aligned, global_invalidate, _ = ATS_CAPABILITY.decompose(reader.read_u16())
    stu, _, enable = ATS_CONTROL.decompose(reader.read_u16())
    return AddressTranslationServices(
        capability=AtsCapability(
            invalidate_queue_depth=queue_depth,
            page_aligned_request=page_aligned,
            global_invalidate_supported=global_invalidate,
        ),
        control=AtsControl(smallest_translation_unit=stu, enable=enable),
    )


def decode_page_request_interface(payload: memoryview) -> PageRequestInterface:
    reader = mandatory(payload, 12, "Page Request Interface")
    enable, reset, _ = PRI_CONTROL.decompose(reader.read_u16())
    failure, unexpected_index, _, stopped, _, pasid_required = PRI_STATUS.decompose(
        reader.read_u16()
    )
    return PageRequestInterface(
        control=PriControl(enable=enable, reset=reset),
        status=PriStatus(
            response_failure=failure,
            unexpected_page_request_group_index=unexpected_index,
            stopped=stopped,
            prg_response_pasid_required=pasid_required,
        ),
        outstanding_page_request_capacity=reader.read_u32(),
        outstanding_page_request_allocation=reader.read_u32(),
    )


def _resizable_bar_entries(payload: memoryview, name: str) -> list[ResizableBarEntry]:
    """Decode the Capability/Control pairs of a (VF) Resizable BAR.

    The entry count lives in the first Control register and must be
    1..6; every counted entry must be present.
    """
    reader = mandatory(payload, REBAR_ENTRY_SIZE, name)
    count = REBAR_CONTROL.decompose(reader.peek_u32(4))[2]
    if not 1 <= count <= REBAR_MAX_ENTRIES:
        raise ArityOutOfRangeError(name, count, 1, REBAR_MAX_ENTRIES)
    size = count * REBAR_ENTRY_SIZE
    if len(payload) < size:
        raise MandatoryFieldsUnreadableError(name, size, len(payload))

    entries = []
    for _ in range(count):
        support_map = reader.read_u32()
        bar_index, _, bars, bar_size, _, upper_map = REBAR_CONTROL.decompose(reader.read_u32())
        entries.append(
            ResizableBarEntry(
                support_map_from_1mb_to_128tb=support_map,
                control=ResizableBarControl(
                    bar_index=bar_index,
                    number_of_resizable_bars=bars,
                    bar_size=bar_size,
                    support_map_from_256tb_to_8eb=upper_map,
                ),
            )
        )
    return entries


def decode_resizable_bar(payload: memoryview) -> ResizableBar:
    return ResizableBar(entries=_resizable_bar_entries(payload, "Resizable BAR"))


def decode_vf_resizable_bar(payload: memoryview) -> VfResizableBar:
    return VfResizableBar(entries=_resizable_bar_entries(payload, "VF Resizable BAR"))


def decode_latency_tolerance_reporting(payload: memoryview) -> LatencyToleranceReporting:
    reader = mandatory(payload, 4, "Latency Tolerance Reporting")
    snoop_value, snoop_scale, _ = LTR_LATENCY.decompose(reader.read_u16())
    no_snoop_value, no_snoop_scale, _ = LTR_LATENCY.decompose(reader.read_u16())
    return LatencyToleranceReporting(
        max_snoop_latency=MaxLatency(value=snoop_value, scale=snoop_scale),
        max_no_snoop_latency=MaxLatency(value=no_snoop_value, scale=no_snoop_scale),
    )


def decode_process_address_space_id(payload: memoryview) -> ProcessAddressSpaceId:
    reader = mandatory(payload, 4, "Process Address Space ID")
    _, execute, privileged, _, width, _ = PASID_CAPABILITY.decompose(reader.read_u16())
    enable, execute_en, privileged_en, _ = PASID_CONTROL.decompose(reader.read_u16())
    return ProcessAddressSpaceId(
        capability=PasidCapability(
            execute_permission_supported=execute,
            privileged_mode_supported=privileged,
            max_pasid_width=width,
        ),
        control=PasidControl(
            pasid_enable=enable,
            execute_permission_enable=execute_en,
            privileged_mode_enable=privileged_en,
        ),
    )


def decode_precision_time_measurement(payload: memoryview) -> PrecisionTimeMeasurement:
    reader = mandatory(payload, 8, "Precision Time Measurement")
    requester, responder, root, _, granularity, _ = PTM_CAPABILITY.decompose(reader.read_u32())
    enable, root_select, _, effective, _ = PTM_CONTROL.decompose(reader.read_u32())
    return PrecisionTimeMeasurement(
        capability=PtmCapability(
            requester_capable=requester,
            responder_capable=responder,
            root_capable=root,
            local_clock_granularity=granularity,
        ),
        control=PtmControl(enable=enable, root_select=root_select, effective_granularity=effective),
    )


def decode_virtual_channel(payload: memoryview) -> VirtualChannel:
    """0002h Virtual Channel.

    VC Resource register sets follow the port registers, one for VC0 plus
    one per extended VC. Sets that do not fit in the payload are left out.
    """
    reader = mandatory(payload, VC_PORT_SIZE, "Virtual Channel")
    extended_count, _, low_priority_count, _, reference_clock, entry_size, _ = (
        VC_PORT_CAPABILITY_1.decompose(reader.read_u32())
    )
    fixed, wrr32, wrr64, wrr128, _, _, table_offset = VC_PORT_CAPABILITY_2.decompose(
        reader.read_u32()
    )
    load_table, arbitration_select, _ = VC_PORT_CONTROL.decompose(reader.read_u16())
    table_status, _ = VC_PORT_STATUS.decompose(reader.read_u16())

    resources = []
    for _ in range(extended_count + 1):
        if reader.remaining < VC_RESOURCE_SIZE:
            break
        resources.append(_vc_resource(reader))

    return VirtualChannel(
        port_vc_capability_1=VcPortCapability1(
            extended_vc_count=extended_count,
            low_priority_extended_vc_count=low_priority_count,
            reference_clock=reference_clock,
            port_arbitration_table_entry_size=entry_size,
        ),
        port_vc_capability_2=VcPortCapability2(
            hardware_fixed_arbitration=fixed,
            wrr_32_phases=wrr32,
            wrr_64_phases=wrr64,
            wrr_128_phases=wrr128,
            vc_arbitration_table_offset=table_offset,
        ),
        port_vc_control=VcPortControl(
            load_vc_arbitration_table=load_table,
            vc_arbitration_select=arbitration_select,
        ),
        vc_arbitration_table_status=table_status,
        resources=resources,
    )


def _vc_resource(reader: ByteReader) -> VcResource:
    (
        fixed,
        wrr32,
        wrr64,
        wrr128,
        time_based_wrr128,
        wrr256,
        _,
        _,
        advanced_packet_switching,
        reject_snoop,
        max_time_slots,
        _,
        table_offset,
    ) = VC_RESOURCE_CAPABILITY.decompose(reader.read_u32())
    tc_vc_map, _, load_table, arbitration_select, _, vc_id, _, vc_enable = (
        VC_RESOURCE_CONTROL.decompose(reader.read_u32())
    )
    reader.skip(2)
    table_status, negotiation_pending, _ = VC_RESOURCE_STATUS.decompose(reader.read_u16())
    return VcResource(
        capability=VcResourceCapability(
            hardware_fixed_arbitration=fixed,
            wrr_32_phases=wrr32,
            wrr_64_phases=wrr64,
            wrr_128_phases=wrr128,
            time_based_wrr_128_phases=time_based_wrr128,
            wrr_256_phases=wrr256,
            advanced_packet_switching=advanced_packet_switching,
            reject_snoop_transactions=reject_snoop,
            maximum_time_slots=max_time_slots,
            port_arbitration_table_offset=table_offset,
        ),
        control=VcResourceControl(
            tc_vc_map=tc_vc_map,
            load_port_arbitration_table=load_table,
            port_arbitration_select=arbitration_select,
            vc_id=vc_id,
            vc_enable=vc_enable,
        ),
        status=VcResourceStatus(
            port_arbitration_table_status=table_status,
            vc_negotiation_pending=negotiation_pending,
        ),
    )


def decode_power_budgeting(payload: memoryview) -> PowerBudgeting:
    reader = mandatory(payload, 12, "Power Budgeting")
    data_select = reader.read_u8()
    reader.skip(3)
    base_power, data_scale, pm_sub_state, pm_state, condition, rail, _ = (
        POWER_BUDGET_DATA.decompose(reader.read_u32())
    )
    return PowerBudgeting(
        data_select=data_select,
        data=PowerBudgetData(
            base_power=base_power,
            data_scale=data_scale,
            pm_sub_state=pm_sub_state,
            pm_state=pm_state,
            operation_condition_type=condition,
            power_rail=rail,
        ),
        system_allocated=bool(reader.read_u8() & 0x1),
    )


def decode_tph_requester(payload: memoryview) -> TphRequester:
    """0017h TPH Requester."""
    reader = mandatory(payload, 8, "TPH Requester")
    (
        no_st_mode,
        interrupt_vector_mode,
        device_specific_mode,
        _,
        extended_tph,
        location,
        _,
        table_size,
        _,
    ) = TPH_CAPABILITY.decompose(reader.read_u32())
    st_mode_select, _, requester_enable, _ = TPH_CONTROL.decompose(reader.read_u32())

    st_table = []
    if location == 0b01:
        entries = table_size + 1
        if table_size <= TPH_ST_TABLE_MAX_SIZE and reader.remaining >= entries * 2:
            state = "valid"
            for _ in range(entries):
                st_table.append(TphStEntry(st_lower=reader.read_u8(), st_upper=reader.read_u8()))
        else:
            state = "invalid"
    else:
        state = _TPH_ST_LOCATIONS[location]

    return TphRequester(
        capability=TphRequesterCapability(
            no_st_mode_supported=no_st_mode,
            interrupt_vector_mode_supported=interrupt_vector_mode,
            device_specific_mode_supported=device_specific_mode,
            extended_tph_requester_supported=extended_tph,
            st_table_location=location,
            st_table_size=table_size,
        ),
        control=TphRequesterControl(
            st_mode_select=st_mode_select,
            tph_requester_enable=requester_enable,
        ),
        st_table_state=state,
        st_table=st_table,
    )


def decode_secondary_pci_express(payload: memoryview) -> SecondaryPciExpress:
    reader = mandatory(payload, 8, "Secondary PCI Express")
    perform_eq, eq_interrupt, _, skp_vector, _ = SECONDARY_LINK_CONTROL_3.decompose(
        reader.read_u32()
    )
    lane_error_status = reader.read_u32()
    lanes = []
    for _ in range(min(MAX_LANES, reader.remaining // 2)):
        dsp_tx, dsp_hint, _, usp_tx, usp_hint, _ = LANE_EQUALIZATION_CONTROL.decompose(
            reader.read_u16()
        )
        lanes.append(
            LaneEqualizationControl(
                downstream_port_transmitter_preset=dsp_tx,
                downstream_port_receiver_preset_hint=dsp_hint,
                upstream_port_transmitter_preset=usp_tx,
                upstream_port_receiver_preset_hint=usp_hint,
            )
        )
    return SecondaryPciExpress(
        link_control_3=SecondaryLinkControl3(
            perform_equalization=perform_eq,
            link_equalization_request_interrupt_enable=eq_interrupt,
            lower_skp_os_generation_vector=skp_vector,
        ),
        lane_error_status=lane_error_status,
        lane_equalization_control=lanes,
    )


def _rp_pio(dword: int) -> RpPioErrors:
    return RpPioErrors(raw_value=dword, **_flags(RP_PIO.decompose(dword), _RP_PIO_FIELDS))


def decode_downstream_port_containment(payload: memoryview) -> DownstreamPortContainment:
    """001Dh DPC.

    With RP Extensions the RP PIO registers and Header Log are required.
    An RP PIO Log Size of 5 or more adds the ImpSpec Log, and each unit
    above 5 adds one TLP Prefix Log dword (at most four).
    """
    reader = mandatory(payload, 8, "Downstream Port Containment")
    (
        interrupt_message_number,
        rp_extensions_present,
        poisoned_blocking_supported,
        software_triggering_supported,
        log_size,
        dl_active_supported,
        _,
    ) = DPC_CAPABILITY.decompose(reader.read_u16())
    (
        trigger_enable,
        completion_control,
        interrupt_enable,
        err_cor_enable,
        poisoned_blocking_enable,
        software_trigger,
        dl_active_enable,
        _,
    ) = DPC_CONTROL.decompose(reader.read_u16())
    (
        trigger_status,
        trigger_reason,
        interrupt_status,
        rp_busy,
        reason_extension,
        _,
        first_error_pointer,
        _,
    ) = DPC_STATUS.decompose(reader.read_u16())
    error_source_id = reader.read_u16()

    rp_extensions = None
    if rp_extensions_present:
        size = DPC_RP_EXTENSIONS_SIZE
        if log_size >= 5:
            size += 4 * (1 + min(log_size - 5, 4))
        if len(payload) < size:
            raise MandatoryFieldsUnreadableError(
                "Downstream Port Containment RP Extensions", size, len(payload)
            )
        status, mask, severity, syserr, exception = (_rp_pio(reader.read_u32()) for _ in range(5))
        header_log = [reader.read_u32() for _ in range(4)]
        impspec_log = tlp_prefix_log = None
        if log_size >= 5:
            impspec_log = reader.read_u32()
        if log_size > 5:
            tlp_prefix_log = [reader.read_u32() for _ in range(min(log_size - 5, 4))]
            tlp_prefix_log += [0] * (4 - len(tlp_prefix_log))
        rp_extensions = DpcRpExtensions(
            rp_pio_status=status,
            rp_pio_mask=mask,
            rp_pio_severity=severity,
            rp_pio_syserr=syserr,
            rp_pio_exception=exception,
            rp_pio_header_log=header_log,
            rp_pio_impspec_log=impspec_log,
            rp_pio_tlp_prefix_log=tlp_prefix_log,
        )

    return DownstreamPortContainment(
        capability=DpcCapability(
            interrupt_message_number=interrupt_message_number,
            rp_extensions_for_dpc=rp_extensions_present,
            poisoned_tlp_egress_blocking_supported=poisoned_blocking_supported,
            software_triggering_supported=software_triggering_supported,
            rp_pio_log_size=log_size,
            dl_active_err_cor_signaling_supported=dl_active_supported,
        ),
        control=DpcControl(
            trigger_enable=trigger_enable,
            completion_control=completion_control,
            interrupt_enable=interrupt_enable,
            err_cor_enable=err_cor_enable,
            poisoned_tlp_egress_blocking_enable=poisoned_blocking_enable,
            software_trigger=software_trigger,
            dl_active_err_cor_enable=dl_active_enable,
        ),
        status=DpcStatus(
            trigger_status=trigger_status,
            trigger_reason=trigger_reason,
            interrupt_status=interrupt_status,
            rp_busy=rp_busy,
            trigger_reason_extension=reason_extension,
            rp_pio_first_error_pointer=first_error_pointer,
        ),
        error_source_id=error_source_id,
        rp_extensions=rp_extensions,
    )


def decode_l1_pm_substates(payload: memoryview) -> L1PmSubstates:
    reader = mandatory(payload, 12, "L1 PM Substates")
    (
        pci_pm_l1_2,
        pci_pm_l1_1,
        aspm_l1_2,
        aspm_l1_1,
        substates_supported,
        _,
        port_restore_time,
        port_power_on_scale,
        _,
        port_power_on_value,
        _,
    ) = L1PM_CAPABILITIES.decompose(reader.read_u32())
    (
        pci_pm_l1_2_en,
        pci_pm_l1_1_en,
        aspm_l1_2_en,
        aspm_l1_1_en,
        _,
        restore_time,
        threshold_value,
        _,
        threshold_scale,
    ) = L1PM_CONTROL_1.decompose(reader.read_u32())
    power_on_scale, _, power_on_value, _ = L1PM_CONTROL_2.decompose(reader.read_u32())
    return L1PmSubstates(
        capabilities=L1PmSubstatesCapabilities(
            pci_pm_l1_2_supported=pci_pm_l1_2,
            pci_pm_l1_1_supported=pci_pm_l1_1,
            aspm_l1_2_supported=aspm_l1_2,
            aspm_l1_1_supported=aspm_l1_1,
            l1_pm_substates_supported=substates_supported,
            port_common_mode_restore_time=port_restore_time,
            port_t_power_on=TPowerOn(value=port_power_on_value, scale=port_power_on_scale),
        ),
        control_1=L1PmSubstatesControl1(
            pci_pm_l1_2_enable=pci_pm_l1_2_en,
            pci_pm_l1_1_enable=pci_pm_l1_1_en,
            aspm_l1_2_enable=aspm_l1_2_en,
            aspm_l1_1_enable=aspm_l1_1_en,
            common_mode_restore_time=restore_time,
            ltr_l1_2_threshold=MaxLatency(value=threshold_value, scale=threshold_scale),
        ),
        t_power_on=TPowerOn(value=power_on_value, scale=power_on_scale),
    )


def named_decoder(cap_id: int, name: str):
    """Decoder that identifies ``cap_id`` by name and keeps its registers verbatim."""

    def decode(payload: memoryview) -> NamedExtendedCapability:
        return NamedExtendedCapability(cap_id=cap_id, name=name, data=bytes(payload))

    return decode


# Capabilities identified by name only; their registers are kept as raw bytes.
NAMED_EXTENDED = {
    ExtendedCapabilityId.ROOT_COMPLEX_LINK_DECLARATION: "Root Complex Link Declaration",
    ExtendedCapabilityId.ROOT_COMPLEX_INTERNAL_LINK_CONTROL: "Root Complex Internal Link Control",
    ExtendedCapabilityId.ROOT_COMPLEX_EVENT_COLLECTOR_ENDPOINT_ASSOCIATION: (
        "Root Complex Event Collector Endpoint Association"
    ),
    ExtendedCapabilityId.MULTI_FUNCTION_VIRTUAL_CHANNEL: "Multi-Function Virtual Channel",
    ExtendedCapabilityId.VIRTUAL_CHANNEL_MFVC_PRESENT: "Virtual Channel (MFVC present)",
    ExtendedCapabilityId.ROOT_COMPLEX_REGISTER_BLOCK: "Root Complex Register Block",
    ExtendedCapabilityId.CONFIGURATION_ACCESS_CORRELATION: "Configuration Access Correlation",
    ExtendedCapabilityId.SR_IOV: "Single Root I/O Virtualization",
    ExtendedCapabilityId.MR_IOV: "Multi-Root I/O Virtualization",
    ExtendedCapabilityId.MULTICAST: "Multicast",
    ExtendedCapabilityId.AMD_RESERVED: "Reserved for AMD",
    ExtendedCapabilityId.DYNAMIC_POWER_ALLOCATION: "Dynamic Power Allocation",
    ExtendedCapabilityId.PROTOCOL_MULTIPLEXING: "Protocol Multiplexing",
    ExtendedCapabilityId.LN_REQUESTER: "LN Requester",
    ExtendedCapabilityId.PCI_EXPRESS_OVER_MPHY: "PCI Express over M-PHY",
    ExtendedCapabilityId.FRS_QUEUEING: "FRS Queueing",
    ExtendedCapabilityId.READINESS_TIME_REPORTING: "Readiness Time Reporting",
    ExtendedCapabilityId.DATA_LINK_FEATURE: "Data Link Feature",
    ExtendedCapabilityId.PHYSICAL_LAYER_16GT: "Physical Layer 16.0 GT/s",
    ExtendedCapabilityId.LANE_MARGINING: "Lane Margining at the Receiver",
    ExtendedCapabilityId.HIERARCHY_ID: "Hierarchy ID",
    ExtendedCapabilityId.NATIVE_PCIE_ENCLOSURE_MANAGEMENT: "Native PCIe Enclosure Management",
    ExtendedCapabilityId.PHYSICAL_LAYER_32GT: "Physical Layer 32.0 GT/s",
    ExtendedCapabilityId.ALTERNATE_PROTOCOL: "Alternate Protocol",
    ExtendedCapabilityId.SYSTEM_FIRMWARE_INTERMEDIARY: "System Firmware Intermediary",
}
