"""Unit tests for PCI Express extended capability decoders.

Payloads start after the 4-byte extended capability header.
"""

from __future__ import annotations

import struct

import pytest

from pcicaps.decoders.extended import (
    decode_access_control_services,
    decode_address_translation_services,
    decode_advanced_error_reporting,
    decode_alternative_routing_id,
    decode_device_serial_number,
    decode_downstream_port_containment,
    decode_l1_pm_substates,
    decode_latency_tolerance_reporting,
    decode_page_request_interface,
    decode_power_budgeting,
    decode_precision_time_measurement,
    decode_process_address_space_id,
    decode_resizable_bar,
    decode_secondary_pci_express,
    decode_tph_requester,
    decode_vf_resizable_bar,
    decode_virtual_channel,
)
from pcicaps.exceptions import ArityOutOfRangeError, MandatoryFieldsUnreadableError
from pcicaps.models.extended import TphStEntry


def _aer(cap_control: int = 0x34) -> bytes:
    return struct.pack(
        "<IIIIII4I", 0x4010, 0, 0x00062030, 0x1040, 0x2000, cap_control, 1, 2, 3, 4
    )


_AER_ROOT = struct.pack("<IIHH", 0x7, 0x1 | 3 << 27, 0x0100, 0x0200)


class TestAdvancedErrorReporting:
    """Test 0001h AER."""

    def test_uncorrectable_flags(self):
        aer = decode_advanced_error_reporting(memoryview(_aer()))
        status = aer.uncorrectable_error_status
        assert status.raw_value == 0x4010
        assert status.data_link_protocol_error is True
        assert status.completion_timeout is True
        assert status.surprise_down_error is False

        severity = aer.uncorrectable_error_severity
        assert severity.surprise_down_error is True
        assert severity.flow_control_protocol_error is True
        assert severity.receiver_overflow is True
        assert severity.malformed_tlp is True
        assert severity.ecrc_error is False

    def test_correctable_flags(self):
        aer = decode_advanced_error_reporting(memoryview(_aer()))
        assert aer.correctable_error_status.bad_tlp is True
        assert aer.correctable_error_status.replay_timer_timeout is True
        assert aer.correctable_error_status.receiver_error is False
        assert aer.correctable_error_mask.advisory_non_fatal_error is True

    def test_capabilities_and_header_log(self):
        aer = decode_advanced_error_reporting(memoryview(_aer()))
        assert aer.capabilities_and_control.first_error_pointer == 0x14
        assert aer.capabilities_and_control.ecrc_generation_capable is True
        assert aer.capabilities_and_control.tlp_prefix_log_present is False
        assert aer.header_log == [1, 2, 3, 4]
        assert aer.root_error_command is None
        assert aer.tlp_prefix_log is None

    def test_root_port_registers(self):
        aer = decode_advanced_error_reporting(memoryview(_aer() + _AER_ROOT))
        assert aer.root_error_command.fatal_error_reporting_enable is True
        assert aer.root_error_status.err_cor_received is True
        assert aer.root_error_status.advanced_error_interrupt_message_number == 3
        assert aer.error_source_identification.err_cor_source_identification == 0x0100
        assert aer.error_source_identification.err_fatal_or_nonfatal_source_identification == 0x0200

    def test_tlp_prefix_log(self):
        payload = _aer(0x34 | 1 << 11) + _AER_ROOT + struct.pack("<4I", 5, 6, 7, 8)
        aer = decode_advanced_error_reporting(memoryview(payload))
        assert aer.tlp_prefix_log == [5, 6, 7, 8]

    def test_tlp_prefix_log_required_when_present(self):
        payload = _aer(0x34 | 1 << 11) + _AER_ROOT
        with pytest.raises(MandatoryFieldsUnreadableError, match="TLP Prefix Log"):
            decode_advanced_error_reporting(memoryview(payload))

    def test_too_short(self):
        with pytest.raises(MandatoryFieldsUnreadableError, match="expected 40 bytes"):
            decode_advanced_error_reporting(memoryview(_aer()[:36]))


class TestDeviceSerialNumber:
    """Test 0003h Device Serial Number."""

    def test_decode(self):
        dsn = decode_device_serial_number(memoryview(struct.pack("<II", 0x455485FE, 0xFF565000)))
        assert dsn.serial_number == 0xFF565000455485FE
        assert str(dsn) == "ff-56-50-00-45-54-85-fe"

    def test_too_short(self):
        with pytest.raises(MandatoryFieldsUnreadableError):
            decode_device_serial_number(memoryview(b"\x00" * 4))


class TestAccessControlServices:
    """Test 000Dh ACS and its optional egress control vector."""

    def test_egress_vector(self):
        acs = decode_access_control_services(
            memoryview(struct.pack("<HHI", 0x0821, 0x0001, 0xFFFFFFA5))
        )
        assert acs.capability.source_validation is True
        assert acs.capability.p2p_egress_control is True
        assert acs.capability.egress_control_vector_size == 8
        assert acs.control.source_validation_enable is True
        # Bits beyond the vector size are ignored
        assert acs.egress_control_vector == 0xA5

    def test_zero_size_means_256_bits(self):
        acs = decode_access_control_services(
            memoryview(struct.pack("<HH", 0x0020, 0) + b"\xff" * 32)
        )
        assert acs.egress_control_vector == (1 << 256) - 1

    def test_no_egress_control(self):
        acs = decode_access_control_services(memoryview(struct.pack("<HH", 0x0001, 0)))
        assert acs.egress_control_vector is None

    def test_missing_vector(self):
        with pytest.raises(MandatoryFieldsUnreadableError, match="Access Control Services"):
            decode_access_control_services(memoryview(struct.pack("<HH", 0x0821, 0)))


class TestSmallExtendedCapabilities:
    """Test ARI, ATS, PRI, LTR, PASID and PTM."""

    def test_ari(self):
        ari = decode_alternative_routing_id(memoryview(struct.pack("<HH", 0x0401, 0x0052)))
        assert ari.capability.mfvc_function_groups_capability is True
        assert ari.capability.next_function_number == 4
        assert ari.control.acs_function_groups_enable is True
        assert ari.control.function_group == 5

    def test_ats(self):
        ats = decode_address_translation_services(memoryview(struct.pack("<HH", 0x0025, 0x8002)))
        assert ats.capability.invalidate_queue_depth == 5
        assert ats.capability.page_aligned_request is True
        assert ats.capability.global_invalidate_supported is False
        assert ats.control.smallest_translation_unit == 2
        assert ats.control.enable is True

    def test_pri(self):
        pri = decode_page_request_interface(
            memoryview(struct.pack("<HHII", 0x0001, 0x8100, 0x200, 0x40))
        )
        assert pri.control.enable is True
        assert pri.status.stopped is True
        assert pri.status.prg_response_pasid_required is True
        assert pri.status.response_failure is False
        assert pri.outstanding_page_request_capacity == 0x200
        assert pri.outstanding_page_request_allocation == 0x40

    def test_ltr(self):
        ltr = decode_latency_tolerance_reporting(memoryview(struct.pack("<HH", 0x0864, 0x1801)))
        assert ltr.max_snoop_latency.value == 100
        assert ltr.max_snoop_latency.scale == 2
        assert ltr.max_snoop_latency.nanoseconds == 102400
        # Scale 6 is reserved
        assert ltr.max_no_snoop_latency.nanoseconds is None

    def test_pasid(self):
        pasid = decode_process_address_space_id(memoryview(struct.pack("<HH", 0x1406, 0x0001)))
        assert pasid.capability.execute_permission_supported is True
        assert pasid.capability.privileged_mode_supported is True
        assert pasid.capability.max_pasid_width == 20
        assert pasid.control.pasid_enable is True

    def test_ptm(self):
        ptm = decode_precision_time_measurement(memoryview(struct.pack("<II", 0x1005, 0x2003)))
        assert ptm.capability.requester_capable is True
        assert ptm.capability.responder_capable is False
        assert ptm.capability.root_capable is True
        assert ptm.capability.local_clock_granularity == 0x10
        assert ptm.control.root_select is True
        assert ptm.control.effective_granularity == 0x20


class TestResizableBar:
    """Test 0015h / 0024h Resizable BAR entry arrays."""

    _TWO_ENTRIES = struct.pack("<IIII", 0x000001F0, 0x0340, 0x00003000, 0x0002)

    def test_entry_count_from_first_control(self):
        rebar = decode_resizable_bar(memoryview(self._TWO_ENTRIES))
        assert len(rebar.entries) == 2
        first, second = rebar.entries
        assert first.control.number_of_resizable_bars == 2
        assert first.control.bar_index == 0
        assert first.current_size == "8MB"
        assert first.supported_sizes == ["1MB", "2MB", "4MB", "8MB", "16MB"]
        assert second.control.bar_index == 2
        assert second.supported_sizes == ["256MB", "512MB"]

    def test_upper_support_map(self):
        rebar = decode_resizable_bar(memoryview(struct.pack("<II", 0, 0x00010020)))
        assert rebar.entries[0].supports_power_of_two(48)
        assert rebar.entries[0].supported_sizes == ["256TB"]

    @pytest.mark.parametrize("control", [0x0000, 0x00E0])
    def test_count_out_of_range(self, control):
        payload = struct.pack("<II", 0x10, control) + b"\x00" * 48
        with pytest.raises(ArityOutOfRangeError, match="should have 1..=6 entries"):
            decode_resizable_bar(memoryview(payload))

    def test_counted_entries_must_be_present(self):
        payload = struct.pack("<IIII", 0x10, 0x0060, 0x10, 0x0001)
        with pytest.raises(MandatoryFieldsUnreadableError, match="expected 24 bytes, real: 16"):
            decode_resizable_bar(memoryview(payload))

    def test_vf_resizable_bar(self):
        rebar = decode_vf_resizable_bar(memoryview(self._TWO_ENTRIES))
        assert rebar.kind == "vf_resizable_bar"
        assert len(rebar.entries) == 2


class TestVirtualChannel:
    """Test 0002h Virtual Channel port registers and VC resources."""

    _PORT = struct.pack("<IIHH", 0x00000811, 0x03000003, 0x0003, 0x0001)
    _VC0 = struct.pack("<IIHH", 0x047F8001, 0x800000FF, 0, 0x0002)
    _VC1 = struct.pack("<IIHH", 0x00000000, 0x81000002, 0, 0x0000)

    def test_port_registers(self):
        vc = decode_virtual_channel(memoryview(self._PORT + self._VC0 + self._VC1))
        cap1 = vc.port_vc_capability_1
        assert cap1.extended_vc_count == 1
        assert cap1.low_priority_extended_vc_count == 1
        assert cap1.port_arbitration_table_entry_size == 2
        assert cap1.port_arbitration_entry_bits == 4
        assert vc.port_vc_capability_2.hardware_fixed_arbitration is True
        assert vc.port_vc_capability_2.wrr_32_phases is True
        assert vc.port_vc_capability_2.wrr_64_phases is False
        assert vc.port_vc_capability_2.vc_arbitration_table_offset == 3
        assert vc.port_vc_control.load_vc_arbitration_table is True
        assert vc.port_vc_control.vc_arbitration_select == 1
        assert vc.vc_arbitration_table_status is True

    def test_resources(self):
        vc = decode_virtual_channel(memoryview(self._PORT + self._VC0 + self._VC1))
        assert len(vc.resources) == 2
        vc0, vc1 = vc.resources
        assert vc0.capability.hardware_fixed_arbitration is True
        assert vc0.capability.reject_snoop_transactions is True
        assert vc0.capability.advanced_packet_switching is False
        assert vc0.capability.maximum_time_slots == 0x7F
        assert vc0.capability.port_arbitration_table_offset == 4
        assert vc0.control.tc_vc_map == 0xFF
        assert vc0.control.vc_enable is True
        assert vc0.status.vc_negotiation_pending is True
        assert vc1.control.vc_id == 1
        assert vc1.control.tc_vc_map == 0x02

    def test_resources_beyond_payload_left_out(self):
        vc = decode_virtual_channel(memoryview(self._PORT + self._VC0 + self._VC1[:8]))
        assert len(vc.resources) == 1

    def test_too_short(self):
        with pytest.raises(MandatoryFieldsUnreadableError, match="Virtual Channel"):
            decode_virtual_channel(memoryview(self._PORT[:10]))


class TestPowerBudgeting:
    """Test 0004h Power Budgeting."""

    def test_decode(self):
        budget = decode_power_budgeting(memoryview(struct.pack("<B3xIB3x", 2, 0x00056119, 1)))
        assert budget.data_select == 2
        assert budget.system_allocated is True
        data = budget.data
        assert data.base_power == 25
        assert data.data_scale == 1
        assert data.pm_state == 3
        assert data.operation_condition_type == 2
        assert data.power_rail == 1
        assert data.watts == pytest.approx(2.5)

    def test_reserved_base_power(self):
        budget = decode_power_budgeting(memoryview(struct.pack("<B3xIB3x", 0, 0xF0, 0)))
        assert budget.data.watts is None
        assert budget.system_allocated is False

    def test_too_short(self):
        with pytest.raises(MandatoryFieldsUnreadableError, match="expected 12 bytes, real: 8"):
            decode_power_budgeting(memoryview(bytes(8)))


class TestTphRequester:
    """Test 0017h TPH Requester and its ST table."""

    _CAP = 0x00010303

    def test_st_table_in_capability(self):
        payload = struct.pack("<II", self._CAP, 0x0101) + bytes([0x11, 0x22, 0x33, 0x44])
        tph = decode_tph_requester(memoryview(payload))
        assert tph.capability.no_st_mode_supported is True
        assert tph.capability.interrupt_vector_mode_supported is True
        assert tph.capability.device_specific_mode_supported is False
        assert tph.capability.extended_tph_requester_supported is True
        assert tph.capability.st_table_size == 1
        assert tph.control.st_mode_select == 1
        assert tph.control.tph_requester_enable == 1
        assert tph.st_table_state == "valid"
        assert tph.st_table == [
            TphStEntry(st_lower=0x11, st_upper=0x22),
            TphStEntry(st_lower=0x33, st_upper=0x44),
        ]

    def test_st_table_missing_is_invalid(self):
        tph = decode_tph_requester(memoryview(struct.pack("<II", self._CAP, 0) + b"\x11"))
        assert tph.st_table_state == "invalid"
        assert tph.st_table == []

    @pytest.mark.parametrize(
        "location, state", [(0, "not_present"), (2, "msi_x_table"), (3, "reserved")]
    )
    def test_st_table_elsewhere(self, location, state):
        tph = decode_tph_requester(memoryview(struct.pack("<II", location << 9, 0)))
        assert tph.capability.st_table_location == location
        assert tph.st_table_state == state

    def test_too_short(self):
        with pytest.raises(MandatoryFieldsUnreadableError, match="TPH Requester"):
            decode_tph_requester(memoryview(bytes(4)))


class TestSecondaryPciExpress:
    """Test 0019h Secondary PCI Express."""

    def test_decode(self):
        payload = struct.pack("<IIHH", 0x0000FE01, 0x5, 0x3724, 0x0000)
        secondary = decode_secondary_pci_express(memoryview(payload))
        assert secondary.link_control_3.perform_equalization is True
        assert secondary.link_control_3.link_equalization_request_interrupt_enable is False
        assert secondary.link_control_3.lower_skp_os_generation_vector == 0x7F
        assert secondary.lane_error_status == 0x5
        assert len(secondary.lane_equalization_control) == 2
        lane = secondary.lanes(1)[0]
        assert lane.downstream_port_transmitter_preset == 4
        assert lane.downstream_port_receiver_preset_hint == 2
        assert lane.upstream_port_transmitter_preset == 7
        assert lane.upstream_port_receiver_preset_hint == 3

    def test_lanes_capped_at_32(self):
        secondary = decode_secondary_pci_express(memoryview(bytes(8 + 80)))
        assert len(secondary.lane_equalization_control) == 32

    def test_too_short(self):
        with pytest.raises(MandatoryFieldsUnreadableError, match="Secondary PCI Express"):
            decode_secondary_pci_express(memoryview(bytes(7)))


class TestDownstreamPortContainment:
    """Test 001Dh DPC with and without RP Extensions."""

    _RP_PIO = struct.pack("<5I4I", 0x401, 0x70000, 0, 0, 0, 1, 2, 3, 4)

    def test_registers(self):
        payload = struct.pack("<HHHH", 0x14E3, 0x004A, 0x0437, 0x0100) + self._RP_PIO
        dpc = decode_downstream_port_containment(memoryview(payload))
        assert dpc.capability.interrupt_message_number == 3
        assert dpc.capability.rp_extensions_for_dpc is True
        assert dpc.capability.software_triggering_supported is True
        assert dpc.capability.rp_pio_log_size == 4
        assert dpc.capability.dl_active_err_cor_signaling_supported is True
        assert dpc.control.trigger_enable == 2
        assert dpc.control.interrupt_enable is True
        assert dpc.control.software_trigger is True
        assert dpc.status.trigger_status is True
        assert dpc.status.rp_busy is True
        assert dpc.status.rp_pio_first_error_pointer == 4
        assert dpc.status.trigger_reason_name == "software_trigger"
        assert dpc.error_source_id == 0x0100

    def test_rp_extensions(self):
        payload = struct.pack("<HHHH", 0x14E3, 0, 0, 0) + self._RP_PIO
        rp = decode_downstream_port_containment(memoryview(payload)).rp_extensions
        assert rp.rp_pio_status.raw_value == 0x401
        assert rp.rp_pio_status.cfg_ur_cpl is True
        assert rp.rp_pio_status.io_cto is True
        assert rp.rp_pio_status.mem_cto is False
        assert rp.rp_pio_mask.mem_ur_cpl is True
        assert rp.rp_pio_mask.mem_ca_cpl is True
        assert rp.rp_pio_mask.mem_cto is True
        assert rp.rp_pio_header_log == [1, 2, 3, 4]
        assert rp.rp_pio_impspec_log is None
        assert rp.rp_pio_tlp_prefix_log is None

    def test_log_size_adds_impspec_and_prefix_logs(self):
        payload = (
            struct.pack("<HHHH", 0x0720, 0, 0, 0)
            + self._RP_PIO
            + struct.pack("<III", 0xAA, 0xB1, 0xB2)
        )
        rp = decode_downstream_port_containment(memoryview(payload)).rp_extensions
        assert rp.rp_pio_impspec_log == 0xAA
        assert rp.rp_pio_tlp_prefix_log == [0xB1, 0xB2, 0, 0]

    def test_without_rp_extensions(self):
        payload = struct.pack("<HHHH", 0x0001, 0, 0x0001, 0)
        dpc = decode_downstream_port_containment(memoryview(payload))
        assert dpc.rp_extensions is None
        assert dpc.status.trigger_reason_name == "unmasked_uncorrectable_error"

    def test_rp_extensions_required_when_present(self):
        payload = struct.pack("<HHHH", 0x0020, 0, 0, 0)
        with pytest.raises(MandatoryFieldsUnreadableError, match="expected 44 bytes, real: 8"):
            decode_downstream_port_containment(memoryview(payload))


class TestL1PmSubstates:
    """Test 001Eh L1 PM Substates."""

    _PAYLOAD = bytes.fromhex("1fff2800" "03003240" "b0000000")

    def test_capabilities(self):
        caps = decode_l1_pm_substates(memoryview(self._PAYLOAD)).capabilities
        assert caps.pci_pm_l1_2_supported is True
        assert caps.pci_pm_l1_1_supported is True
        assert caps.aspm_l1_2_supported is True
        assert caps.aspm_l1_1_supported is True
        assert caps.l1_pm_substates_supported is True
        assert caps.port_common_mode_restore_time == 255
        assert caps.port_t_power_on.value == 5
        assert caps.port_t_power_on.scale == 0
        assert caps.port_t_power_on.microseconds == 10

    def test_controls(self):
        l1pm = decode_l1_pm_substates(memoryview(self._PAYLOAD))
        control = l1pm.control_1
        assert control.pci_pm_l1_2_enable is True
        assert control.pci_pm_l1_1_enable is True
        assert control.aspm_l1_2_enable is False
        assert control.aspm_l1_1_enable is False
        assert control.ltr_l1_2_threshold.value == 50
        assert control.ltr_l1_2_threshold.scale == 2
        assert l1pm.t_power_on.value == 22
        assert l1pm.t_power_on.microseconds == 44

    def test_too_short(self):
        with pytest.raises(MandatoryFieldsUnreadableError, match="expected 12 bytes, real: 8"):
            decode_l1_pm_substates(memoryview(self._PAYLOAD[:8]))
