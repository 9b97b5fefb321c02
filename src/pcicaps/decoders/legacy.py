"""Field tables for legacy PCI capabilities.

Every decoder receives the payload that follows the 2-byte header. Byte
offsets in the comments are relative to that payload, not to the
capability header.
"""

from __future__ import annotations

from pcicaps.core.bitfield import layout
from pcicaps.core.reader import mandatory
from pcicaps.decoders.vendor import VIRTIO_DISPATCH
from pcicaps.exceptions import InvalidLengthError, MandatoryFieldsUnreadableError
from pcicaps.models.capabilities import (
    AdvancedFeatures,
    Agp8x,
    BridgeSubsystemVendorId,
    CompactPciHotSwap,
    CompactPciResourceControl,
    DebugPort,
    MessageSignaledInterrupts,
    MsiMessageControl,
    MsiX,
    MsixLocation,
    MsixMessageControl,
    NullCapability,
    PciExpress,
    PcieCapabilities,
    PcieDeviceCapabilities,
    PcieDeviceControl,
    PcieDeviceStatus,
    PciHotPlug,
    PcieLink,
    PcieLinkCapabilities,
    PcieLinkControl,
    PcieLinkStatus,
    PmeSupport,
    PowerManagement,
    PowerManagementBridge,
    PowerManagementCapabilities,
    PowerManagementControl,
    Sata,
    SecureDevice,
    SlotIdentification,
    VendorSpecific,
    VitalProductData,
)

# --- 01h Power Management -------------------------------------------------
PMC = layout(16, 3, 1, 1, 1, 3, 1, 1, 1, 1, 1, 1, 1, name="PMC")
PMCSR = layout(16, 2, 1, 1, 4, 1, 4, 2, 1, name="PMCSR")
PMCSR_BSE = layout(8, 6, 1, 1, name="PMCSR_BSE")

# --- 03h VPD, 04h Slot ID ------------------------------------------------
VPD_ADDRESS = layout(16, 15, 1, name="VPD address")
SLOT_ID = layout(8, 5, 1, 2, name="expansion slot")

# --- 05h MSI ---------------------------------------------------------------
MSI_CONTROL = layout(16, 1, 3, 3, 1, 1, 1, 1, 5, name="MSI message control")
# (64-bit capable, per-vector masking) -> total size including control
MSI_SIZES = {
    (False, False): 10,
    (True, False): 14,
    (False, True): 18,
    (True, True): 22,
}

# --- 0Ah Debug port ----------------------------------------------------------
DEBUG_PORT = layout(16, 13, 3, name="debug port")

# --- 10h PCI Express ---------------------------------------------------------
PCIE_CAPS = layout(16, 4, 4, 1, 5, 1, 1, name="PCIe capabilities")
PCIE_DEVCAP = layout(32, 3, 2, 1, 3, 3, 3, 1, 1, 1, 8, 2, 1, 1, 1, 1, name="device capabilities")
PCIE_DEVCTL = layout(16, 1, 1, 1, 1, 1, 3, 1, 1, 1, 1, 3, 1, name="device control")
PCIE_DEVSTA = layout(16, 1, 1, 1, 1, 1, 1, 1, 9, name="device status")
PCIE_LNKCAP = layout(32, 4, 6, 2, 3, 3, 1, 1, 1, 1, 1, 1, 8, name="link capabilities")
PCIE_LNKCTL = layout(16, 2, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 1, 2, name="link control")
PCIE_LNKSTA = layout(16, 4, 6, 1, 1, 1, 1, 1, 1, name="link status")
PCIE_MIN_SIZE = 10
PCIE_LINK_SIZE = 18

# --- 11h MSI-X -----------------------------------------------------------------
MSIX_CONTROL = layout(16, 11, 3, 1, 1, name="MSI-X message control")
MSIX_LOCATION = layout(32, 3, 29, name="MSI-X table/PBA")

# --- 12h SATA, 13h AF ------------------------------------------------------------
SATA_REVISION = layout(8, 4, 4, name="SATA revision")
SATA_CAP1 = layout(32, 4, 20, 8, name="SATA capability 1")
AF_CAPS = layout(8, 1, 1, 6, name="AF capabilities")
AF_CONTROL = layout(8, 1, 7, name="AF control")
AF_STATUS = layout(8, 1, 7, name="AF status")


def decode_null(payload: memoryview) -> NullCapability:
    return NullCapability()


def decode_power_management(payload: memoryview) -> PowerManagement:
    reader = mandatory(payload, 6, "Power Management Interface")
    (
        version,
        pme_clock,
        immediate_readiness,
        dsi,
        aux_current,
        d1_support,
        d2_support,
        pme_d0,
        pme_d1,
        pme_d2,
        pme_d3_hot,
        pme_d3_cold,
    ) = PMC.decompose(reader.read_u16())
    power_state, _, no_soft_reset, _, pme_enabled, data_select, data_scale, pme_status = (
        PMCSR.decompose(reader.read_u16())
    )
    reserved, b2_b3, bpcc_enabled = PMCSR_BSE.decompose(reader.read_u8())
    return PowerManagement(
        capabilities=PowerManagementCapabilities(
            version=version,
            pme_clock=pme_clock,
            immediate_readiness_on_return_to_d0=immediate_readiness,
            device_specific_initialization=dsi,
            aux_current=aux_current,
            d1_support=d1_support,
            d2_support=d2_support,
            pme_support=PmeSupport(
                d0=pme_d0, d1=pme_d1, d2=pme_d2, d3_hot=pme_d3_hot, d3_cold=pme_d3_cold
            ),
        ),
        control=PowerManagementControl(
            power_state=power_state,
            no_soft_reset=no_soft_reset,
            pme_enabled=pme_enabled,
            data_select=data_select,
            data_scale=data_scale,
            pme_status=pme_status,
        ),
        bridge=PowerManagementBridge(reserved=reserved, b2_b3=b2_b3, bpcc_enabled=bpcc_enabled),
        data=reader.read_u8(),
    )


def decode_vital_product_data(payload: memoryview) -> VitalProductData:
    reader = mandatory(payload, 6, "Vital Product Data")
    address, completed = VPD_ADDRESS.decompose(reader.read_u16())
    return VitalProductData(
        vpd_address=address, transfer_completed=completed, vpd_data=reader.read_u32()
    )


def decode_slot_identification(payload: memoryview) -> SlotIdentification:
    reader = mandatory(payload, 2, "Slot Identification")
    slots, first_in_chassis, _ = SLOT_ID.decompose(reader.read_u8())
    return SlotIdentification(
        expansion_slots_provided=slots,
        first_in_chassis=first_in_chassis,
        chassis_number=reader.read_u8(),
    )


def decode_msi(payload: memoryview) -> MessageSignaledInterrupts:
    """05h MSI. Layout depends on the 64-bit and per-vector masking bits.

    Sizes include the 2-byte Message Control register:
    32-bit 10, 64-bit 14, 32-bit + PVM 18, 64-bit + PVM 22.
    """
    reader = mandatory(payload, 2, "Message Signaled Interrupts")
    enable, mmc, mme, is_64bit, pvm, ext_cap, ext_en, _ = MSI_CONTROL.decompose(reader.read_u16())
    size = MSI_SIZES[(is_64bit, pvm)]
    if len(reader) < size:
        raise MandatoryFieldsUnreadableError("Message Signaled Interrupts", size, len(reader))
    address = reader.read_u32()
    if is_64bit:
        address |= reader.read_u32() << 32
    message_data = reader.read_u16()
    extended_message_data = reader.read_u16()
    mask_bits = pending_bits = None
    if pvm:
        mask_bits = reader.read_u32()
        pending_bits = reader.read_u32()
    return MessageSignaledInterrupts(
        message_control=MsiMessageControl(
            msi_enable=enable,
            multiple_message_capable=mmc,
            multiple_message_enable=mme,
            a_64_bit_address_capable=is_64bit,
            per_vector_masking_capable=pvm,
            extended_message_data_capable=ext_cap,
            extended_message_data_enable=ext_en,
        ),
        message_address=address,
        message_data=message_data,
        extended_message_data=extended_message_data,
        mask_bits=mask_bits,
        pending_bits=pending_bits,
    )


def decode_compact_pci_hot_swap(payload: memoryview) -> CompactPciHotSwap:
    return CompactPciHotSwap()


def decode_compact_pci_resource_control(payload: memoryview) -> CompactPciResourceControl:
    return CompactPciResourceControl()


def decode_pci_hot_plug(payload: memoryview) -> PciHotPlug:
    return PciHotPlug()


def decode_agp_8x(payload: memoryview) -> Agp8x:
    return Agp8x()


def decode_secure_device(payload: memoryview) -> SecureDevice:
    return SecureDevice()


def decode_vendor_specific(
    payload: memoryview,
    vendor_id: int | None = None,
    device_id: int | None = None,
) -> VendorSpecific:
    """09h Vendor Specific.

    Byte 0 is the capability length counted from the capability ID, so
    the vendor registers are payload[1:length - 2]. Devices matching a
    registered (vendor, device) pair get a nested decode of those bytes.
    """
    reader = mandatory(payload, 1, "Vendor Specific")
    length = reader.read_u8()
    if length < 3:
        raise InvalidLengthError("Vendor Specific", length, 3)
    size = length - 2
    if size > len(payload):
        raise MandatoryFieldsUnreadableError("Vendor Specific", size, len(payload))
    registers = payload[1:size]
    virtio = None
    if vendor_id is not None and device_id is not None:
        virtio = VIRTIO_DISPATCH.dispatch(vendor_id, device_id, registers, length=length)
    return VendorSpecific(length=length, registers=bytes(registers), virtio=virtio)


def decode_debug_port(payload: memoryview) -> DebugPort:
    reader = mandatory(payload, 2, "Debug port")
    offset, bar_number = DEBUG_PORT.decompose(reader.read_u16())
    return DebugPort(offset=offset, bar_number=bar_number)


def decode_bridge_subsystem_vendor_id(payload: memoryview) -> BridgeSubsystemVendorId:
    reader = mandatory(payload, 6, "Bridge Subsystem Vendor ID")
    return BridgeSubsystemVendorId(
        reserved=reader.read_u16(),
        subsystem_vendor_id=reader.read_u16(),
        subsystem_id=reader.read_u16(),
    )


def decode_pci_express(payload: memoryview) -> PciExpress:
    """10h PCI Express. Link registers follow when the structure holds them."""
    reader = mandatory(payload, PCIE_MIN_SIZE, "PCI Express")
    version, port_type, slot, irq, tcs, flit = PCIE_CAPS.decompose(reader.read_u16())
    (
        mps,
        phantom,
        ext_tag,
        l0s_latency,
        l1_latency,
        _,
        role_based,
        err_cor_subclass,
        rx_mps_fixed,
        power_value,
        power_scale,
        flr,
        mixed_mps,
        tee_io,
        _,
    ) = PCIE_DEVCAP.decompose(reader.read_u32())
    (
        cere,
        nfere,
        fere,
        urre,
        relaxed_ordering,
        mps_ctl,
        ext_tag_en,
        phantom_en,
        aux_pm,
        no_snoop,
        mrrs,
        bridge_or_flr,
    ) = PCIE_DEVCTL.decompose(reader.read_u16())
    ced, nfed, fed, urd, aux_power, tp, epr, _ = PCIE_DEVSTA.decompose(reader.read_u16())

    link = None
    if len(reader) >= PCIE_LINK_SIZE:
        link = _decode_pcie_link(reader.read_u32(), reader.read_u16(), reader.read_u16())

    return PciExpress(
        capabilities=PcieCapabilities(
            version=version,
            device_port_type=port_type,
            slot_implemented=slot,
            interrupt_message_number=irq,
            tcs_routing_supported=tcs,
            flit_mode_supported=flit,
        ),
        device_capabilities=PcieDeviceCapabilities(
            max_payload_size_supported=mps,
            phantom_functions_supported=phantom,
            extended_tag_field_supported=ext_tag,
            endpoint_l0s_acceptable_latency=l0s_latency,
            endpoint_l1_acceptable_latency=l1_latency,
            role_based_error_reporting=role_based,
            err_cor_subclass_capable=err_cor_subclass,
            rx_mps_fixed=rx_mps_fixed,
            captured_slot_power_limit_value=power_value,
            captured_slot_power_limit_scale=power_scale,
            function_level_reset_capability=flr,
            mixed_mps_supported=mixed_mps,
            tee_io_supported=tee_io,
        ),
        device_control=PcieDeviceControl(
            correctable_error_reporting=cere,
            non_fatal_error_reporting=nfere,
            fatal_error_reporting=fere,
            unsupported_request_reporting=urre,
            relaxed_ordering=relaxed_ordering,
            max_payload_size=mps_ctl,
            extended_tag_field_enable=ext_tag_en,
            phantom_functions_enable=phantom_en,
            aux_power_pm_enable=aux_pm,
            no_snoop=no_snoop,
            max_read_request_size=mrrs,
            bridge_retry_or_flr=bridge_or_flr,
        ),
        device_status=PcieDeviceStatus(
            correctable_error_detected=ced,
            non_fatal_error_detected=nfed,
            fatal_error_detected=fed,
            unsupported_request_detected=urd,
            aux_power_detected=aux_power,
            transactions_pending=tp,
            emergency_power_reduction_detected=epr,
        ),
        link=link,
    )


def _decode_pcie_link(lnkcap: int, lnkctl: int, lnksta: int) -> PcieLink:
    (
        speed,
        width,
        aspm,
        l0s_exit,
        l1_exit,
        clock_pm,
        surprise_down,
        dll_active_capable,
        bw_notify,
        aspm_optionality,
        _,
        port_number,
    ) = PCIE_LNKCAP.decompose(lnkcap)
    (
        aspm_control,
        ptm_adaptation,
        rcb,
        link_disable,
        retrain,
        common_clock,
        ext_synch,
        clock_pm_enable,
        hw_width_disable,
        lbm_int,
        lab_int,
        sris,
        flit_disable,
        drs,
    ) = PCIE_LNKCTL.decompose(lnkctl)
    cur_speed, cur_width, _, training, slot_clock, dll_active, lbm_status, lab_status = (
        PCIE_LNKSTA.decompose(lnksta)
    )
    return PcieLink(
        capabilities=PcieLinkCapabilities(
            max_link_speed=speed,
            max_link_width=width,
            aspm_support=aspm,
            l0s_exit_latency=l0s_exit,
            l1_exit_latency=l1_exit,
            clock_power_management=clock_pm,
            surprise_down_error_reporting_capable=surprise_down,
            data_link_layer_link_active_reporting_capable=dll_active_capable,
            link_bandwidth_notification_capability=bw_notify,
            aspm_optionality_compliance=aspm_optionality,
            port_number=port_number,
        ),
        control=PcieLinkControl(
            aspm_control=aspm_control,
            ptm_propagation_delay_adaptation=ptm_adaptation,
            read_completion_boundary=rcb,
            link_disable=link_disable,
            retrain_link=retrain,
            common_clock_configuration=common_clock,
            extended_synch=ext_synch,
            enable_clock_power_management=clock_pm_enable,
            hardware_autonomous_width_disable=hw_width_disable,
            link_bandwidth_management_interrupt_enable=lbm_int,
            link_autonomous_bandwidth_interrupt_enable=lab_int,
            sris_clocking=sris,
            flit_mode_disable=flit_disable,
            drs_signaling_control=drs,
        ),
        status=PcieLinkStatus(
            current_link_speed=cur_speed,
            negotiated_link_width=cur_width,
            link_training=training,
            slot_clock_configuration=slot_clock,
            data_link_layer_link_active=dll_active,
            link_bandwidth_management_status=lbm_status,
            link_autonomous_bandwidth_status=lab_status,
        ),
    )


def decode_msi_x(payload: memoryview) -> MsiX:
    reader = mandatory(payload, 10, "MSI-X")
    table_size, _, function_mask, enable = MSIX_CONTROL.decompose(reader.read_u16())
    table_bir, table_offset = MSIX_LOCATION.decompose(reader.read_u32())
    pba_bir, pba_offset = MSIX_LOCATION.decompose(reader.read_u32())
    return MsiX(
        message_control=MsixMessageControl(
            table_size=table_size, function_mask=function_mask, msi_x_enable=enable
        ),
        # Offsets are QWORD aligned; the low 3 bits hold the BIR
        table=MsixLocation(bir=table_bir, offset=table_offset << 3),
        pending_bit_array=MsixLocation(bir=pba_bir, offset=pba_offset << 3),
    )


def decode_sata(payload: memoryview) -> Sata:
    reader = mandatory(payload, 6, "Serial ATA")
    minor, major = SATA_REVISION.decompose(reader.read_u8())
    reader.skip(1)
    bar_location, bar_offset, _ = SATA_CAP1.decompose(reader.read_u32())
    return Sata(
        revision_major=major,
        revision_minor=minor,
        bar_location=bar_location,
        bar_offset=bar_offset,
    )


def decode_advanced_features(payload: memoryview) -> AdvancedFeatures:
    reader = mandatory(payload, 4, "Advanced Features")
    length = reader.read_u8()
    tp_capable, flr_capable, _ = AF_CAPS.decompose(reader.read_u8())
    initiate_flr, _ = AF_CONTROL.decompose(reader.read_u8())
    transactions_pending, _ = AF_STATUS.decompose(reader.read_u8())
    return AdvancedFeatures(
        length=length,
        transactions_pending_capable=tp_capable,
        function_level_reset_capable=flr_capable,
        initiate_flr=initiate_flr,
        transactions_pending=transactions_pending,
    )
