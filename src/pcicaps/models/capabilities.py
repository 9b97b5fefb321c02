"""Pydantic models for legacy (first 256 bytes) PCI capability structures."""

from __future__ import annotations

from enum import IntEnum
from typing import Literal

from pydantic import BaseModel


class CapabilityId(IntEnum):
    """Legacy capability IDs assigned by the PCI-SIG."""

    NULL = 0x00
    POWER_MANAGEMENT = 0x01
    AGP = 0x02
    VITAL_PRODUCT_DATA = 0x03
    SLOT_IDENTIFICATION = 0x04
    MSI = 0x05
    COMPACT_PCI_HOT_SWAP = 0x06
    PCI_X = 0x07
    HYPERTRANSPORT = 0x08
    VENDOR_SPECIFIC = 0x09
    DEBUG_PORT = 0x0A
    COMPACT_PCI_RESOURCE_CONTROL = 0x0B
    PCI_HOT_PLUG = 0x0C
    BRIDGE_SUBSYSTEM_VENDOR_ID = 0x0D
    AGP_8X = 0x0E
    SECURE_DEVICE = 0x0F
    PCI_EXPRESS = 0x10
    MSI_X = 0x11
    SATA = 0x12
    ADVANCED_FEATURES = 0x13
    ENHANCED_ALLOCATION = 0x14
    FLATTENING_PORTAL_BRIDGE = 0x15


# ---------------------------------------------------------------------------
# Header-only capabilities
# ---------------------------------------------------------------------------


class NullCapability(BaseModel):
    """00h Null Capability. Contains no registers."""

    kind: Literal["null"] = "null"


class CompactPciHotSwap(BaseModel):
    """06h CompactPCI Hot Swap."""

    kind: Literal["compact_pci_hot_swap"] = "compact_pci_hot_swap"


class CompactPciResourceControl(BaseModel):
    """0Bh CompactPCI central resource control."""

    kind: Literal["compact_pci_resource_control"] = "compact_pci_resource_control"


class PciHotPlug(BaseModel):
    """0Ch Standard Hot-Plug Controller model."""

    kind: Literal["pci_hot_plug"] = "pci_hot_plug"


class Agp8x(BaseModel):
    """0Eh AGP 8x."""

    kind: Literal["agp_8x"] = "agp_8x"


class SecureDevice(BaseModel):
    """0Fh Secure Device."""

    kind: Literal["secure_device"] = "secure_device"


# ---------------------------------------------------------------------------
# 01h Power Management
# ---------------------------------------------------------------------------

_AUX_CURRENT_MA = (0, 55, 100, 160, 220, 270, 320, 375)
_POWER_STATE_NAMES = {0: "D0", 1: "D1", 2: "D2", 3: "D3hot"}


class PmeSupport(BaseModel):
    """Power states from which the function can assert PME#."""

    d0: bool = False
    d1: bool = False
    d2: bool = False
    d3_hot: bool = False
    d3_cold: bool = False


class PowerManagementCapabilities(BaseModel):
    """Power Management Capabilities register (PMC)."""

    version: int
    pme_clock: bool
    immediate_readiness_on_return_to_d0: bool
    device_specific_initialization: bool
    aux_current: int
    d1_support: bool
    d2_support: bool
    pme_support: PmeSupport

    @property
    def aux_current_ma(self) -> int:
        """Max 3.3Vaux current in mA (0 means self powered)."""
        return _AUX_CURRENT_MA[self.aux_current & 0x7]


class PowerManagementControl(BaseModel):
    """Power Management Control/Status register (PMCSR)."""

    power_state: int
    no_soft_reset: bool
    pme_enabled: bool
    data_select: int
    data_scale: int
    pme_status: bool

    @property
    def power_state_name(self) -> str:
        return _POWER_STATE_NAMES[self.power_state & 0x3]


class PowerManagementBridge(BaseModel):
    """PMCSR PCI-to-PCI bridge support extensions."""

    reserved: int = 0
    b2_b3: bool = False
    bpcc_enabled: bool = False


class PowerManagement(BaseModel):
    """01h PCI Power Management Interface."""

    kind: Literal["power_management"] = "power_management"
    capabilities: PowerManagementCapabilities
    control: PowerManagementControl
    bridge: PowerManagementBridge
    data: int


# ---------------------------------------------------------------------------
# 03h VPD, 04h Slot Identification
# ---------------------------------------------------------------------------


class VitalProductData(BaseModel):
    """03h Vital Product Data."""

    kind: Literal["vital_product_data"] = "vital_product_data"
    vpd_address: int
    transfer_completed: bool
    vpd_data: int


class SlotIdentification(BaseModel):
    """04h Slot Identification."""

    kind: Literal["slot_identification"] = "slot_identification"
    expansion_slots_provided: int
    first_in_chassis: bool
    chassis_number: int


# ---------------------------------------------------------------------------
# 05h MSI
# ---------------------------------------------------------------------------


class MsiMessageControl(BaseModel):
    """MSI Message Control register."""

    msi_enable: bool
    multiple_message_capable: int
    multiple_message_enable: int
    a_64_bit_address_capable: bool
    per_vector_masking_capable: bool
    extended_message_data_capable: bool
    extended_message_data_enable: bool

    @property
    def vectors_capable(self) -> int:
        return 1 << self.multiple_message_capable

    @property
    def vectors_enabled(self) -> int:
        return 1 << self.multiple_message_enable


class MessageSignaledInterrupts(BaseModel):
    """05h Message Signaled Interrupts."""

    kind: Literal["msi"] = "msi"
    message_control: MsiMessageControl
    message_address: int
    message_data: int
    extended_message_data: int
    mask_bits: int | None = None
    pending_bits: int | None = None


# ---------------------------------------------------------------------------
# 09h Vendor Specific
# ---------------------------------------------------------------------------

_VIRTIO_CFG_NAMES = {1: "common", 2: "notify", 3: "isr", 4: "device"}


class VirtioCapability(BaseModel):
    """Virtio PCI capability carried inside a vendor-specific capability."""

    cfg_type: int
    bar: int
    offset: int
    size: int
    notify_off_multiplier: int | None = None

    @property
    def cfg_name(self) -> str:
        return _VIRTIO_CFG_NAMES.get(self.cfg_type, "unknown")


class VendorSpecific(BaseModel):
    """09h Vendor Specific.

    ``registers`` always holds the vendor bytes; ``virtio`` is set when the
    device identity selects the virtio layout.
    """

    kind: Literal["vendor_specific"] = "vendor_specific"
    length: int
    registers: bytes
    virtio: VirtioCapability | None = None


# ---------------------------------------------------------------------------
# 0Ah Debug port, 0Dh Bridge Subsystem Vendor ID
# ---------------------------------------------------------------------------


class DebugPort(BaseModel):
    """0Ah Debug port."""

    kind: Literal["debug_port"] = "debug_port"
    offset: int
    bar_number: int


class BridgeSubsystemVendorId(BaseModel):
    """0Dh PCI Bridge Subsystem Vendor ID."""

    kind: Literal["bridge_subsystem_vendor_id"] = "bridge_subsystem_vendor_id"
    reserved: int
    subsystem_vendor_id: int
    subsystem_id: int


# ---------------------------------------------------------------------------
# 10h PCI Express
# ---------------------------------------------------------------------------

_PAYLOAD_SIZES = [128, 256, 512, 1024, 2048, 4096]

_PORT_TYPE_NAMES: dict[int, str] = {
    0: "Endpoint",
    1: "Legacy Endpoint",
    4: "Root Port",
    5: "Upstream Switch Port",
    6: "Downstream Switch Port",
    7: "PCIe-to-PCI Bridge",
    8: "PCI-to-PCIe Bridge",
    9: "Root Complex Integrated Endpoint",
    10: "Root Complex Event Collector",
}

_SPEED_MAP: dict[int, str] = {
    1: "Gen1",
    2: "Gen2",
    3: "Gen3",
    4: "Gen4",
    5: "Gen5",
    6: "Gen6",
}


def _decode_payload(code: int) -> int:
    """Decode 3-bit MPS/MRRS field to byte count."""
    if 0 <= code < len(_PAYLOAD_SIZES):
        return _PAYLOAD_SIZES[code]
    return 128


class PcieCapabilities(BaseModel):
    """PCI Express Capabilities register."""

    version: int
    device_port_type: int
    slot_implemented: bool
    interrupt_message_number: int
    tcs_routing_supported: bool
    flit_mode_supported: bool

    @property
    def device_port_type_name(self) -> str:
        return _PORT_TYPE_NAMES.get(self.device_port_type, f"Unknown({self.device_port_type})")


class PcieDeviceCapabilities(BaseModel):
    """Device Capabilities register (PCIe Cap + 0x04)."""

    max_payload_size_supported: int
    phantom_functions_supported: int
    extended_tag_field_supported: bool
    endpoint_l0s_acceptable_latency: int
    endpoint_l1_acceptable_latency: int
    role_based_error_reporting: bool
    err_cor_subclass_capable: bool
    rx_mps_fixed: bool
    captured_slot_power_limit_value: int
    captured_slot_power_limit_scale: int
    function_level_reset_capability: bool
    mixed_mps_supported: bool
    tee_io_supported: bool

    @property
    def max_payload_bytes(self) -> int:
        return _decode_payload(self.max_payload_size_supported)


class PcieDeviceControl(BaseModel):
    """Device Control register (PCIe Cap + 0x08)."""

    correctable_error_reporting: bool
    non_fatal_error_reporting: bool
    fatal_error_reporting: bool
    unsupported_request_reporting: bool
    relaxed_ordering: bool
    max_payload_size: int
    extended_tag_field_enable: bool
    phantom_functions_enable: bool
    aux_power_pm_enable: bool
    no_snoop: bool
    max_read_request_size: int
    bridge_retry_or_flr: bool

    @property
    def max_payload_bytes(self) -> int:
        return _decode_payload(self.max_payload_size)

    @property
    def max_read_request_bytes(self) -> int:
        return _decode_payload(self.max_read_request_size)


class PcieDeviceStatus(BaseModel):
    """Device Status register (PCIe Cap + 0x0A)."""

    correctable_error_detected: bool
    non_fatal_error_detected: bool
    fatal_error_detected: bool
    unsupported_request_detected: bool
    aux_power_detected: bool
    transactions_pending: bool
    emergency_power_reduction_detected: bool


class PcieLinkCapabilities(BaseModel):
    """Link Capabilities register (PCIe Cap + 0x0C)."""

    max_link_speed: int
    max_link_width: int
    aspm_support: int
    l0s_exit_latency: int
    l1_exit_latency: int
    clock_power_management: bool
    surprise_down_error_reporting_capable: bool
    data_link_layer_link_active_reporting_capable: bool
    link_bandwidth_notification_capability: bool
    aspm_optionality_compliance: bool
    port_number: int

    @property
    def max_link_speed_name(self) -> str:
        return _SPEED_MAP.get(self.max_link_speed, f"Unknown({self.max_link_speed})")


class PcieLinkControl(BaseModel):
    """Link Control register (PCIe Cap + 0x10)."""

    aspm_control: int
    ptm_propagation_delay_adaptation: bool
    read_completion_boundary: bool
    link_disable: bool
    retrain_link: bool
    common_clock_configuration: bool
    extended_synch: bool
    enable_clock_power_management: bool
    hardware_autonomous_width_disable: bool
    link_bandwidth_management_interrupt_enable: bool
    link_autonomous_bandwidth_interrupt_enable: bool
    sris_clocking: bool
    flit_mode_disable: bool
    drs_signaling_control: int


class PcieLinkStatus(BaseModel):
    """Link Status register (PCIe Cap + 0x12)."""

    current_link_speed: int
    negotiated_link_width: int
    link_training: bool
    slot_clock_configuration: bool
    data_link_layer_link_active: bool
    link_bandwidth_management_status: bool
    link_autonomous_bandwidth_status: bool

    @property
    def current_link_speed_name(self) -> str:
        return _SPEED_MAP.get(self.current_link_speed, f"Unknown({self.current_link_speed})")


class PcieLink(BaseModel):
    """Link registers, present when the structure is long enough to hold them."""

    capabilities: PcieLinkCapabilities
    control: PcieLinkControl
    status: PcieLinkStatus


class PciExpress(BaseModel):
    """10h PCI Express."""

    kind: Literal["pci_express"] = "pci_express"
    capabilities: PcieCapabilities
    device_capabilities: PcieDeviceCapabilities
    device_control: PcieDeviceControl
    device_status: PcieDeviceStatus
    link: PcieLink | None = None


# ---------------------------------------------------------------------------
# 11h MSI-X
# ---------------------------------------------------------------------------


class MsixMessageControl(BaseModel):
    """MSI-X Message Control register."""

    table_size: int
    function_mask: bool
    msi_x_enable: bool

    @property
    def table_entries(self) -> int:
        """Encoded as N-1."""
        return self.table_size + 1


class MsixLocation(BaseModel):
    """Table or PBA location: BAR indicator register and QWORD aligned offset."""

    bir: int
    offset: int


class MsiX(BaseModel):
    """11h MSI-X."""

    kind: Literal["msi_x"] = "msi_x"
    message_control: MsixMessageControl
    table: MsixLocation
    pending_bit_array: MsixLocation


# ---------------------------------------------------------------------------
# 12h SATA, 13h Advanced Features
# ---------------------------------------------------------------------------

_SATA_BAR_LOCATIONS: dict[int, str] = {
    0b0100: "BAR0",
    0b0101: "BAR1",
    0b0110: "BAR2",
    0b0111: "BAR3",
    0b1000: "BAR4",
    0b1001: "BAR5",
    0b1111: "SATA Capability 1",
}


class Sata(BaseModel):
    """12h Serial ATA Data/Index Configuration."""

    kind: Literal["sata"] = "sata"
    revision_major: int
    revision_minor: int
    bar_location: int
    bar_offset: int

    @property
    def bar_location_name(self) -> str:
        return _SATA_BAR_LOCATIONS.get(self.bar_location, f"Reserved({self.bar_location})")

    @property
    def bar_offset_bytes(self) -> int:
        """BAR offset is expressed in DWORDs."""
        return self.bar_offset * 4


class AdvancedFeatures(BaseModel):
    """13h Advanced Features (AF)."""

    kind: Literal["advanced_features"] = "advanced_features"
    length: int
    transactions_pending_capable: bool
    function_level_reset_capable: bool
    initiate_flr: bool
    transactions_pending: bool
