"""Raw and decoded capability records.

RawCapability payloads are memoryviews into the caller's buffer: the
buffer must outlive every RawCapability produced from it. Decoded models
copy the bytes they keep, so they are independent of the buffer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from pcicaps.exceptions import PcicapsError, WalkError
from pcicaps.models.capabilities import (
    AdvancedFeatures,
    Agp8x,
    BridgeSubsystemVendorId,
    CompactPciHotSwap,
    CompactPciResourceControl,
    DebugPort,
    MessageSignaledInterrupts,
    MsiX,
    NullCapability,
    PciExpress,
    PciHotPlug,
    PowerManagement,
    Sata,
    SecureDevice,
    SlotIdentification,
    VendorSpecific,
    VitalProductData,
)
from pcicaps.models.extended import (
    AccessControlServices,
    AddressTranslationServices,
    AdvancedErrorReporting,
    AlternativeRoutingIdInterpretation,
    DesignatedVendorSpecific,
    DeviceSerialNumber,
    DownstreamPortContainment,
    ExtendedNull,
    L1PmSubstates,
    LatencyToleranceReporting,
    NamedExtendedCapability,
    PageRequestInterface,
    PowerBudgeting,
    PrecisionTimeMeasurement,
    ProcessAddressSpaceId,
    ResizableBar,
    SecondaryPciExpress,
    TphRequester,
    VendorSpecificExtended,
    VfResizableBar,
    VirtualChannel,
)
from pcicaps.models.hypertransport import HyperTransport


class WalkState(StrEnum):
    START = "start"
    FOLLOWING = "following"
    TERMINATED = "terminated"
    ERROR = "error"


@dataclass(frozen=True)
class RawCapability:
    """One capability as found by the list walker, before decoding.

    ``payload`` starts after the header and runs to the next capability's
    offset (or the end of the region). That is an upper bound; decoders
    may re-slice using a self-declared length.
    """

    offset: int
    cap_id: int
    next_ptr: int
    payload: memoryview
    version: int | None = None

    @property
    def extended(self) -> bool:
        return self.version is not None

    @property
    def data(self) -> bytes:
        return self.payload.tobytes()


@dataclass
class WalkResult:
    """Eagerly collected walk: every record found plus how the walk ended."""

    records: list[RawCapability]
    state: WalkState
    error: WalkError | None = None
    notes: list[str] = field(default_factory=list)

    def __iter__(self):
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    @property
    def truncated(self) -> bool:
        return self.state is WalkState.ERROR


class UnknownCapability(BaseModel):
    """Capability whose ID has no registered decoder. Payload kept verbatim."""

    kind: Literal["unknown"] = "unknown"
    cap_id: int
    data: bytes


CapabilityBody = Annotated[
    Union[
        NullCapability,
        PowerManagement,
        VitalProductData,
        SlotIdentification,
        MessageSignaledInterrupts,
        CompactPciHotSwap,
        VendorSpecific,
        DebugPort,
        CompactPciResourceControl,
        PciHotPlug,
        BridgeSubsystemVendorId,
        Agp8x,
        SecureDevice,
        PciExpress,
        MsiX,
        Sata,
        AdvancedFeatures,
        HyperTransport,
        ExtendedNull,
        AdvancedErrorReporting,
        DeviceSerialNumber,
        VendorSpecificExtended,
        AccessControlServices,
        AlternativeRoutingIdInterpretation,
        AddressTranslationServices,
        PageRequestInterface,
        ResizableBar,
        LatencyToleranceReporting,
        ProcessAddressSpaceId,
        PrecisionTimeMeasurement,
        DesignatedVendorSpecific,
        VfResizableBar,
        VirtualChannel,
        PowerBudgeting,
        TphRequester,
        SecondaryPciExpress,
        DownstreamPortContainment,
        L1PmSubstates,
        NamedExtendedCapability,
        UnknownCapability,
    ],
    Field(discriminator="kind"),
]


class DecodedCapability(BaseModel):
    """A capability entry with its decoded body.

    ``body`` is one of the known structures or UnknownCapability.
    """

    offset: int
    cap_id: int
    version: int | None = None
    body: CapabilityBody

    @property
    def extended(self) -> bool:
        return self.version is not None

    @property
    def kind(self) -> str:
        return self.body.kind

    @property
    def known(self) -> bool:
        return not isinstance(self.body, UnknownCapability)


@dataclass(frozen=True)
class DecodeFailure:
    """A capability that was found by the walker but could not be decoded."""

    offset: int
    cap_id: int
    version: int | None
    error: PcicapsError

    @property
    def message(self) -> str:
        return self.error.message


@dataclass
class CapabilityListing:
    """Decoded capabilities of one region in traversal order.

    ``entries`` interleaves successes and failures exactly as the walk
    found them.
    """

    entries: list[DecodedCapability | DecodeFailure]
    walk_state: WalkState = WalkState.TERMINATED
    walk_error: WalkError | None = None
    notes: list[str] = field(default_factory=list)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def capabilities(self) -> list[DecodedCapability]:
        return [e for e in self.entries if isinstance(e, DecodedCapability)]

    @property
    def failures(self) -> list[DecodeFailure]:
        return [e for e in self.entries if isinstance(e, DecodeFailure)]

    @property
    def ok(self) -> bool:
        return self.walk_error is None and not self.failures

    def find(self, cap_id: int) -> DecodedCapability | None:
        """Return the first successfully decoded capability with ``cap_id``."""
        for entry in self.capabilities:
            if entry.cap_id == cap_id:
                return entry
        return None


@dataclass
class ConfigSpaceCapabilities:
    """Both capability lists of one function's configuration space."""

    legacy: CapabilityListing
    extended: CapabilityListing
