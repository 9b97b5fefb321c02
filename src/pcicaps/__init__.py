"""pcicaps - decode PCI/PCIe configuration space capability lists."""

from pcicaps.config import DecoderConfig
from pcicaps.core.bitfield import BitLayout, compose, decompose
from pcicaps.core.reader import ByteReader
from pcicaps.core.registry import (
    decode,
    decode_all,
    decode_capabilities,
    decode_config_space,
    decode_extended_capabilities,
    is_registered,
)
from pcicaps.core.walker import (
    iter_capabilities,
    iter_extended_capabilities,
    walk_capabilities,
    walk_extended_capabilities,
)
from pcicaps.exceptions import (
    ArityOutOfRangeError,
    CycleDetectedError,
    InvalidLengthError,
    InvalidPointerError,
    LengthMismatchError,
    MandatoryFieldsUnreadableError,
    NestedDecodeError,
    OutOfDataError,
    PcicapsError,
    UnterminatedListError,
    WalkError,
)
from pcicaps.models import (
    CapabilityId,
    CapabilityListing,
    ConfigSpaceCapabilities,
    DecodedCapability,
    DecodeFailure,
    ExtendedCapabilityId,
    RawCapability,
    UnknownCapability,
    WalkResult,
    WalkState,
)
from pcicaps.utils.logging import setup_logging

__version__ = "0.1.0"

__all__ = [
    "ArityOutOfRangeError",
    "BitLayout",
    "ByteReader",
    "CapabilityId",
    "CapabilityListing",
    "ConfigSpaceCapabilities",
    "CycleDetectedError",
    "DecodeFailure",
    "DecodedCapability",
    "DecoderConfig",
    "ExtendedCapabilityId",
    "InvalidLengthError",
    "InvalidPointerError",
    "LengthMismatchError",
    "MandatoryFieldsUnreadableError",
    "NestedDecodeError",
    "OutOfDataError",
    "PcicapsError",
    "RawCapability",
    "UnknownCapability",
    "UnterminatedListError",
    "WalkError",
    "WalkResult",
    "WalkState",
    "compose",
    "decode",
    "decode_all",
    "decode_capabilities",
    "decode_config_space",
    "decode_extended_capabilities",
    "decompose",
    "is_registered",
    "iter_capabilities",
    "iter_extended_capabilities",
    "setup_logging",
    "walk_capabilities",
    "walk_extended_capabilities",
]
