"""Pydantic models and records for decoded capabilities."""

from pcicaps.models.capabilities import CapabilityId
from pcicaps.models.extended import ExtendedCapabilityId
from pcicaps.models.records import (
    CapabilityListing,
    ConfigSpaceCapabilities,
    DecodedCapability,
    DecodeFailure,
    RawCapability,
    UnknownCapability,
    WalkResult,
    WalkState,
)

__all__ = [
    "CapabilityId",
    "CapabilityListing",
    "ConfigSpaceCapabilities",
    "DecodeFailure",
    "DecodedCapability",
    "ExtendedCapabilityId",
    "RawCapability",
    "UnknownCapability",
    "WalkResult",
    "WalkState",
]
