"""Generic decode engine: field reader, bit-field packer, list walker, registry."""

from pcicaps.core.bitfield import BitLayout, compose, decompose, layout
from pcicaps.core.reader import ByteReader
from pcicaps.core.vendor import VendorDispatcher
from pcicaps.core.walker import (
    CapabilityWalker,
    ExtendedCapabilityWalker,
    LegacyCapabilityWalker,
    WalkRun,
    iter_capabilities,
    iter_extended_capabilities,
    walk_capabilities,
    walk_extended_capabilities,
)

__all__ = [
    "BitLayout",
    "ByteReader",
    "CapabilityWalker",
    "ExtendedCapabilityWalker",
    "LegacyCapabilityWalker",
    "VendorDispatcher",
    "WalkRun",
    "compose",
    "decompose",
    "iter_capabilities",
    "iter_extended_capabilities",
    "layout",
    "walk_capabilities",
    "walk_extended_capabilities",
]
