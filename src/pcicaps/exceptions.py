"""Exception hierarchy for capability walking and decoding."""

from __future__ import annotations


class PcicapsError(Exception):
    """Base exception for all pcicaps errors."""

    def __init__(
        self,
        message: str,
        offset: int | None = None,
        cap_id: int | None = None,
    ) -> None:
        self.message = message
        self.offset = offset
        self.cap_id = cap_id
        super().__init__(message)

    def locate(self, offset: int, cap_id: int) -> PcicapsError:
        """Attach the originating capability offset/ID if not already set."""
        if self.offset is None:
            self.offset = offset
        if self.cap_id is None:
            self.cap_id = cap_id
        return self

    def _fields(self) -> dict[str, object]:
        return {k: v for k, v in vars(self).items() if k != "__notes__"}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PcicapsError):
            return NotImplemented
        return type(self) is type(other) and self._fields() == other._fields()

    def __hash__(self) -> int:
        return hash((type(self), self.message, self.offset, self.cap_id))


class OutOfDataError(PcicapsError):
    """Fewer bytes available than a fixed-width read requires."""

    def __init__(self, offset: int, needed: int, available: int) -> None:
        self.needed = needed
        self.available = available
        super().__init__(
            f"need {needed} byte(s) at offset 0x{offset:X}, only {available} available",
            offset=offset,
        )


class MandatoryFieldsUnreadableError(PcicapsError):
    """A capability's required prefix cannot be read."""

    def __init__(self, name: str, size: int, available: int) -> None:
        self.name = name
        self.size = size
        self.available = available
        super().__init__(
            f"{name}: mandatory fields are unreadable "
            f"(expected {size} bytes, real: {available})"
        )


class LengthMismatchError(PcicapsError):
    """Self-declared length disagrees with the bytes actually available."""

    def __init__(
        self,
        vendor_id: int,
        revision: int,
        declared_length: int,
        dvsec_id: int,
        available: int,
    ) -> None:
        self.vendor_id = vendor_id
        self.revision = revision
        self.declared_length = declared_length
        self.dvsec_id = dvsec_id
        self.available = available
        super().__init__(
            f"Vendor-specific registers (VID: {vendor_id:04x}, rev: {revision:02x}, "
            f"ID: {dvsec_id:04x}) are unreadable. "
            f"Length expected: {declared_length}, real: {available}"
        )


class ArityOutOfRangeError(PcicapsError):
    """A count field driving a repeated structure is outside its allowed range."""

    def __init__(self, name: str, value: int, minimum: int, maximum: int) -> None:
        self.name = name
        self.value = value
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"{name}: should have {minimum}..={maximum} entries, not {value}"
        )


class NestedDecodeError(PcicapsError):
    """A vendor/sub-ID dispatched decoder failed.

    The inner error is kept on ``inner`` and chained as ``__cause__``.
    """

    def __init__(
        self,
        name: str,
        vendor_id: int,
        sub_id: int,
        inner: PcicapsError,
        revision: int | None = None,
        length: int | None = None,
    ) -> None:
        self.name = name
        self.vendor_id = vendor_id
        self.sub_id = sub_id
        self.revision = revision
        self.length = length
        self.inner = inner
        super().__init__(
            f"{name} (VID: {vendor_id:04x}, ID: {sub_id:04x}) error: {inner.message}"
        )


class WalkError(PcicapsError):
    """Base exception for conditions that truncate a capability list walk."""


class CycleDetectedError(WalkError):
    """A next pointer revisits an already visited offset."""

    def __init__(self, offset: int, target: int) -> None:
        self.target = target
        super().__init__(
            f"capability at 0x{offset:X} points back to visited offset 0x{target:X}",
            offset=offset,
        )


class UnterminatedListError(WalkError):
    """The list never reached a terminator inside the readable region."""

    def __init__(self, offset: int, reason: str) -> None:
        self.reason = reason
        super().__init__(f"capability list unterminated at 0x{offset:X}: {reason}", offset=offset)


class InvalidPointerError(WalkError):
    """A legacy next pointer is misaligned or outside [0x40, 0x100) in strict mode."""

    def __init__(self, offset: int, target: int) -> None:
        self.target = target
        super().__init__(
            f"capability at 0x{offset:X} has invalid next pointer 0x{target:X}",
            offset=offset,
        )


class InvalidLengthError(PcicapsError):
    """A capability's own length field is smaller than its fixed header."""

    def __init__(self, name: str, value: int, minimum: int) -> None:
        self.name = name
        self.value = value
        self.minimum = minimum
        super().__init__(f"{name}: length should be >= {minimum}, not {value}")
