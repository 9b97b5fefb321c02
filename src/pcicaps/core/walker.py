"""Capability list walker for the legacy and extended regions.

Both walks follow next pointers from a root and yield RawCapability
records in traversal order. Termination is bounded by a fixed-size
bitmap of visited offsets. Conditions that stop a walk early (cycle,
truncated header, bad pointer) never discard records already produced;
they are reported through ``state`` and ``error`` instead of raised.
"""

from __future__ import annotations

import abc
from typing import Iterator

from pcicaps.config import DEFAULT_CONFIG, DecoderConfig
from pcicaps.core.header import (
    EXTENDED_REGION,
    LEGACY_REGION,
    CapabilityHeader,
    read_extended_header,
    read_legacy_header,
)
from pcicaps.core.reader import ByteReader
from pcicaps.exceptions import (
    CycleDetectedError,
    InvalidPointerError,
    OutOfDataError,
    UnterminatedListError,
    WalkError,
)
from pcicaps.models.records import RawCapability, WalkResult, WalkState
from pcicaps.utils.logging import get_logger

logger = get_logger(__name__)


class OffsetBitmap:
    """Fixed-size presence bitmap over ``slots`` offsets of ``granularity`` bytes."""

    def __init__(self, slots: int, granularity: int = 1) -> None:
        self._bits = bytearray((slots + 7) // 8)
        self._slots = slots
        self._granularity = granularity

    def _slot(self, offset: int) -> int:
        slot = offset // self._granularity
        if not 0 <= slot < self._slots:
            raise IndexError(f"offset 0x{offset:X} outside bitmap")
        return slot

    def add(self, offset: int) -> None:
        slot = self._slot(offset)
        self._bits[slot >> 3] |= 1 << (slot & 7)

    def __contains__(self, offset: int) -> bool:
        slot = offset // self._granularity
        if not 0 <= slot < self._slots:
            return False
        return bool(self._bits[slot >> 3] & (1 << (slot & 7)))


class WalkRun:
    """One pass over a capability list, with its own ``state``, ``error`` and ``notes``."""

    def __init__(self, walker: CapabilityWalker) -> None:
        self.state = WalkState.START
        self.error: WalkError | None = None
        self.notes: list[str] = []
        self._records = walker._walk(self)

    def __iter__(self) -> WalkRun:
        return self

    def __next__(self) -> RawCapability:
        return next(self._records)

    def result(self) -> WalkResult:
        """Drain the remaining records and return the whole pass."""
        records = list(self)
        return WalkResult(
            records=records, state=self.state, error=self.error, notes=list(self.notes)
        )


class CapabilityWalker(abc.ABC):
    """Lazy, restartable walk over one capability region.

    Each iteration starts an independent WalkRun from ``root``. The
    walker's ``state``, ``error`` and ``notes`` mirror the most recently
    started run. The buffer must stay unchanged while records from it are
    in use.
    """

    region: tuple[int, int] = (0, 0)
    header_size = 0
    bitmap_slots = 0
    bitmap_granularity = 1

    def __init__(
        self,
        data: bytes | bytearray | memoryview,
        root: int,
        config: DecoderConfig | None = None,
    ) -> None:
        view = memoryview(data)
        self._view = view if view.format == "B" else view.cast("B")
        self.root = root
        self.config = config or DEFAULT_CONFIG
        self._last_run: WalkRun | None = None

    @property
    def state(self) -> WalkState:
        return self._last_run.state if self._last_run else WalkState.START

    @property
    def error(self) -> WalkError | None:
        return self._last_run.error if self._last_run else None

    @property
    def notes(self) -> list[str]:
        return self._last_run.notes if self._last_run else []

    @property
    def limit(self) -> int:
        """Last readable offset (exclusive) of this region within the buffer."""
        return min(len(self._view), self.region[1])

    @abc.abstractmethod
    def _read_header(self, reader: ByteReader, offset: int) -> CapabilityHeader | None:
        """Read the header at ``offset``, or None at a list terminator."""

    def _check_pointer(self, run: WalkRun, source: int, target: int) -> None:
        """Validate a pointer before following it. Raise WalkError to stop."""

    def _note(self, run: WalkRun, message: str, **context: object) -> None:
        run.notes.append(message)
        logger.warning("capability_pointer_note", note=message, **context)

    def _fail(self, run: WalkRun, exc: WalkError) -> None:
        run.state = WalkState.ERROR
        run.error = exc
        logger.warning(
            "capability_walk_truncated",
            region=type(self).__name__,
            error=exc.message,
            offset=f"0x{exc.offset:X}" if exc.offset is not None else None,
        )

    def __iter__(self) -> WalkRun:
        self._last_run = WalkRun(self)
        return self._last_run

    def _walk(self, run: WalkRun) -> Iterator[RawCapability]:
        limit = self.limit
        reader = ByteReader(self._view[:limit])
        visited = OffsetBitmap(self.bitmap_slots, self.bitmap_granularity)
        offset = self.root
        source = offset
        try:
            while offset:
                self._check_pointer(run, source, offset)
                try:
                    header = self._read_header(reader, offset)
                except OutOfDataError as exc:
                    raise UnterminatedListError(
                        offset, "header extends past end of buffer"
                    ) from exc
                if header is None:
                    break
                run.state = WalkState.FOLLOWING
                visited.add(offset)
                logger.debug(
                    "capability_walk_step",
                    offset=f"0x{offset:X}",
                    cap_id=f"0x{header.cap_id:X}",
                    next_ptr=f"0x{header.next_ptr:X}",
                )
                yield self._record(offset, header, limit)
                if header.next_ptr and header.next_ptr in visited:
                    raise CycleDetectedError(offset, header.next_ptr)
                source, offset = offset, header.next_ptr
        except WalkError as exc:
            self._fail(run, exc)
            return
        run.state = WalkState.TERMINATED

    def _record(self, offset: int, header: CapabilityHeader, limit: int) -> RawCapability:
        start = offset + header.size
        end = header.next_ptr if header.next_ptr > offset else limit
        end = max(start, min(end, limit))
        return RawCapability(
            offset=offset,
            cap_id=header.cap_id,
            next_ptr=header.next_ptr,
            payload=self._view[start:end],
            version=header.version,
        )

    def collect(self) -> WalkResult:
        """Run the walk to completion and return everything it produced."""
        return iter(self).result()


class LegacyCapabilityWalker(CapabilityWalker):
    """Walk of the 2-byte-header list in the first 256 bytes.

    Pointers outside [0x40, 0x100) or not dword aligned are followed and
    recorded in ``notes``, unless ``config.strict_alignment`` is set.
    """

    region = (0, LEGACY_REGION[1])
    header_size = 2
    # Unaligned offsets are allowed, so track every byte
    bitmap_slots = LEGACY_REGION[1]

    def _read_header(self, reader: ByteReader, offset: int) -> CapabilityHeader:
        return read_legacy_header(reader, offset)

    def _check_pointer(self, run: WalkRun, source: int, target: int) -> None:
        lo, hi = LEGACY_REGION
        problems = []
        if target & 0x3:
            problems.append("not dword aligned")
        if not lo <= target < hi:
            problems.append(f"outside [0x{lo:X}, 0x{hi:X})")
        if not problems:
            return
        if self.config.strict_alignment:
            raise InvalidPointerError(source, target)
        self._note(
            run,
            f"capability pointer 0x{target:X} is {' and '.join(problems)}",
            source=f"0x{source:X}",
            target=f"0x{target:X}",
        )


class ExtendedCapabilityWalker(CapabilityWalker):
    """Walk of the 4-byte-header list starting at 0x100.

    An all-zero (or all-ones) header ends the list. A next pointer below
    0x100 cannot be valid and stops the walk as unterminated.
    """

    region = EXTENDED_REGION
    header_size = 4
    bitmap_slots = EXTENDED_REGION[1] // 4
    bitmap_granularity = 4

    def __init__(
        self,
        data: bytes | bytearray | memoryview,
        config: DecoderConfig | None = None,
    ) -> None:
        super().__init__(data, EXTENDED_REGION[0], config)

    def _walk(self, run: WalkRun) -> Iterator[RawCapability]:
        if len(self._view) <= EXTENDED_REGION[0]:
            # Legacy-only buffer: no extended region to walk
            run.state = WalkState.TERMINATED
            return iter(())
        return super()._walk(run)

    def _read_header(self, reader: ByteReader, offset: int) -> CapabilityHeader | None:
        return read_extended_header(reader, offset)

    def _check_pointer(self, run: WalkRun, source: int, target: int) -> None:
        if target < EXTENDED_REGION[0]:
            raise UnterminatedListError(
                source, f"next pointer 0x{target:X} is below the extended region"
            )


def iter_capabilities(
    data: bytes | bytearray | memoryview,
    root: int,
    config: DecoderConfig | None = None,
) -> LegacyCapabilityWalker:
    """Lazy legacy walk from ``root``. Iterate again to re-run it."""
    return LegacyCapabilityWalker(data, root, config)


def walk_capabilities(
    data: bytes | bytearray | memoryview,
    root: int,
    config: DecoderConfig | None = None,
) -> WalkResult:
    """Eager legacy walk from ``root``."""
    return iter_capabilities(data, root, config).collect()


def iter_extended_capabilities(
    data: bytes | bytearray | memoryview,
    config: DecoderConfig | None = None,
) -> ExtendedCapabilityWalker:
    """Lazy extended walk from 0x100. Iterate again to re-run it."""
    return ExtendedCapabilityWalker(data, config)


def walk_extended_capabilities(
    data: bytes | bytearray | memoryview,
    config: DecoderConfig | None = None,
) -> WalkResult:
    """Eager extended walk from 0x100."""
    return iter_extended_capabilities(data, config).collect()
