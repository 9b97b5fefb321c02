"""Nested decoder selection from an embedded (vendor id, sub id) pair."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from pcicaps.exceptions import NestedDecodeError, PcicapsError
from pcicaps.utils.logging import get_logger

logger = get_logger(__name__)

# Called with the vendor registers and the sub id that selected it
NestedDecoder = Callable[[memoryview, int], Any]


class VendorDispatcher:
    """Static table of nested decoders for one container capability.

    An exact ``(vendor_id, sub_id)`` entry wins over a per-vendor default.
    Any decoder failure is re-raised as NestedDecodeError carrying the
    outer identifying fields, with the inner error as its cause.
    """

    def __init__(
        self,
        name: str,
        table: Mapping[tuple[int, int], NestedDecoder],
        vendor_defaults: Mapping[int, NestedDecoder] | None = None,
    ) -> None:
        self.name = name
        self._table = dict(table)
        self._vendor_defaults = dict(vendor_defaults or {})

    def __contains__(self, key: tuple[int, int]) -> bool:
        return self.lookup(*key) is not None

    def lookup(self, vendor_id: int, sub_id: int) -> NestedDecoder | None:
        decoder = self._table.get((vendor_id, sub_id))
        if decoder is None:
            decoder = self._vendor_defaults.get(vendor_id)
        return decoder

    def dispatch(
        self,
        vendor_id: int,
        sub_id: int,
        data: memoryview,
        *,
        revision: int | None = None,
        length: int | None = None,
    ) -> Any | None:
        """Decode ``data`` with the selected nested decoder.

        Returns None when no decoder is registered for the pair.
        """
        decoder = self.lookup(vendor_id, sub_id)
        if decoder is None:
            return None
        try:
            return decoder(data, sub_id)
        except PcicapsError as exc:
            logger.debug(
                "nested_decode_failed",
                container=self.name,
                vendor_id=f"0x{vendor_id:04X}",
                sub_id=f"0x{sub_id:04X}",
                error=exc.message,
            )
            raise NestedDecodeError(
                self.name, vendor_id, sub_id, exc, revision=revision, length=length
            ) from exc
