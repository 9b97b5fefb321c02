"""Bit-field packing: split a fixed-width register into ordered sub-fields.

Fields are laid out least-significant-bit first. A field of width 1 is
returned as ``bool``, every wider field as ``int``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence


def decompose(word: int, widths: Sequence[int]) -> tuple[int | bool, ...]:
    """Split ``word`` into fields of the given widths, LSB first.

    Field *i* occupies bits ``[sum(widths[:i]), sum(widths[:i + 1]))``.
    The widths are not validated here; see BitLayout.
    """
    values: list[int | bool] = []
    shift = 0
    for width in widths:
        value = (word >> shift) & ((1 << width) - 1)
        values.append(bool(value) if width == 1 else value)
        shift += width
    return tuple(values)


def compose(fields: Sequence[int | bool], widths: Sequence[int]) -> int:
    """Inverse of decompose(): shift each field into place and OR together."""
    if len(fields) != len(widths):
        raise ValueError(f"Expected {len(widths)} fields, got {len(fields)}")
    word = 0
    shift = 0
    for value, width in zip(fields, widths):
        word |= (int(value) & ((1 << width) - 1)) << shift
        shift += width
    return word


@dataclass(frozen=True)
class BitLayout:
    """Constant bit-width table for one register of a capability structure.

    The widths must add up to the container width; this is checked once,
    when the layout is defined, never per decode.
    """

    bits: int
    widths: tuple[int, ...]
    name: str = field(default="", compare=False)

    def __post_init__(self) -> None:
        if self.bits not in (8, 16, 32, 64):
            raise ValueError(f"{self.name or 'layout'}: unsupported container width {self.bits}")
        if any(w <= 0 for w in self.widths):
            raise ValueError(f"{self.name or 'layout'}: field widths must be positive")
        total = sum(self.widths)
        if total != self.bits:
            raise ValueError(
                f"{self.name or 'layout'}: widths sum to {total}, expected {self.bits}"
            )

    def decompose(self, word: int) -> tuple[int | bool, ...]:
        return decompose(word & ((1 << self.bits) - 1), self.widths)

    def compose(self, fields: Sequence[int | bool]) -> int:
        return compose(fields, self.widths)


def layout(bits: int, *widths: int, name: str = "") -> BitLayout:
    """Shorthand for BitLayout(bits, widths, name)."""
    return BitLayout(bits, tuple(widths), name)
