from __future__ import annotations

from enum import Enum
from typing import Literal

WidthName = Literal["i32", "i64"]


class Width(Enum):
    """
    Integer width profile of an engine.

    I64 is the default profile; I32 is the legacy profile whose persisted
    form carries a 32-bit seed. Both run the same engine, only the wrap
    width differs.
    """

    I32 = 32
    I64 = 64

    @property
    def bits(self) -> int:
        return self.value

    @property
    def mask(self) -> int:
        return (1 << self.value) - 1

    @property
    def min(self) -> int:
        return -(1 << (self.value - 1))

    @property
    def max(self) -> int:
        return (1 << (self.value - 1)) - 1

    @property
    def shift_mask(self) -> int:
        # shift distances only use the low 5 / 6 bits
        return self.value - 1

    @property
    def label(self) -> WidthName:
        return "i32" if self is Width.I32 else "i64"

    def wrap(self, value: int) -> int:
        """
        Narrow an arbitrary Python int to a signed two's complement word.
        """
        value &= self.mask
        if value > self.max:
            value -= 1 << self.value
        return value

    def unsigned(self, value: int) -> int:
        return value & self.mask

    def fits(self, value: int) -> bool:
        return self.min <= value <= self.max

    @classmethod
    def from_label(cls, label: str) -> "Width":
        normalized = label.strip().lower()
        if normalized in {"i32", "32"}:
            return cls.I32
        if normalized in {"i64", "64"}:
            return cls.I64
        raise ValueError(f"unsupported width: {label!r}")
