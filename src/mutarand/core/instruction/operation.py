from __future__ import annotations

from enum import IntEnum
from typing import Callable, Mapping

from mutarand.core.engine.width import Width
from mutarand.core.errors import ArithmeticFault, ConfigurationFault

# Bump whenever an opcode is added or its meaning changes: persisted chains
# reference opcodes by number.
CATALOG_VERSION = 2

Formula = Callable[[int, int, Width], int]


class Operation(IntEnum):
    """
    Closed catalog of binary integer operations.

    Opcodes are persisted as a single byte, so values must stay stable.
    """

    ADD = 0x00
    SUBTRACT = 0x01
    MULTIPLY = 0x02
    DIVIDE = 0x03
    MODULO = 0x04
    SHIFT_LEFT = 0x05
    SHIFT_RIGHT = 0x06
    BITWISE_AND = 0x07
    BITWISE_OR = 0x08
    BITWISE_XOR = 0x09
    BITWISE_NOT = 0x0A
    UNSIGNED_SHIFT_RIGHT = 0x0B

    @property
    def opcode(self) -> int:
        return int(self)

    @property
    def formula(self) -> Formula:
        return _FORMULAS[self]

    @classmethod
    def from_opcode(cls, opcode: int) -> "Operation":
        try:
            return cls(opcode)
        except ValueError:
            raise ConfigurationFault(opcode) from None


def _trunc_div(a: int, b: int) -> int:
    # integer division rounding toward zero
    if b == 0:
        raise ArithmeticFault(f"division by zero after sanitization: a={a}")
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _trunc_rem(a: int, b: int) -> int:
    # remainder carries the sign of the dividend
    return a - b * _trunc_div(a, b)


def _divide(a: int, b: int, width: Width) -> int:
    return _trunc_div(a, b) if a > b else _trunc_div(b, a)


def _modulo(a: int, b: int, width: Width) -> int:
    return _trunc_rem(a, b) if a > b else _trunc_rem(b, a)


def _shift_left(a: int, b: int, width: Width) -> int:
    return a << (b & width.shift_mask)


def _shift_right(a: int, b: int, width: Width) -> int:
    return a >> (b & width.shift_mask)


def _unsigned_shift_right(a: int, b: int, width: Width) -> int:
    return width.unsigned(a) >> (b & width.shift_mask)


_FORMULAS: Mapping[Operation, Formula] = {
    Operation.ADD: lambda a, b, w: a + b,
    Operation.SUBTRACT: lambda a, b, w: a - b,
    Operation.MULTIPLY: lambda a, b, w: a * b,
    Operation.DIVIDE: _divide,
    Operation.MODULO: _modulo,
    Operation.SHIFT_LEFT: _shift_left,
    Operation.SHIFT_RIGHT: _shift_right,
    Operation.BITWISE_AND: lambda a, b, w: a & b,
    Operation.BITWISE_OR: lambda a, b, w: a | b,
    Operation.BITWISE_XOR: lambda a, b, w: a ^ b,
    Operation.BITWISE_NOT: lambda a, b, w: ~a,
    Operation.UNSIGNED_SHIFT_RIGHT: _unsigned_shift_right,
}

# Minimal catalog required by the engine; builder default.
CORE_CATALOG: tuple[Operation, ...] = (
    Operation.ADD,
    Operation.SUBTRACT,
    Operation.MULTIPLY,
    Operation.DIVIDE,
    Operation.MODULO,
    Operation.SHIFT_LEFT,
    Operation.SHIFT_RIGHT,
)

EXTENDED_CATALOG: tuple[Operation, ...] = tuple(Operation)

CATALOGS: Mapping[str, tuple[Operation, ...]] = {
    "core": CORE_CATALOG,
    "extended": EXTENDED_CATALOG,
}


def trunc_rem(a: int, b: int) -> int:
    """
    Truncating remainder used by bounded derivations.

    Unlike Python's ``%`` the result may be negative when ``a`` is negative.
    Raises ZeroDivisionError for ``b == 0``.
    """
    if b == 0:
        raise ZeroDivisionError("integer modulo by zero")
    return _trunc_rem(a, b)
