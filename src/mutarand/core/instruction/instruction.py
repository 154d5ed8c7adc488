from __future__ import annotations

from dataclasses import dataclass

from mutarand.core.engine.width import Width
from mutarand.core.errors import DecodeFault
from mutarand.core.instruction.operation import Operation


def sanitize(a: int, b: int) -> tuple[int, int]:
    """
    Operand sanitization applied before every dispatch.

    Order matters:
      1. equal operands are split (a >> 4, b >> 6)
      2. a zero ``a`` becomes ``b`` (or 1 when both are zero)
      3. a zero ``b`` becomes ``a`` (or 2 when ``a`` is 1)

    Neither returned operand is ever zero, so DIVIDE / MODULO cannot divide by zero.
    """
    if a == b:
        a = a >> 4
        b = b >> 6

    if a == 0:
        a = 1 if b == 0 else b
    if b == 0:
        b = 2 if a == 1 else a

    return a, b


@dataclass(frozen=True, slots=True)
class Instruction:
    """
    One opcode of a chain. Stateless; equality is by opcode.
    """

    operation: Operation

    @property
    def opcode(self) -> int:
        return self.operation.opcode

    @classmethod
    def from_opcode(cls, opcode: int) -> "Instruction":
        return cls(Operation.from_opcode(opcode))

    def apply(self, a: int, b: int, width: Width = Width.I64) -> int:
        a, b = sanitize(a, b)
        return width.wrap(self.operation.formula(a, b, width))

    # ---------------- Codec ----------------

    def encode(self) -> bytes:
        return bytes((self.opcode,))

    @classmethod
    def decode(cls, data: bytes) -> "Instruction":
        if len(data) != 1:
            raise DecodeFault(f"instruction must be exactly 1 byte, got {len(data)}")
        return cls.from_opcode(data[0])

    def __repr__(self) -> str:
        return f"Instruction({self.operation.name})"
