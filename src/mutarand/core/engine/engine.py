from __future__ import annotations

import math
from typing import Iterable, Optional, Union

from mutarand.core.engine.entropy import EntropySource, default_entropy
from mutarand.core.engine.state import ChainLink, EngineState
from mutarand.core.engine.width import Width
from mutarand.core.instruction.instruction import Instruction
from mutarand.core.instruction.operation import Operation, trunc_rem

InstructionLike = Union[Instruction, Operation, int]

_FLOAT_SCALE = float(1 << 31)


def _as_instruction(value: InstructionLike) -> Instruction:
    if isinstance(value, Instruction):
        return value
    return Instruction(Operation.from_opcode(value))


def _split_bounds(bounds: tuple) -> tuple:
    if len(bounds) > 2:
        raise TypeError(f"expected at most 2 bounds, got {len(bounds)}")
    if len(bounds) == 1:
        return 0, bounds[0]
    return bounds


class Engine:
    """
    Mutable instruction-chain pseudorandom engine.

    Every draw replays the chain once (see ``advance``), producing one raw
    value and rewriting every operand. Output therefore depends on the
    whole history of draws, not just the seed.

    Not thread-safe: an engine has exactly one owner at a time.
    Not suitable for cryptographic use.
    """

    def __init__(
        self,
        *,
        seed: Optional[int] = None,
        reseed_on_advance: Optional[bool] = None,
        width: Width = Width.I64,
        entropy: Optional[EntropySource] = None,
        chain: Optional[Iterable[tuple[InstructionLike, int]]] = None,
    ) -> None:
        self._entropy = entropy if entropy is not None else default_entropy()

        # Unseeded engines draw their seed and keep reseeding by default;
        # seeded engines evolve only through chain feedback.
        if seed is None:
            seed = self._entropy.next_word(width)
            if reseed_on_advance is None:
                reseed_on_advance = True
        elif reseed_on_advance is None:
            reseed_on_advance = False

        self._state = EngineState(width=width, seed=seed, reseed_on_advance=reseed_on_advance)
        for instruction, operand in chain or ():
            self.append(instruction, operand)

    @classmethod
    def from_state(cls, state: EngineState, *, entropy: Optional[EntropySource] = None) -> "Engine":
        engine = cls.__new__(cls)
        engine._entropy = entropy if entropy is not None else default_entropy()
        engine._state = state
        return engine

    # ---------------- State access ----------------

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def width(self) -> Width:
        return self._state.width

    @property
    def seed(self) -> int:
        return self._state.seed

    @property
    def reseed_on_advance(self) -> bool:
        return self._state.reseed_on_advance

    @property
    def entropy(self) -> EntropySource:
        return self._entropy

    @property
    def chain(self) -> tuple[tuple[Instruction, int], ...]:
        return tuple((link.instruction, link.operand) for link in self._state.chain)

    @property
    def operands(self) -> tuple[int, ...]:
        return tuple(link.operand for link in self._state.chain)

    def __len__(self) -> int:
        return len(self._state.chain)

    def append(self, instruction: InstructionLike, operand: int) -> None:
        self._state.append(_as_instruction(instruction), operand)

    def copy(self) -> "Engine":
        """
        Independent deep copy sharing the same entropy source.
        """
        s = self._state
        state = EngineState(
            width=s.width,
            seed=s.seed,
            reseed_on_advance=s.reseed_on_advance,
            chain=[ChainLink(instruction=link.instruction, operand=link.operand) for link in s.chain],
            advances=s.advances,
        )
        return Engine.from_state(state, entropy=self._entropy)

    # ---------------- Core ----------------

    def advance(self) -> int:
        """
        Replay the chain once and return the raw value.

        For each link, in order:
          1. result = instruction(result, operand)
          2. the operand is rewritten: the first link mixes it with the new
             result, later links mix it with the previous link's
             (already rewritten) operand using the previous instruction
        """
        s = self._state
        width = s.width
        result = s.seed
        prev: Optional[ChainLink] = None

        for link in s.chain:
            result = link.instruction.apply(result, link.operand, width)

            if prev is None:
                link.operand = link.instruction.apply(link.operand, result, width)
            else:
                link.operand = prev.instruction.apply(link.operand, prev.operand, width)

            prev = link

        if s.reseed_on_advance:
            s.seed = self._entropy.next_word(width)

        s.advances += 1
        return result

    # ---------------- Typed derivations ----------------

    def next_int(self, *bounds: int) -> int:
        """
        32-bit integer: ``next_int()``, ``next_int(max)``, ``next_int(min, max)``.

        Bounded forms use a truncating remainder, so they can return
        negative values (outside [min, max)) when the raw value is negative.
        The range ``max - min`` wraps to 32 bits like the raw value does.
        """
        raw = Width.I32.wrap(self.advance())
        if not bounds:
            return raw
        low, high = _split_bounds(bounds)
        return Width.I32.wrap(trunc_rem(raw, Width.I32.wrap(high - low)) + low)

    def next_long(self, *bounds: int) -> int:
        """
        Full-width integer; bounded forms behave like ``next_int``.
        """
        raw = self.advance()
        if not bounds:
            return raw
        low, high = _split_bounds(bounds)
        return self.width.wrap(trunc_rem(raw, self.width.wrap(high - low)) + low)

    def next_float(self, *bounds: float) -> float:
        """
        Unbounded: 32-bit narrowed raw value scaled by 2**31, in [-1, 1).
        Bounded: ``fmod`` of the raw value.
        """
        if not bounds:
            return Width.I32.wrap(self.advance()) / _FLOAT_SCALE
        return self._bounded_float(self.advance(), bounds)

    def next_double(self, *bounds: float) -> float:
        """
        Unbounded: raw value scaled by 2**(bits-1), in [-1, 1).
        Bounded: ``fmod`` of the raw value.
        """
        raw = self.advance()
        if not bounds:
            return raw / float(1 << (self.width.bits - 1))
        return self._bounded_float(raw, bounds)

    def next_boolean(self, chance: Optional[float] = None) -> bool:
        """
        Unbounded: true when the raw value is even.
        Weighted: ``next_float() < chance``.
        """
        if chance is None:
            return self.advance() % 2 == 0
        return self.next_float() < chance

    @staticmethod
    def _bounded_float(raw: int, bounds: tuple) -> float:
        low, high = _split_bounds(bounds)
        span = high - low
        if span == 0:
            raise ZeroDivisionError("float modulo by zero")
        return math.fmod(float(raw), span) + low

    def __repr__(self) -> str:
        ops = ",".join(link.instruction.operation.name for link in self._state.chain)
        return (
            f"Engine(width={self.width.label}, seed={self.seed}, "
            f"reseed_on_advance={self.reseed_on_advance}, chain=[{ops}])"
        )
