from __future__ import annotations

from dataclasses import dataclass, field

from mutarand.core.engine.width import Width
from mutarand.core.instruction.instruction import Instruction


@dataclass(slots=True)
class ChainLink:
    """
    One (instruction, operand) pair of a chain.

    The operand is rewritten in place on every advance.
    """

    instruction: Instruction
    operand: int


@dataclass(slots=True)
class EngineState:
    """
    Engine state that must replay identically across runs.

    - chain: ordered links; order defines the replay sequence
    - seed: running state read at the start of each advance
    - reseed_on_advance: replace seed with fresh entropy after each advance
    - advances: number of completed advances (diagnostics only)

    Guardrails:
      - chain is a plain list (insertion ordered), never keyed by instruction,
        since equal instructions may appear more than once
      - seed and operands always fit the width
    """

    width: Width
    seed: int
    reseed_on_advance: bool
    chain: list[ChainLink] = field(default_factory=list)
    advances: int = 0

    def __post_init__(self) -> None:
        if not self.width.fits(self.seed):
            raise ValueError(f"seed {self.seed} does not fit {self.width.label}")
        for link in self.chain:
            self._check_operand(link.operand)

    def append(self, instruction: Instruction, operand: int) -> ChainLink:
        self._check_operand(operand)
        link = ChainLink(instruction=instruction, operand=operand)
        self.chain.append(link)
        return link

    def _check_operand(self, operand: int) -> None:
        if not self.width.fits(operand):
            raise ValueError(f"operand {operand} does not fit {self.width.label}")
