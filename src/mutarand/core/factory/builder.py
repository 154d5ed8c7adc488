from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

import structlog

from mutarand.core.engine.engine import Engine
from mutarand.core.engine.entropy import EntropySource, default_entropy
from mutarand.core.engine.width import Width
from mutarand.core.errors import QualityRejected
from mutarand.core.factory.quality import QUALITY_SAMPLE_SIZE, QualityReport, evaluate
from mutarand.core.instruction.instruction import Instruction
from mutarand.core.instruction.operation import CORE_CATALOG, Operation

log = structlog.get_logger()


class QualityPolicy(str, Enum):
    """
    What the builder does with a chain the quality gate rejected.
    """

    RAISE = "raise"  # raise QualityRejected
    ACCEPT = "accept"  # return the rejected engine anyway
    RETRY = "retry"  # build a brand-new chain


class EngineBuilder:
    """
    Builds randomly constructed engines and screens them with the quality gate.

    Responsibilities:
    - pick ``instruction_count`` operations uniformly from the catalog
    - pick a random operand per link (construction order = chain order)
    - draw QUALITY_SAMPLE_SIZE samples and apply the policy on rejection

    The evaluation is destructive: the returned engine carries the chain
    state left behind by the sampling draws.
    """

    def __init__(
        self,
        *,
        entropy: Optional[EntropySource] = None,
        catalog: Sequence[Operation] = CORE_CATALOG,
        width: Width = Width.I64,
    ) -> None:
        if not catalog:
            raise ValueError("catalog must be non-empty")
        self._entropy = entropy if entropy is not None else default_entropy()
        self._catalog = tuple(catalog)
        self._width = width

    @property
    def catalog(self) -> tuple[Operation, ...]:
        return self._catalog

    @property
    def width(self) -> Width:
        return self._width

    def build(
        self,
        instruction_count: int,
        policy: QualityPolicy = QualityPolicy.RETRY,
        *,
        seed: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ) -> Engine:
        """
        Build an engine per ``policy``.

        RETRY loops until a chain passes; ``max_attempts`` caps the loop and
        raises QualityRejected once exhausted. No cap means retry forever.
        """
        if instruction_count < 1:
            raise ValueError("instruction_count must be >= 1")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

        policy = QualityPolicy(policy)
        attempts = 0

        while True:
            attempts += 1
            engine = self._construct(instruction_count, seed=seed)
            report = self.evaluate(engine)

            if report.accepted:
                log.info(
                    "factory.engine_built",
                    attempts=attempts,
                    instructions=instruction_count,
                    width=self._width.label,
                )
                return engine

            log.warning(
                "factory.quality_rejected",
                attempt=attempts,
                policy=policy.value,
                reasons=list(report.reasons),
                most_common_count=report.most_common_count,
            )

            if policy is QualityPolicy.RAISE:
                raise QualityRejected(report, attempts=attempts)
            if policy is QualityPolicy.ACCEPT:
                return engine
            if max_attempts is not None and attempts >= max_attempts:
                raise QualityRejected(report, attempts=attempts)

    def evaluate(self, engine: Engine) -> QualityReport:
        samples = [engine.next_long() for _ in range(QUALITY_SAMPLE_SIZE)]
        return evaluate(samples, width=engine.width)

    # ---------------- Helpers ----------------

    def _construct(self, instruction_count: int, *, seed: Optional[int]) -> Engine:
        engine = Engine(seed=seed, width=self._width, entropy=self._entropy)
        for _ in range(instruction_count):
            operation = self._catalog[self._entropy.next_index(len(self._catalog))]
            engine.append(Instruction(operation), self._entropy.next_word(self._width))
        return engine


def build_engine(
    instruction_count: int,
    policy: QualityPolicy = QualityPolicy.RETRY,
    *,
    entropy: Optional[EntropySource] = None,
    width: Width = Width.I64,
    max_attempts: Optional[int] = None,
) -> Engine:
    """
    One-shot convenience around EngineBuilder with the core catalog.
    """
    return EngineBuilder(entropy=entropy, width=width).build(
        instruction_count,
        policy,
        max_attempts=max_attempts,
    )
