from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from functools import reduce
from operator import xor
from typing import Sequence

from mutarand.core.engine.width import Width

QUALITY_SAMPLE_SIZE = 100
MAX_REPEATS = 2


@dataclass(frozen=True, slots=True)
class QualityReport:
    """
    Result of the quality gate over one batch of samples.

    This is a crude smoke test for obviously degenerate chains
    (stuck values, trivially cancelling output), not a randomness certification.
    """

    sample_count: int
    dominant: int
    recessive: int
    most_common: int
    most_common_count: int
    reasons: tuple[str, ...]  # machine-friendly codes

    @property
    def accepted(self) -> bool:
        return not self.reasons


def evaluate(samples: Sequence[int], *, width: Width = Width.I64) -> QualityReport:
    """
    Compute the gate statistics for ``samples``.

    - dominant: mean, with the sum wrapped to ``width`` and divided toward zero
    - recessive: XOR of all samples
    - most_common: highest occurrence count, first-encountered wins ties

    Rejected when dominant == recessive or any value occurs more than twice.
    """
    if not samples:
        raise ValueError("samples must be non-empty")

    total = width.wrap(sum(samples))
    n = len(samples)
    dominant = abs(total) // n
    if total < 0:
        dominant = -dominant

    recessive = reduce(xor, samples, 0)

    # Counter preserves first-insertion order among equal counts
    most_common, most_common_count = Counter(samples).most_common(1)[0]

    reasons: list[str] = []
    if dominant == recessive:
        reasons.append("dominant_equals_recessive")
    if most_common_count > MAX_REPEATS:
        reasons.append("value_repeated")

    return QualityReport(
        sample_count=n,
        dominant=dominant,
        recessive=recessive,
        most_common=most_common,
        most_common_count=most_common_count,
        reasons=tuple(reasons),
    )
