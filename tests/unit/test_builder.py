from __future__ import annotations

import pytest

from mutarand.core.engine.engine import Engine
from mutarand.core.engine.entropy import RandomEntropy
from mutarand.core.engine.snapshot import EngineSnapshot
from mutarand.core.engine.width import Width
from mutarand.core.errors import QualityRejected
from mutarand.core.factory.builder import EngineBuilder, QualityPolicy, build_engine
from mutarand.core.factory.quality import QUALITY_SAMPLE_SIZE, QualityReport, evaluate
from mutarand.core.instruction.operation import EXTENDED_CATALOG, Operation

GOOD = evaluate(list(range(1, 101)))
BAD = evaluate([7] * 100)


class ScriptedBuilder(EngineBuilder):
    """
    Builder whose quality verdicts are scripted (no sampling).
    """

    def __init__(self, reports: list[QualityReport], **kwargs) -> None:
        super().__init__(entropy=RandomEntropy.seeded(1), **kwargs)
        self.reports = list(reports)
        self.calls = 0

    def evaluate(self, engine: Engine) -> QualityReport:
        self.calls += 1
        return self.reports.pop(0)


class RecordingBuilder(EngineBuilder):
    """
    Real gate, but keeps every report for inspection.
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.seen: list[QualityReport] = []

    def evaluate(self, engine: Engine) -> QualityReport:
        report = super().evaluate(engine)
        self.seen.append(report)
        return report


# --- policies ---


def test_retry_builds_until_accepted() -> None:
    builder = ScriptedBuilder([BAD, BAD, GOOD])
    engine = builder.build(4, QualityPolicy.RETRY)

    assert builder.calls == 3
    assert len(engine) == 4


def test_raise_policy_surfaces_report() -> None:
    builder = ScriptedBuilder([BAD])

    with pytest.raises(QualityRejected) as exc:
        builder.build(4, QualityPolicy.RAISE)

    assert exc.value.report is BAD
    assert exc.value.attempts == 1


def test_accept_policy_returns_rejected_engine() -> None:
    builder = ScriptedBuilder([BAD])
    engine = builder.build(3, QualityPolicy.ACCEPT)

    assert builder.calls == 1
    assert len(engine) == 3


def test_retry_respects_attempt_cap() -> None:
    builder = ScriptedBuilder([BAD, BAD, GOOD])

    with pytest.raises(QualityRejected) as exc:
        builder.build(4, QualityPolicy.RETRY, max_attempts=2)

    assert exc.value.attempts == 2
    assert builder.calls == 2


def test_policy_accepts_plain_strings() -> None:
    builder = ScriptedBuilder([BAD])
    assert len(builder.build(2, "accept")) == 2


# --- construction ---


def test_returned_engine_passed_real_gate() -> None:
    builder = RecordingBuilder(entropy=RandomEntropy.seeded(42))
    engine = builder.build(8)

    assert len(engine) == 8
    assert builder.seen[-1].accepted
    assert all(not r.accepted for r in builder.seen[:-1])
    assert builder.seen[-1].sample_count == QUALITY_SAMPLE_SIZE


def test_evaluation_is_destructive() -> None:
    builder = EngineBuilder(entropy=RandomEntropy.seeded(3))
    engine = builder.build(5, QualityPolicy.ACCEPT, seed=11)

    assert engine.state.advances == QUALITY_SAMPLE_SIZE


def test_catalog_restricts_operations() -> None:
    builder = EngineBuilder(entropy=RandomEntropy.seeded(9), catalog=(Operation.ADD,))
    engine = builder.build(6, QualityPolicy.ACCEPT)

    assert {i.operation for i, _ in engine.chain} == {Operation.ADD}


def test_extended_catalog_and_i32_width() -> None:
    builder = EngineBuilder(entropy=RandomEntropy.seeded(10), catalog=EXTENDED_CATALOG, width=Width.I32)
    engine = builder.build(12, QualityPolicy.ACCEPT)

    assert engine.width is Width.I32
    assert all(Width.I32.fits(op) for op in engine.operands)
    assert Width.I32.fits(engine.seed)


def test_seeded_build_keeps_seed() -> None:
    engine = EngineBuilder(entropy=RandomEntropy.seeded(4)).build(5, QualityPolicy.ACCEPT, seed=99)

    assert engine.seed == 99
    assert engine.reseed_on_advance is False


def test_unseeded_build_reseeds() -> None:
    engine = EngineBuilder(entropy=RandomEntropy.seeded(4)).build(5, QualityPolicy.ACCEPT)
    assert engine.reseed_on_advance is True


def test_same_entropy_same_engine() -> None:
    a = EngineBuilder(entropy=RandomEntropy.seeded(77)).build(6, QualityPolicy.ACCEPT, seed=1)
    b = EngineBuilder(entropy=RandomEntropy.seeded(77)).build(6, QualityPolicy.ACCEPT, seed=1)

    assert EngineSnapshot.from_engine(a) == EngineSnapshot.from_engine(b)


def test_invalid_arguments() -> None:
    builder = EngineBuilder()
    with pytest.raises(ValueError):
        builder.build(0)
    with pytest.raises(ValueError):
        builder.build(3, max_attempts=0)
    with pytest.raises(ValueError):
        EngineBuilder(catalog=())


def test_build_engine_convenience() -> None:
    engine = build_engine(4, QualityPolicy.ACCEPT, entropy=RandomEntropy.seeded(5))
    assert len(engine) == 4
