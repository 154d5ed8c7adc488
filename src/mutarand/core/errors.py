from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from mutarand.core.factory.quality import QualityReport


class MutarandError(Exception):
    """
    Base class for every error raised by mutarand.
    """


class ConfigurationFault(MutarandError):
    """
    Unknown / out-of-catalog opcode at dispatch or decode time.

    Fatal, never retried: it means the chain came from corrupted or foreign state.
    """

    def __init__(self, opcode: int) -> None:
        super().__init__(f"unknown opcode: {opcode!r}")
        self.opcode = opcode


class QualityRejected(MutarandError):
    """
    The builder's statistical gate rejected a freshly built chain.
    """

    def __init__(self, report: "QualityReport", *, attempts: int = 1) -> None:
        reasons = ",".join(report.reasons) or "unknown"
        super().__init__(f"engine failed quality gate after {attempts} attempt(s): {reasons}")
        self.report = report
        self.attempts = attempts


class ArithmeticFault(MutarandError, AssertionError):
    """
    Division / modulo by zero inside an instruction.

    Operand sanitization makes this unreachable; seeing it means the
    sanitization rules were violated.
    """


class DecodeFault(MutarandError, ValueError):
    """
    Malformed persisted state (truncated chain, bad header, bad flag, ...).
    """
