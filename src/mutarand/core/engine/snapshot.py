from __future__ import annotations

import hashlib
import json
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from mutarand.core.engine.engine import Engine
from mutarand.core.engine.entropy import EntropySource
from mutarand.core.engine.state import ChainLink, EngineState
from mutarand.core.engine.width import Width, WidthName
from mutarand.core.errors import ConfigurationFault
from mutarand.core.instruction.instruction import Instruction
from mutarand.core.instruction.operation import CATALOG_VERSION, Operation


class LinkSnapshot(BaseModel):
    opcode: int = Field(..., ge=0, le=0xFF, description="Operation opcode")
    operand: int = Field(..., description="Signed operand of the engine width")

    @model_validator(mode="after")
    def _validate_opcode(self) -> "LinkSnapshot":
        # surfaced as a ValidationError so request / file parsing reports it uniformly
        try:
            Operation.from_opcode(self.opcode)
        except ConfigurationFault as exc:
            raise ValueError(str(exc)) from exc
        return self


class EngineSnapshot(BaseModel):
    """
    Canonical textual form of an engine's full state.

    Properties:
    - chain order is preserved exactly (replay correctness)
    - versioned schema + catalog version
    - deterministic fingerprint
    """

    schema_version: int = Field(default=1, description="EngineSnapshot schema version")
    catalog_version: int = Field(default=CATALOG_VERSION)

    width: WidthName = Field(default="i64")
    seed: int
    reseed_on_advance: bool
    chain: list[LinkSnapshot] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_ranges(self) -> "EngineSnapshot":
        if self.catalog_version != CATALOG_VERSION:
            raise ValueError(
                f"catalog_version {self.catalog_version} does not match this catalog ({CATALOG_VERSION})"
            )
        w = Width.from_label(self.width)
        if not w.fits(self.seed):
            raise ValueError(f"seed does not fit {self.width}")
        for i, link in enumerate(self.chain):
            if not w.fits(link.operand):
                raise ValueError(f"chain[{i}].operand does not fit {self.width}")
        return self

    @classmethod
    def from_engine(cls, engine: Engine) -> "EngineSnapshot":
        return cls(
            width=engine.width.label,
            seed=engine.seed,
            reseed_on_advance=engine.reseed_on_advance,
            chain=[LinkSnapshot(opcode=i.opcode, operand=op) for i, op in engine.chain],
        )

    def to_engine(self, *, entropy: Optional[EntropySource] = None) -> Engine:
        state = EngineState(
            width=Width.from_label(self.width),
            seed=self.seed,
            reseed_on_advance=self.reseed_on_advance,
            chain=[
                ChainLink(instruction=Instruction.from_opcode(link.opcode), operand=link.operand)
                for link in self.chain
            ],
        )
        return Engine.from_state(state, entropy=entropy)

    def to_canonical_dict(self) -> dict:
        return self.model_dump()

    def fingerprint(self) -> str:
        """
        Deterministic hash of the full engine state.
        """
        blob = json.dumps(self.to_canonical_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(blob.encode("utf-8")).hexdigest()
