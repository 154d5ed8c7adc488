from __future__ import annotations

import base64
import binascii
from datetime import datetime
from typing import Literal, Optional

import structlog
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field, model_validator

from mutarand.core.config.settings import settings
from mutarand.core.engine.engine import Engine
from mutarand.core.engine.entropy import RandomEntropy, default_entropy
from mutarand.core.engine.registry import EngineRecord, EngineRegistry
from mutarand.core.engine.snapshot import EngineSnapshot
from mutarand.core.engine.width import Width
from mutarand.core.errors import ConfigurationFault, DecodeFault, QualityRejected
from mutarand.core.factory.builder import EngineBuilder, QualityPolicy
from mutarand.core.instruction.operation import CATALOGS
from mutarand.storage import binary
from mutarand.storage.snapshot_store import save_engine

log = structlog.get_logger()

router = APIRouter(tags=["engines"])

# Minimal singleton for now (single-process).
_registry = EngineRegistry()

DrawKind = Literal["int", "long", "float", "double", "boolean"]


# =========================
# Schemas
# =========================

class BuildEngineRequest(BaseModel):
    instruction_count: Optional[int] = Field(default=None, ge=1, le=4096)
    policy: Optional[Literal["raise", "accept", "retry"]] = None
    seed: Optional[int] = Field(default=None, description="Fixed seed; disables reseeding")
    width: Optional[Literal["i32", "i64"]] = None
    catalog: Optional[Literal["core", "extended"]] = None
    max_attempts: Optional[int] = Field(default=None, ge=1)
    entropy_seed: Optional[int] = Field(default=None, description="Seed for construction entropy")


class ImportEngineRequest(BaseModel):
    data_b64: Optional[str] = Field(default=None, description="Base64 of variant A (i64) / variant B (i32) bytes")
    width: Literal["i32", "i64"] = "i64"
    snapshot: Optional[EngineSnapshot] = None

    @model_validator(mode="after")
    def _validate_source(self) -> "ImportEngineRequest":
        if (self.data_b64 is None) == (self.snapshot is None):
            raise ValueError("exactly one of data_b64 / snapshot is required")
        return self


class EngineResponse(BaseModel):
    engine_id: str
    fingerprint: str
    created_at_utc: datetime
    updated_at_utc: datetime
    draws: int
    snapshot: EngineSnapshot


class EnginesListResponse(BaseModel):
    engines: list[EngineResponse]


class DrawRequest(BaseModel):
    kind: DrawKind = "long"
    count: int = Field(default=1, ge=1, le=10_000)
    low: Optional[int | float] = Field(default=None, description="Lower bound (requires high)")
    high: Optional[int | float] = Field(default=None, description="Exclusive upper bound")
    chance: Optional[float] = Field(default=None, description="Weighted boolean probability")

    @model_validator(mode="after")
    def _validate_bounds(self) -> "DrawRequest":
        if self.low is not None and self.high is None:
            raise ValueError("low requires high")
        if self.kind == "boolean" and (self.low is not None or self.high is not None):
            raise ValueError("boolean draws take 'chance', not bounds")
        if self.kind != "boolean" and self.chance is not None:
            raise ValueError("'chance' only applies to boolean draws")
        if self.kind in ("int", "long"):
            for v in (self.low, self.high):
                if v is not None and not float(v).is_integer():
                    raise ValueError("integer draws require integral bounds")
        return self


class DrawResponse(BaseModel):
    engine_id: str
    kind: DrawKind
    values: list[int | float | bool]


class ExportResponse(BaseModel):
    engine_id: str
    width: Literal["i32", "i64"]
    data_b64: str


class SaveResponse(BaseModel):
    engine_id: str
    path: str


# =========================
# Routes
# =========================

@router.post("/engines", response_model=EngineResponse)
def build_engine(payload: BuildEngineRequest) -> EngineResponse:
    width = Width.from_label(payload.width or settings.default_width)
    catalog = CATALOGS[payload.catalog or settings.default_catalog]
    policy = QualityPolicy(payload.policy or settings.quality_policy)
    entropy = RandomEntropy.seeded(payload.entropy_seed) if payload.entropy_seed is not None else default_entropy()

    if payload.seed is not None and not width.fits(payload.seed):
        raise HTTPException(status_code=422, detail=f"seed does not fit {width.label}")

    builder = EngineBuilder(entropy=entropy, catalog=catalog, width=width)
    try:
        engine = builder.build(
            payload.instruction_count or settings.default_instruction_count,
            policy,
            seed=payload.seed,
            max_attempts=payload.max_attempts or settings.max_build_attempts,
        )
    except QualityRejected as e:
        raise HTTPException(status_code=409, detail=str(e))

    return _to_response(_registry.add(engine))


@router.post("/engines/import", response_model=EngineResponse)
def import_engine(payload: ImportEngineRequest) -> EngineResponse:
    try:
        if payload.snapshot is not None:
            engine = payload.snapshot.to_engine()
        else:
            raw = base64.b64decode(payload.data_b64 or "", validate=True)
            engine = binary.decode(raw, width=Width.from_label(payload.width))
    except (binascii.Error, DecodeFault, ConfigurationFault) as e:
        raise HTTPException(status_code=422, detail=f"failed to import engine: {e}")

    rec = _registry.add(engine)
    log.info("api.engine_imported", engine_id=rec.engine_id, width=engine.width.label, links=len(engine))
    return _to_response(rec)


@router.get("/engines", response_model=EnginesListResponse)
def list_engines() -> EnginesListResponse:
    out: list[EngineResponse] = []
    for rec in _registry.list():
        try:
            with _registry.checkout(engine_id=rec.engine_id) as held:
                out.append(_to_response(held))
        except KeyError:
            continue  # removed concurrently
    return EnginesListResponse(engines=out)


@router.get("/engines/{engine_id}", response_model=EngineResponse)
def get_engine(engine_id: str) -> EngineResponse:
    try:
        with _registry.checkout(engine_id=engine_id) as rec:
            return _to_response(rec)
    except KeyError:
        raise HTTPException(status_code=404, detail="engine not found")


@router.post("/engines/{engine_id}/draw", response_model=DrawResponse)
def draw(engine_id: str, payload: DrawRequest) -> DrawResponse:
    try:
        with _registry.checkout(engine_id=engine_id) as rec:
            values = [_draw_one(rec.engine, payload) for _ in range(payload.count)]
            rec.draws += payload.count
            rec.touch()
    except KeyError:
        raise HTTPException(status_code=404, detail="engine not found")
    except ZeroDivisionError:
        raise HTTPException(status_code=422, detail="empty range: high must differ from low")

    return DrawResponse(engine_id=engine_id, kind=payload.kind, values=values)


@router.get("/engines/{engine_id}/export", response_model=ExportResponse)
def export_engine(engine_id: str) -> ExportResponse:
    try:
        with _registry.checkout(engine_id=engine_id) as rec:
            data = binary.encode(rec.engine)
            width = rec.engine.width.label
    except KeyError:
        raise HTTPException(status_code=404, detail="engine not found")

    return ExportResponse(engine_id=engine_id, width=width, data_b64=base64.b64encode(data).decode("ascii"))


@router.post("/engines/{engine_id}/save", response_model=SaveResponse)
def save(engine_id: str, fmt: Literal["json", "bin"] = Query(default="json", alias="format")) -> SaveResponse:
    target = settings.snapshots_dir / f"{engine_id}.{fmt}"
    try:
        with _registry.checkout(engine_id=engine_id) as rec:
            path = save_engine(target, rec.engine)
    except KeyError:
        raise HTTPException(status_code=404, detail="engine not found")

    return SaveResponse(engine_id=engine_id, path=str(path))


@router.delete("/engines/{engine_id}", status_code=204)
def delete_engine(engine_id: str) -> None:
    if not _registry.remove(engine_id=engine_id):
        raise HTTPException(status_code=404, detail="engine not found")


# =========================
# Helpers
# =========================

def _bounds(payload: DrawRequest, *, integral: bool) -> tuple:
    if payload.high is None:
        return ()
    cast = int if integral else float
    if payload.low is None:
        return (cast(payload.high),)
    return (cast(payload.low), cast(payload.high))


def _draw_one(engine: Engine, payload: DrawRequest) -> int | float | bool:
    kind = payload.kind
    if kind == "boolean":
        return engine.next_boolean(payload.chance)
    if kind == "int":
        return engine.next_int(*_bounds(payload, integral=True))
    if kind == "long":
        return engine.next_long(*_bounds(payload, integral=True))
    if kind == "float":
        return engine.next_float(*_bounds(payload, integral=False))
    return engine.next_double(*_bounds(payload, integral=False))


def _to_response(rec: EngineRecord) -> EngineResponse:
    snap = EngineSnapshot.from_engine(rec.engine)
    return EngineResponse(
        engine_id=rec.engine_id,
        fingerprint=snap.fingerprint(),
        created_at_utc=rec.created_at_utc,
        updated_at_utc=rec.updated_at_utc,
        draws=rec.draws,
        snapshot=snap,
    )
