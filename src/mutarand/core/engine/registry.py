from __future__ import annotations

import secrets
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Iterator

import structlog

from mutarand.core.engine.engine import Engine
from mutarand.core.logging.setup import bind_context, clear_context

log = structlog.get_logger()


@dataclass(slots=True)
class EngineRecord:
    """
    In-memory handle of a live engine.

    ``lock`` gives the engine its single owner: every draw or export
    happens while holding it.
    """

    engine_id: str
    engine: Engine
    created_at_utc: datetime
    updated_at_utc: datetime
    draws: int = 0
    lock: Lock = field(default_factory=Lock, repr=False)

    def touch(self) -> None:
        self.updated_at_utc = datetime.now(timezone.utc)


class EngineRegistry:
    """
    Thread-safe registry of live engines.

    Engines themselves are not thread-safe; the registry serializes access
    per engine while distinct engines stay independent.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._engines: dict[str, EngineRecord] = {}

    def add(self, engine: Engine) -> EngineRecord:
        now = datetime.now(timezone.utc)
        rec = EngineRecord(
            engine_id=secrets.token_hex(8),
            engine=engine,
            created_at_utc=now,
            updated_at_utc=now,
        )
        with self._lock:
            self._engines[rec.engine_id] = rec
        log.info("registry.engine_added", engine_id=rec.engine_id, links=len(engine))
        return rec

    def get(self, *, engine_id: str) -> EngineRecord | None:
        with self._lock:
            return self._engines.get(engine_id)

    def remove(self, *, engine_id: str) -> bool:
        with self._lock:
            removed = self._engines.pop(engine_id, None) is not None
        if removed:
            log.info("registry.engine_removed", engine_id=engine_id)
        return removed

    def list(self) -> list[EngineRecord]:
        with self._lock:
            items = list(self._engines.values())
        items.sort(key=lambda r: r.created_at_utc)
        return items

    @contextmanager
    def checkout(self, *, engine_id: str) -> Iterator[EngineRecord]:
        """
        Hold the engine's lock for the duration of the block, with
        ``engine_id`` bound to the log context.

        Raises KeyError when the engine is unknown. Callers that mutate the
        engine call ``rec.touch()``.
        """
        rec = self.get(engine_id=engine_id)
        if rec is None:
            raise KeyError(engine_id)

        with rec.lock:
            bind_context(engine_id=engine_id)
            try:
                yield rec
            finally:
                clear_context()
