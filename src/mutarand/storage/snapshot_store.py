from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import orjson
import structlog
from pydantic import ValidationError

from mutarand.core.engine.engine import Engine
from mutarand.core.engine.entropy import EntropySource
from mutarand.core.engine.snapshot import EngineSnapshot
from mutarand.core.engine.width import Width
from mutarand.core.errors import DecodeFault
from mutarand.storage import binary

log = structlog.get_logger()

JSON_SUFFIX = ".json"
BINARY_SUFFIX = ".bin"


def _atomic_replace_write(path: Path, write_fn: Callable[[Path], None]) -> None:
    """
    Atomic file write: write to tmp then replace.
    Readers never see partial files.
    """
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        write_fn(tmp)
        tmp.replace(path)
    finally:
        if tmp.exists():
            tmp.unlink()


def save_engine(path: Path, engine: Engine) -> Path:
    """
    Persist ``engine`` to ``path``.

    - ``.json``: EngineSnapshot (orjson, sorted keys)
    - ``.bin``: byte-exact variant A / B by engine width
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    if path.suffix == JSON_SUFFIX:
        snap = EngineSnapshot.from_engine(engine)
        payload = orjson.dumps(snap.to_canonical_dict(), option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS)
        _atomic_replace_write(path, lambda tmp: tmp.write_bytes(payload + b"\n"))
    elif path.suffix == BINARY_SUFFIX:
        payload = binary.encode(engine)
        _atomic_replace_write(path, lambda tmp: tmp.write_bytes(payload))
    else:
        raise ValueError(f"unsupported snapshot suffix: {path.suffix!r} (use .json or .bin)")

    log.info("storage.snapshot_written", path=str(path), width=engine.width.label, links=len(engine))
    return path


def load_engine(
    path: Path,
    *,
    width: Width = Width.I64,
    entropy: Optional[EntropySource] = None,
) -> Engine:
    """
    Load an engine saved by ``save_engine``.

    ``width`` selects the binary variant; JSON snapshots carry their own width.
    """
    if not path.exists():
        raise FileNotFoundError(f"snapshot not found: {path}")

    if path.suffix == JSON_SUFFIX:
        try:
            snap = EngineSnapshot.model_validate(orjson.loads(path.read_bytes()))
        except (orjson.JSONDecodeError, ValidationError) as exc:
            raise DecodeFault(f"invalid snapshot {path}: {exc}") from exc
        engine = snap.to_engine(entropy=entropy)
    elif path.suffix == BINARY_SUFFIX:
        engine = binary.decode(path.read_bytes(), width=width, entropy=entropy)
    else:
        raise ValueError(f"unsupported snapshot suffix: {path.suffix!r} (use .json or .bin)")

    log.info("storage.snapshot_loaded", path=str(path), width=engine.width.label, links=len(engine))
    return engine
