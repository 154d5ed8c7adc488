from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Global application-level configuration.

    This class is the single source of truth for:
    - environment selection
    - logging behavior
    - engine construction defaults
    - snapshot locations
    """

    model_config = SettingsConfigDict(
        env_prefix="MUTARAND_",
        env_file=".env",
        extra="ignore",
    )

    # ---- Environment -------------------------------------------------

    env: Literal["local", "staging", "prod"] = "local"

    # ---- Logging -----------------------------------------------------

    log_level: str = "INFO"

    # ---- Engine construction -----------------------------------------

    default_instruction_count: int = Field(
        default=8,
        ge=1,
        description="Chain length used when a build request does not specify one",
    )

    default_width: Literal["i32", "i64"] = Field(
        default="i64",
        description="Integer width profile of newly built engines",
    )

    default_catalog: Literal["core", "extended"] = Field(
        default="core",
        description="Operation catalog the builder draws from",
    )

    quality_policy: Literal["raise", "accept", "retry"] = Field(
        default="retry",
        description="What the builder does when the quality gate rejects a chain",
    )

    # None keeps the retry loop unbounded
    max_build_attempts: Optional[int] = Field(
        default=None,
        ge=1,
        description="Cap on build attempts under the retry policy",
    )

    # ---- Snapshots ---------------------------------------------------

    snapshots_dir: Path = Field(
        default=Path("snapshots"),
        description="Root directory for persisted engine snapshots",
    )


# Singleton settings object
settings = AppSettings()
