"""Engine configuration.

Defaults suit interactive queries over large pedigrees. Every value can be
overridden from the environment (``KINSHIP_*`` variables, ``.env`` honoured).
"""
from __future__ import annotations

import os

from pydantic import BaseModel, Field

from .logging import LogLevel


class EngineConfig(BaseModel):
    """Configuration for the query facade and its traversals."""

    max_ancestor_depth: int = Field(
        default=50, ge=1, description="Generations walked up before giving up"
    )
    max_path_depth: int = Field(
        default=200, ge=1, description="Combined depth of both path search frontiers"
    )
    max_concurrency: int = Field(
        default=8, ge=1, description="Queries allowed to run at the same time"
    )
    default_timeout_seconds: float | None = Field(
        default=None, gt=0, description="Per-query timeout when the caller gives none"
    )
    log_level: LogLevel = "INFO"

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Load configuration from environment."""
        from dotenv import find_dotenv, load_dotenv

        load_dotenv(find_dotenv(usecwd=True))

        values: dict[str, object] = {}
        env_map = {
            "max_ancestor_depth": "KINSHIP_MAX_ANCESTOR_DEPTH",
            "max_path_depth": "KINSHIP_MAX_PATH_DEPTH",
            "max_concurrency": "KINSHIP_MAX_CONCURRENCY",
            "default_timeout_seconds": "KINSHIP_TIMEOUT_SECONDS",
            "log_level": "KINSHIP_LOG_LEVEL",
        }
        for field_name, env_name in env_map.items():
            raw = os.getenv(env_name)
            if raw:
                values[field_name] = raw.upper() if field_name == "log_level" else raw

        return cls.model_validate(values)
