"""Runtime settings for the planner service."""
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from wynnplanner.constants import (
    CATALOG_TTL_SECONDS, DEFAULT_NODE_BUDGET, DEFAULT_POOL_CAP,
    DEFAULT_RESPONSE_CACHE_SIZE, DEFAULT_RING_POOL_CAP, ITEM_DATABASE_URL,
    PER_SKILL_CAP,
)

ENV_PREFIX = "WYNNPLANNER_"


class PlannerSettings(BaseModel):
    """Immutable settings. Construct directly or with from_env()."""
    model_config = ConfigDict(frozen=True)

    cache_dir: Path = Field(default_factory=Path.cwd)
    cache_file_name: str = ".wynn_item_cache.json"
    database_url: str = ITEM_DATABASE_URL
    user_agent: str = "wynnplanner (local)"
    request_timeout: float = Field(default=30.0, gt=0)
    catalog_ttl_seconds: float = Field(default=CATALOG_TTL_SECONDS, ge=0)
    response_cache_size: int = Field(default=DEFAULT_RESPONSE_CACHE_SIZE, ge=1)
    pool_cap: int = Field(default=DEFAULT_POOL_CAP, ge=1)
    ring_pool_cap: int = Field(default=DEFAULT_RING_POOL_CAP, ge=2)
    node_budget: int = Field(default=DEFAULT_NODE_BUDGET, ge=1)
    per_skill_cap: int = Field(default=PER_SKILL_CAP, ge=0)

    @property
    def cache_file(self) -> Path:
        return self.cache_dir / self.cache_file_name

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PlannerSettings":
        """Read WYNNPLANNER_<FIELD> variables; unset fields keep their defaults."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is not None and raw != "":
                values[name] = raw
        return cls.model_validate(values)
