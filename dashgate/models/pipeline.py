"""Pipeline configuration."""

import os
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

ENV_PREFIX = "DASHGATE_"


class PipelineConfig(BaseModel):
    """Tunables for the guardrail, publish and persistence components."""

    autosave_interval_seconds: float = 30
    max_versions: int = Field(ge=1, default=5)
    audit_capacity: int = Field(ge=1, default=8)
    stale_after_hours: float = 6
    perf_budget_ms: float = 450
    heavy_widget_threshold: int = 12
    complexity_budget: int = 26             # widgets*2 + data_sources
    min_title_length: int = 4
    min_grid_columns: int = 2
    webhook_success_rate: float = Field(ge=0.0, le=1.0, default=0.85)
    latency_bounds_ms: Tuple[float, float] = (120, 520)
    refresh_latency_factor: float = 0.85    # Cache-warm effect
    load_latency_factor: float = 1.35
    revoke_approval_on_edit: bool = True
    freeze_schedules: List[str] = []        # Cron expressions
    db_path: str = ":memory:"
    catalog_base_url: Optional[str] = None
    catalog_timeout_seconds: float = 10
    log_level: str = "INFO"
    log_json: bool = False
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[dict] = None, **overrides) -> "PipelineConfig":
        """Build a config from DASHGATE_* variables, then explicit overrides.

        Cron schedules are separated by ';', latency bounds by ','.
        """
        environ = os.environ if environ is None else environ
        values: dict = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None:
                continue
            if name == "freeze_schedules":
                values[name] = [s.strip() for s in raw.split(";") if s.strip()]
            elif name == "latency_bounds_ms":
                values[name] = tuple(p.strip() for p in raw.split(","))
            else:
                values[name] = raw
        values.update(overrides)
        return cls.model_validate(values)
