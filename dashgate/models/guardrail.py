"""Guardrail findings and the metrics they are derived from."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class Severity(str, Enum):
    HIGH = "high"       # Blocks publish
    MEDIUM = "medium"
    LOW = "low"


class GuardrailFinding(BaseModel):
    """One evaluator output item. Recomputed on every run, never stored."""

    check: str                              # Stable check id, e.g. "no_widgets"
    severity: Severity
    message: str
    field: Optional[str] = None


class CoverageMetrics(BaseModel):
    target_coverage: int = 0                # 0-100
    owner_coverage: int = 0
    pii_coverage: int = 0
    average_latency: int = 0                # ms


class RiskTier(str, Enum):
    WITHIN_BUDGET = "within-budget"
    AT_RISK = "at-risk"
    OVER_BUDGET = "over-budget"


class SlaHealth(BaseModel):
    """Point-in-time view of the SLA tracker consumed by the evaluator."""

    average_latency: int = 0
    perf_budget_ms: float = 450
    risk_tier: RiskTier = RiskTier.WITHIN_BUDGET
    stale_sources: List[str] = []
    load_test_active: bool = False
    sla_breach_simulated: bool = False
