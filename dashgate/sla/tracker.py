"""
SLA Health Tracker — per-source freshness and latency.

Freshness is stamped on initial load and by refresh/heal. Latency is set
once on load (randomized within configured bounds), pulled down by refresh
to simulate a warm cache, and pushed up by simulate_load.
"""

import random
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from dashgate.coverage.calculator import average_latency
from dashgate.core.logging import get_logger
from dashgate.models.dashboard import DashboardConfig
from dashgate.models.guardrail import RiskTier, SlaHealth
from dashgate.models.pipeline import PipelineConfig

logger = get_logger(__name__)


def risk_tier(avg: float, budget: float) -> RiskTier:
    if avg <= budget:
        return RiskTier.WITHIN_BUDGET
    if avg <= budget * 1.4:
        return RiskTier.AT_RISK
    return RiskTier.OVER_BUDGET


class SlaHealthTracker:
    """Maintains freshness/latency on the draft's data sources plus simulation flags."""

    def __init__(
        self,
        settings: Optional[PipelineConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or PipelineConfig()
        self._rng = rng or random.Random()
        self.load_test_active = False
        self.sla_breach_simulated = False

    def initialize(
        self,
        draft: DashboardConfig,
        names: Iterable[str],
        current_time: Optional[datetime] = None,
    ) -> None:
        """Stamp freshness and draw a starting latency for freshly loaded sources."""
        now = current_time or datetime.now(timezone.utc)
        low, high = self.settings.latency_bounds_ms
        for name in names:
            source = draft.data_sources.get(name)
            if source is None:
                continue
            source.freshness_timestamp = now
            source.latency_ms = round(self._rng.uniform(low, high), 1)

    def refresh(
        self,
        draft: DashboardConfig,
        names: Optional[Iterable[str]] = None,
        current_time: Optional[datetime] = None,
    ) -> List[str]:
        now = current_time or datetime.now(timezone.utc)
        selected = list(draft.data_sources) if names is None else list(names)
        refreshed = []
        for name in selected:
            source = draft.data_sources.get(name)
            if source is None:
                continue
            source.freshness_timestamp = now
            if source.latency_ms is not None:
                source.latency_ms = round(source.latency_ms * self.settings.refresh_latency_factor, 1)
            refreshed.append(name)
        logger.info("sla_refreshed", sources=refreshed)
        return refreshed

    def heal(self, draft: DashboardConfig, current_time: Optional[datetime] = None) -> int:
        """Mark every source fresh, regardless of its current state."""
        now = current_time or datetime.now(timezone.utc)
        for source in draft.data_sources.values():
            source.freshness_timestamp = now
        logger.info("sla_healed", count=len(draft.data_sources))
        return len(draft.data_sources)

    def simulate_load(self, draft: DashboardConfig) -> None:
        for source in draft.data_sources.values():
            if source.latency_ms is not None:
                source.latency_ms = round(source.latency_ms * self.settings.load_latency_factor, 1)
        self.load_test_active = True
        logger.info("load_test_started", sources=len(draft.data_sources))

    def stop_load_test(self) -> None:
        self.load_test_active = False

    def simulate_sla_breach(self, active: bool = True) -> None:
        self.sla_breach_simulated = active
        logger.info("sla_breach_simulation", active=active)

    def stale_sources(
        self, draft: DashboardConfig, current_time: Optional[datetime] = None
    ) -> List[str]:
        now = current_time or datetime.now(timezone.utc)
        hours = self.settings.stale_after_hours
        return [n for n, ds in draft.data_sources.items() if ds.is_stale(now, hours)]

    def health(
        self, draft: DashboardConfig, current_time: Optional[datetime] = None
    ) -> SlaHealth:
        avg = average_latency(ds.latency_ms for ds in draft.data_sources.values())
        budget = self.settings.perf_budget_ms
        return SlaHealth(
            average_latency=avg,
            perf_budget_ms=budget,
            risk_tier=risk_tier(avg, budget),
            stale_sources=self.stale_sources(draft, current_time),
            load_test_active=self.load_test_active,
            sla_breach_simulated=self.sla_breach_simulated,
        )
