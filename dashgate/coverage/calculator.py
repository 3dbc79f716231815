"""
Coverage Calculator — percentage metrics over a draft snapshot.

Pure functions. Results are only as fresh as the config passed in.
"""

import math
from typing import Iterable

from dashgate.models.dashboard import DashboardConfig
from dashgate.models.guardrail import CoverageMetrics


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _percent(total: int, missing: int) -> int:
    if total == 0:
        return 0
    return _round_half_up(100 * (total - missing) / total)


def target_coverage(config: DashboardConfig) -> int:
    missing = sum(1 for w in config.widgets if not config.has_target(w.id))
    return _percent(len(config.widgets), missing)


def owner_coverage(config: DashboardConfig) -> int:
    sources = config.data_sources.values()
    missing = sum(1 for ds in sources if not ds.owner.strip())
    return _percent(len(config.data_sources), missing)


def pii_coverage(config: DashboardConfig) -> int:
    missing = sum(1 for ds in config.data_sources.values() if not ds.pii_reviewed)
    return _percent(len(config.data_sources), missing)


def average_latency(latencies: Iterable[float]) -> int:
    recorded = [l for l in latencies if l is not None]
    if not recorded:
        return 0
    return _round_half_up(sum(recorded) / len(recorded))


def compute_coverage(config: DashboardConfig) -> CoverageMetrics:
    return CoverageMetrics(
        target_coverage=target_coverage(config),
        owner_coverage=owner_coverage(config),
        pii_coverage=pii_coverage(config),
        average_latency=average_latency(
            ds.latency_ms for ds in config.data_sources.values()
        ),
    )
