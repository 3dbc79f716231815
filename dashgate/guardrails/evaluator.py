"""
Guardrail Evaluator — the fixed pre-publish check battery.

Behavioral Contract:
- Accepts the draft, its CoverageMetrics and the SLA tracker's SlaHealth
- Runs every check in a stable order; each check appends zero or more findings
- Pure: identical inputs always yield an identical, identically ordered list
- Never raises for a failing check; findings are data
- Only HIGH findings block publish (enforced by the Publish Gate, not here)
"""

from collections import Counter
from dataclasses import dataclass
from typing import Callable, List, Optional

from dashgate.drift.detector import widget_sources
from dashgate.models.dashboard import DashboardConfig, Environment
from dashgate.models.guardrail import (
    CoverageMetrics,
    GuardrailFinding,
    Severity,
    SlaHealth,
)
from dashgate.models.pipeline import PipelineConfig


@dataclass(frozen=True)
class _CheckInput:
    draft: DashboardConfig
    coverage: CoverageMetrics
    sla: SlaHealth
    settings: PipelineConfig


def _names(items: List[str]) -> str:
    return ", ".join(items)


def _finding(check: str, severity: Severity, message: str, field: Optional[str] = None):
    return GuardrailFinding(check=check, severity=severity, message=message, field=field)


def _check_sandbox(ctx: _CheckInput) -> List[GuardrailFinding]:
    if ctx.draft.environment == Environment.DEV:
        return [_finding(
            "sandbox_active", Severity.MEDIUM,
            "Sandbox environment active: catalog fetches and share links are disabled",
            "environment",
        )]
    return []


def _check_empty(ctx: _CheckInput) -> List[GuardrailFinding]:
    findings = []
    if not ctx.draft.widgets:
        findings.append(_finding("no_widgets", Severity.HIGH, "No widgets added", "widgets"))
    if not ctx.draft.data_sources:
        findings.append(_finding(
            "no_data_sources", Severity.HIGH, "No data sources connected", "data_sources",
        ))
    return findings


def _check_duplicate_names(ctx: _CheckInput) -> List[GuardrailFinding]:
    counts = Counter(w.name for w in ctx.draft.widgets)
    duplicates = [name for name, n in counts.items() if n > 1]
    if duplicates:
        return [_finding(
            "duplicate_widget_names", Severity.MEDIUM,
            f"Duplicate widget names: {_names(duplicates)}", "widgets",
        )]
    return []


def _check_heavy(ctx: _CheckInput) -> List[GuardrailFinding]:
    count = len(ctx.draft.widgets)
    limit = ctx.settings.heavy_widget_threshold
    if count > limit:
        return [_finding(
            "heavy_dashboard", Severity.MEDIUM,
            f"Heavy dashboard: {count} widgets (limit {limit})", "widgets",
        )]
    return []


def _check_complexity(ctx: _CheckInput) -> List[GuardrailFinding]:
    score = len(ctx.draft.widgets) * 2 + len(ctx.draft.data_sources)
    budget = ctx.settings.complexity_budget
    if score > budget:
        return [_finding(
            "complexity_budget", Severity.MEDIUM,
            f"Complexity score {score} exceeds performance budget of {budget}",
        )]
    return []


def _check_grid(ctx: _CheckInput) -> List[GuardrailFinding]:
    minimum = ctx.settings.min_grid_columns
    if ctx.draft.grid_columns < minimum:
        return [_finding(
            "narrow_grid", Severity.LOW,
            f"Grid has {ctx.draft.grid_columns} column(s); use at least {minimum}",
            "grid_columns",
        )]
    return []


def _check_stale_sources(ctx: _CheckInput) -> List[GuardrailFinding]:
    stale_set = set(ctx.sla.stale_sources)
    stale = [n for n in ctx.draft.data_sources if n in stale_set]
    if stale:
        return [_finding(
            "stale_sources", Severity.HIGH,
            f"Stale data sources: {_names(stale)}", "data_sources",
        )]
    return []


def _check_missing_targets(ctx: _CheckInput) -> List[GuardrailFinding]:
    missing = [w.name for w in ctx.draft.widgets if not ctx.draft.has_target(w.id)]
    if missing:
        return [_finding(
            "missing_targets", Severity.MEDIUM,
            f"Widgets missing targets: {_names(missing)}", "targets",
        )]
    return []


def _check_latency(ctx: _CheckInput) -> List[GuardrailFinding]:
    avg = ctx.coverage.average_latency
    budget = ctx.sla.perf_budget_ms
    if avg > budget * 1.2:
        return [_finding(
            "latency_over_budget", Severity.HIGH,
            f"Average latency {avg}ms exceeds budget {budget:g}ms by more than 20%",
        )]
    if avg > budget:
        return [_finding(
            "latency_over_budget", Severity.MEDIUM,
            f"Average latency {avg}ms is over budget {budget:g}ms",
        )]
    return []


def _check_load_test(ctx: _CheckInput) -> List[GuardrailFinding]:
    if ctx.sla.load_test_active:
        return [_finding("load_test_active", Severity.LOW, "Simulated load test active")]
    return []


def _check_metadata(ctx: _CheckInput) -> List[GuardrailFinding]:
    findings = []
    meta = ctx.draft.metadata
    minimum = ctx.settings.min_title_length
    if len(meta.title.strip()) < minimum:
        findings.append(_finding(
            "short_title", Severity.LOW,
            f"Title missing or shorter than {minimum} characters", "metadata.title",
        ))
    if not meta.owner.strip():
        findings.append(_finding(
            "missing_owner", Severity.LOW, "Dashboard owner missing", "metadata.owner",
        ))
    return findings


def _watched_widgets(draft: DashboardConfig):
    watched = set(draft.watchlist)
    return [w for w in draft.widgets if w.id in watched]


def _check_watchlist_targets(ctx: _CheckInput) -> List[GuardrailFinding]:
    missing = [w.name for w in _watched_widgets(ctx.draft) if not ctx.draft.has_target(w.id)]
    if missing:
        return [_finding(
            "watchlist_missing_targets", Severity.HIGH,
            f"Watchlisted widgets missing targets: {_names(missing)}", "watchlist",
        )]
    return []


def _check_watchlist_sources(ctx: _CheckInput) -> List[GuardrailFinding]:
    stale = set(ctx.sla.stale_sources)
    flagged = []
    for widget in _watched_widgets(ctx.draft):
        sources = widget_sources(widget, ctx.draft.data_sources.keys())
        if not sources or any(s in stale for s in sources):
            flagged.append(widget.name)
    if flagged:
        return [_finding(
            "watchlist_sources_at_risk", Severity.MEDIUM,
            f"Watchlisted widgets with stale or unbound sources: {_names(flagged)}",
            "watchlist",
        )]
    return []


def _check_source_owners(ctx: _CheckInput) -> List[GuardrailFinding]:
    missing = [n for n, ds in ctx.draft.data_sources.items() if not ds.owner.strip()]
    if missing:
        return [_finding(
            "sources_missing_owner", Severity.MEDIUM,
            f"Data sources missing owners: {_names(missing)}", "data_sources",
        )]
    return []


def _check_sla_breach(ctx: _CheckInput) -> List[GuardrailFinding]:
    if ctx.sla.sla_breach_simulated and ctx.draft.watchlist:
        return [_finding(
            "sla_breach_simulated", Severity.HIGH,
            "SLA breach simulation active on watchlisted widgets", "watchlist",
        )]
    return []


# Evaluation order is part of the contract.
CHECKS: List[Callable[[_CheckInput], List[GuardrailFinding]]] = [
    _check_sandbox,
    _check_empty,
    _check_duplicate_names,
    _check_heavy,
    _check_complexity,
    _check_grid,
    _check_stale_sources,
    _check_missing_targets,
    _check_latency,
    _check_load_test,
    _check_metadata,
    _check_watchlist_targets,
    _check_watchlist_sources,
    _check_source_owners,
    _check_sla_breach,
]


def has_blocking(findings: List[GuardrailFinding]) -> bool:
    return any(f.severity == Severity.HIGH for f in findings)


def summarize(findings: List[GuardrailFinding]) -> str:
    """Serialized summary carried on audit entries."""
    counts = Counter(f.severity for f in findings)
    return " ".join(f"{s.value}={counts.get(s, 0)}" for s in Severity)


class GuardrailEvaluator:
    """Runs the check battery. Holds only immutable settings."""

    def __init__(self, settings: Optional[PipelineConfig] = None):
        self.settings = settings or PipelineConfig()

    def evaluate(
        self,
        draft: DashboardConfig,
        coverage: CoverageMetrics,
        sla_health: SlaHealth,
    ) -> List[GuardrailFinding]:
        ctx = _CheckInput(draft=draft, coverage=coverage, sla=sla_health, settings=self.settings)
        findings: List[GuardrailFinding] = []
        for check in CHECKS:
            findings.extend(check(ctx))
        return findings
