"""
Property tests for the publish pipeline.

- Gating: publish succeeds iff no freeze, review approved, no high finding,
  metadata complete and every data source PII-reviewed
- Coverage percentages stay within [0, 100]
- Evaluation is idempotent
- Drift is symmetric: swapping sides swaps added/removed
- The version store never holds more than five versions
- Export followed by import reproduces the draft
"""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings
from hypothesis import strategies as st

from dashgate.coverage.calculator import compute_coverage
from dashgate.drift.detector import diff
from dashgate.guardrails.evaluator import GuardrailEvaluator
from dashgate.integrations.webhook import WebhookNotifier
from dashgate.models.dashboard import (
    DashboardConfig,
    DashboardMetadata,
    DataSource,
    Widget,
)
from dashgate.models.pipeline import PipelineConfig
from dashgate.models.publish import PublishBlocker
from dashgate.publish.gate import PublishGate
from dashgate.session.export import build_export, parse_export
from dashgate.sla.tracker import SlaHealthTracker
from dashgate.versions.store import VersionStore

NOW = datetime(2026, 3, 2, 14, 30, tzinfo=timezone.utc)

name_strategy = st.text(
    min_size=1,
    max_size=12,
    alphabet=st.characters(whitelist_categories=("L", "N")),
)


@st.composite
def data_source_strategy(draw, name):
    return DataSource(
        name=name,
        owner=draw(st.sampled_from(["", "  ", "finance", "growth"])),
        pii_reviewed=draw(st.booleans()),
        freshness_timestamp=NOW - timedelta(minutes=draw(st.integers(0, 60 * 12))),
        latency_ms=draw(st.one_of(st.none(), st.floats(50, 900, allow_nan=False))),
    )


@st.composite
def config_strategy(draw):
    widget_names = draw(st.lists(name_strategy, max_size=8))
    widgets = [Widget(id=f"w{i}", name=n) for i, n in enumerate(widget_names)]
    source_names = draw(st.lists(name_strategy, max_size=5, unique=True))
    return DashboardConfig(
        widgets=widgets,
        data_sources={n: draw(data_source_strategy(n)) for n in source_names},
        targets={
            w.id: draw(st.sampled_from(["", "1M", "99%"]))
            for w in widgets if draw(st.booleans())
        },
        metadata=DashboardMetadata(
            title=draw(st.sampled_from(["", "Rev", "Revenue"])),
            owner=draw(st.sampled_from(["", "ana"])),
            tags=draw(st.sampled_from([[], ["finance"]])),
        ),
        watchlist=[w.id for w in widgets if draw(st.booleans())],
    )


def _publishable() -> DashboardConfig:
    return DashboardConfig(
        widgets=[Widget(id="w1", name="Revenue Overview", source_refs=["Orders"])],
        data_sources={
            "Orders": DataSource(
                name="Orders",
                owner="finance",
                pii_reviewed=True,
                freshness_timestamp=NOW,
                latency_ms=200,
            ),
        },
        metadata=DashboardMetadata(title="Revenue", owner="ana", tags=["finance"]),
        targets={"w1": "1M"},
    )


class TestGatingProperty:
    @settings(max_examples=64)
    @given(
        frozen=st.booleans(),
        approved=st.booleans(),
        high_finding=st.booleans(),
        metadata_complete=st.booleans(),
        pii_reviewed=st.booleans(),
    )
    def test_publish_iff_all_preconditions(
        self, frozen, approved, high_finding, metadata_complete, pii_reviewed
    ):
        draft = _publishable()
        if high_finding:
            draft.data_sources["Orders"].freshness_timestamp = NOW - timedelta(days=1)
        if not metadata_complete:
            draft.metadata.tags = []
        draft.data_sources["Orders"].pii_reviewed = pii_reviewed

        versions = VersionStore()
        gate = PublishGate(version_store=versions, webhook=WebhookNotifier(success_rate=1.0))
        if frozen:
            gate.freeze()
        if approved:
            gate.approve()

        health = SlaHealthTracker(PipelineConfig()).health(draft, NOW)
        result = gate.publish(draft, compute_coverage(draft), health, current_time=NOW)

        expected = (
            not frozen and approved and not high_finding and metadata_complete and pii_reviewed
        )
        assert result.success == expected
        assert len(versions) == (1 if expected else 0)
        if frozen:
            assert result.blockers == [PublishBlocker.MAINTENANCE_FREEZE]
        elif not expected:
            assert result.reasons


class TestCoverageProperties:
    @given(config=config_strategy())
    def test_bounds(self, config):
        metrics = compute_coverage(config)
        for value in (metrics.target_coverage, metrics.owner_coverage, metrics.pii_coverage):
            assert 0 <= value <= 100

    @given(config=config_strategy())
    def test_evaluate_idempotent(self, config):
        settings_ = PipelineConfig()
        health = SlaHealthTracker(settings_).health(config, NOW)
        evaluator = GuardrailEvaluator(settings_)
        coverage = compute_coverage(config)
        assert evaluator.evaluate(config, coverage, health) == evaluator.evaluate(
            config, coverage, health
        )


class TestDriftProperties:
    @given(
        current=st.lists(name_strategy, max_size=10),
        previous=st.lists(name_strategy, max_size=10),
    )
    def test_symmetry(self, current, previous):
        forward = diff(current, previous)
        backward = diff(previous, current)
        assert set(forward.added) == set(backward.removed)
        assert set(forward.removed) == set(backward.added)
        assert not set(forward.added) & set(previous)


class TestVersionBound:
    @given(n=st.integers(0, 20))
    def test_never_more_than_five(self, n):
        store = VersionStore(max_versions=5)
        for _ in range(n):
            store.record(DashboardConfig())
        assert len(store) == min(n, 5)


class TestExportRoundTrip:
    @given(config=config_strategy())
    def test_round_trip(self, config):
        exported = build_export(config, compute_coverage(config), [], {}, NOW)
        assert parse_export(exported) == config
