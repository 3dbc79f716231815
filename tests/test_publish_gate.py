"""Tests for the Publish Gate."""

import threading
from datetime import datetime, timedelta, timezone

from dashgate.audit.log import AuditLog
from dashgate.coverage.calculator import compute_coverage
from dashgate.integrations.webhook import WebhookNotifier
from dashgate.models.dashboard import (
    DashboardConfig,
    DashboardMetadata,
    DataSource,
    Widget,
)
from dashgate.models.guardrail import SlaHealth
from dashgate.models.pipeline import PipelineConfig
from dashgate.models.publish import PublishBlocker, ReviewStatus
from dashgate.publish.gate import PublishGate
from dashgate.sla.tracker import SlaHealthTracker
from dashgate.versions.store import VersionStore

NOW = datetime(2026, 3, 2, 14, 30, tzinfo=timezone.utc)   # Monday


def _make_publishable() -> DashboardConfig:
    return DashboardConfig(
        widgets=[Widget(id="w1", name="Revenue Overview", source_refs=["Orders"])],
        data_sources={
            "Orders": DataSource(
                name="Orders",
                owner="finance",
                pii_reviewed=True,
                freshness_timestamp=NOW - timedelta(minutes=5),
                latency_ms=210,
            ),
        },
        metadata=DashboardMetadata(title="Revenue", owner="ana", tags=["finance"]),
        targets={"w1": "1M/day"},
    )


def _health(draft: DashboardConfig) -> SlaHealth:
    return SlaHealthTracker(PipelineConfig()).health(draft, NOW)


class TestReviewTransitions:
    def setup_method(self):
        self.gate = PublishGate()

    def test_request_from_pending(self):
        assert self.gate.request_review()
        assert self.gate.state.review_status == ReviewStatus.REQUESTED

    def test_request_is_noop_when_requested_or_approved(self):
        self.gate.request_review()
        assert not self.gate.request_review()
        self.gate.approve("rev")
        assert not self.gate.request_review()
        assert self.gate.state.review_status == ReviewStatus.APPROVED

    def test_request_from_changes(self):
        self.gate.request_changes("rev")
        assert self.gate.request_review()

    def test_revoke_only_from_approved(self):
        assert not self.gate.revoke_approval("edit")
        self.gate.approve()
        assert self.gate.revoke_approval("edit")
        assert self.gate.state.review_status == ReviewStatus.CHANGES

    def test_transitions_are_audited(self):
        self.gate.request_review()
        self.gate.approve("rev")
        messages = [e.message for e in self.gate.audit.entries()]
        assert messages == ["Review requested", "Approved by rev"]


class TestFreeze:
    def test_manual_freeze(self):
        gate = PublishGate()
        gate.freeze()
        assert gate.is_frozen(NOW)
        gate.unfreeze()
        assert not gate.is_frozen(NOW)

    def test_cron_freeze_window(self):
        gate = PublishGate(PipelineConfig(freeze_schedules=["* 14 * * 1"]))
        assert gate.is_frozen(NOW)
        assert not gate.is_frozen(NOW + timedelta(hours=2))

    def test_invalid_cron_is_ignored(self):
        gate = PublishGate(PipelineConfig(freeze_schedules=["not a cron"]))
        assert not gate.is_frozen(NOW)


class TestPublishGate:
    def setup_method(self):
        self.versions = VersionStore()
        self.audit = AuditLog()
        self.gate = PublishGate(
            version_store=self.versions,
            audit_log=self.audit,
            webhook=WebhookNotifier(success_rate=1.0),
        )
        self.draft = _make_publishable()

    def test_empty_collaborators_are_kept(self):
        # An empty store or log is falsy; the gate must still write to it.
        assert self.gate.versions is self.versions
        assert self.gate.audit is self.audit

    def test_sync_from_versions(self):
        self.versions.record(self.draft, current_time=NOW)
        self.gate.sync_from_versions()
        assert self.gate.state.published_at == NOW
        assert list(self.gate.state.last_published_snapshot.data_sources) == ["Orders"]

        self.gate.versions.load([])
        self.gate.sync_from_versions()
        assert self.gate.state.last_published_snapshot is None
        assert self.gate.state.published_at is None

    def _publish(self, draft=None):
        draft = draft or self.draft
        return self.gate.publish(draft, compute_coverage(draft), _health(draft), current_time=NOW)

    def test_unapproved_is_blocked(self):
        result = self._publish()
        assert not result.success
        assert result.blockers == [PublishBlocker.REVIEW_NOT_APPROVED]
        assert result.reasons == ["Review status is 'pending'; approval required"]
        assert len(self.versions) == 0

    def test_freeze_fails_fast(self):
        self.gate.approve()
        self.gate.freeze()
        result = self._publish(DashboardConfig())
        assert result.blockers == [PublishBlocker.MAINTENANCE_FREEZE]
        assert result.findings == []

    def test_all_blockers_reported(self):
        draft = DashboardConfig(data_sources={"Orders": DataSource(name="Orders")})
        result = self._publish(draft)
        assert set(result.blockers) == {
            PublishBlocker.REVIEW_NOT_APPROVED,
            PublishBlocker.HIGH_SEVERITY_FINDINGS,
            PublishBlocker.INCOMPLETE_METADATA,
            PublishBlocker.PII_UNREVIEWED,
        }
        assert "Metadata incomplete: missing title, owner, tags" in result.reasons
        assert "PII review pending for data sources: Orders" in result.reasons
        assert "High-severity guardrail: No widgets added" in result.reasons

    def test_failed_publish_mutates_nothing(self):
        before = self.gate.state.model_copy(deep=True)
        audit_before = len(self.audit)
        self._publish()
        assert self.gate.state == before
        assert len(self.audit) == audit_before

    def test_successful_publish(self):
        self.gate.approve()
        result = self._publish()
        assert result.success
        assert result.reasons == []
        assert result.diff.added == ["Revenue Overview"]
        assert result.webhook.success
        assert self.versions.latest() == result.version
        assert self.gate.state.published_at == NOW
        assert list(self.gate.state.last_published_snapshot.data_sources) == ["Orders"]
        last = self.audit.recent(1)[0]
        assert last.message == f"Published {result.version.id} (+1/-0 widgets)"
        assert last.guardrail_summary == "high=0 medium=0 low=0"
        assert last.sla_snapshot.startswith("avg=210ms")

    def test_snapshot_is_isolated_from_draft(self):
        self.gate.approve()
        self._publish()
        self.draft.data_sources["Traffic"] = DataSource(name="Traffic")
        assert "Traffic" not in self.gate.state.last_published_snapshot.data_sources

    def test_second_publish_diff(self):
        self.gate.approve()
        self._publish()
        self.draft.widgets.append(Widget(id="w2", name="Orders Today", source_refs=["Orders"]))
        self.draft.targets["w2"] = "500"
        result = self._publish()
        assert result.diff.added == ["Orders Today"]
        assert len(self.versions) == 2

    def test_webhook_failure_keeps_publish(self):
        self.gate.webhook = WebhookNotifier(success_rate=0.0)
        self.gate.approve()
        result = self._publish()
        assert result.success
        assert not result.webhook.success
        assert len(self.versions) == 1

    def test_check_is_pure(self):
        findings = []
        check = self.gate.check(self.draft, findings, NOW)
        assert not check.passed
        assert self.gate.state.review_status == ReviewStatus.PENDING

    def test_concurrent_publishes_serialize(self):
        self.gate.approve()
        results = []

        def worker():
            results.append(self._publish())

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert all(r.success for r in results)
        assert len({r.version.id for r in results}) == 4
        # Each commit sees the previous one: only the first reports an addition
        assert sum(1 for r in results if r.diff.added) == 1
