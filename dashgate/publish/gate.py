"""
Publish Gate — promotes the draft to a published Version.

Externally observable transitions:
  review:  pending|changes → requested → approved (or → changes)
  freeze:  maintenance_freeze on/off, plus cron-scheduled freeze windows
  publish: Draft → Published, only when every precondition holds

Behavioral Contract:
- A failed publish mutates nothing and returns every blocking reason
- While frozen, publish fails fast without running the evaluator
- A successful publish records a Version, replaces last_published_snapshot,
  stamps published_at, appends one audit entry and computes the preview diff
- The webhook runs after commit; its failure is reported, never rolled back
- Gate check and commit run under one lock so two concurrent publishes
  cannot both pass the gate against divergent state
"""

import threading
from datetime import datetime, timezone
from typing import List, Optional

from croniter import croniter

from dashgate.audit.log import AuditLog, format_sla_snapshot
from dashgate.core.logging import get_logger
from dashgate.drift.detector import publish_preview_diff
from dashgate.guardrails.evaluator import GuardrailEvaluator, summarize
from dashgate.integrations.webhook import WebhookNotifier
from dashgate.models.dashboard import DashboardConfig
from dashgate.models.guardrail import (
    CoverageMetrics,
    GuardrailFinding,
    Severity,
    SlaHealth,
)
from dashgate.models.pipeline import PipelineConfig
from dashgate.models.publish import (
    GateCheck,
    PublishBlocker,
    PublishedSnapshot,
    PublishResult,
    PublishState,
    ReviewStatus,
)
from dashgate.versions.store import VersionStore

logger = get_logger(__name__)


def _schedule_active(schedule: str, current_time: datetime) -> bool:
    try:
        return croniter.match(schedule, current_time)
    except (ValueError, KeyError):
        logger.warning("invalid_freeze_schedule", schedule=schedule)
        return False


class PublishGate:
    def __init__(
        self,
        settings: Optional[PipelineConfig] = None,
        version_store: Optional[VersionStore] = None,
        audit_log: Optional[AuditLog] = None,
        evaluator: Optional[GuardrailEvaluator] = None,
        webhook: Optional[WebhookNotifier] = None,
    ):
        # Stores define __len__, so an empty one is falsy; test against None.
        self.settings = settings if settings is not None else PipelineConfig()
        self.versions = (
            version_store if version_store is not None
            else VersionStore(self.settings.max_versions)
        )
        self.audit = audit_log if audit_log is not None else AuditLog(self.settings.audit_capacity)
        self.evaluator = evaluator if evaluator is not None else GuardrailEvaluator(self.settings)
        self.webhook = webhook
        self.state = PublishState()
        self._lock = threading.Lock()

    # --- Review ---

    def request_review(self) -> bool:
        if self.state.review_status not in (ReviewStatus.PENDING, ReviewStatus.CHANGES):
            return False
        self.state.review_status = ReviewStatus.REQUESTED
        self.audit.append("Review requested")
        return True

    def approve(self, reviewer: Optional[str] = None) -> None:
        self.state.review_status = ReviewStatus.APPROVED
        self.audit.append(f"Approved by {reviewer}" if reviewer else "Approved")

    def request_changes(self, reviewer: Optional[str] = None) -> None:
        self.state.review_status = ReviewStatus.CHANGES
        self.audit.append(f"Changes requested by {reviewer}" if reviewer else "Changes requested")

    def revoke_approval(self, reason: str) -> bool:
        """approved → changes; no-op in any other state."""
        if self.state.review_status != ReviewStatus.APPROVED:
            return False
        self.state.review_status = ReviewStatus.CHANGES
        self.audit.append(f"Approval revoked: {reason}")
        logger.info("approval_revoked", reason=reason)
        return True

    # --- Freeze ---

    def freeze(self) -> None:
        self.state.maintenance_freeze = True
        self.audit.append("Maintenance freeze enabled")

    def unfreeze(self) -> None:
        self.state.maintenance_freeze = False
        self.audit.append("Maintenance freeze lifted")

    def is_frozen(self, current_time: Optional[datetime] = None) -> bool:
        if self.state.maintenance_freeze:
            return True
        now = current_time or datetime.now(timezone.utc)
        return any(_schedule_active(s, now) for s in self.settings.freeze_schedules)

    def sync_from_versions(self) -> None:
        """Re-derive the published snapshot and published_at from the newest Version."""
        latest = self.versions.latest()
        if latest is None:
            self.state.last_published_snapshot = None
            self.state.published_at = None
            return
        snapshot = latest.model_copy(deep=True)
        self.state.last_published_snapshot = PublishedSnapshot(
            widgets=snapshot.widgets,
            data_sources=snapshot.data_sources,
        )
        self.state.published_at = latest.timestamp

    # --- Gate ---

    def check(
        self,
        draft: DashboardConfig,
        findings: List[GuardrailFinding],
        current_time: Optional[datetime] = None,
    ) -> GateCheck:
        """Evaluate publish preconditions. Never mutates state."""
        if self.is_frozen(current_time):
            return GateCheck(
                blockers=[PublishBlocker.MAINTENANCE_FREEZE],
                reasons=["Maintenance freeze is active"],
            )

        blockers: List[PublishBlocker] = []
        reasons: List[str] = []

        status = self.state.review_status
        if status != ReviewStatus.APPROVED:
            blockers.append(PublishBlocker.REVIEW_NOT_APPROVED)
            reasons.append(f"Review status is '{status.value}'; approval required")

        high = [f for f in findings if f.severity == Severity.HIGH]
        if high:
            blockers.append(PublishBlocker.HIGH_SEVERITY_FINDINGS)
            reasons.extend(f"High-severity guardrail: {f.message}" for f in high)

        missing = draft.metadata.missing_fields()
        if missing:
            blockers.append(PublishBlocker.INCOMPLETE_METADATA)
            reasons.append(f"Metadata incomplete: missing {', '.join(missing)}")

        unreviewed = [n for n, ds in draft.data_sources.items() if not ds.pii_reviewed]
        if unreviewed:
            blockers.append(PublishBlocker.PII_UNREVIEWED)
            reasons.append(f"PII review pending for data sources: {', '.join(unreviewed)}")

        return GateCheck(blockers=blockers, reasons=reasons, findings=findings)

    def publish(
        self,
        draft: DashboardConfig,
        coverage: CoverageMetrics,
        sla_health: SlaHealth,
        label: Optional[str] = None,
        notes: Optional[str] = None,
        current_time: Optional[datetime] = None,
    ) -> PublishResult:
        now = current_time or datetime.now(timezone.utc)

        with self._lock:
            if self.is_frozen(now):
                logger.info("publish_blocked", blockers=[PublishBlocker.MAINTENANCE_FREEZE.value])
                return PublishResult(
                    success=False,
                    blockers=[PublishBlocker.MAINTENANCE_FREEZE],
                    reasons=["Maintenance freeze is active"],
                )

            findings = self.evaluator.evaluate(draft, coverage, sla_health)
            gate = self.check(draft, findings, now)
            if not gate.passed:
                logger.info(
                    "publish_blocked",
                    blockers=[b.value for b in gate.blockers],
                    findings=summarize(findings),
                )
                return PublishResult(
                    success=False,
                    reasons=gate.reasons,
                    blockers=gate.blockers,
                    findings=findings,
                )

            diff = publish_preview_diff(draft, self.versions.latest())
            version = self.versions.record(draft, label=label, notes=notes, current_time=now)
            snapshot = draft.model_copy(deep=True)
            self.state.last_published_snapshot = PublishedSnapshot(
                widgets=snapshot.widgets,
                data_sources=snapshot.data_sources,
            )
            self.state.published_at = now
            self.audit.append(
                f"Published {version.id} (+{len(diff.added)}/-{len(diff.removed)} widgets)",
                guardrail_summary=summarize(findings),
                sla_snapshot=format_sla_snapshot(sla_health),
                current_time=now,
            )
            logger.info(
                "published",
                version_id=version.id,
                added=diff.added,
                removed=diff.removed,
            )

        webhook_result = self.webhook.notify(version) if self.webhook else None
        if webhook_result is not None and not webhook_result.success:
            logger.warning("webhook_failed", version_id=version.id)

        return PublishResult(
            success=True,
            diff=diff,
            version=version,
            webhook=webhook_result,
            findings=findings,
        )
