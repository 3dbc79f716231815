"""
Draft Session — the live editing state and the pipeline's public surface.

Owns the draft, the SLA tracker, the version store, the audit log and the
publish gate, and wires them together:

  edit → (autosave on timer) → evaluate → publish → version + drift + audit

Single editor per dashboard. The edit lock is a cooperative flag checked at
the call site of every draft mutation and of publish; it is not an
access-control primitive. Review transitions (request_review, approve,
request_changes) and freeze/unfreeze are reviewer and operator actions on
publish state, not draft edits, so they stay available while locked.
"""

import random
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import uuid4

from dashgate.audit.log import AuditLog
from dashgate.core.errors import (
    CatalogFetchError,
    DataSourceNotFoundError,
    EditLockedError,
    PersistenceError,
    SandboxRestrictionError,
    VersionNotFoundError,
    WidgetNotFoundError,
)
from dashgate.core.logging import get_logger
from dashgate.coverage.calculator import compute_coverage
from dashgate.drift.detector import dependency_graph, environment_drift, unbound_sources
from dashgate.guardrails.evaluator import GuardrailEvaluator
from dashgate.integrations.catalog import CatalogClient, FetchOutcome, classify_error
from dashgate.integrations.webhook import WebhookNotifier
from dashgate.models.dashboard import (
    DashboardConfig,
    DashboardMetadata,
    DataSource,
    DraftPatch,
    Environment,
    Widget,
)
from dashgate.models.guardrail import CoverageMetrics, GuardrailFinding, SlaHealth
from dashgate.models.persistence import AutosaveResult, DraftEnvelope
from dashgate.models.pipeline import PipelineConfig
from dashgate.models.publish import DriftDiff, PublishResult
from dashgate.models.version import Version
from dashgate.persistence.autosave import AutosaveLoop
from dashgate.persistence.store import DraftStore
from dashgate.publish.gate import PublishGate
from dashgate.session.export import build_export, parse_export
from dashgate.session.templates import TEMPLATES
from dashgate.sla.tracker import SlaHealthTracker
from dashgate.versions.store import VersionStore

logger = get_logger(__name__)

VIEWER_ROLE = "viewer"


class DraftSession:
    def __init__(
        self,
        settings: Optional[PipelineConfig] = None,
        store: Optional[DraftStore] = None,
        catalog: Optional[CatalogClient] = None,
        webhook: Optional[WebhookNotifier] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or PipelineConfig()
        self.draft = DashboardConfig()
        self.runbook = ""
        self.escalation_target = ""

        self.store = store or DraftStore(self.settings.db_path)
        if catalog is None and self.settings.catalog_base_url:
            catalog = CatalogClient(
                self.settings.catalog_base_url, self.settings.catalog_timeout_seconds
            )
        self.catalog = catalog
        self.tracker = SlaHealthTracker(self.settings, rng)
        self.evaluator = GuardrailEvaluator(self.settings)
        self.audit = AuditLog(self.settings.audit_capacity)
        self.versions = VersionStore(self.settings.max_versions)
        self.gate = PublishGate(
            settings=self.settings,
            version_store=self.versions,
            audit_log=self.audit,
            evaluator=self.evaluator,
            webhook=webhook or WebhookNotifier(self.settings.webhook_success_rate, rng),
        )

        self.role = "editor"
        self.edit_locked = False
        self.unsaved = False
        self.draft_saved_at: Optional[datetime] = None
        self.persistence_error: Optional[str] = None
        self.last_fetch_error: Optional[str] = None

    # --- Lock ---

    def lock(self) -> None:
        self.edit_locked = True

    def unlock(self) -> None:
        self.edit_locked = False

    def set_role(self, role: str) -> None:
        self.role = role

    def _guard(self, operation: str) -> None:
        if self.edit_locked or self.role == VIEWER_ROLE:
            raise EditLockedError(operation)

    def _touched(self, structural: bool = True) -> None:
        """Mark the draft dirty; structural edits invalidate a granted approval."""
        self.unsaved = True
        if structural and self.settings.revoke_approval_on_edit:
            self.gate.revoke_approval("draft edited after approval")

    # --- Draft read/write ---

    def get_draft(self) -> DashboardConfig:
        return self.draft.model_copy(deep=True)

    def set_draft(self, patch: DraftPatch) -> DashboardConfig:
        self._guard("set_draft")
        updates = patch.model_dump(exclude_unset=True)
        if not updates:
            return self.get_draft()
        patch = patch.model_copy(deep=True)
        for field in updates:
            setattr(self.draft, field, getattr(patch, field))
        self.draft.watchlist = list(dict.fromkeys(self.draft.watchlist))
        self._touched(structural=bool({"widgets", "data_sources", "metadata"} & updates.keys()))
        return self.get_draft()

    def add_widget(
        self,
        name: str,
        source_hint: Optional[str] = None,
        source_refs: Optional[List[str]] = None,
    ) -> Widget:
        self._guard("add_widget")
        widget = Widget(
            id=f"w_{uuid4().hex[:10]}",
            name=name,
            source_hint=source_hint,
            source_refs=source_refs or [],
        )
        self.draft.widgets.append(widget)
        self._touched()
        return widget

    def remove_widget(self, widget_id: str) -> None:
        self._guard("remove_widget")
        if self.draft.widget_by_id(widget_id) is None:
            raise WidgetNotFoundError(widget_id)
        self.draft.widgets = [w for w in self.draft.widgets if w.id != widget_id]
        self.draft.targets.pop(widget_id, None)
        self.draft.watchlist = [w for w in self.draft.watchlist if w != widget_id]
        self._touched()

    def apply_template(self, template: str) -> List[Widget]:
        self._guard("apply_template")
        if template not in TEMPLATES:
            raise KeyError(template)
        added = [
            self.add_widget(name, source_hint=f"template:{template}", source_refs=refs)
            for name, refs in TEMPLATES[template]
        ]
        logger.info("template_applied", template=template, widgets=len(added))
        return added

    def set_target(self, widget_id: str, target: str) -> None:
        self._guard("set_target")
        if self.draft.widget_by_id(widget_id) is None:
            raise WidgetNotFoundError(widget_id)
        if target.strip():
            self.draft.targets[widget_id] = target
        else:
            self.draft.targets.pop(widget_id, None)
        self._touched(structural=False)

    def watch(self, widget_id: str) -> None:
        self._guard("watch")
        if self.draft.widget_by_id(widget_id) is None:
            raise WidgetNotFoundError(widget_id)
        if widget_id not in self.draft.watchlist:
            self.draft.watchlist.append(widget_id)
        self._touched(structural=False)

    def unwatch(self, widget_id: str) -> None:
        self._guard("unwatch")
        self.draft.watchlist = [w for w in self.draft.watchlist if w != widget_id]
        self._touched(structural=False)

    def add_data_source(
        self,
        name: str,
        owner: str = "",
        pii_reviewed: bool = False,
        current_time: Optional[datetime] = None,
    ) -> DataSource:
        self._guard("add_data_source")
        source = DataSource(name=name, owner=owner, pii_reviewed=pii_reviewed)
        self.draft.data_sources[name] = source
        self.tracker.initialize(self.draft, [name], current_time)
        self._touched()
        return source

    def _data_source(self, name: str) -> DataSource:
        source = self.draft.data_sources.get(name)
        if source is None:
            raise DataSourceNotFoundError(name)
        return source

    def update_data_source(
        self,
        name: str,
        owner: Optional[str] = None,
        pii_reviewed: Optional[bool] = None,
    ) -> DataSource:
        self._guard("update_data_source")
        source = self._data_source(name)
        if owner is not None:
            source.owner = owner
        if pii_reviewed is not None:
            source.pii_reviewed = pii_reviewed
        self._touched()
        return source

    def remove_data_source(self, name: str) -> None:
        self._guard("remove_data_source")
        self._data_source(name)
        del self.draft.data_sources[name]
        self._touched()

    def set_metadata(
        self,
        title: Optional[str] = None,
        owner: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> DashboardMetadata:
        self._guard("set_metadata")
        meta = self.draft.metadata
        if title is not None:
            meta.title = title
        if owner is not None:
            meta.owner = owner
        if tags is not None:
            meta.tags = tags
        self._touched()
        return meta

    def set_environment(self, environment: Environment) -> None:
        self._guard("set_environment")
        self.draft.environment = environment
        self._touched(structural=False)

    def set_ancillary(
        self,
        runbook: Optional[str] = None,
        escalation_target: Optional[str] = None,
    ) -> None:
        self._guard("set_ancillary")
        if runbook is not None:
            self.runbook = runbook
        if escalation_target is not None:
            self.escalation_target = escalation_target
        self.unsaved = True

    # --- Catalog ---

    def _require_catalog(self, operation: str) -> CatalogClient:
        if self.draft.environment == Environment.DEV:
            raise SandboxRestrictionError(operation)
        if self.catalog is None:
            raise CatalogFetchError("No catalog configured", recovery=None)
        return self.catalog

    def _fetch_failed(self, error: CatalogFetchError) -> FetchOutcome:
        self.last_fetch_error = error.message
        action = classify_error(error.message)
        return FetchOutcome(ok=False, error=error.message, recovery=action)

    def load_widget_catalog(self) -> FetchOutcome:
        """Fetch widget templates. Adding them to the draft is a separate step."""
        try:
            items = self._require_catalog("load_widget_catalog").fetch_widgets()
        except CatalogFetchError as e:
            return self._fetch_failed(e)
        self.last_fetch_error = None
        return FetchOutcome(ok=True, items=items)

    def load_data_sources(self, current_time: Optional[datetime] = None) -> FetchOutcome:
        """Fetch the data-source catalog and initialize SLA tracking for new sources."""
        self._guard("load_data_sources")
        try:
            items = self._require_catalog("load_data_sources").fetch_data_sources()
        except CatalogFetchError as e:
            return self._fetch_failed(e)

        added = []
        for item in items:
            if item.name not in self.draft.data_sources:
                self.draft.data_sources[item.name] = DataSource(name=item.name)
                added.append(item.name)
        self.tracker.initialize(self.draft, added, current_time)
        self.last_fetch_error = None
        if added:
            self._touched()
        return FetchOutcome(ok=True, items=items, added=added)

    def reset_local_state(self) -> None:
        """Recovery action for corrupt local state: drop persisted blobs and the draft."""
        self._guard("reset_local_state")
        try:
            self.store.clear()
        except PersistenceError as e:
            self._record_persistence_error(e)
        self.draft = DashboardConfig()
        self.unsaved = False
        self.audit.append("Local state reset")

    # --- SLA ---

    def refresh_sources(
        self, names: Optional[List[str]] = None, current_time: Optional[datetime] = None
    ) -> List[str]:
        self._guard("refresh_sources")
        refreshed = self.tracker.refresh(self.draft, names, current_time)
        self._touched(structural=False)
        return refreshed

    def heal(self, current_time: Optional[datetime] = None) -> int:
        self._guard("heal")
        count = self.tracker.heal(self.draft, current_time)
        self.audit.append(f"Healed {count} data source(s)", current_time=current_time)
        self._touched(structural=False)
        return count

    def simulate_load(self) -> None:
        self._guard("simulate_load")
        self.tracker.simulate_load(self.draft)
        self._touched(structural=False)

    def stop_load_test(self) -> None:
        self.tracker.stop_load_test()

    def simulate_sla_breach(self, active: bool = True) -> None:
        self.tracker.simulate_sla_breach(active)

    def sla_health(self, current_time: Optional[datetime] = None) -> SlaHealth:
        return self.tracker.health(self.draft, current_time)

    # --- Derived views ---

    def coverage(self) -> CoverageMetrics:
        return compute_coverage(self.draft)

    def evaluate(self, current_time: Optional[datetime] = None) -> List[GuardrailFinding]:
        return self.evaluator.evaluate(
            self.draft, self.coverage(), self.sla_health(current_time)
        )

    def drift(self) -> DriftDiff:
        return environment_drift(self.draft, self.gate.state.last_published_snapshot)

    def dependencies(self) -> Dict[str, List[str]]:
        return dependency_graph(self.draft)

    def unbound_sources(self) -> List[str]:
        return unbound_sources(self.draft)

    # --- Review / freeze ---

    def request_review(self) -> bool:
        return self.gate.request_review()

    def approve(self, reviewer: Optional[str] = None) -> None:
        self.gate.approve(reviewer)

    def request_changes(self, reviewer: Optional[str] = None) -> None:
        self.gate.request_changes(reviewer)

    def freeze(self) -> None:
        self.gate.freeze()

    def unfreeze(self) -> None:
        self.gate.unfreeze()

    # --- Publish / rollback ---

    def publish(
        self,
        label: Optional[str] = None,
        notes: Optional[str] = None,
        current_time: Optional[datetime] = None,
    ) -> PublishResult:
        self._guard("publish")
        result = self.gate.publish(
            self.draft,
            self.coverage(),
            self.sla_health(current_time),
            label=label,
            notes=notes,
            current_time=current_time,
        )
        if result.success:
            self._persist_versions()
        return result

    def rollback(self, version_id: str) -> Version:
        """Seed the draft from a stored Version. Does not publish."""
        self._guard("rollback")
        version = self.versions.get(version_id)
        if version is None:
            raise VersionNotFoundError(version_id)
        copy = version.model_copy(deep=True)
        self.draft.widgets = list(copy.widgets)
        self.draft.data_sources = dict(copy.data_sources)
        self.draft.targets = dict(copy.targets)
        self.draft.metadata = copy.metadata
        ids = {w.id for w in self.draft.widgets}
        self.draft.watchlist = [w for w in self.draft.watchlist if w in ids]
        self._touched()
        self.audit.append(f"Rolled back draft to {version_id}")
        logger.info("rolled_back", version_id=version_id)
        return version

    def share_link(self) -> str:
        if self.draft.environment == Environment.DEV:
            raise SandboxRestrictionError("share_link")
        return f"/shared/{uuid4().hex[:16]}"

    # --- Export / import ---

    def export_snapshot(self, current_time: Optional[datetime] = None) -> dict:
        return build_export(
            self.draft,
            self.coverage(),
            self.evaluate(current_time),
            self.dependencies(),
            current_time,
        )

    def import_snapshot(self, raw) -> DashboardConfig:
        self._guard("import_snapshot")
        self.draft = parse_export(raw)
        self._touched()
        self.audit.append("Draft imported from snapshot")
        return self.get_draft()

    # --- Persistence ---

    def _record_persistence_error(
        self, error: PersistenceError, event: str = "persistence_failed"
    ) -> None:
        self.persistence_error = error.message
        logger.warning(event, key=error.key, error=error.message)

    def _persist_versions(self) -> None:
        try:
            self.store.save_versions(self.versions.list())
        except PersistenceError as e:
            self._record_persistence_error(e)

    def autosave(self, current_time: Optional[datetime] = None) -> AutosaveResult:
        now = current_time or datetime.now(timezone.utc)
        envelope = DraftEnvelope(
            draft=self.draft.model_copy(deep=True),
            runbook=self.runbook,
            escalation_target=self.escalation_target,
            saved_at=now,
        )
        try:
            self.store.save_draft(envelope)
        except PersistenceError as e:
            self._record_persistence_error(e, "autosave_failed")
            return AutosaveResult(saved=False, error=e.message)
        self.draft_saved_at = now
        self.unsaved = False
        self.persistence_error = None
        logger.debug("autosaved", saved_at=now.isoformat())
        return AutosaveResult(saved=True, saved_at=now)

    def autosave_loop(self) -> AutosaveLoop:
        """A timer loop that autosaves this session every configured interval."""
        return AutosaveLoop(self, self.settings.autosave_interval_seconds)

    def restore_draft(self) -> Optional[DashboardConfig]:
        """Seed the live draft from the autosave blob, if any. Publish state is untouched."""
        try:
            envelope = self.store.load_draft()
        except PersistenceError as e:
            self._record_persistence_error(e)
            return None
        if envelope is None:
            return None
        self.draft = envelope.draft
        self.runbook = envelope.runbook
        self.escalation_target = envelope.escalation_target
        self.draft_saved_at = envelope.saved_at
        self.unsaved = False
        self.audit.append("Draft restored from autosave")
        return self.get_draft()

    def restore_versions(self) -> List[Version]:
        try:
            versions = self.store.load_versions()
        except PersistenceError as e:
            self._record_persistence_error(e)
            return []
        self.versions.load(versions)
        self.gate.sync_from_versions()
        return self.versions.list()

    def status(self) -> dict:
        state = self.gate.state
        recovery = classify_error(self.last_fetch_error) if self.last_fetch_error else None
        return {
            "review_status": state.review_status.value,
            "maintenance_freeze": state.maintenance_freeze,
            "frozen": self.gate.is_frozen(),
            "published_at": state.published_at.isoformat() if state.published_at else None,
            "versions": len(self.versions),
            "edit_locked": self.edit_locked,
            "role": self.role,
            "unsaved": self.unsaved,
            "draft_saved_at": self.draft_saved_at.isoformat() if self.draft_saved_at else None,
            "persistence_error": self.persistence_error,
            "last_fetch_error": self.last_fetch_error,
            "recovery": recovery.value if recovery else None,
        }
