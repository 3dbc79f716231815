"""
Dashgate API — FastAPI endpoints over a DraftSession.

Exposes the publish pipeline via a REST API for:
- Draft editing (widgets, data sources, targets, metadata, templates)
- Guardrails, coverage, drift and dependency inspection
- Review, maintenance freeze and publish
- Version history, rollback and audit trail
- Export/import, autosave/restore
- SLA simulation controls and the edit lock
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dashgate.core.errors import (
    DashgateError,
    DataSourceNotFoundError,
    EditLockedError,
    SandboxRestrictionError,
    SnapshotIntegrityError,
    VersionNotFoundError,
    WidgetNotFoundError,
)
from dashgate.core.logging import configure_logging
from dashgate.models.dashboard import DashboardMetadata, DraftPatch, Environment
from dashgate.models.pipeline import PipelineConfig
from dashgate.session.draft import DraftSession
from dashgate.session.templates import TEMPLATES


# --- Request/Response Models ---

class WidgetCreateRequest(BaseModel):
    name: str
    source_hint: Optional[str] = None
    source_refs: List[str] = []


class TargetRequest(BaseModel):
    target: str


class DataSourceCreateRequest(BaseModel):
    name: str
    owner: str = ""
    pii_reviewed: bool = False


class DataSourceUpdateRequest(BaseModel):
    owner: Optional[str] = None
    pii_reviewed: Optional[bool] = None


class MetadataRequest(BaseModel):
    title: Optional[str] = None
    owner: Optional[str] = None
    tags: Optional[List[str]] = None


class EnvironmentRequest(BaseModel):
    environment: Environment


class ReviewRequest(BaseModel):
    reviewer: Optional[str] = None


class PublishRequest(BaseModel):
    label: Optional[str] = None
    notes: Optional[str] = None


class RefreshRequest(BaseModel):
    names: Optional[List[str]] = None


class RoleRequest(BaseModel):
    role: str


class ImportRequest(BaseModel):
    snapshot: Dict[str, Any]


_STATUS_CODES = {
    EditLockedError: 423,
    SandboxRestrictionError: 403,
    VersionNotFoundError: 404,
    DataSourceNotFoundError: 404,
    WidgetNotFoundError: 404,
    SnapshotIntegrityError: 422,
}


# --- Application Factory ---

def create_app(
    session: Optional[DraftSession] = None,
    config: Optional[PipelineConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(
        title="Dashgate API",
        description="Dashboard configuration guardrail and publish pipeline",
        version="0.1.0",
    )

    ds = session or DraftSession(settings=config or PipelineConfig.from_env())
    settings = ds.settings
    configure_logging(settings.log_level, settings.log_json, settings.log_file)

    # Store components on app state for access in endpoints
    app.state.session = ds
    app.state.config = settings

    @app.exception_handler(DashgateError)
    async def handle_dashgate_error(request: Request, exc: DashgateError):
        status = _STATUS_CODES.get(type(exc), 400)
        return JSONResponse(
            status_code=status,
            content={"error_code": exc.error_code, "detail": exc.message, "details": exc.details},
        )

    # === DRAFT ===

    @app.get("/draft")
    def get_draft():
        return ds.get_draft().model_dump(mode="json")

    @app.patch("/draft")
    def patch_draft(patch: DraftPatch):
        return ds.set_draft(patch).model_dump(mode="json")

    @app.put("/draft/metadata")
    def set_metadata(req: MetadataRequest):
        meta: DashboardMetadata = ds.set_metadata(req.title, req.owner, req.tags)
        return meta.model_dump(mode="json")

    @app.put("/draft/environment")
    def set_environment(req: EnvironmentRequest):
        ds.set_environment(req.environment)
        return {"environment": req.environment.value}

    # === WIDGETS ===

    @app.post("/widgets")
    def add_widget(req: WidgetCreateRequest):
        widget = ds.add_widget(req.name, req.source_hint, req.source_refs)
        return widget.model_dump(mode="json")

    @app.delete("/widgets/{widget_id}")
    def remove_widget(widget_id: str):
        ds.remove_widget(widget_id)
        return {"status": "removed", "widget_id": widget_id}

    @app.put("/widgets/{widget_id}/target")
    def set_target(widget_id: str, req: TargetRequest):
        ds.set_target(widget_id, req.target)
        return {"widget_id": widget_id, "target": req.target}

    @app.post("/widgets/{widget_id}/watch")
    def watch_widget(widget_id: str):
        ds.watch(widget_id)
        return {"watchlist": ds.draft.watchlist}

    @app.delete("/widgets/{widget_id}/watch")
    def unwatch_widget(widget_id: str):
        ds.unwatch(widget_id)
        return {"watchlist": ds.draft.watchlist}

    @app.get("/templates")
    def list_templates():
        return {name: [w for w, _ in widgets] for name, widgets in TEMPLATES.items()}

    @app.post("/templates/{template}")
    def apply_template(template: str):
        if template not in TEMPLATES:
            raise HTTPException(404, "Template not found")
        return [w.model_dump(mode="json") for w in ds.apply_template(template)]

    @app.post("/catalog/widgets")
    def load_widget_catalog():
        return ds.load_widget_catalog().model_dump(mode="json")

    # === DATA SOURCES ===

    @app.post("/data-sources")
    def add_data_source(req: DataSourceCreateRequest):
        source = ds.add_data_source(req.name, req.owner, req.pii_reviewed)
        return source.model_dump(mode="json")

    @app.patch("/data-sources/{name}")
    def update_data_source(name: str, req: DataSourceUpdateRequest):
        return ds.update_data_source(name, req.owner, req.pii_reviewed).model_dump(mode="json")

    @app.delete("/data-sources/{name}")
    def remove_data_source(name: str):
        ds.remove_data_source(name)
        return {"status": "removed", "name": name}

    @app.post("/catalog/data-sources")
    def load_data_sources():
        return ds.load_data_sources().model_dump(mode="json")

    # === INSPECTION ===

    @app.get("/guardrails")
    def get_guardrails():
        return [f.model_dump(mode="json") for f in ds.evaluate()]

    @app.get("/coverage")
    def get_coverage():
        return ds.coverage().model_dump(mode="json")

    @app.get("/drift")
    def get_drift():
        return ds.drift().model_dump(mode="json")

    @app.get("/dependencies")
    def get_dependencies():
        return {"graph": ds.dependencies(), "unbound": ds.unbound_sources()}

    @app.get("/status")
    def get_status():
        return ds.status()

    # === REVIEW / FREEZE ===

    @app.post("/review/request")
    def request_review():
        return {"requested": ds.request_review(), "status": ds.status()["review_status"]}

    @app.post("/review/approve")
    def approve(req: ReviewRequest):
        ds.approve(req.reviewer)
        return {"status": ds.status()["review_status"]}

    @app.post("/review/changes")
    def request_changes(req: ReviewRequest):
        ds.request_changes(req.reviewer)
        return {"status": ds.status()["review_status"]}

    @app.post("/freeze")
    def freeze():
        ds.freeze()
        return {"maintenance_freeze": True}

    @app.delete("/freeze")
    def unfreeze():
        ds.unfreeze()
        return {"maintenance_freeze": False}

    # === PUBLISH / VERSIONS ===

    @app.post("/publish")
    def publish(req: Optional[PublishRequest] = None):
        req = req or PublishRequest()
        return ds.publish(label=req.label, notes=req.notes).model_dump(mode="json")

    @app.get("/versions")
    def list_versions():
        return [v.model_dump(mode="json") for v in ds.versions.list()]

    @app.get("/versions/{version_id}")
    def get_version(version_id: str):
        version = ds.versions.get(version_id)
        if not version:
            raise HTTPException(404, "Version not found")
        return version.model_dump(mode="json")

    @app.post("/versions/{version_id}/rollback")
    def rollback(version_id: str):
        ds.rollback(version_id)
        return ds.get_draft().model_dump(mode="json")

    @app.get("/audit")
    def get_audit(limit: int = 8):
        return [e.model_dump(mode="json") for e in ds.audit.recent(limit)]

    @app.post("/share")
    def share_link():
        return {"url": ds.share_link()}

    # === EXPORT / PERSISTENCE ===

    @app.get("/export")
    def export_snapshot():
        return ds.export_snapshot()

    @app.post("/import")
    def import_snapshot(req: ImportRequest):
        return ds.import_snapshot(req.snapshot).model_dump(mode="json")

    @app.post("/autosave")
    def autosave():
        return ds.autosave().model_dump(mode="json")

    @app.post("/reset")
    def reset_local_state():
        """Recovery action for a corrupt local draft."""
        ds.reset_local_state()
        return {"status": "reset"}

    @app.post("/restore")
    def restore():
        draft = ds.restore_draft()
        versions = ds.restore_versions()
        return {
            "restored": draft is not None,
            "draft": draft.model_dump(mode="json") if draft else None,
            "versions": len(versions),
        }

    # === SLA ===

    @app.get("/sla")
    def get_sla():
        return ds.sla_health().model_dump(mode="json")

    @app.post("/sla/refresh")
    def refresh_sources(req: Optional[RefreshRequest] = None):
        names = req.names if req else None
        return {"refreshed": ds.refresh_sources(names)}

    @app.post("/sla/heal")
    def heal():
        return {"healed": ds.heal()}

    @app.post("/sla/load-test")
    def start_load_test():
        ds.simulate_load()
        return {"load_test_active": True}

    @app.delete("/sla/load-test")
    def stop_load_test():
        ds.stop_load_test()
        return {"load_test_active": False}

    @app.post("/sla/breach")
    def simulate_breach():
        ds.simulate_sla_breach(True)
        return {"sla_breach_simulated": True}

    @app.delete("/sla/breach")
    def clear_breach():
        ds.simulate_sla_breach(False)
        return {"sla_breach_simulated": False}

    # === LOCK ===

    @app.post("/lock")
    def lock():
        ds.lock()
        return {"edit_locked": True}

    @app.delete("/lock")
    def unlock():
        ds.unlock()
        return {"edit_locked": False}

    @app.put("/role")
    def set_role(req: RoleRequest):
        ds.set_role(req.role)
        return {"role": req.role}

    return app


# Default application instance
app = create_app()
