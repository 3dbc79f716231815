"""Dashboard Config — the mutable draft being edited."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class Environment(str, Enum):
    DEV = "dev"        # Sandbox: no catalog fetches, no share links
    STAGE = "stage"
    PROD = "prod"


def as_utc(value: datetime) -> datetime:
    """Normalise to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Widget(BaseModel):
    """A dashboard widget. Exclusively owned by its DashboardConfig."""

    id: str                                 # Opaque, stable for the session
    name: str
    source_hint: Optional[str] = None       # Catalog/template origin
    source_refs: List[str] = []             # Declared data-source bindings


class DataSource(BaseModel):
    """A data source backing one or more widgets."""

    name: str
    owner: str = ""
    pii_reviewed: bool = False
    freshness_timestamp: Optional[datetime] = None
    latency_ms: Optional[float] = None

    @field_validator("freshness_timestamp")
    @classmethod
    def _as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value) if value is not None else None

    def is_stale(self, current_time: datetime, stale_after_hours: float = 6) -> bool:
        """Absent freshness counts as stale."""
        if self.freshness_timestamp is None:
            return True
        age = as_utc(current_time) - as_utc(self.freshness_timestamp)
        return age > timedelta(hours=stale_after_hours)


class DashboardMetadata(BaseModel):
    title: str = ""
    owner: str = ""
    tags: List[str] = []

    def missing_fields(self) -> List[str]:
        """Required fields (title, owner, tags) that are still blank."""
        missing = []
        if not self.title.strip():
            missing.append("title")
        if not self.owner.strip():
            missing.append("owner")
        if not self.tags:
            missing.append("tags")
        return missing


class DashboardConfig(BaseModel):
    """The Draft. Widget order is display order."""

    widgets: List[Widget] = []
    data_sources: Dict[str, DataSource] = {}
    metadata: DashboardMetadata = DashboardMetadata()
    targets: Dict[str, str] = {}            # widget id -> target/SLA text
    environment: Environment = Environment.STAGE
    watchlist: List[str] = []               # widget ids, kept unique
    grid_columns: int = Field(ge=0, default=3)

    def widget_by_id(self, widget_id: str) -> Optional[Widget]:
        return next((w for w in self.widgets if w.id == widget_id), None)

    def has_target(self, widget_id: str) -> bool:
        return bool(self.targets.get(widget_id, "").strip())


class DraftPatch(BaseModel):
    """Partial update applied by set_draft. Absent fields are left untouched."""

    widgets: Optional[List[Widget]] = None
    data_sources: Optional[Dict[str, DataSource]] = None
    metadata: Optional[DashboardMetadata] = None
    targets: Optional[Dict[str, str]] = None
    environment: Optional[Environment] = None
    watchlist: Optional[List[str]] = None
    grid_columns: Optional[int] = Field(ge=0, default=None)
