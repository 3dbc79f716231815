"""Durable draft envelope and autosave outcomes."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from dashgate.models.dashboard import DashboardConfig


class DraftEnvelope(BaseModel):
    """The autosaved `draft` blob: full draft plus ancillary editing fields."""

    draft: DashboardConfig
    runbook: str = ""
    escalation_target: str = ""
    saved_at: datetime


class AutosaveResult(BaseModel):
    saved: bool
    saved_at: Optional[datetime] = None
    error: Optional[str] = None
