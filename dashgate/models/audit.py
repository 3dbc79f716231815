"""Audit entry — one pipeline-significant event."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuditEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    message: str
    guardrail_summary: Optional[str] = None   # e.g. "high=0 medium=2 low=1"
    sla_snapshot: Optional[str] = None        # e.g. "avg=230ms budget=450ms tier=within-budget"
