"""Publish state, gate outcomes and drift diffs."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel

from dashgate.models.dashboard import DataSource, Widget
from dashgate.models.guardrail import GuardrailFinding
from dashgate.models.version import Version


class ReviewStatus(str, Enum):
    PENDING = "pending"
    REQUESTED = "requested"
    APPROVED = "approved"
    CHANGES = "changes"


class PublishBlocker(str, Enum):
    """Machine-readable reasons a publish was refused."""
    MAINTENANCE_FREEZE = "maintenance_freeze"
    REVIEW_NOT_APPROVED = "review_not_approved"
    HIGH_SEVERITY_FINDINGS = "high_severity_findings"
    INCOMPLETE_METADATA = "incomplete_metadata"
    PII_UNREVIEWED = "pii_unreviewed"


class PublishedSnapshot(BaseModel):
    widgets: List[Widget] = []
    data_sources: Dict[str, DataSource] = {}


class PublishState(BaseModel):
    last_published_snapshot: Optional[PublishedSnapshot] = None
    published_at: Optional[datetime] = None
    maintenance_freeze: bool = False
    review_status: ReviewStatus = ReviewStatus.PENDING


class DriftDiff(BaseModel):
    added: List[str] = []
    removed: List[str] = []

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


class WebhookResult(BaseModel):
    success: bool
    message: str


class GateCheck(BaseModel):
    """Outcome of evaluating the publish preconditions without committing."""

    blockers: List[PublishBlocker] = []
    reasons: List[str] = []                 # Human-readable, one per problem
    findings: List[GuardrailFinding] = []

    @property
    def passed(self) -> bool:
        return not self.blockers


class PublishResult(BaseModel):
    success: bool
    reasons: List[str] = []
    blockers: List[PublishBlocker] = []
    diff: Optional[DriftDiff] = None
    version: Optional[Version] = None
    webhook: Optional[WebhookResult] = None
    findings: List[GuardrailFinding] = []
