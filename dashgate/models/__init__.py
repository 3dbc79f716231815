"""dashgate data models."""

from dashgate.models.audit import AuditEntry
from dashgate.models.dashboard import (
    DashboardConfig,
    DashboardMetadata,
    DataSource,
    DraftPatch,
    Environment,
    Widget,
)
from dashgate.models.guardrail import (
    CoverageMetrics,
    GuardrailFinding,
    RiskTier,
    Severity,
    SlaHealth,
)
from dashgate.models.persistence import AutosaveResult, DraftEnvelope
from dashgate.models.pipeline import PipelineConfig
from dashgate.models.publish import (
    DriftDiff,
    GateCheck,
    PublishBlocker,
    PublishedSnapshot,
    PublishResult,
    PublishState,
    ReviewStatus,
    WebhookResult,
)
from dashgate.models.version import Version

__all__ = [
    "AuditEntry",
    "AutosaveResult",
    "CoverageMetrics",
    "DashboardConfig",
    "DashboardMetadata",
    "DataSource",
    "DraftEnvelope",
    "DraftPatch",
    "DriftDiff",
    "Environment",
    "GateCheck",
    "GuardrailFinding",
    "PipelineConfig",
    "PublishBlocker",
    "PublishResult",
    "PublishState",
    "PublishedSnapshot",
    "ReviewStatus",
    "RiskTier",
    "Severity",
    "SlaHealth",
    "Version",
    "WebhookResult",
]
