"""
Audit Log — bounded, append-only record of pipeline-significant events.

Oldest entries are evicted first once capacity is reached.
"""

from collections import deque
from datetime import datetime, timezone
from typing import List, Optional

from dashgate.models.audit import AuditEntry
from dashgate.models.guardrail import SlaHealth


def format_sla_snapshot(health: SlaHealth) -> str:
    return (
        f"avg={health.average_latency}ms budget={health.perf_budget_ms:g}ms "
        f"tier={health.risk_tier.value} stale={len(health.stale_sources)}"
    )


class AuditLog:
    def __init__(self, capacity: int = 8):
        self.capacity = capacity
        self._entries: deque = deque(maxlen=capacity)

    def append(
        self,
        message: str,
        guardrail_summary: Optional[str] = None,
        sla_snapshot: Optional[str] = None,
        current_time: Optional[datetime] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            timestamp=current_time or datetime.now(timezone.utc),
            message=message,
            guardrail_summary=guardrail_summary,
            sla_snapshot=sla_snapshot,
        )
        self._entries.append(entry)
        return entry

    def entries(self) -> List[AuditEntry]:
        """Oldest first."""
        return list(self._entries)

    def recent(self, limit: int = 8) -> List[AuditEntry]:
        """Most recent first."""
        return list(reversed(self._entries))[:limit]

    def __len__(self) -> int:
        return len(self._entries)
