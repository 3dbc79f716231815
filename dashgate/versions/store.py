"""
Version Store — bounded history of immutable published snapshots.

Behavioral Contract:
- A Version is created only by a successful publish
- At most `max_versions` are retained; the oldest is evicted first (FIFO)
- Listing is most-recent-first
- Versions are deep copies of the draft; later draft edits never reach them
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from dashgate.models.dashboard import DashboardConfig
from dashgate.models.version import Version


class VersionStore:
    def __init__(self, max_versions: int = 5):
        self.max_versions = max_versions
        self._versions: List[Version] = []      # Most recent first

    def record(
        self,
        draft: DashboardConfig,
        label: Optional[str] = None,
        notes: Optional[str] = None,
        current_time: Optional[datetime] = None,
    ) -> Version:
        snapshot = draft.model_copy(deep=True)
        version = Version(
            id=f"ver_{uuid4().hex[:12]}",
            timestamp=current_time or datetime.now(timezone.utc),
            label=label,
            notes=notes,
            widgets=snapshot.widgets,
            data_sources=snapshot.data_sources,
            metadata=snapshot.metadata,
            targets=snapshot.targets,
            environment=snapshot.environment,
        )
        self._versions.insert(0, version)
        del self._versions[self.max_versions:]
        return version

    def list(self) -> List[Version]:
        return list(self._versions)

    def get(self, version_id: str) -> Optional[Version]:
        return next((v for v in self._versions if v.id == version_id), None)

    def latest(self) -> Optional[Version]:
        return self._versions[0] if self._versions else None

    def previous(self) -> Optional[Version]:
        """The Version published before the latest one, if any."""
        return self._versions[1] if len(self._versions) > 1 else None

    def load(self, versions: List[Version]) -> None:
        """Seed from persisted history (most recent first)."""
        self._versions = list(versions)[: self.max_versions]

    def __len__(self) -> int:
        return len(self._versions)
