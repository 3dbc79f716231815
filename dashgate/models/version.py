"""Version — immutable snapshot created by a successful publish."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from dashgate.models.dashboard import (
    DashboardMetadata,
    DataSource,
    Environment,
    Widget,
)


class Version(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    label: Optional[str] = None
    notes: Optional[str] = None
    widgets: List[Widget]
    data_sources: Dict[str, DataSource]
    metadata: DashboardMetadata
    targets: Dict[str, str]
    environment: Environment
