"""
Catalog Client — widget and data-source template catalogs.

Single request/response per fetch; no retry or backoff. Failures raise
CatalogFetchError carrying a recovery hint chosen from the message text.
"""

from enum import Enum
from typing import List, Optional

import httpx
from pydantic import BaseModel, ValidationError

from dashgate.core.errors import CatalogFetchError
from dashgate.core.logging import get_logger

logger = get_logger(__name__)


class RecoveryAction(str, Enum):
    RETRY = "retry"
    RESET_LOCAL_STATE = "reset_local_state"


class CatalogItem(BaseModel):
    id: str
    name: str


class FetchOutcome(BaseModel):
    """Call-site result of a catalog load; failures are data, not exceptions."""

    ok: bool
    items: List[CatalogItem] = []
    added: List[str] = []
    error: Optional[str] = None
    recovery: Optional[RecoveryAction] = None


def classify_error(message: str) -> Optional[RecoveryAction]:
    """Best-effort one-click recovery suggestion for a failure message."""
    lowered = (message or "").lower()
    if "network" in lowered:
        return RecoveryAction.RETRY
    if "json" in lowered:
        return RecoveryAction.RESET_LOCAL_STATE
    return None


class CatalogClient:
    WIDGETS_PATH = "/widgets"
    DATA_SOURCES_PATH = "/data-sources"

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout_seconds))

    def fetch_widgets(self) -> List[CatalogItem]:
        return self._get_items(self.WIDGETS_PATH)

    def fetch_data_sources(self) -> List[CatalogItem]:
        return self._get_items(self.DATA_SOURCES_PATH)

    def _fail(self, message: str, url: str, exc: Optional[Exception] = None):
        action = classify_error(message)
        error = CatalogFetchError(
            message,
            recovery=action.value if action else None,
            url=url,
        )
        logger.warning("catalog_fetch_failed", url=url, error=message)
        if exc is not None:
            raise error from exc
        raise error

    def _get_items(self, path: str) -> List[CatalogItem]:
        url = f"{self.base_url}{path}"
        try:
            response = self._client.get(url)
        except httpx.TimeoutException as exc:
            self._fail(f"Catalog network timeout contacting {url}", url, exc)
        except httpx.RequestError as exc:
            self._fail(f"Catalog network error: {exc}", url, exc)

        if response.status_code >= 400:
            self._fail(
                f"Catalog responded {response.status_code} {response.reason_phrase}", url
            )

        try:
            body = response.json()
        except ValueError as exc:
            self._fail("Catalog returned invalid JSON", url, exc)

        if isinstance(body, dict):
            body = body.get("items", [])
        if not isinstance(body, list):
            self._fail("Catalog JSON payload is not a list", url)

        try:
            items = [CatalogItem.model_validate(item) for item in body]
        except ValidationError as exc:
            self._fail(f"Catalog JSON items malformed: {exc.error_count()} error(s)", url, exc)

        logger.info("catalog_fetched", url=url, count=len(items))
        return items

    def close(self) -> None:
        self._client.close()
