"""Exception hierarchy for the publish pipeline.

Guardrail findings and publish blockers are returned as data, never
raised. The exceptions below cover call-site rejections (edit lock,
sandbox), lookups, and I/O against collaborators.
"""

from typing import Optional


class DashgateError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class EditLockedError(DashgateError):
    """A mutating operation was attempted while the draft is edit-locked."""

    def __init__(self, operation: str, **kwargs):
        super().__init__(
            f"Draft is locked for editing; '{operation}' rejected",
            error_code="EDIT_LOCKED",
            **kwargs,
        )
        self.operation = operation
        self.details["operation"] = operation


class SandboxRestrictionError(DashgateError):
    """Operation unavailable in the dev sandbox environment."""

    def __init__(self, operation: str, **kwargs):
        super().__init__(
            f"'{operation}' is disabled in the dev sandbox",
            error_code="SANDBOX_RESTRICTED",
            **kwargs,
        )
        self.operation = operation
        self.details["operation"] = operation


class VersionNotFoundError(DashgateError):
    """Requested version id is not in the version store."""

    def __init__(self, version_id: str, **kwargs):
        super().__init__(
            f"Version {version_id} not found",
            error_code="VERSION_NOT_FOUND",
            **kwargs,
        )
        self.version_id = version_id
        self.details["version_id"] = version_id


class WidgetNotFoundError(DashgateError):
    """Requested widget id is not part of the draft."""

    def __init__(self, widget_id: str, **kwargs):
        super().__init__(
            f"Widget {widget_id} not found",
            error_code="WIDGET_NOT_FOUND",
            **kwargs,
        )
        self.widget_id = widget_id
        self.details["widget_id"] = widget_id


class DataSourceNotFoundError(DashgateError):
    """Requested data source is not part of the draft."""

    def __init__(self, name: str, **kwargs):
        super().__init__(
            f"Data source {name} not found",
            error_code="DATA_SOURCE_NOT_FOUND",
            **kwargs,
        )
        self.name = name
        self.details["name"] = name


class PersistenceError(DashgateError):
    """Durable draft/version storage failed to read or write."""

    def __init__(self, message: str, key: Optional[str] = None, **kwargs):
        super().__init__(message, error_code="PERSISTENCE", **kwargs)
        self.key = key
        self.details["key"] = key


class CatalogFetchError(DashgateError):
    """A catalog request failed; carries a suggested recovery action."""

    def __init__(
        self,
        message: str,
        recovery: Optional[str] = None,
        url: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="CATALOG_FETCH", **kwargs)
        self.recovery = recovery
        self.url = url
        self.details.update({"recovery": recovery, "url": url})


class SnapshotIntegrityError(DashgateError):
    """An imported snapshot failed checksum or schema validation."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, error_code="SNAPSHOT_INTEGRITY", **kwargs)
