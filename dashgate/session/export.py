"""
Snapshot export/import.

The export is a JSON object `{"payload": {...}, "checksum": int}`. The
checksum is the sum of the character codes of the canonical payload JSON,
folded into an unsigned 32-bit integer. It detects accidental edits to an
exported draft; it is not a security control.
"""

import json
from datetime import datetime, timezone
from typing import List, Optional, Union

from pydantic import ValidationError

from dashgate.core.errors import SnapshotIntegrityError
from dashgate.models.dashboard import DashboardConfig
from dashgate.models.guardrail import CoverageMetrics, GuardrailFinding


def canonical_json(payload: dict) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def checksum(payload: dict) -> int:
    return sum(ord(ch) for ch in canonical_json(payload)) & 0xFFFFFFFF


def build_export(
    draft: DashboardConfig,
    coverage: CoverageMetrics,
    findings: List[GuardrailFinding],
    dependencies: dict,
    current_time: Optional[datetime] = None,
) -> dict:
    payload = {
        "config": draft.model_dump(mode="json"),
        "coverage": coverage.model_dump(mode="json"),
        "findings": [f.model_dump(mode="json") for f in findings],
        "dependencies": dependencies,
        "exported_at": (current_time or datetime.now(timezone.utc)).isoformat(),
    }
    return {"payload": payload, "checksum": checksum(payload)}


def parse_export(raw: Union[str, bytes, dict]) -> DashboardConfig:
    """Verify an exported snapshot and return the draft it carries."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise SnapshotIntegrityError(f"Snapshot is not valid JSON: {e}") from e

    if not isinstance(raw, dict) or "payload" not in raw or "checksum" not in raw:
        raise SnapshotIntegrityError("Snapshot must contain 'payload' and 'checksum'")

    payload = raw["payload"]
    if not isinstance(payload, dict):
        raise SnapshotIntegrityError("Snapshot payload must be an object")

    expected = raw["checksum"]
    actual = checksum(payload)
    if expected != actual:
        raise SnapshotIntegrityError(
            f"Checksum mismatch: expected {expected}, computed {actual}",
            details={"expected": expected, "actual": actual},
        )

    try:
        return DashboardConfig.model_validate(payload.get("config", {}))
    except ValidationError as e:
        raise SnapshotIntegrityError(f"Snapshot config invalid: {e.error_count()} error(s)") from e
