from __future__ import annotations

import json
from typing import Any, Dict

from app.core.settings import settings
from app.services.errors import SnapshotError


def compact_json_bytes(data: Any) -> bytes:
    # JSON compacto y con claves ordenadas: tamaño real y encoding canónico
    return json.dumps(
        data, ensure_ascii=False, sort_keys=True, separators=(",", ":"), allow_nan=False
    ).encode("utf-8")


def enforce_snapshot_size(data: Dict[str, Any]) -> None:
    """
    Enforces a maximum serialized JSON size (in KB) for a snapshot.
    Raises SnapshotError on overflow or if the data is not JSON-encodable.
    """
    limit_kb = float(getattr(settings, "MAX_SNAPSHOT_KB", 0) or 0)
    if limit_kb <= 0:
        return
    try:
        b = compact_json_bytes(data)
    except (TypeError, ValueError) as e:
        raise SnapshotError(f"Snapshot is not JSON-encodable: {e}") from e
    kb = len(b) / 1024.0
    if kb > limit_kb:
        raise SnapshotError(
            f"Snapshot too large: {kb:.1f}KB, limit is {limit_kb:.0f}KB"
        )
