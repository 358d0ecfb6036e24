# app/services/snapshot_service.py
"""
Snapshot codec: convierte el estado rastreable de una entidad en un documento
JSON determinista y comparable.
"""
from __future__ import annotations

import hashlib
import math
from collections.abc import Mapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict
from uuid import UUID

from app.models.revisionable import Revisionable
from app.services.errors import SnapshotError
from app.utils.payload_guard import compact_json_bytes, enforce_snapshot_size

Snapshot = Dict[str, Any]


def _normalize(value: Any, path: str) -> Any:
    # bool antes que int: bool es subclase de int
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, Enum):
        return _normalize(value.value, path)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise SnapshotError(f"Non-finite float at '{path}'")
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, Mapping):
        out: Dict[str, Any] = {}
        for key in sorted(value, key=_key_for_sort(path)):
            out[key] = _normalize(value[key], f"{path}.{key}" if path else key)
        return out
    if isinstance(value, (list, tuple)):
        return [_normalize(v, f"{path}.{i}" if path else str(i)) for i, v in enumerate(value)]
    raise SnapshotError(
        f"Value of type {type(value).__name__} at '{path or '<root>'}' is not serializable"
    )


def _key_for_sort(path: str):
    def _key(k: Any) -> str:
        if not isinstance(k, str):
            raise SnapshotError(f"Non-string key {k!r} at '{path or '<root>'}'")
        return k
    return _key


def restrict(entity: Revisionable, data: Mapping) -> Dict[str, Any]:
    tracked = entity.tracked_fields()
    excluded = set(entity.excluded_fields())
    keys = list(tracked) if tracked is not None else list(data.keys())
    return {k: data[k] for k in keys if k in data and k not in excluded}


def capture(entity: Revisionable) -> Snapshot:
    """
    Snapshot de ``entity.snapshot_data()`` limitado a ``tracked_fields()``
    (o todo menos ``excluded_fields()``). Lanza SnapshotError si algún valor
    no es serializable o si el snapshot supera MAX_SNAPSHOT_KB.
    """
    raw = entity.snapshot_data()
    if not isinstance(raw, Mapping):
        raise SnapshotError(
            f"{type(entity).__name__}.snapshot_data() must return a mapping, got {type(raw).__name__}"
        )
    snapshot = _normalize(restrict(entity, raw), "")
    enforce_snapshot_size(snapshot)
    return snapshot


def fingerprint(snapshot: Snapshot) -> str:
    return hashlib.sha256(compact_json_bytes(snapshot)).hexdigest()
