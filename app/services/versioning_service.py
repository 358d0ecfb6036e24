# app/services/versioning_service.py
from __future__ import annotations

import zlib

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.models.revision import Revision


def _advisory_key(entity_type: str, entity_id: int) -> int:
    # clave int64 estable por entidad para pg_advisory_xact_lock
    return (zlib.crc32(entity_type.encode("utf-8")) << 32) ^ (int(entity_id) & 0xFFFFFFFF)


def lock_entity_scope(db: Session, entity_type: str, entity_id: int) -> None:
    """
    Serializa a los escritores de una misma entidad hasta el fin de la
    transacción. Sólo en PostgreSQL; en otros dialectos la unique constraint
    (entity_type, entity_id, version) + reintento es la única garantía.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    key = _advisory_key(entity_type, entity_id)
    if key >= 2 ** 63:
        key -= 2 ** 64
    db.execute(select(func.pg_advisory_xact_lock(key)))


def next_version(db: Session, entity_type: str, entity_id: int) -> int:
    """
    Calcula la siguiente versión (max + 1, o 1) para la entidad.
    Debe ejecutarse en la misma transacción que el append al ledger.
    """
    lock_entity_scope(db, entity_type, entity_id)
    max_version = db.scalar(
        select(func.max(Revision.version)).where(
            Revision.entity_type == entity_type,
            Revision.entity_id == entity_id,
        )
    )
    return 1 if max_version is None else int(max_version) + 1
