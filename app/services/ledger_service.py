# app/services/ledger_service.py
from __future__ import annotations

from typing import Optional, List

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.revision import Revision
from app.services.errors import ConflictError, NotFoundError


class RevisionLedger:
    """
    Almacén append-only de revisiones. Sólo expone inserción y lecturas:
    no hay métodos de update ni delete (y el modelo los rechaza en flush).
    No hace commit; la transacción es del caller.
    """

    def __init__(self, db: Session):
        self.db = db

    def append(self, revision: Revision) -> Revision:
        """
        Inserta dentro de un SAVEPOINT. Si la versión colisiona sólo se
        revierte el savepoint y se lanza ConflictError; la transacción del
        caller (y la mutación de la entidad) sigue viva para reintentar.
        """
        try:
            with self.db.begin_nested():
                self.db.add(revision)
                self.db.flush()
        except IntegrityError as e:
            raise ConflictError(revision.entity_type, revision.entity_id, revision.version) from e
        return revision

    def get(self, revision_id: int) -> Revision:
        rev = self.db.get(Revision, revision_id)
        if rev is None:
            raise NotFoundError(f"Revision {revision_id} not found.")
        return rev

    def get_version(self, entity_type: str, entity_id: int, version: int) -> Revision:
        rev = self.db.scalar(
            select(Revision).where(
                Revision.entity_type == entity_type,
                Revision.entity_id == entity_id,
                Revision.version == version,
            )
        )
        if rev is None:
            raise NotFoundError(f"Version {version} of {entity_type}#{entity_id} not found.")
        return rev

    def latest(self, entity_type: str, entity_id: int) -> Optional[Revision]:
        return self.db.scalar(
            select(Revision)
            .where(Revision.entity_type == entity_type, Revision.entity_id == entity_id)
            .order_by(Revision.version.desc())
            .limit(1)
        )

    def latest_published(self, entity_type: str, entity_id: int) -> Optional[Revision]:
        return self.db.scalar(
            select(Revision)
            .where(
                Revision.entity_type == entity_type,
                Revision.entity_id == entity_id,
                Revision.is_published == True,  # noqa: E712
            )
            .order_by(Revision.version.desc())
            .limit(1)
        )

    def history(
        self,
        entity_type: str,
        entity_id: int,
        *,
        action: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Revision]:
        """Revisiones de la entidad, más reciente primero (por version)."""
        stmt = select(Revision).where(
            Revision.entity_type == entity_type,
            Revision.entity_id == entity_id,
        )
        if action:
            stmt = stmt.where(Revision.action == action)
        stmt = stmt.order_by(Revision.version.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.scalars(stmt))

    def count(self, entity_type: str, entity_id: int, *, published_only: bool = False) -> int:
        stmt = select(func.count(Revision.id)).where(
            Revision.entity_type == entity_type,
            Revision.entity_id == entity_id,
        )
        if published_only:
            stmt = stmt.where(Revision.is_published == True)  # noqa: E712
        return int(self.db.scalar(stmt) or 0)

    def exists(self, entity_type: str, entity_id: int) -> bool:
        return self.count(entity_type, entity_id) > 0

    def entities(self, entity_type: Optional[str] = None) -> List[tuple[str, int]]:
        """Pares (entity_type, entity_id) presentes en el ledger."""
        stmt = select(Revision.entity_type, Revision.entity_id).distinct()
        if entity_type:
            stmt = stmt.where(Revision.entity_type == entity_type)
        stmt = stmt.order_by(Revision.entity_type, Revision.entity_id)
        return [(t, int(i)) for t, i in self.db.execute(stmt)]
