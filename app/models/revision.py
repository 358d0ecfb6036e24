# app/models/revision.py
# Ledger de revisiones: snapshots inmutables y versionados de cualquier entidad
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict, Any

from sqlalchemy import (
    BigInteger, Integer, String, Text, Boolean, DateTime, CheckConstraint,
    UniqueConstraint, Index, event, func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, JSONType
from app.services.errors import ImmutableRevisionError


class RevisionAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    PUBLISH = "publish"
    REVERT = "revert"


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class Revision(Base):
    __tablename__ = "revisions"

    id: Mapped[int] = mapped_column(
        BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True
    )

    # Referencia polimórfica (sin FK: el historial sobrevive al borrado de la entidad)
    entity_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_id: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # None para acciones del sistema
    actor_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    # create | update | delete | publish | revert (abierto a extensión)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    data: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    changes: Mapped[Dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    # "metadata" está reservado por Declarative; el atributo se llama meta
    meta: Mapped[Dict[str, Any]] = mapped_column("metadata", JSONType, nullable=False, default=dict)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    published_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_now_utc, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("entity_type", "entity_id", "version", name="uq_revisions_entity_version"),
        CheckConstraint("version >= 1", name="version_positive"),
        Index("ix_revisions_entity_version", "entity_type", "entity_id", "version"),
        Index("ix_revisions_entity_published", "entity_type", "entity_id", "is_published"),
        Index("ix_revisions_action", "action"),
        Index("ix_revisions_actor", "actor_id"),
    )

    @property
    def label(self) -> str:
        return f"v{self.version}"

    def __repr__(self) -> str:
        return (
            f"<Revision {self.entity_type}#{self.entity_id} {self.label} "
            f"action={self.action} published={self.is_published}>"
        )


@event.listens_for(Revision, "before_update")
def _refuse_update(mapper, connection, target: Revision) -> None:
    raise ImmutableRevisionError(f"Revision {target.id} is immutable")


@event.listens_for(Revision, "before_delete")
def _refuse_delete(mapper, connection, target: Revision) -> None:
    raise ImmutableRevisionError(f"Revision {target.id} cannot be deleted")
