# app/services/persistence.py
# Save path explícito: toda mutación de una entidad revisionable pasa por aquí
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.revision import Revision, RevisionAction
from app.models.revisionable import Revisionable
from app.services.errors import RevisionError, TransactionError
from app.services.revision_service import CaptureContext, RevisionService

__all__ = ["CaptureContext", "save_entity", "delete_entity", "unit_of_work"]


def save_entity(
    db: Session,
    entity: Revisionable,
    ctx: Optional[CaptureContext] = None,
) -> Optional[Revision]:
    """
    Persiste la entidad (add + flush) y captura su revisión en la misma
    transacción: ``create`` si es nueva, ``update`` si ya existía.
    Con ``ctx.skip`` sólo guarda (usado por revert).
    No hace commit; usar ``unit_of_work`` o commit del caller.
    """
    state = inspect(entity)
    is_new = state.transient or state.pending
    db.add(entity)
    db.flush()
    action = RevisionAction.CREATE if is_new else RevisionAction.UPDATE
    return RevisionService(db).capture(entity, action, ctx)


def delete_entity(
    db: Session,
    entity: Revisionable,
    ctx: Optional[CaptureContext] = None,
) -> Optional[Revision]:
    """Registra el estado previo al borrado como revisión ``delete`` y borra."""
    revision = RevisionService(db).capture(entity, RevisionAction.DELETE, ctx)
    db.delete(entity)
    db.flush()
    return revision


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    Commit al salir sin errores; rollback ante cualquier error. Los errores
    del motor se propagan tal cual; los de SQLAlchemy se reportan como un
    único TransactionError (entidad y revisión se revierten juntas).
    """
    try:
        yield db
        db.commit()
    except RevisionError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        raise TransactionError(f"Transaction failed: {e.__class__.__name__}: {e}") from e
    except Exception:
        db.rollback()
        raise
