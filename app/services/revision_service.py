# app/services/revision_service.py
"""
Coordinador de revisiones: único escritor del ledger.

- capture(): revisiones automáticas create/update/delete desde el save path.
- create_manual_revision() / publish(): acciones explícitas.
- revert(): aplica el data de una revisión sobre la entidad viva y registra
  una revisión "revert".

Nada aquí hace commit: todo corre en la transacción de la sesión del caller,
de modo que la mutación de la entidad y su revisión se confirman o se
revierten juntas.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from app.core.settings import settings
from app.models.revision import Revision, RevisionAction
from app.models.revisionable import Revisionable
from app.services import snapshot_service
from app.services.diff_service import ChangeSet, diff, compare_revisions as _compare
from app.services.errors import ConflictError, MismatchError
from app.services.ledger_service import RevisionLedger
from app.services.versioning_service import next_version

logger = logging.getLogger(__name__)


@dataclass
class CaptureContext:
    """Contexto explícito de una llamada de guardado (reemplaza flags en la instancia)."""
    actor_id: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    description: Optional[str] = None
    skip: bool = False


_DESCRIPTIONS = {
    RevisionAction.CREATE.value: "{model} was created",
    RevisionAction.UPDATE.value: "{model} was updated",
    RevisionAction.DELETE.value: "{model} was deleted",
    RevisionAction.PUBLISH.value: "{model} was published",
    RevisionAction.REVERT.value: "{model} was reverted to a previous version",
}


def describe(entity_type: str, action: str) -> str:
    label = entity_type.replace("_", " ").strip().capitalize() or "Entity"
    return _DESCRIPTIONS.get(action, "{model} was modified").format(model=label)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _action_value(action: Union[RevisionAction, str]) -> str:
    value = action.value if isinstance(action, RevisionAction) else str(action or "").strip().lower()
    if not value or len(value) > 32:
        raise ValueError(f"Invalid revision action {action!r}.")
    return value


class RevisionService:
    def __init__(self, db: Session, *, conflict_retries: Optional[int] = None):
        self.db = db
        self.ledger = RevisionLedger(db)
        self.conflict_retries = (
            settings.REVISION_CONFLICT_RETRIES if conflict_retries is None else int(conflict_retries)
        )

    # ------------------------------------------------------------------ #
    # Escritura
    # ------------------------------------------------------------------ #
    def _append(
        self,
        entity_type: str,
        entity_id: int,
        *,
        action: str,
        data: Dict[str, Any],
        actor_id: Optional[int],
        description: Optional[str],
        metadata: Optional[Dict[str, Any]],
        is_published: bool,
        skip_if_unchanged: bool = False,
    ) -> Optional[Revision]:
        # cambios pendientes de la entidad se vuelcan fuera del savepoint del ledger
        self.db.flush()

        attempts = self.conflict_retries + 1
        for attempt in range(1, attempts + 1):
            version = next_version(self.db, entity_type, entity_id)
            previous = self.ledger.latest(entity_type, entity_id)
            # changes(n) depende sólo de data(n) y data(n-1)
            changes: ChangeSet = diff(previous.data, data) if previous is not None else {}
            if skip_if_unchanged and previous is not None and not changes:
                logger.debug("No tracked changes for %s#%s; capture skipped", entity_type, entity_id)
                return None

            now = _now_utc()
            revision = Revision(
                entity_type=entity_type,
                entity_id=entity_id,
                actor_id=actor_id,
                action=action,
                version=version,
                data=copy.deepcopy(data),
                changes=changes,
                meta=dict(metadata or {}),
                description=description or describe(entity_type, action),
                is_published=is_published,
                published_at=now if is_published else None,
                created_at=now,
            )
            try:
                self.ledger.append(revision)
            except ConflictError:
                if attempt >= attempts:
                    logger.warning(
                        "Version conflict on %s#%s not resolved after %s attempts",
                        entity_type, entity_id, attempts,
                    )
                    raise
                logger.warning(
                    "Version conflict on %s#%s v%s; retrying (%s/%s)",
                    entity_type, entity_id, version, attempt, attempts - 1,
                )
                continue

            logger.info(
                "Revision %s#%s %s action=%s published=%s",
                entity_type, entity_id, revision.label, action, is_published,
            )
            return revision
        return None  # pragma: no cover

    def capture(
        self,
        entity: Revisionable,
        action: Union[RevisionAction, str],
        ctx: Optional[CaptureContext] = None,
    ) -> Optional[Revision]:
        """
        Revisión automática para create/update/delete. No-op si ``ctx.skip``.
        Sólo ``create`` nace publicada; un update sin cambios rastreados no
        agrega revisión.
        """
        ctx = ctx or CaptureContext()
        if ctx.skip:
            return None
        action = _action_value(action)
        entity_type, entity_id = entity.revision_identity()
        data = snapshot_service.capture(entity)
        return self._append(
            entity_type,
            entity_id,
            action=action,
            data=data,
            actor_id=ctx.actor_id,
            description=ctx.description,
            metadata=ctx.metadata,
            is_published=(action == RevisionAction.CREATE.value),
            skip_if_unchanged=(action == RevisionAction.UPDATE.value),
        )

    def create_manual_revision(
        self,
        entity: Revisionable,
        action: Union[RevisionAction, str],
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        is_published: bool = False,
        *,
        actor_id: Optional[int] = None,
    ) -> Revision:
        action = _action_value(action)
        entity_type, entity_id = entity.revision_identity()
        data = snapshot_service.capture(entity)
        return self._append(
            entity_type,
            entity_id,
            action=action,
            data=data,
            actor_id=actor_id,
            description=description,
            metadata=metadata,
            is_published=is_published,
        )

    def publish(
        self,
        entity: Revisionable,
        *,
        actor_id: Optional[int] = None,
        description: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Revision:
        return self.create_manual_revision(
            entity,
            RevisionAction.PUBLISH,
            description=description,
            metadata=metadata,
            is_published=True,
            actor_id=actor_id,
        )

    def revert(
        self,
        entity: Revisionable,
        target: Union[Revision, int],
        *,
        actor_id: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        is_published: bool = False,
    ) -> Revision:
        """
        Restaura ``target.data`` sobre la entidad viva y agrega exactamente una
        revisión ``revert``. Si aplicar o guardar falla, la entidad vuelve a su
        estado previo y no se escribe ninguna revisión.
        """
        # import tardío: persistence depende de este módulo
        from app.services.persistence import save_entity

        if not isinstance(target, Revision):
            target = self.ledger.get(int(target))

        entity_type, entity_id = entity.revision_identity()
        if target.entity_type != entity_type or int(target.entity_id) != entity_id:
            raise MismatchError(
                f"Revision {target.id} belongs to {target.entity_type}#{target.entity_id}, "
                f"not {entity_type}#{entity_id}."
            )

        target_data = target.data or {}
        with self.db.begin_nested():
            for key in entity.restorable_fields():
                if key in target_data:
                    setattr(entity, key, copy.deepcopy(target_data[key]))
            save_entity(self.db, entity, CaptureContext(skip=True))

        data = snapshot_service.capture(entity)
        expected = snapshot_service.restrict(entity, target_data)
        if snapshot_service.fingerprint(data) != snapshot_service.fingerprint(expected):
            logger.warning(
                "Reverted state of %s#%s differs from %s data", entity_type, entity_id, target.label
            )

        meta = dict(metadata or {})
        meta.update({"reverted_to_version": target.version, "reverted_to_revision_id": target.id})
        revision = self._append(
            entity_type,
            entity_id,
            action=RevisionAction.REVERT.value,
            data=data,
            actor_id=actor_id,
            description=f"Reverted to revision {target.version}",
            metadata=meta,
            is_published=is_published,
        )
        logger.info("Reverted %s#%s to %s", entity_type, entity_id, target.label)
        return revision

    # ------------------------------------------------------------------ #
    # Lectura
    # ------------------------------------------------------------------ #
    def history(
        self,
        entity_type: str,
        entity_id: int,
        *,
        action: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Revision]:
        return self.ledger.history(entity_type, entity_id, action=action, limit=limit)

    def latest(self, entity_type: str, entity_id: int) -> Optional[Revision]:
        return self.ledger.latest(entity_type, entity_id)

    def latest_published(self, entity_type: str, entity_id: int) -> Optional[Revision]:
        return self.ledger.latest_published(entity_type, entity_id)

    def revision_count(self, entity_type: str, entity_id: int) -> int:
        return self.ledger.count(entity_type, entity_id)

    def published_revision_count(self, entity_type: str, entity_id: int) -> int:
        return self.ledger.count(entity_type, entity_id, published_only=True)

    def has_revisions(self, entity_type: str, entity_id: int) -> bool:
        return self.ledger.exists(entity_type, entity_id)

    def has_unpublished_changes(self, entity_type: str, entity_id: int) -> bool:
        latest = self.ledger.latest(entity_type, entity_id)
        return latest is not None and not latest.is_published

    def compare_revisions(self, first: Revision, second: Revision) -> ChangeSet:
        return _compare(first, second)

    def verify_changes(self, entity_type: str, entity_id: int) -> List[int]:
        """Versiones cuyo ``changes`` guardado no coincide con el recalculado."""
        bad: List[int] = []
        previous: Optional[Revision] = None
        for rev in reversed(self.ledger.history(entity_type, entity_id)):
            expected = diff(previous.data, rev.data) if previous is not None else {}
            if (rev.changes or {}) != expected:
                bad.append(rev.version)
            previous = rev
        return bad
