# =============================================================================
# Revision Endpoints (History, Latest/Published, Compare, Manual, Publish, Revert)
# app/api/v1/endpoints/revisions.py
# =============================================================================
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from app.api.deps.auth import get_current_user_id, request_metadata
from app.core.settings import settings
from app.db.session import get_db
from app.schemas.revision import (
    RevisionOut, ManualRevisionCreate, PublishRequest, RevertRequest,
    RevisionSummaryOut, RevisionCompareOut, RevisionVerifyOut,
)
from app.services import entity_registry
from app.services.errors import (
    RevisionError, NotFoundError, MismatchError, ConflictError,
    SnapshotError, TransactionError, ImmutableRevisionError,
)
from app.services.persistence import unit_of_work
from app.services.revision_service import RevisionService

router = APIRouter()


def _http_error(e: RevisionError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (MismatchError, ConflictError, ImmutableRevisionError)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, SnapshotError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, TransactionError):
        return HTTPException(status_code=503, detail="Could not save, try again")
    return HTTPException(status_code=500, detail=str(e))


def _require_known_type(entity_type: str) -> None:
    if entity_type not in entity_registry.registered_types():
        raise HTTPException(status_code=404, detail=f"Unknown entity type '{entity_type}'")


def _load_entity_or_404(db: Session, entity_type: str, entity_id: int) -> Any:
    try:
        return entity_registry.load(db, entity_type, entity_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


def _merge_metadata(request: Request, metadata: Optional[dict]) -> dict:
    merged = dict(metadata or {})
    merged.update(request_metadata(request))
    return merged


# ============================================================================ #
# Lectura
# ============================================================================ #
@router.get("/{entity_type}/{entity_id}", response_model=list[RevisionOut])
def list_revisions_endpoint(
    entity_type: str,
    entity_id: int,
    action: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    _require_known_type(entity_type)
    max_limit = settings.REVISION_HISTORY_MAX_LIMIT
    limit = min(limit or max_limit, max_limit)
    return RevisionService(db).history(entity_type, entity_id, action=action, limit=limit)


@router.get("/{entity_type}/{entity_id}/latest", response_model=RevisionOut)
def latest_revision_endpoint(entity_type: str, entity_id: int, db: Session = Depends(get_db)):
    _require_known_type(entity_type)
    rev = RevisionService(db).latest(entity_type, entity_id)
    if rev is None:
        raise HTTPException(status_code=404, detail="No revisions for this entity")
    return rev


@router.get("/{entity_type}/{entity_id}/latest-published", response_model=RevisionOut)
def latest_published_revision_endpoint(entity_type: str, entity_id: int, db: Session = Depends(get_db)):
    _require_known_type(entity_type)
    rev = RevisionService(db).latest_published(entity_type, entity_id)
    if rev is None:
        raise HTTPException(status_code=404, detail="No published revision for this entity")
    return rev


@router.get("/{entity_type}/{entity_id}/summary", response_model=RevisionSummaryOut)
def revision_summary_endpoint(entity_type: str, entity_id: int, db: Session = Depends(get_db)):
    _require_known_type(entity_type)
    svc = RevisionService(db)
    latest = svc.latest(entity_type, entity_id)
    published = svc.latest_published(entity_type, entity_id)
    return RevisionSummaryOut(
        entity_type=entity_type,
        entity_id=entity_id,
        revision_count=svc.revision_count(entity_type, entity_id),
        published_revision_count=svc.published_revision_count(entity_type, entity_id),
        latest_version=latest.version if latest else None,
        latest_published_version=published.version if published else None,
        has_unpublished_changes=svc.has_unpublished_changes(entity_type, entity_id),
    )


@router.get("/{entity_type}/{entity_id}/compare", response_model=RevisionCompareOut)
def compare_revisions_endpoint(
    entity_type: str,
    entity_id: int,
    from_version: int = Query(..., ge=1),
    to_version: int = Query(..., ge=1),
    db: Session = Depends(get_db),
):
    _require_known_type(entity_type)
    svc = RevisionService(db)
    try:
        first = svc.ledger.get_version(entity_type, entity_id, from_version)
        second = svc.ledger.get_version(entity_type, entity_id, to_version)
    except RevisionError as e:
        raise _http_error(e)
    return RevisionCompareOut(
        entity_type=entity_type,
        entity_id=entity_id,
        from_version=from_version,
        to_version=to_version,
        changes=svc.compare_revisions(first, second),
    )


@router.get("/{entity_type}/{entity_id}/verify", response_model=RevisionVerifyOut)
def verify_revisions_endpoint(entity_type: str, entity_id: int, db: Session = Depends(get_db)):
    _require_known_type(entity_type)
    bad = RevisionService(db).verify_changes(entity_type, entity_id)
    return RevisionVerifyOut(
        entity_type=entity_type, entity_id=entity_id, ok=not bad, mismatched_versions=bad
    )


# ============================================================================ #
# Escritura (manual / publish / revert)
# ============================================================================ #
@router.post("/{entity_type}/{entity_id}/manual", response_model=RevisionOut, status_code=201)
def create_manual_revision_endpoint(
    entity_type: str,
    entity_id: int,
    payload: ManualRevisionCreate,
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    entity = _load_entity_or_404(db, entity_type, entity_id)
    try:
        with unit_of_work(db):
            rev = RevisionService(db).create_manual_revision(
                entity,
                payload.action,
                description=payload.description,
                metadata=_merge_metadata(request, payload.metadata),
                is_published=payload.is_published,
                actor_id=user_id,
            )
    except RevisionError as e:
        raise _http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return rev


@router.post("/{entity_type}/{entity_id}/publish", response_model=RevisionOut, status_code=201)
def publish_endpoint(
    entity_type: str,
    entity_id: int,
    request: Request,
    payload: Optional[PublishRequest] = Body(default=None),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    payload = payload or PublishRequest()
    entity = _load_entity_or_404(db, entity_type, entity_id)
    try:
        with unit_of_work(db):
            rev = RevisionService(db).publish(
                entity,
                actor_id=user_id,
                description=payload.description,
                metadata=_merge_metadata(request, payload.metadata),
            )
    except RevisionError as e:
        raise _http_error(e)
    return rev


@router.post("/{entity_type}/{entity_id}/revert/{revision_id}", response_model=RevisionOut, status_code=201)
def revert_endpoint(
    entity_type: str,
    entity_id: int,
    revision_id: int,
    request: Request,
    payload: Optional[RevertRequest] = Body(default=None),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """
    Revierte la entidad viva al estado de ``revision_id`` y registra una
    revisión ``revert``. 409 si la revisión pertenece a otra entidad.
    """
    payload = payload or RevertRequest()
    entity = _load_entity_or_404(db, entity_type, entity_id)
    try:
        with unit_of_work(db):
            rev = RevisionService(db).revert(
                entity,
                revision_id,
                actor_id=user_id,
                metadata=_merge_metadata(request, payload.metadata),
                is_published=payload.is_published,
            )
    except RevisionError as e:
        raise _http_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return rev
