# app/services/content_service.py
# Operaciones de host sobre Page / ContentBlock; cada mutación pasa por el save path
from __future__ import annotations
from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.content_registry import validate_block_data
from app.models.content import Page, ContentBlock
from app.services.persistence import CaptureContext, save_entity, delete_entity

_PAGE_FIELDS = ("title", "slug", "status", "content", "meta")
_BLOCK_FIELDS = ("type", "data", "settings", "visible", "position")


def _ctx(actor_id: Optional[int]) -> CaptureContext:
    return CaptureContext(actor_id=actor_id)


# -------- Pages --------
def create_page(
    db: Session,
    *,
    title: str,
    slug: str,
    content: Optional[Dict[str, Any]] = None,
    meta: Optional[Dict[str, Any]] = None,
    status: str = "draft",
    actor_id: Optional[int] = None,
) -> Page:
    page = Page(title=title, slug=slug, status=status, content=content or {}, meta=meta or {})
    save_entity(db, page, _ctx(actor_id))
    return page


def update_page(db: Session, page: Page, *, actor_id: Optional[int] = None, **fields: Any) -> Page:
    unknown = set(fields) - set(_PAGE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown page fields: {', '.join(sorted(unknown))}")
    for key, value in fields.items():
        setattr(page, key, value)
    save_entity(db, page, _ctx(actor_id))
    return page


def delete_page(db: Session, page: Page, *, actor_id: Optional[int] = None) -> None:
    """
    Borra la página y sus bloques. Cada bloque pasa por delete_entity antes
    que la página, así ningún bloque desaparece por el ON DELETE CASCADE
    sin su revisión "delete".
    """
    ctx = _ctx(actor_id)
    # consulta y no page.blocks: la colección puede estar cargada y desactualizada
    blocks = db.scalars(
        select(ContentBlock)
        .where(ContentBlock.page_id == page.id)
        .order_by(ContentBlock.position, ContentBlock.id)
    ).all()
    for block in blocks:
        delete_entity(db, block, ctx)
    delete_entity(db, page, ctx)


# -------- Content blocks --------
def create_block(
    db: Session,
    *,
    page: Page,
    type: str,
    data: Dict[str, Any],
    settings: Optional[Dict[str, Any]] = None,
    visible: bool = True,
    position: int = 0,
    actor_id: Optional[int] = None,
) -> ContentBlock:
    validate_block_data(type, data)
    block = ContentBlock(
        page_id=page.id,
        type=type,
        data=data,
        settings=settings or {},
        visible=visible,
        position=position,
    )
    save_entity(db, block, _ctx(actor_id))
    return block


def update_block(db: Session, block: ContentBlock, *, actor_id: Optional[int] = None, **fields: Any) -> ContentBlock:
    unknown = set(fields) - set(_BLOCK_FIELDS)
    if unknown:
        raise ValueError(f"Unknown block fields: {', '.join(sorted(unknown))}")
    validate_block_data(fields.get("type", block.type), fields.get("data", block.data) or {})
    for key, value in fields.items():
        setattr(block, key, value)
    save_entity(db, block, _ctx(actor_id))
    return block


def delete_block(db: Session, block: ContentBlock, *, actor_id: Optional[int] = None) -> None:
    delete_entity(db, block, _ctx(actor_id))
