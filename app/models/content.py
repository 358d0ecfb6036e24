# app/models/content.py
# Entidades revisionables de ejemplo: Page y ContentBlock (documentos JSON)
from __future__ import annotations
import re
from datetime import datetime
from typing import Optional, Any, Dict

from sqlalchemy import (
    String, Integer, Boolean, ForeignKey, DateTime, Enum, UniqueConstraint, Index, event, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.db.base import Base, JSONType
from app.content_registry import validate_block_data
from app.models.revisionable import Revisionable
from app.services import entity_registry

PageStatus = Enum(
    "draft", "published", "archived",
    name="page_status",
    create_constraint=True,
    validate_strings=True,
    native_enum=False,
)

_SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class Page(Revisionable, Base):
    __tablename__ = "pages"
    __revision_type__ = "page"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(128))
    status: Mapped[str] = mapped_column(PageStatus, default="draft")

    content: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict)
    meta: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict)  # SEO / OG

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Sin cascada de borrado en el ORM: cada bloque se borra vía delete_entity
    # (content_service.delete_page) para que deje su revisión "delete".
    blocks: Mapped[list["ContentBlock"]] = relationship(
        "ContentBlock", back_populates="page", order_by="ContentBlock.position",
        cascade="save-update, merge", passive_deletes="all",
    )

    __table_args__ = (
        UniqueConstraint("slug", name="uq_pages_slug"),
    )

    @validates("slug")
    def _validate_slug(self, key: str, value: str) -> str:
        if not value or not _SLUG_RE.match(value):
            raise ValueError(f"Invalid slug '{value}'.")
        return value

    @validates("title")
    def _validate_title(self, key: str, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Title is required.")
        return value


class ContentBlock(Revisionable, Base):
    __tablename__ = "content_blocks"
    __revision_type__ = "content_block"

    id: Mapped[int] = mapped_column(primary_key=True)
    page_id: Mapped[int] = mapped_column(ForeignKey("pages.id", ondelete="CASCADE"), index=True)

    type: Mapped[str] = mapped_column(String(64))
    data: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict)
    settings: Mapped[Dict[str, Any]] = mapped_column(JSONType, default=dict)
    visible: Mapped[bool] = mapped_column(Boolean, default=True)
    position: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    page: Mapped[Optional["Page"]] = relationship("Page", back_populates="blocks")

    __table_args__ = (
        Index("ix_content_blocks_page_position", "page_id", "position"),
    )

    def tracked_fields(self):
        return ("page_id", "type", "data", "settings", "visible", "position")


# type y data se validan juntos al hacer flush (el orden de asignación no importa)
@event.listens_for(ContentBlock, "before_insert")
@event.listens_for(ContentBlock, "before_update")
def _validate_block(mapper, connection, target: ContentBlock) -> None:
    validate_block_data(target.type, target.data or {})


entity_registry.register_model(Page)
entity_registry.register_model(ContentBlock)
