# app/schemas/revision.py
# Pydantic: responses/requests del historial de revisiones
from __future__ import annotations
from datetime import datetime
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, Field, ConfigDict


class RevisionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: str
    entity_id: int
    actor_id: Optional[int] = None
    action: str
    version: int
    label: str
    data: Dict[str, Any]
    changes: Dict[str, Any]
    # atributo ORM "meta", columna "metadata"
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias="meta")
    description: Optional[str] = None
    is_published: bool
    published_at: Optional[datetime] = None
    created_at: datetime


class ManualRevisionCreate(BaseModel):
    action: str = Field(..., min_length=1, max_length=32)
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_published: bool = False

    model_config = ConfigDict(extra="ignore")


class PublishRequest(BaseModel):
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RevertRequest(BaseModel):
    metadata: Dict[str, Any] = Field(default_factory=dict)
    is_published: bool = False


class RevisionSummaryOut(BaseModel):
    entity_type: str
    entity_id: int
    revision_count: int
    published_revision_count: int
    latest_version: Optional[int] = None
    latest_published_version: Optional[int] = None
    has_unpublished_changes: bool


class RevisionCompareOut(BaseModel):
    entity_type: str
    entity_id: int
    from_version: int
    to_version: int
    changes: Dict[str, Any]


class RevisionVerifyOut(BaseModel):
    entity_type: str
    entity_id: int
    ok: bool
    mismatched_versions: List[int]
