# app/services/entity_registry.py
# Tabla entity_type -> loader, sin resolución dinámica de clases
from __future__ import annotations

from typing import Any, Callable, Dict, List

from sqlalchemy.orm import Session

from app.services.errors import NotFoundError

Loader = Callable[[Session, int], Any]

_LOADERS: Dict[str, Loader] = {}


def register(entity_type: str, loader: Loader) -> None:
    existing = _LOADERS.get(entity_type)
    if existing is not None and existing is not loader:
        raise ValueError(f"Entity type '{entity_type}' is already registered.")
    _LOADERS[entity_type] = loader


def register_model(model_cls: type) -> None:
    """Registra un modelo ORM que declara ``__revision_type__``."""
    entity_type = getattr(model_cls, "__revision_type__", None)
    if not entity_type:
        raise ValueError(f"{model_cls.__name__} does not declare __revision_type__.")
    # reimportar el módulo no debe fallar
    existing = _LOADERS.get(entity_type)
    if existing is not None and getattr(existing, "model", None) is model_cls:
        return

    def _load(db: Session, entity_id: int) -> Any:
        return db.get(model_cls, entity_id)

    _load.model = model_cls  # type: ignore[attr-defined]
    register(entity_type, _load)


def registered_types() -> List[str]:
    return sorted(_LOADERS)


def load(db: Session, entity_type: str, entity_id: int) -> Any:
    loader = _LOADERS.get(entity_type)
    if loader is None:
        raise NotFoundError(f"Unknown entity type '{entity_type}'.")
    entity = loader(db, entity_id)
    if entity is None:
        raise NotFoundError(f"{entity_type}#{entity_id} not found.")
    return entity
