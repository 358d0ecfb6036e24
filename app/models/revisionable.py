# app/models/revisionable.py
from __future__ import annotations

from typing import Any, ClassVar, Dict, Optional, Sequence, Tuple

from sqlalchemy import inspect


class Revisionable:
    """
    Capacidad explícita para entidades con historial de revisiones.

    Una entidad ORM la incorpora como mixin y declara ``__revision_type__``.
    Los hooks se pueden sobrescribir por modelo:

    - ``snapshot_data()``: estado exportable completo (por defecto, todas las columnas).
    - ``excluded_fields()``: campos que nunca se rastrean (timestamps).
    - ``tracked_fields()``: allow-list opcional; ``None`` rastrea todo lo no excluido.

    No registra listeners de ciclo de vida: la captura ocurre sólo a través de
    ``app.services.persistence.save_entity`` / ``delete_entity``.
    """

    __revision_type__: ClassVar[str]

    def revision_identity(self) -> Tuple[str, int]:
        entity_id = getattr(self, "id", None)
        if entity_id is None:
            raise ValueError(f"{type(self).__name__} has no identity yet (flush before capturing)")
        return self.__revision_type__, int(entity_id)

    def snapshot_data(self) -> Dict[str, Any]:
        mapper = inspect(type(self))
        return {attr.key: getattr(self, attr.key) for attr in mapper.column_attrs}

    def excluded_fields(self) -> Sequence[str]:
        return ("created_at", "updated_at", "deleted_at")

    def tracked_fields(self) -> Optional[Sequence[str]]:
        return None

    def restorable_fields(self) -> Tuple[str, ...]:
        # Campos que un revert puede reescribir: rastreados, no excluidos, sin la PK
        mapper = inspect(type(self))
        pk = {col.key for col in mapper.primary_key}
        excluded = set(self.excluded_fields())
        tracked = self.tracked_fields()
        candidates = tracked if tracked is not None else [a.key for a in mapper.column_attrs]
        return tuple(k for k in candidates if k not in excluded and k not in pk)
