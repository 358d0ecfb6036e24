# app/services/errors.py
from __future__ import annotations


class RevisionError(Exception):
    """Base class for every error raised by the revision engine."""


class SnapshotError(RevisionError):
    """The entity's trackable state cannot be serialized."""


class ConflictError(RevisionError):
    """Version collision on append (another writer took the version)."""

    def __init__(self, entity_type: str, entity_id: int, version: int):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.version = version
        super().__init__(
            f"Version {version} already exists for {entity_type}#{entity_id}"
        )


class NotFoundError(RevisionError):
    pass


class MismatchError(RevisionError):
    """Revert target belongs to a different entity."""


class TransactionError(RevisionError):
    """The database transaction failed; mutation and revision rolled back together."""


class ImmutableRevisionError(RevisionError):
    pass
