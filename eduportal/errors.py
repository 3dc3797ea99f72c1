"""Typed errors raised by the EduPortal data layer."""


class DataError(Exception):
    """Base class for every data-layer error."""


class NotFound(DataError):
    """A referenced user or video id does not exist (raised by mutations only)."""

    def __init__(self, kind: str, item_id: str):
        super().__init__(f"{kind} '{item_id}' not found")
        self.kind = kind
        self.item_id = item_id


class DuplicateKey(DataError):
    """An email is already registered, or a video id is already taken."""

    def __init__(self, message: str, key: str = ""):
        super().__init__(message)
        self.key = key


class QuotaExceeded(DataError):
    """The storage medium rejected a write for capacity reasons."""


class CorruptData(DataError):
    """A persisted value could not be decoded or had the wrong shape.

    Internal only: the scalar store recovers from it locally.
    """


class TransactionAborted(DataError):
    """A batch commit failed; nothing from the batch is visible."""


class Uninitialized(DataError):
    """An operation ran before ``DataService.initialize()`` completed."""


__all__ = [
    "DataError",
    "NotFound",
    "DuplicateKey",
    "QuotaExceeded",
    "CorruptData",
    "TransactionAborted",
    "Uninitialized",
]
