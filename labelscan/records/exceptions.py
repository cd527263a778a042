class StoreError(Exception):
    """Base exception for record store errors."""


class RecordNotFoundError(StoreError):
    """Raised when no record exists for the given id."""


class DuplicateIdError(StoreError):
    """Raised when creating a record whose id is already stored."""


class StoreCorruptError(StoreError):
    """Raised (or reported) when the persisted collection cannot be parsed."""
