from abc import ABC, abstractmethod

from labelscan.records.exceptions import StoreCorruptError
from labelscan.records.models import ScanRecord


class BaseRecordStore(ABC):
    """Contract for scan record stores.

    Implementations must serialize updates so interleaved writers never lose
    an update, and persist every mutation before returning.
    """

    corruption: StoreCorruptError | None = None

    @abstractmethod
    async def create(self, record: ScanRecord) -> None:
        """Insert a new record.

        Raises:
            DuplicateIdError: if a record with the same id exists.
        """

    @abstractmethod
    async def get(self, record_id: str) -> ScanRecord:
        """Return the record for ``record_id``.

        Raises:
            RecordNotFoundError: if no such record exists.
        """

    @abstractmethod
    async def list(self) -> list[ScanRecord]:
        """Return all records, newest ``created_at`` first."""

    @abstractmethod
    async def update(self, record_id: str, **changes: object) -> ScanRecord:
        """Apply a field-level partial update and return the updated record.

        Raises:
            RecordNotFoundError: if no such record exists.
            ValueError: if ``changes`` names an unknown or immutable field.
        """
