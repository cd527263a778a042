import asyncio
from collections.abc import Callable
from dataclasses import replace

from labelscan.records.base import BaseRecordStore
from labelscan.records.exceptions import DuplicateIdError, RecordNotFoundError
from labelscan.records.models import IMMUTABLE_FIELDS, RECORD_FIELDS, ScanRecord


class InMemoryRecordStore(BaseRecordStore):
    """Record store kept in a dict.

    Subclasses add durability by overriding ``_load`` and ``_persist``; both
    run while the store lock is held.
    """

    def __init__(self, records: list[ScanRecord] | None = None) -> None:
        self._records: dict[str, ScanRecord] = {r.id: r for r in records or []}
        self._lock = asyncio.Lock()

    async def create(self, record: ScanRecord) -> None:
        async with self._lock:
            await self._load()
            if record.id in self._records:
                raise DuplicateIdError(f"Record {record.id} already exists")
            self._records[record.id] = record
            await self._commit(lambda: self._records.pop(record.id))

    async def get(self, record_id: str) -> ScanRecord:
        async with self._lock:
            await self._load()
            return self._find(record_id)

    async def list(self) -> list[ScanRecord]:
        async with self._lock:
            if not await self._load_for_listing():
                return []
            return sorted(
                self._records.values(),
                key=lambda r: (r.created_at, r.id),
                reverse=True,
            )

    async def update(self, record_id: str, **changes: object) -> ScanRecord:
        _check_changes(changes)
        async with self._lock:
            await self._load()
            previous = self._find(record_id)
            updated = replace(previous, **changes)
            self._records[record_id] = updated

            def restore() -> None:
                self._records[record_id] = previous

            await self._commit(restore)
            return updated

    def _find(self, record_id: str) -> ScanRecord:
        record = self._records.get(record_id)
        if record is None:
            raise RecordNotFoundError(f"Record {record_id} not found")
        return record

    async def _commit(self, rollback: Callable[[], None]) -> None:
        """Persist the in-memory change, undoing it only if the write fails.

        A cancelled caller still waits for the write to settle, so memory never
        disagrees with what reached disk.
        """
        write = asyncio.ensure_future(self._persist())
        try:
            await asyncio.shield(write)
        except asyncio.CancelledError:
            await asyncio.wait([write])
            if write.cancelled() or write.exception() is not None:
                rollback()
            raise
        except Exception:
            rollback()
            raise

    async def _load(self) -> None:
        return None

    async def _load_for_listing(self) -> bool:
        """Load for read-only listing; False means nothing can be listed."""
        await self._load()
        return True

    async def _persist(self) -> None:
        return None


def _check_changes(changes: dict[str, object]) -> None:
    unknown = set(changes) - RECORD_FIELDS
    if unknown:
        raise ValueError(f"Unknown record fields: {sorted(unknown)}")
    immutable = set(changes) & IMMUTABLE_FIELDS
    if immutable:
        raise ValueError(f"Immutable record fields cannot be updated: {sorted(immutable)}")
