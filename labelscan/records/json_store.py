import asyncio
import json
import os
from pathlib import Path
from typing import Any

from labelscan.logging.logger import Log
from labelscan.records.exceptions import StoreCorruptError
from labelscan.records.memory_store import InMemoryRecordStore
from labelscan.records.models import ScanRecord, record_from_dict, record_to_dict


def read_collection(path: Path) -> list[ScanRecord]:
    """Read the persisted collection; a missing file is an empty collection.

    Raises:
        StoreCorruptError: if the file cannot be parsed into records.
    """
    if not path.exists():
        return []
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise StoreCorruptError(f"Cannot read scan history {path}: {exc}") from exc
    if not isinstance(data, list):
        raise StoreCorruptError(f"Scan history {path} must contain a JSON list")
    records = []
    seen: set[str] = set()
    for index, entry in enumerate(data):
        try:
            record = record_from_dict(entry)
        except ValueError as exc:
            raise StoreCorruptError(f"Scan history entry {index} is invalid: {exc}") from exc
        if record.id in seen:
            raise StoreCorruptError(f"Scan history contains duplicate id {record.id}")
        seen.add(record.id)
        records.append(record)
    return records


def write_collection(path: Path, records: list[ScanRecord]) -> None:
    """Durably replace the persisted collection (temp file, fsync, rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    payload = json.dumps([record_to_dict(r) for r in records], ensure_ascii=False, indent=2)
    with open(tmp_path, "w", encoding="utf-8") as fh:
        fh.write(payload)
        fh.flush()
        os.fsync(fh.fileno())
    os.replace(tmp_path, path)


class JsonFileRecordStore(InMemoryRecordStore):
    """Record store persisted as a single JSON list in ``path``.

    The file is read lazily on first access and rewritten in full on every
    mutation. If it cannot be parsed, listing returns an empty collection and
    ``corruption`` holds the error; other calls raise StoreCorruptError until
    ``reset()`` is called.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = Path(path)
        self._loaded = False
        self.corruption: StoreCorruptError | None = None

    @property
    def path(self) -> Path:
        return self._path

    async def reset(self) -> Path | None:
        """Move a corrupt file aside and start with an empty collection.

        Returns the backup path, or None if the store was not corrupt.
        """
        async with self._lock:
            if self.corruption is None:
                return None
            backup = self._path.with_name(f"{self._path.name}.corrupt")
            await asyncio.to_thread(os.replace, self._path, backup)
            Log.warning(f"Moved corrupt scan history to {backup}")
            self._records = {}
            self.corruption = None
            self._loaded = True
            return backup

    async def _load(self) -> None:
        if self.corruption is not None:
            raise StoreCorruptError(str(self.corruption)) from self.corruption
        if self._loaded:
            return
        try:
            records = await asyncio.to_thread(read_collection, self._path)
        except StoreCorruptError as exc:
            Log.error(f"Scan history is corrupt: {exc}")
            self.corruption = exc
            raise
        self._records = {r.id: r for r in records}
        self._loaded = True
        Log.debug(f"Loaded {len(records)} scan records from {self._path}")

    async def _load_for_listing(self) -> bool:
        try:
            await self._load()
        except StoreCorruptError:
            return False
        return True

    async def _persist(self) -> None:
        await asyncio.to_thread(write_collection, self._path, list(self._records.values()))
