from dataclasses import dataclass, field
from pathlib import Path

import httpx

from labelscan.config.settings import Settings
from labelscan.logging.logger import Log
from labelscan.pipeline.orchestrator import PipelineOrchestrator
from labelscan.pipeline.status import StageStatus, StatusNotifier
from labelscan.records.base import BaseRecordStore
from labelscan.records.json_store import JsonFileRecordStore
from labelscan.records.models import ScanRecord, new_scan_record
from labelscan.stages.factory import StageClientsFactory


@dataclass(frozen=True)
class HistoryView:
    """Records for the history screen, newest first.

    ``corrupt`` is set when the stored history could not be read; ``records``
    is then empty.
    """

    records: list[ScanRecord] = field(default_factory=list)
    corrupt: bool = False
    error: str | None = None


class ScanService:
    """Consumer-facing operations: start a scan, view history, view a record,
    retry analysis, and resume unfinished scans after a restart."""

    def __init__(self, store: BaseRecordStore, orchestrator: PipelineOrchestrator) -> None:
        self._store = store
        self._orchestrator = orchestrator

    @property
    def store(self) -> BaseRecordStore:
        return self._store

    @property
    def orchestrator(self) -> PipelineOrchestrator:
        return self._orchestrator

    async def create_scan(self, image_ref: str) -> ScanRecord:
        """Persist a placeholder record for a captured image without running it."""
        record = new_scan_record(image_ref)
        await self._store.create(record)
        Log.info(f"Created scan for {image_ref}", record_id=record.id)
        return record

    async def start_scan(self, image_ref: str) -> ScanRecord:
        """Create a record for ``image_ref`` and run the full pipeline on it."""
        record = await self.create_scan(image_ref)
        return await self._orchestrator.run(record.id)

    async def history(self) -> HistoryView:
        records = await self._store.list()
        corruption = self._store.corruption
        if corruption is not None:
            return HistoryView(records=[], corrupt=True, error=str(corruption))
        return HistoryView(records=records)

    async def get(self, record_id: str) -> ScanRecord:
        return await self._store.get(record_id)

    async def retry_analysis(self, record_id: str) -> ScanRecord:
        return await self._orchestrator.retry_analysis(record_id)

    async def close(self) -> None:
        """Abandon scans still in flight; they resume on the next ``run``."""
        await self._orchestrator.shutdown()

    async def resume_pending(self) -> list[ScanRecord]:
        """Run every record that has not reached a terminal stage, oldest first."""
        pending = [r for r in await self._store.list() if not r.is_terminal]
        if pending:
            Log.info(f"Resuming {len(pending)} unfinished scans")
        resumed = []
        for record in reversed(pending):
            resumed.append(await self._orchestrator.run(record.id))
        return resumed


def build_scan_service(
    settings: Settings,
    *,
    images_root: Path | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    notifier: StatusNotifier | None = None,
) -> ScanService:
    """Build a ScanService backed by the JSON history file and HTTP stage clients."""
    Log.configure(settings.log_level)
    store = JsonFileRecordStore(settings.store_path)
    clients = StageClientsFactory.create(settings, images_root=images_root, transport=transport)
    status = StageStatus()
    if notifier is not None:
        notifier.attach(status)
    orchestrator = PipelineOrchestrator(
        store=store,
        image_loader=clients.image_loader,
        uploader=clients.uploader,
        extractor=clients.extractor,
        analyzer=clients.analyzer,
        status=status,
    )
    return ScanService(store, orchestrator)
