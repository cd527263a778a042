import asyncio
from pathlib import Path

import pytest

from conftest import IMAGE_URL, LABEL_TEXT, Harness
from labelscan.records.json_store import JsonFileRecordStore
from labelscan.records.models import ScanRecord, Stage
from labelscan.scanner.service import ScanService
from labelscan.stages.exceptions import RemoteRejectedError


def _make_service(harness: Harness) -> ScanService:
    return ScanService(harness.store, harness.orchestrator)


class TestStartScan:
    async def test_runs_full_pipeline(self, harness: Harness, image_file: Path) -> None:
        service = _make_service(harness)
        record = await service.start_scan(str(image_file))

        assert record.stage is Stage.ANALYZED
        assert record.remote_image_url == IMAGE_URL
        assert await service.get(record.id) == record

    async def test_create_scan_does_not_run(self, harness: Harness, image_file: Path) -> None:
        service = _make_service(harness)
        record = await service.create_scan(str(image_file))
        assert record.stage is Stage.CREATED
        assert harness.uploader.calls == []


class TestHistory:
    async def test_newest_first(self, harness: Harness, image_file: Path) -> None:
        await harness.store.create(ScanRecord(id="old", created_at=1, image_ref="a"))
        await harness.store.create(ScanRecord(id="new", created_at=2, image_ref="b"))

        view = await _make_service(harness).history()

        assert not view.corrupt
        assert [r.id for r in view.records] == ["new", "old"]

    async def test_corrupt_history(self, harness: Harness, tmp_path: Path) -> None:
        path = tmp_path / "history.json"
        path.write_text("{not json")
        service = ScanService(JsonFileRecordStore(path), harness.orchestrator)

        view = await service.history()

        assert view.corrupt
        assert view.records == []
        assert view.error


class TestRetryAndResume:
    async def test_retry_after_analysis_failure(self, harness: Harness, image_file: Path) -> None:
        harness.analyzer.results = [RemoteRejectedError("model overloaded"), harness.analyzer.results[0]]
        service = _make_service(harness)

        failed = await service.start_scan(str(image_file))
        assert failed.stage is Stage.FAILED
        assert failed.can_retry_analysis

        retried = await service.retry_analysis(failed.id)
        assert retried.stage is Stage.ANALYZED
        assert harness.uploader.calls == [image_file.read_bytes()]

    async def test_resume_pending_oldest_first(self, harness: Harness, image_file: Path) -> None:
        await harness.store.create(
            ScanRecord(id="b", created_at=2, image_ref=str(image_file))
        )
        await harness.store.create(
            ScanRecord(
                id="a",
                created_at=1,
                image_ref=str(image_file),
                stage=Stage.UPLOADED,
                remote_image_url=IMAGE_URL,
            )
        )
        await harness.store.create(
            ScanRecord(id="done", created_at=3, image_ref="x", stage=Stage.FAILED, last_error="e")
        )

        resumed = await _make_service(harness).resume_pending()

        assert [r.id for r in resumed] == ["a", "b"]
        assert all(r.stage is Stage.ANALYZED for r in resumed)
        assert harness.extractor.calls == [IMAGE_URL, IMAGE_URL]
        assert harness.analyzer.calls == [LABEL_TEXT, LABEL_TEXT]
        assert (await harness.store.get("done")).stage is Stage.FAILED


class TestClose:
    async def test_close_abandons_scans_in_flight(
        self, harness: Harness, image_file: Path
    ) -> None:
        harness.uploader.gate = asyncio.Event()
        service = _make_service(harness)
        record = await service.create_scan(str(image_file))
        scan = asyncio.create_task(service.orchestrator.run(record.id))
        while not harness.uploader.calls:
            await asyncio.sleep(0)

        await service.close()

        with pytest.raises(asyncio.CancelledError):
            await scan
        assert (await service.get(record.id)).stage is Stage.CREATED
        harness.uploader.gate = None
        [resumed] = await service.resume_pending()
        assert resumed.stage is Stage.ANALYZED
