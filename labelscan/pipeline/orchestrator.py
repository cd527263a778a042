import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import replace
from typing import Any

from labelscan.analysis.models import Analysis
from labelscan.logging.logger import Log
from labelscan.pipeline.status import StageStatus
from labelscan.pipeline.transitions import (
    PRECEDING_STAGE,
    AnalysisRetried,
    AnalysisSucceeded,
    ExtractionSucceeded,
    StageFailed,
    StageOutcome,
    StageStarted,
    UploadSucceeded,
    advance,
    changed_fields,
)
from labelscan.records.base import BaseRecordStore
from labelscan.records.models import ScanRecord, Stage, now_ms
from labelscan.stages.base import BaseAnalyzer, BaseTextExtractor, BaseUploader
from labelscan.stages.exceptions import MalformedResponseError, StageError
from labelscan.stages.image_loader import ImageLoader


class _Progress:
    """The last stored version of a record and its in-memory successor."""

    def __init__(self, record: ScanRecord) -> None:
        self.committed = record
        self.current = record


class PipelineOrchestrator:
    """Drives scan records through upload -> extract -> analyze.

    Each stage makes exactly one remote call. Successes and failures are
    written to the store before the next stage starts; stage failures end as a
    ``failed`` record and are never raised. Only RemoteUnavailableError and
    store/misuse errors reach the caller.

    At most one run per record id is in flight; concurrent ``run`` or
    ``retry_analysis`` calls for the same id join it. Cancelling a caller only
    detaches that caller; ``shutdown`` abandons the runs themselves.
    """

    def __init__(
        self,
        *,
        store: BaseRecordStore,
        image_loader: ImageLoader,
        uploader: BaseUploader,
        extractor: BaseTextExtractor,
        analyzer: BaseAnalyzer,
        status: StageStatus | None = None,
    ) -> None:
        self._store = store
        self._image_loader = image_loader
        self._uploader = uploader
        self._extractor = extractor
        self._analyzer = analyzer
        self.status = status if status is not None else StageStatus()
        self._inflight: dict[str, asyncio.Task[ScanRecord]] = {}

    def is_running(self, record_id: str) -> bool:
        return record_id in self._inflight

    async def run(self, record_id: str) -> ScanRecord:
        """Run the pipeline for a record from its last committed stage."""
        return await self._join_or_start(record_id, self._drive)

    async def retry_analysis(self, record_id: str) -> ScanRecord:
        """Repeat only the analyze stage using the stored extracted text.

        Raises:
            NoExtractedTextError: if text extraction never completed.
            InvalidTransitionError: if the record is not failed or extracted.
        """
        return await self._join_or_start(record_id, self._drive_retry)

    async def shutdown(self) -> None:
        """Abandon every in-flight run and wait for it to unwind.

        Each record keeps its last committed stage; a later ``run`` resumes
        from there. Callers still awaiting an abandoned run get CancelledError.
        """
        tasks = list(self._inflight.values())
        if not tasks:
            return
        Log.info(f"Abandoning {len(tasks)} in-flight pipeline runs")
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _join_or_start(
        self,
        record_id: str,
        drive: Callable[[str], Awaitable[ScanRecord]],
    ) -> ScanRecord:
        task = self._inflight.get(record_id)
        if task is not None:
            Log.info("Pipeline already in flight, joining it", record_id=record_id)
        else:
            task = asyncio.create_task(drive(record_id))
            self._inflight[record_id] = task

            def _forget(done: asyncio.Task[ScanRecord]) -> None:
                if self._inflight.get(record_id) is done:
                    del self._inflight[record_id]
                if not done.cancelled() and done.exception() is not None:
                    Log.debug(f"Pipeline run ended with {done.exception()!r}", record_id=record_id)

            task.add_done_callback(_forget)
        return await asyncio.shield(task)

    async def _drive(self, record_id: str) -> ScanRecord:
        progress = _Progress(await self._store.get(record_id))
        stage = progress.current.stage
        if stage.is_in_flight:
            resume = PRECEDING_STAGE[stage]
            Log.warning(
                f"Found interrupted {stage.value} stage, resuming from {resume.value}",
                record_id=record_id,
            )
            progress.current = replace(progress.current, stage=resume)
        if progress.current.is_terminal:
            Log.info(f"Record already {stage.value}, nothing to run", record_id=record_id)
            return progress.current

        try:
            while not progress.current.is_terminal:
                stage = progress.current.stage
                if stage is Stage.CREATED:
                    await self._run_stage(
                        progress, StageStarted(Stage.UPLOADING), self._upload, UploadSucceeded
                    )
                elif stage is Stage.UPLOADED:
                    await self._run_stage(
                        progress, StageStarted(Stage.EXTRACTING), self._extract, ExtractionSucceeded
                    )
                else:
                    await self._run_stage(
                        progress, StageStarted(Stage.ANALYZING), self._analyze, _analysis_succeeded
                    )
        finally:
            self.status.publish(record_id, None)
        return progress.current

    async def _drive_retry(self, record_id: str) -> ScanRecord:
        progress = _Progress(await self._store.get(record_id))
        start: StageOutcome = AnalysisRetried()
        if progress.current.stage is Stage.EXTRACTED:
            start = StageStarted(Stage.ANALYZING)
        Log.info("Retrying analysis", record_id=record_id)
        try:
            await self._run_stage(progress, start, self._analyze, _analysis_succeeded)
        finally:
            self.status.publish(record_id, None)
        return progress.current

    async def _run_stage(
        self,
        progress: _Progress,
        start: StageOutcome,
        call: Callable[[ScanRecord], Awaitable[Any]],
        succeeded: Callable[[Any], StageOutcome],
    ) -> None:
        await self._apply(progress, start)
        record = progress.current
        Log.info(f"Stage {record.stage.value} started", record_id=record.id)
        try:
            result = await call(record)
        except StageError as exc:
            raw_response = exc.raw_response if isinstance(exc, MalformedResponseError) else None
            Log.error(f"Stage {record.stage.value} failed: {exc}", record_id=record.id)
            if raw_response is not None:
                Log.debug(f"Raw response:\n{raw_response}", record_id=record.id)
            await self._apply(progress, StageFailed(str(exc), raw_response=raw_response))
            return
        await self._apply(progress, succeeded(result))
        Log.info(f"Stage {progress.current.stage.value} committed", record_id=record.id)

    async def _apply(self, progress: _Progress, outcome: StageOutcome) -> None:
        progress.current = advance(progress.current, outcome)
        if outcome.persisted:
            changes = changed_fields(progress.committed, progress.current)
            progress.committed = await self._store.update(progress.current.id, **changes)
            progress.current = progress.committed
        self.status.publish(progress.current.id, progress.current.stage)

    async def _upload(self, record: ScanRecord) -> str:
        image = await self._image_loader.load(record.image_ref)
        return await self._uploader.upload(image)

    async def _extract(self, record: ScanRecord) -> str:
        return await self._extractor.extract_text(record.remote_image_url or "")

    async def _analyze(self, record: ScanRecord) -> Analysis:
        return await self._analyzer.analyze(record.extracted_text or "")


def _analysis_succeeded(analysis: Analysis) -> StageOutcome:
    return AnalysisSucceeded(analysis=analysis, analyzed_at=now_ms())
