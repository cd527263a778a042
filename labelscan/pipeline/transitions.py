"""Scan record state machine.

``advance`` is a pure function: it returns the next record for an outcome, or
raises if the outcome is illegal in the current stage. Outcomes with
``persisted = True`` are the ones the orchestrator writes to the store;
stage starts only change the in-memory stage.

    created    --start-->             uploading
    uploading  --UploadSucceeded-->   uploaded
    uploaded   --start-->             extracting
    extracting --ExtractionSucceeded--> extracted
    extracted  --start-->             analyzing
    analyzing  --AnalysisSucceeded--> analyzed
    failed     --AnalysisRetried-->   analyzing  (needs extracted_text)
    uploading|extracting|analyzing --StageFailed--> failed
"""

from dataclasses import dataclass, fields, replace
from typing import ClassVar, Union

from labelscan.analysis.models import Analysis
from labelscan.pipeline.exceptions import InvalidTransitionError, NoExtractedTextError
from labelscan.records.models import ScanRecord, Stage

# Committed stage each in-flight stage starts from, and resumes from after an
# interrupted run.
PRECEDING_STAGE = {
    Stage.UPLOADING: Stage.CREATED,
    Stage.EXTRACTING: Stage.UPLOADED,
    Stage.ANALYZING: Stage.EXTRACTED,
}


@dataclass(frozen=True)
class StageStarted:
    stage: Stage
    persisted: ClassVar[bool] = False


@dataclass(frozen=True)
class AnalysisRetried:
    persisted: ClassVar[bool] = False


@dataclass(frozen=True)
class UploadSucceeded:
    url: str
    persisted: ClassVar[bool] = True


@dataclass(frozen=True)
class ExtractionSucceeded:
    text: str
    persisted: ClassVar[bool] = True


@dataclass(frozen=True)
class AnalysisSucceeded:
    analysis: Analysis
    analyzed_at: int
    persisted: ClassVar[bool] = True


@dataclass(frozen=True)
class StageFailed:
    message: str
    raw_response: str | None = None
    persisted: ClassVar[bool] = True


StageOutcome = Union[
    StageStarted,
    AnalysisRetried,
    UploadSucceeded,
    ExtractionSucceeded,
    AnalysisSucceeded,
    StageFailed,
]


def advance(record: ScanRecord, outcome: StageOutcome) -> ScanRecord:
    """Return the record that results from applying ``outcome``.

    Raises:
        InvalidTransitionError: if ``outcome`` is not legal in ``record.stage``.
        NoExtractedTextError: if analysis is retried without extracted text.
    """
    if isinstance(outcome, StageStarted):
        return _start(record, outcome.stage)
    if isinstance(outcome, AnalysisRetried):
        return _retry_analysis(record)
    if isinstance(outcome, UploadSucceeded):
        _require(record, Stage.UPLOADING, outcome)
        return _succeed(record, Stage.UPLOADED, remote_image_url=outcome.url)
    if isinstance(outcome, ExtractionSucceeded):
        _require(record, Stage.EXTRACTING, outcome)
        return _succeed(record, Stage.EXTRACTED, extracted_text=outcome.text)
    if isinstance(outcome, AnalysisSucceeded):
        _require(record, Stage.ANALYZING, outcome)
        return _succeed(
            record,
            Stage.ANALYZED,
            analysis=outcome.analysis,
            analyzed_at=outcome.analyzed_at,
            raw_analysis_response=None,
        )
    if isinstance(outcome, StageFailed):
        return _fail(record, outcome)
    raise InvalidTransitionError(f"Unknown outcome {outcome!r}")


def changed_fields(before: ScanRecord, after: ScanRecord) -> dict[str, object]:
    """Fields whose values differ between two versions of the same record."""
    return {
        f.name: getattr(after, f.name)
        for f in fields(ScanRecord)
        if getattr(before, f.name) != getattr(after, f.name)
    }


def _start(record: ScanRecord, stage: Stage) -> ScanRecord:
    required = PRECEDING_STAGE.get(stage)
    if required is None:
        raise InvalidTransitionError(f"{stage.value} is not a stage that can be started")
    if record.stage is not required:
        raise InvalidTransitionError(
            f"Record {record.id}: cannot start {stage.value} from {record.stage.value}"
        )
    if stage is Stage.EXTRACTING and not record.remote_image_url:
        raise InvalidTransitionError(f"Record {record.id}: no uploaded image URL")
    if stage is Stage.ANALYZING and not record.extracted_text:
        raise NoExtractedTextError(f"Record {record.id} has no extracted text")
    return replace(record, stage=stage)


def _retry_analysis(record: ScanRecord) -> ScanRecord:
    if not record.extracted_text:
        raise NoExtractedTextError(f"Record {record.id} has no extracted text")
    if record.stage is not Stage.FAILED:
        raise InvalidTransitionError(
            f"Record {record.id}: analysis can only be retried after a failure, "
            f"stage is {record.stage.value}"
        )
    return replace(record, stage=Stage.ANALYZING, last_error=None, failed_stage=None)


def _succeed(record: ScanRecord, stage: Stage, **changes: object) -> ScanRecord:
    return replace(record, stage=stage, last_error=None, failed_stage=None, **changes)


def _fail(record: ScanRecord, outcome: StageFailed) -> ScanRecord:
    if not record.stage.is_in_flight:
        raise InvalidTransitionError(
            f"Record {record.id}: no stage in flight to fail (stage is {record.stage.value})"
        )
    raw_response = record.raw_analysis_response
    if record.stage is Stage.ANALYZING:
        raw_response = outcome.raw_response
    return replace(
        record,
        stage=Stage.FAILED,
        last_error=outcome.message,
        failed_stage=record.stage,
        analysis=None,
        analyzed_at=None,
        raw_analysis_response=raw_response,
    )


def _require(record: ScanRecord, stage: Stage, outcome: StageOutcome) -> None:
    if record.stage is not stage:
        raise InvalidTransitionError(
            f"Record {record.id}: {type(outcome).__name__} needs stage {stage.value}, "
            f"stage is {record.stage.value}"
        )
