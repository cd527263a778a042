import time
import uuid
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from labelscan.analysis.models import Analysis, ProductInfo
from labelscan.analysis.validator import validate_and_build
from labelscan.stages.exceptions import MalformedResponseError

PROCESSING_PLACEHOLDER = "Processing..."


class Stage(str, Enum):
    """Pipeline position of a scan record."""

    CREATED = "created"
    UPLOADING = "uploading"
    UPLOADED = "uploaded"
    EXTRACTING = "extracting"
    EXTRACTED = "extracted"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    FAILED = "failed"

    @property
    def is_in_flight(self) -> bool:
        return self in (Stage.UPLOADING, Stage.EXTRACTING, Stage.ANALYZING)

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.ANALYZED, Stage.FAILED)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class ScanRecord:
    """One user scan and everything the pipeline has produced for it.

    ``analysis`` is only present while ``stage`` is ANALYZED; ``last_error`` and
    ``failed_stage`` only while it is FAILED.
    """

    id: str
    created_at: int
    image_ref: str
    stage: Stage = Stage.CREATED
    remote_image_url: str | None = None
    extracted_text: str | None = None
    analysis: Analysis | None = None
    analyzed_at: int | None = None
    last_error: str | None = None
    failed_stage: Stage | None = None
    raw_analysis_response: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal

    @property
    def can_retry_analysis(self) -> bool:
        return self.stage is Stage.FAILED and bool(self.extracted_text)

    @property
    def harmful_ingredients_count(self) -> int:
        return len(self.analysis.harmful_ingredients) if self.analysis else 0

    @property
    def allergens_count(self) -> int:
        return len(self.analysis.allergens) if self.analysis else 0

    @property
    def product_info(self) -> ProductInfo:
        if self.analysis is not None:
            return self.analysis.product_info
        return ProductInfo(
            type=PROCESSING_PLACEHOLDER,
            name=PROCESSING_PLACEHOLDER,
            brand=PROCESSING_PLACEHOLDER,
        )


IMMUTABLE_FIELDS = frozenset({"id", "created_at", "image_ref"})
RECORD_FIELDS = frozenset(f.name for f in fields(ScanRecord))


def new_scan_record(image_ref: str, created_at: int | None = None) -> ScanRecord:
    """Build a fresh placeholder record for a just-captured image."""
    return ScanRecord(
        id=uuid.uuid4().hex,
        created_at=created_at if created_at is not None else now_ms(),
        image_ref=image_ref,
    )


def record_to_dict(record: ScanRecord) -> dict[str, Any]:
    """Serialize to the persisted shape (camelCase keys)."""
    return {
        "id": record.id,
        "createdAt": record.created_at,
        "imageRef": record.image_ref,
        "stage": record.stage.value,
        "remoteImageUrl": record.remote_image_url,
        "extractedText": record.extracted_text,
        "analysis": record.analysis.to_dict() if record.analysis else None,
        "analyzedAt": record.analyzed_at,
        "lastError": record.last_error,
        "failedStage": record.failed_stage.value if record.failed_stage else None,
        "rawAnalysisResponse": record.raw_analysis_response,
    }


def record_from_dict(data: Any) -> ScanRecord:
    """Deserialize a persisted record; absent optional keys default to None.

    Raises:
        ValueError: if the entry is not a well-formed record.
    """
    if not isinstance(data, dict):
        raise ValueError("record entry must be an object")
    try:
        record_id = data["id"]
        created_at = data["createdAt"]
        image_ref = data["imageRef"]
    except KeyError as exc:
        raise ValueError(f"record entry is missing {exc}") from exc
    if not isinstance(record_id, str) or not record_id:
        raise ValueError("record 'id' must be a non-empty string")
    if not isinstance(created_at, int):
        raise ValueError(f"record {record_id}: 'createdAt' must be an integer")

    analysis = None
    if data.get("analysis") is not None:
        try:
            analysis = validate_and_build(data["analysis"])
        except MalformedResponseError as exc:
            raise ValueError(f"record {record_id}: {exc}") from exc

    failed_stage = data.get("failedStage")
    record = ScanRecord(
        id=record_id,
        created_at=created_at,
        image_ref=str(image_ref),
        stage=Stage(data.get("stage", Stage.CREATED.value)),
        remote_image_url=data.get("remoteImageUrl"),
        extracted_text=data.get("extractedText"),
        analysis=analysis,
        analyzed_at=data.get("analyzedAt"),
        last_error=data.get("lastError"),
        failed_stage=Stage(failed_stage) if failed_stage else None,
        raw_analysis_response=data.get("rawAnalysisResponse"),
    )
    _check_consistency(record)
    return record


# Outputs a record must already hold once it has committed each stage.
_REQUIRED_OUTPUTS = {
    Stage.UPLOADED: ("remote_image_url",),
    Stage.EXTRACTED: ("remote_image_url", "extracted_text"),
    Stage.ANALYZED: ("remote_image_url", "extracted_text", "analysis"),
}


def _check_consistency(record: ScanRecord) -> None:
    if record.analysis is not None and record.stage is not Stage.ANALYZED:
        raise ValueError(
            f"record {record.id}: has an analysis but stage is {record.stage.value}"
        )
    missing = [
        name
        for name in _REQUIRED_OUTPUTS.get(record.stage, ())
        if getattr(record, name) is None
    ]
    if missing:
        raise ValueError(
            f"record {record.id}: stage {record.stage.value} is missing {', '.join(missing)}"
        )
