import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest

from labelscan.analysis.models import Analysis
from labelscan.analysis.validator import validate_and_build
from labelscan.pipeline.orchestrator import PipelineOrchestrator
from labelscan.pipeline.status import StageStatus
from labelscan.records.memory_store import InMemoryRecordStore
from labelscan.stages.base import BaseAnalyzer, BaseTextExtractor, BaseUploader
from labelscan.stages.image_loader import ImageLoader

IMAGE_URL = "https://x/img.jpg"
LABEL_TEXT = "Water, Glycerin"


def analysis_payload(
    harmful: list[dict[str, object]] | None = None,
    allergens: list[str] | None = None,
) -> dict[str, Any]:
    """Build a minimal valid analysis payload in wire format."""
    return {
        "productInfo": {
            "type": "Moisturizer",
            "name": "Hydrating Lotion (not confirmed)",
            "brand": "Acme",
        },
        "harmfulIngredients": harmful or [],
        "ingredients": [
            {
                "name": "Water",
                "purpose": "Solvent",
                "description": "Base of the formula",
                "safetyInfo": "Safe",
            },
            {
                "name": "Glycerin",
                "purpose": "Humectant",
                "description": "Draws moisture into the skin",
                "safetyInfo": "Generally recognized as safe",
            },
        ],
        "allergens": allergens or [],
        "dietary": {"isVegan": True, "isVegetarian": True, "restrictions": []},
        "environmentalImpact": {"rating": "low", "details": "Biodegradable"},
    }


def make_analysis(**kwargs: Any) -> Analysis:
    return validate_and_build(analysis_payload(**kwargs))


class ScriptedStage:
    """Returns queued results, raising any queued exception; the last one repeats.

    Set ``gate`` to an asyncio.Event to hold calls until it is set.
    """

    def __init__(self, *results: object) -> None:
        self.results = list(results)
        self.calls: list[object] = []
        self.gate: asyncio.Event | None = None

    async def _next(self, argument: object) -> Any:
        self.calls.append(argument)
        if self.gate is not None:
            await self.gate.wait()
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, BaseException):
            raise result
        return result


class GatedRecordStore(InMemoryRecordStore):
    """Holds each write until ``gate`` is set; fails it when ``error`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate: asyncio.Event | None = None
        self.writing = asyncio.Event()
        self.error: Exception | None = None

    async def _persist(self) -> None:
        self.writing.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error


class FakeUploader(ScriptedStage, BaseUploader):
    async def upload(self, image: bytes) -> str:
        return await self._next(image)


class FakeExtractor(ScriptedStage, BaseTextExtractor):
    async def extract_text(self, image_url: str) -> str:
        return await self._next(image_url)


class FakeAnalyzer(ScriptedStage, BaseAnalyzer):
    async def analyze(self, text: str) -> Analysis:
        return await self._next(text)


@dataclass
class Harness:
    store: GatedRecordStore
    orchestrator: PipelineOrchestrator
    uploader: FakeUploader
    extractor: FakeExtractor
    analyzer: FakeAnalyzer
    status: StageStatus


@pytest.fixture()
def image_file(tmp_path: Path) -> Path:
    path = tmp_path / "label.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0fake-jpeg")
    return path


@pytest.fixture()
def harness() -> Harness:
    store = GatedRecordStore()
    uploader = FakeUploader(IMAGE_URL)
    extractor = FakeExtractor(LABEL_TEXT)
    analyzer = FakeAnalyzer(make_analysis())
    status = StageStatus()
    orchestrator = PipelineOrchestrator(
        store=store,
        image_loader=ImageLoader(),
        uploader=uploader,
        extractor=extractor,
        analyzer=analyzer,
        status=status,
    )
    return Harness(store, orchestrator, uploader, extractor, analyzer, status)
