from dataclasses import dataclass
from pathlib import Path

import httpx

from labelscan.analysis.factory import AnalyzerFactory
from labelscan.config.settings import Settings
from labelscan.stages.base import BaseAnalyzer, BaseTextExtractor, BaseUploader
from labelscan.stages.http_adapters import HttpTextExtractor, HttpUploader
from labelscan.stages.http_client import RemoteApiClient
from labelscan.stages.image_loader import ImageLoader


@dataclass(frozen=True)
class StageClients:
    """The three remote stage boundaries plus local image access."""

    image_loader: ImageLoader
    uploader: BaseUploader
    extractor: BaseTextExtractor
    analyzer: BaseAnalyzer


class StageClientsFactory:
    """Creates the configured stage clients."""

    @classmethod
    def create(
        cls,
        settings: Settings,
        *,
        images_root: Path | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> StageClients:
        api_client = RemoteApiClient(
            base_url=settings.api_base_url,
            timeout_seconds=settings.api_timeout_seconds,
            transport=transport,
        )
        return StageClients(
            image_loader=ImageLoader(images_root=images_root),
            uploader=HttpUploader(api_client),
            extractor=HttpTextExtractor(api_client),
            analyzer=AnalyzerFactory.create(settings, api_client),
        )
