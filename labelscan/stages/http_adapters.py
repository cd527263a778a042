import base64
import json

from labelscan.analysis.models import Analysis
from labelscan.analysis.validator import validate_and_build
from labelscan.stages.base import BaseAnalyzer, BaseTextExtractor, BaseUploader
from labelscan.stages.exceptions import MalformedResponseError, RemoteRejectedError
from labelscan.stages.http_client import RemoteApiClient

UPLOAD_PATH = "/api/upload"
EXTRACT_TEXT_PATH = "/api/extract-text"
ANALYZE_PATH = "/api/analyze-product"


class HttpUploader(BaseUploader):
    """Uploads the image as base64 and returns the hosted URL."""

    def __init__(self, client: RemoteApiClient) -> None:
        self._client = client

    async def upload(self, image: bytes) -> str:
        encoded = base64.b64encode(image).decode("ascii")
        body = await self._client.post(UPLOAD_PATH, {"base64": encoded})
        url = body.get("secure_url") or body.get("url")
        if not isinstance(url, str) or not url:
            raise MalformedResponseError("No URL received from server")
        return url


class HttpTextExtractor(BaseTextExtractor):
    def __init__(self, client: RemoteApiClient) -> None:
        self._client = client

    async def extract_text(self, image_url: str) -> str:
        body = await self._client.post(EXTRACT_TEXT_PATH, {"imageUrl": image_url})
        text = body.get("text")
        if text is None:
            raise RemoteRejectedError("No text found in image")
        if not isinstance(text, str):
            raise MalformedResponseError("'text' must be a string")
        if not text.strip():
            raise RemoteRejectedError("No text found in image")
        return text


class HttpAnalyzer(BaseAnalyzer):
    """Delegates analysis to the remote analyze-product endpoint."""

    def __init__(self, client: RemoteApiClient) -> None:
        self._client = client

    async def analyze(self, text: str) -> Analysis:
        body = await self._client.post(ANALYZE_PATH, {"extractedText": text})
        if "analysis" not in body:
            raise MalformedResponseError("Response has no 'analysis' field")
        payload = body["analysis"]
        return validate_and_build(payload, raw_response=json.dumps(payload))
