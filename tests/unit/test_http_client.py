import json

import httpx
import pytest

from labelscan.stages.exceptions import (
    MalformedResponseError,
    RemoteRejectedError,
    RemoteTransportError,
    RemoteUnavailableError,
)
from labelscan.stages.http_client import RemoteApiClient


def _make_client(handler, base_url: str = "http://stage.test/") -> RemoteApiClient:
    return RemoteApiClient(
        base_url=base_url, timeout_seconds=5, transport=httpx.MockTransport(handler)
    )


class TestRemoteApiClient:
    async def test_posts_json_and_returns_body(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "text": "Water"})

        body = await _make_client(handler).post("/api/extract-text", {"imageUrl": "u"})

        assert body["text"] == "Water"
        assert str(seen[0].url) == "http://stage.test/api/extract-text"
        assert json.loads(seen[0].content) == {"imageUrl": "u"}

    async def test_missing_base_url(self) -> None:
        client = RemoteApiClient(base_url="  ", timeout_seconds=5)
        with pytest.raises(RemoteUnavailableError):
            await client.post("/api/upload", {})

    async def test_error_field_is_rejection(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "quota exceeded"})

        with pytest.raises(RemoteRejectedError, match="quota exceeded"):
            await _make_client(handler).post("/api/upload", {})

    async def test_error_with_raw_response_is_malformed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                500, json={"error": "Failed to parse analysis", "rawResponse": "not json"}
            )

        with pytest.raises(MalformedResponseError) as exc_info:
            await _make_client(handler).post("/api/analyze-product", {})
        assert exc_info.value.raw_response == "not json"

    async def test_error_status_without_error_field(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, json={})

        with pytest.raises(RemoteRejectedError, match="status 503"):
            await _make_client(handler).post("/api/upload", {})

    async def test_non_json_success_is_malformed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        with pytest.raises(MalformedResponseError, match="Invalid response"):
            await _make_client(handler).post("/api/upload", {})

    async def test_non_json_error_is_rejection(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad Gateway")

        with pytest.raises(RemoteRejectedError, match="status 502"):
            await _make_client(handler).post("/api/upload", {})

    async def test_non_object_body_is_malformed(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[1, 2])

        with pytest.raises(MalformedResponseError, match="JSON object"):
            await _make_client(handler).post("/api/upload", {})

    async def test_connection_error_is_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(RemoteTransportError, match="refused"):
            await _make_client(handler).post("/api/upload", {})
