from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import openai
import pytest

from labelscan.analysis.openai_client_adapter import OpenAIClientAdapter
from labelscan.stages.exceptions import (
    MalformedResponseError,
    RemoteRejectedError,
    RemoteTransportError,
)


def _make_mock_response(
    content: str | None,
    *,
    refusal: str | None = None,
    finish_reason: str = "stop",
) -> MagicMock:
    choice = MagicMock()
    choice.message.content = content
    choice.message.refusal = refusal
    choice.finish_reason = finish_reason
    response = MagicMock()
    response.choices = [choice]
    return response


def _make_adapter(create: AsyncMock) -> OpenAIClientAdapter:
    mock_client = MagicMock()
    mock_client.chat.completions.create = create
    with patch(
        "labelscan.analysis.openai_client_adapter.openai.AsyncOpenAI",
        return_value=mock_client,
    ):
        return OpenAIClientAdapter(api_key="k", timeout_seconds=30, base_url=None)


async def _complete(adapter: OpenAIClientAdapter) -> str:
    return await adapter.create_chat_completion(
        model="m",
        temperature=0.1,
        system_prompt="system",
        user_prompt="user",
        json_schema={"type": "object"},
    )


class TestOpenAIClientAdapter:
    async def test_returns_content(self) -> None:
        create = AsyncMock(return_value=_make_mock_response('{"ok": true}'))
        adapter = _make_adapter(create)
        assert await _complete(adapter) == '{"ok": true}'

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "m"
        assert kwargs["response_format"]["json_schema"]["name"] == "product_analysis"
        assert kwargs["response_format"]["json_schema"]["schema"] == {"type": "object"}
        assert kwargs["messages"][1] == {"role": "user", "content": "user"}

    async def test_raises_error_for_empty_content(self) -> None:
        adapter = _make_adapter(AsyncMock(return_value=_make_mock_response(None)))
        with pytest.raises(MalformedResponseError, match="empty response"):
            await _complete(adapter)

    async def test_raises_error_for_no_choices(self) -> None:
        response = MagicMock()
        response.choices = []
        adapter = _make_adapter(AsyncMock(return_value=response))
        with pytest.raises(MalformedResponseError, match="no choices"):
            await _complete(adapter)

    async def test_truncated_content_keeps_raw_text(self) -> None:
        adapter = _make_adapter(
            AsyncMock(return_value=_make_mock_response('{"productInfo": {', finish_reason="length"))
        )
        with pytest.raises(MalformedResponseError, match="truncated") as exc_info:
            await _complete(adapter)
        assert exc_info.value.raw_response == '{"productInfo": {'

    async def test_refusal_is_a_rejection(self) -> None:
        adapter = _make_adapter(
            AsyncMock(return_value=_make_mock_response(None, refusal="I can't help with that"))
        )
        with pytest.raises(RemoteRejectedError, match="refused"):
            await _complete(adapter)

    async def test_error_status_is_a_rejection(self) -> None:
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        error = openai.APIStatusError(
            "quota exceeded",
            response=httpx.Response(429, request=request),
            body=None,
        )
        adapter = _make_adapter(AsyncMock(side_effect=error))
        with pytest.raises(RemoteRejectedError, match="status 429"):
            await _complete(adapter)

    async def test_raises_transport_error_on_connection_failure(self) -> None:
        adapter = _make_adapter(
            AsyncMock(side_effect=openai.APIConnectionError(request=MagicMock()))
        )
        with pytest.raises(RemoteTransportError, match="network error"):
            await _complete(adapter)

    async def test_raises_transport_error_on_timeout(self) -> None:
        adapter = _make_adapter(AsyncMock(side_effect=httpx.TimeoutException("timeout")))
        with pytest.raises(RemoteTransportError, match="network error"):
            await _complete(adapter)

    async def test_raises_transport_error_on_api_error(self) -> None:
        adapter = _make_adapter(
            AsyncMock(
                side_effect=openai.APIError(
                    message="server error", request=MagicMock(), body=None
                )
            )
        )
        with pytest.raises(RemoteTransportError, match="API error"):
            await _complete(adapter)
