import httpx
import openai

from labelscan.analysis.client_base import BaseAnalysisClient
from labelscan.logging.logger import Log
from labelscan.stages.exceptions import (
    MalformedResponseError,
    RemoteRejectedError,
    RemoteTransportError,
)


class OpenAIClientAdapter(BaseAnalysisClient):
    """Analysis client for OpenAI and OpenAI-compatible chat endpoints.

    Provider failures are reported with the stage error types. An error status
    or a refusal is a rejection; no answer at all is a transport failure.
    Empty or truncated content is malformed.
    """

    SCHEMA_NAME = "product_analysis"

    def __init__(
        self,
        *,
        api_key: str,
        timeout_seconds: int,
        base_url: str | None = None,
    ) -> None:
        self._client = openai.AsyncOpenAI(
            api_key=api_key,
            timeout=timeout_seconds,
            base_url=base_url,
        )

    async def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, object],
    ) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=model,
                temperature=temperature,
                response_format=self._response_format(json_schema),
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
            )
        except openai.APIStatusError as exc:
            raise RemoteRejectedError(
                f"AI provider rejected the request (status {exc.status_code}): {exc.message}"
            ) from exc
        except (openai.APIConnectionError, httpx.TransportError) as exc:
            raise RemoteTransportError(f"AI provider network error: {exc}") from exc
        except openai.APIError as exc:
            raise RemoteTransportError(f"AI provider API error: {exc}") from exc

        if not response.choices:
            raise MalformedResponseError("AI returned no choices")
        choice = response.choices[0]
        if choice.message.refusal:
            raise RemoteRejectedError(f"AI refused to analyze the label: {choice.message.refusal}")
        content = choice.message.content
        if content is None:
            raise MalformedResponseError("AI returned empty response")
        if choice.finish_reason == "length":
            Log.warning(f"AI response for {model} hit the token limit")
            raise MalformedResponseError("AI response was truncated", raw_response=content)
        return content

    @classmethod
    def _response_format(cls, json_schema: dict[str, object]) -> dict[str, object]:
        return {
            "type": "json_schema",
            "json_schema": {"name": cls.SCHEMA_NAME, "strict": True, "schema": json_schema},
        }
