"""JSON-over-HTTP access to the remote stage endpoints."""

import json
from typing import Any

import httpx

from labelscan.logging.logger import Log
from labelscan.stages.exceptions import (
    MalformedResponseError,
    RemoteRejectedError,
    RemoteTransportError,
    RemoteUnavailableError,
)


class RemoteApiClient:
    """Posts JSON requests to the stage API and decodes the JSON replies.

    Replies follow one convention: ``{"success": true, ...}`` on success and
    ``{"error": "...", ...}`` on failure, whatever the HTTP status.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout_seconds: int,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.strip().rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        """POST ``payload`` to ``path`` and return the decoded success body.

        Raises:
            RemoteUnavailableError: if no base URL is configured.
            RemoteTransportError: on connection errors and timeouts.
            RemoteRejectedError: if the body carries an ``error`` field.
            MalformedResponseError: if the body is not a JSON object, or the
                server reports a parse failure alongside ``rawResponse``.
        """
        if not self._base_url:
            raise RemoteUnavailableError("Stage API base URL is not configured")
        url = f"{self._base_url}{path}"
        Log.debug(f"POST {url}")
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(
                    url, json=payload, headers={"Accept": "application/json"}
                )
        except httpx.HTTPError as exc:
            raise RemoteTransportError(f"Request to {path} failed: {exc}") from exc

        body = self._decode(response)
        error = body.get("error")
        raw_response = body.get("rawResponse")
        if error and isinstance(raw_response, str):
            raise MalformedResponseError(str(error), raw_response=raw_response)
        if error:
            raise RemoteRejectedError(str(error))
        if response.is_error:
            raise RemoteRejectedError(
                f"Request to {path} failed with status {response.status_code}"
            )
        return body

    @staticmethod
    def _decode(response: httpx.Response) -> dict[str, Any]:
        text = response.text
        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            if response.is_error:
                raise RemoteRejectedError(
                    f"Server responded with status {response.status_code}"
                ) from exc
            raise MalformedResponseError(
                "Invalid response from server", raw_response=text
            ) from exc
        if not isinstance(body, dict):
            raise MalformedResponseError(
                "Response body must be a JSON object", raw_response=text
            )
        return body
