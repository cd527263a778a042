"""Normalization of raw generative-model text into an Analysis."""

import json
import re
from typing import Any

from labelscan.analysis.models import Analysis
from labelscan.analysis.validator import validate_and_build
from labelscan.stages.exceptions import MalformedResponseError

_FENCE_RE = re.compile(r"```[A-Za-z]*[ \t]*\n?")
_BLANK_RUN_RE = re.compile(r"\n\s*\n+")


def normalize_response_text(raw: str) -> str:
    """Strip code-fence markers, trim, and collapse runs of blank lines.

    Pure text step; never raises.
    """
    text = _FENCE_RE.sub("", raw)
    text = text.strip()
    return _BLANK_RUN_RE.sub("\n", text)


def parse_json_object(raw: str) -> dict[str, Any]:
    """Parse the JSON object in a model response.

    Tries the normalized text first, then the outermost ``{...}`` span in case
    the object is surrounded by prose.

    Raises:
        MalformedResponseError: if no JSON object can be recovered.
    """
    cleaned = normalize_response_text(raw)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        parsed = _parse_embedded_object(cleaned, raw, exc)

    if not isinstance(parsed, dict):
        raise MalformedResponseError("JSON response must be an object", raw_response=raw)
    return parsed


def parse_analysis_response(raw: str) -> Analysis:
    """Normalize, parse and validate a raw analysis response."""
    return validate_and_build(parse_json_object(raw), raw_response=raw)


def _parse_embedded_object(cleaned: str, raw: str, decode_error: json.JSONDecodeError) -> Any:
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise MalformedResponseError(
            f"Invalid JSON response: {decode_error}", raw_response=raw
        ) from decode_error
    try:
        return json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(
            f"Invalid JSON response: {exc}", raw_response=raw
        ) from exc
