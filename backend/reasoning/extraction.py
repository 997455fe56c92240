"""
Coerce free-text model output into a JSON object.

Models wrap JSON in markdown fences or lead with prose no matter how firmly
they are told not to, so extraction strips fences and parses the span from
the first ``{`` to the last ``}``.
"""
from __future__ import annotations

import json
import re
from typing import Any, Optional

from shared.errors import MalformedResponse
from shared.utils.logging import get_logger

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


def parse_json_object(text: str) -> dict[str, Any]:
    """
    Extract and parse the JSON object embedded in ``text``.

    Raises:
        MalformedResponse: no brace-delimited span, or the span is not valid JSON.
    """
    cleaned = _FENCE_RE.sub("", text or "").strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        raise MalformedResponse("no JSON object in response")
    try:
        return json.loads(cleaned[start : end + 1])
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"invalid JSON: {exc.msg} at {exc.pos}") from exc


def extract_json(text: Optional[str]) -> Optional[dict[str, Any]]:
    """Like parse_json_object, but returns None instead of raising."""
    if not text:
        return None
    try:
        return parse_json_object(text)
    except MalformedResponse as exc:
        logger.warning("reasoning_json_parse_failed", error=str(exc), preview=text[:120])
        return None
