"""Log processor behavior."""
from __future__ import annotations

from shared.utils.logging import REDACTED, redact_secrets


def test_top_level_secret_fields_masked() -> None:
    event = redact_secrets(None, "info", {"event": "reasoning_request", "api_key": "AIza-secret", "model": "gemini"})
    assert event["api_key"] == REDACTED
    assert event["model"] == "gemini"


def test_nested_header_secrets_masked() -> None:
    event = redact_secrets(None, "info", {
        "event": "reasoning_request",
        "headers": {"x-goog-api-key": "AIza-secret", "Content-Type": "application/json"},
    })
    assert event["headers"] == {"x-goog-api-key": REDACTED, "Content-Type": "application/json"}


def test_empty_secret_left_alone() -> None:
    assert redact_secrets(None, "info", {"api_key": ""})["api_key"] == ""
