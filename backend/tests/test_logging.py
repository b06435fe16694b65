"""Tests for logging configuration."""

from dropmirror.core.logging import redact_secrets


def test_redacts_token_values():
    event = {"event": "oauth_code_exchange_complete", "access_token": "sl.abc", "refresh_token": "rt"}

    result = redact_secrets(None, "info", event)

    assert result["access_token"] == "[redacted]"
    assert result["refresh_token"] == "[redacted]"
    assert result["event"] == "oauth_code_exchange_complete"


def test_keeps_error_codes():
    event = {"event": "dropbox_download_failed", "code": "ACCESS_DENIED", "email": "a@example.com"}

    assert redact_secrets(None, "error", dict(event)) == event
