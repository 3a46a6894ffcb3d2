"""Tests for structlog configuration and credential redaction."""

import json

import pytest
import structlog

from authcore.core.logging import _redact_credentials, configure_logging


class TestRedactCredentials:
    def test_masks_credential_like_keys(self):
        event = _redact_credentials(
            None,
            "info",
            {
                "event": "login_failed",
                "password": "Str0ngPassword",
                "long_lived_token": "eyJhbGciOi.payload.sig",
                "code": "012345",
                "account_id": "0000-0001",
            },
        )
        assert event["event"] == "login_failed"
        assert event["password"] == "St***"
        assert event["long_lived_token"] == "ey***"
        assert event["code"] == "01***"
        assert event["account_id"] == "0000-0001"

    def test_leaves_short_and_non_string_values(self):
        event = _redact_credentials(None, "info", {"event": "x", "token": 3})
        assert event["token"] == 3


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def _restore_structlog(self):
        yield
        structlog.reset_defaults()

    def test_json_output_redacts(self, capsys: pytest.CaptureFixture[str]):
        configure_logging("INFO", json_output=True)
        structlog.get_logger().info("token_rejected", token="abcdefgh", kind="access")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        record = json.loads(line)
        assert record["event"] == "token_rejected"
        assert record["token"] == "ab***"
        assert record["kind"] == "access"
        assert record["level"] == "info"

    def test_level_filters_debug(self, capsys: pytest.CaptureFixture[str]):
        configure_logging("WARNING", json_output=True)
        structlog.get_logger().info("quiet")
        assert "quiet" not in capsys.readouterr().out
