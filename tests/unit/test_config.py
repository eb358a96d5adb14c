"""Unit tests for startup config validation and logging setup."""

from __future__ import annotations

import json
import logging

import pytest

from drive_bridge import config
from drive_bridge.logging_config import (
    GCPJsonFormatter,
    RequestIdFilter,
    generate_request_id,
    request_id_var,
    setup_logging,
)


@pytest.fixture()
def valid_oauth(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    monkeypatch.setattr(config, "DRIVE_AUTH_MODE", "oauth")
    monkeypatch.setattr(config, "GOOGLE_CLIENT_ID", "cid")
    monkeypatch.setattr(config, "GOOGLE_CLIENT_SECRET", "secret")
    monkeypatch.setattr(config, "DRIVE_GOOGLE_DOC_MODE", "export")
    return monkeypatch


class TestValidateConfig:
    def test_valid(self, valid_oauth):
        config.validate_config()

    def test_adc_needs_no_client(self, valid_oauth):
        valid_oauth.setattr(config, "DRIVE_AUTH_MODE", "adc")
        valid_oauth.setattr(config, "GOOGLE_CLIENT_ID", None)
        config.validate_config()

    def test_unknown_auth_mode(self, valid_oauth):
        valid_oauth.setattr(config, "DRIVE_AUTH_MODE", "basic")
        with pytest.raises(ValueError, match="DRIVE_AUTH_MODE"):
            config.validate_config()

    def test_oauth_missing_secret(self, valid_oauth):
        valid_oauth.setattr(config, "GOOGLE_CLIENT_SECRET", None)
        with pytest.raises(ValueError, match="GOOGLE_CLIENT_SECRET"):
            config.validate_config()

    def test_unknown_doc_mode(self, valid_oauth):
        valid_oauth.setattr(config, "DRIVE_GOOGLE_DOC_MODE", "html")
        with pytest.raises(ValueError, match="DRIVE_GOOGLE_DOC_MODE"):
            config.validate_config()

    def test_negative_timeout(self, valid_oauth):
        valid_oauth.setattr(config, "DRIVE_FETCH_TIMEOUT_SECONDS", -1.0)
        with pytest.raises(ValueError, match="TIMEOUT"):
            config.validate_config()

    def test_tiny_chunk_size(self, valid_oauth):
        valid_oauth.setattr(config, "DRIVE_DOWNLOAD_CHUNK_BYTES", 1024)
        with pytest.raises(ValueError, match="CHUNK"):
            config.validate_config()

    def test_session_cap_must_be_positive(self, valid_oauth):
        valid_oauth.setattr(config, "SESSION_MAX_ACTIVE", 0)
        with pytest.raises(ValueError, match="SESSION_MAX_ACTIVE"):
            config.validate_config()

    def test_default_limit_above_max(self, valid_oauth):
        valid_oauth.setattr(config, "DRIVE_LIST_DEFAULT_LIMIT", 5000)
        with pytest.raises(ValueError, match="DRIVE_LIST_DEFAULT_LIMIT"):
            config.validate_config()


class TestEnvHelpers:
    def test_env_bool(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("X_FLAG", " Yes ")
        assert config._env_bool("X_FLAG") is True
        monkeypatch.setenv("X_FLAG", "0")
        assert config._env_bool("X_FLAG", True) is False
        monkeypatch.delenv("X_FLAG")
        assert config._env_bool("X_FLAG", True) is True

    def test_env_csv(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("X_LIST", " a, ,b ,")
        assert config._env_csv("X_LIST", "") == ["a", "b"]


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture()
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    def test_text_format_locally(self, monkeypatch, restore_root_logger):
        monkeypatch.delenv("K_SERVICE", raising=False)
        setup_logging(level="debug")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert not isinstance(root.handlers[0].formatter, GCPJsonFormatter)

    def test_json_when_asked(self, monkeypatch, restore_root_logger):
        monkeypatch.delenv("K_SERVICE", raising=False)
        setup_logging(log_format="json")
        assert isinstance(logging.getLogger().handlers[0].formatter, GCPJsonFormatter)

    def test_json_on_cloud_run(self, monkeypatch, restore_root_logger):
        monkeypatch.setenv("K_SERVICE", "drive-bridge")
        setup_logging()
        assert isinstance(logging.getLogger().handlers[0].formatter, GCPJsonFormatter)

    def test_quiets_discovery_cache(self, restore_root_logger):
        setup_logging()
        assert logging.getLogger("googleapiclient.discovery_cache").level == logging.ERROR


class TestJsonRecords:
    def _format(self, level: int) -> dict[str, object]:
        formatter = GCPJsonFormatter(
            fmt="%(message)s %(name)s %(request_id)s",
            rename_fields={"name": "logger"},
        )
        record = logging.LogRecord("drive_bridge.test", level, __file__, 1, "hello %s", ("there",), None)
        RequestIdFilter().filter(record)
        return json.loads(formatter.format(record))

    def test_severity_and_request_id(self):
        token = request_id_var.set("req-42")
        try:
            out = self._format(logging.WARNING)
        finally:
            request_id_var.reset(token)
        assert out["severity"] == "WARNING"
        assert out["message"] == "hello there"
        assert out["request_id"] == "req-42"
        assert out["logger"] == "drive_bridge.test"
        assert "levelname" not in out

    def test_default_request_id(self):
        assert self._format(logging.INFO)["request_id"] == "-"


def test_generate_request_id():
    ids = {generate_request_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(len(i) == 16 for i in ids)
