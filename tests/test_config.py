"""Tests for the configuration module."""

import pytest

from mobile_logger.config import ShipperConfig, load_config, _parse_bool, LOG_LEVELS


class TestParseBool:
    def test_true_values(self):
        for val in ("true", "True", "TRUE", "1", "yes", " true "):
            assert _parse_bool(val) is True

    def test_false_values(self):
        for val in ("false", "0", "no", "", "random"):
            assert _parse_bool(val) is False


def test_defaults():
    cfg = ShipperConfig()
    assert cfg.batch_size == 10
    assert cfg.batch_interval_ms == 5000
    assert cfg.retry_interval_ms == 30000
    assert cfg.max_retries == 3
    assert cfg.max_failed_logs == 50
    assert cfg.log_level == "info"
    assert cfg.request_timeout == 10.0
    assert cfg.capture_errors is True
    assert cfg.capture_location is False
    assert cfg.auto_start is True
    assert cfg.batching is True


def test_frozen():
    cfg = ShipperConfig()
    with pytest.raises(AttributeError):
        cfg.batch_size = 5


def test_logs_url_strips_trailing_slash():
    assert ShipperConfig(endpoint_url="https://api.example.com/").logs_url == (
        "https://api.example.com/logs"
    )


def test_log_levels():
    assert LOG_LEVELS == ("error", "warning", "info", "debug")


def test_from_env(monkeypatch):
    monkeypatch.setenv("ENDPOINT_URL", "http://collector:8080")
    monkeypatch.setenv("USER_ID", "u-42")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("BATCH_SIZE", "25")
    monkeypatch.setenv("BATCH_INTERVAL_MS", "2000")
    monkeypatch.setenv("CAPTURE_LOCATION", "true")
    monkeypatch.setenv("BATCHING", "false")

    cfg = load_config([])
    assert cfg.endpoint_url == "http://collector:8080"
    assert cfg.user_id == "u-42"
    assert cfg.log_level == "debug"
    assert cfg.batch_size == 25
    assert cfg.batch_interval_ms == 2000
    assert cfg.capture_location is True
    assert cfg.batching is False


def test_cli_overrides_env(monkeypatch):
    monkeypatch.setenv("BATCH_SIZE", "25")
    cfg = load_config(["--batch-size", "3", "--batch-interval", "750", "--no-batching"])
    assert cfg.batch_size == 3
    assert cfg.batch_interval_ms == 750
    assert cfg.batching is False


def test_unknown_env_log_level_falls_back(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "verbose")
    cfg = load_config([])
    assert cfg.log_level == "info"
