import pytest

from ingest_service.app import create_app
from ingest_service.config import ConfigError, ServiceConfig, load_service_config


def _write(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


class TestLoadServiceConfig:
    def test_missing_file_uses_defaults(self, tmp_path):
        cfg = load_service_config(str(tmp_path / "absent.yaml"))
        assert cfg == ServiceConfig()

    def test_partial_sections_merge_over_defaults(self, tmp_path):
        path = _write(tmp_path, "server:\n  port: 8080\nquery:\n  max_limit: 50\nlogging:\n  level: debug\n")
        cfg = load_service_config(path)
        assert cfg.port == 8080
        assert cfg.host == "0.0.0.0"
        assert cfg.max_limit == 50
        assert cfg.max_logs == 1000
        assert cfg.log_level == "DEBUG"

    def test_path_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", _write(tmp_path, "storage:\n  max_logs: 10\n"))
        assert load_service_config().max_logs == 10

    def test_invalid_yaml_uses_defaults(self, tmp_path):
        assert load_service_config(_write(tmp_path, "server: [unclosed\n")) == ServiceConfig()

    def test_unknown_keys_ignored(self, tmp_path):
        path = _write(tmp_path, "server:\n  workers: 4\nanalytics: 3\n")
        assert load_service_config(path) == ServiceConfig()

    @pytest.mark.parametrize("text", [
        "storage:\n  max_logs: 0\n",
        "storage:\n  max_logs: many\n",
        "query:\n  max_limit: -5\n",
        "query:\n  max_limit: true\n",
        "query:\n  default_sort: random\n",
    ])
    def test_invalid_values_rejected(self, tmp_path, text):
        with pytest.raises(ConfigError):
            load_service_config(_write(tmp_path, text))


def test_max_limit_caps_query_limit(sample_valid_log):
    client = create_app(ServiceConfig(max_limit=2)).test_client()
    client.post("/logs", json=[sample_valid_log] * 5)

    data = client.get("/logs?limit=100").get_json()
    assert data["count"] == 2


def test_store_bounded_by_max_logs(sample_valid_log):
    client = create_app(ServiceConfig(max_logs=3)).test_client()
    client.post("/logs", json=[sample_valid_log] * 5)

    health = client.get("/health").get_json()
    assert health["total_logs"] == 5
    assert health["current_stored"] == 3
