"""Ingestion service settings: a YAML file laid over built-in defaults.

The file is grouped into ``server``, ``storage``, ``query`` and ``logging``
sections; each section only needs the keys it changes.
"""

import logging
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"
SORT_ORDERS = ("asc", "desc")

# YAML (section, key) -> ServiceConfig field
_YAML_KEYS = {
    ("server", "host"): "host",
    ("server", "port"): "port",
    ("server", "debug"): "debug",
    ("storage", "max_logs"): "max_logs",
    ("query", "default_sort"): "default_sort",
    ("query", "max_limit"): "max_limit",
    ("logging", "level"): "log_level",
}


class ConfigError(ValueError):
    """Raised when a config file holds a value the service cannot run with."""


@dataclass(frozen=True)
class ServiceConfig:
    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = False
    max_logs: int = 1000
    default_sort: str = "desc"
    max_limit: int = 1000
    log_level: str = "INFO"

    def __post_init__(self):
        for name in ("port", "max_logs", "max_limit"):
            value = getattr(self, name)
            # bool is an int subclass; "true" is not a size
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ConfigError(f"{name} must be a positive integer, got {value!r}")
        if self.default_sort not in SORT_ORDERS:
            raise ConfigError(f"default_sort must be one of {SORT_ORDERS}, got {self.default_sort!r}")


def _read_yaml(path: str) -> dict:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        logger.info("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError:
        logger.warning("Invalid YAML in %s, using defaults", path)
        return {}
    return data if isinstance(data, dict) else {}


def load_service_config(path=None) -> ServiceConfig:
    """Load settings from ``path``, else ``$CONFIG_PATH``, else ``config.yaml``.

    Unknown sections and keys are ignored with a warning.
    """
    path = path or os.environ.get("CONFIG_PATH", DEFAULT_CONFIG_PATH)
    data = _read_yaml(path)

    kwargs = {}
    for section, values in data.items():
        if not isinstance(values, dict):
            logger.warning("Ignoring config section %r: expected a mapping", section)
            continue
        for key, value in values.items():
            name = _YAML_KEYS.get((section, key))
            if name is None:
                logger.warning("Ignoring unknown config key %s.%s", section, key)
                continue
            kwargs[name] = value

    if "log_level" in kwargs:
        kwargs["log_level"] = str(kwargs["log_level"]).upper()
    return ServiceConfig(**kwargs)
