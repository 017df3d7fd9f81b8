"""Configuration module: frozen dataclass loaded from env vars and CLI args."""

import argparse
import os
from dataclasses import dataclass

LOG_LEVELS = ("error", "warning", "info", "debug")


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


@dataclass(frozen=True)
class ShipperConfig:
    endpoint_url: str = "http://localhost:5000"
    user_id: str = ""
    log_level: str = "info"
    app_name: str = "Python App"
    app_version: str = "1.0.0"
    batch_size: int = 10
    batch_interval_ms: int = 5000
    retry_interval_ms: int = 30000
    performance_interval_ms: int = 30000
    location_interval_ms: int = 60000
    request_timeout: float = 10.0
    max_retries: int = 3
    max_failed_logs: int = 50
    batching: bool = True
    auto_start: bool = True
    capture_errors: bool = True
    capture_performance: bool = True
    capture_interactions: bool = True
    capture_location: bool = False
    capture_notifications: bool = True
    storage_path: str = "~/.mobile_logger/state.json"
    # Demo client only
    logs_per_second: int = 5
    run_time: int = 30

    @property
    def logs_url(self) -> str:
        return self.endpoint_url.rstrip("/") + "/logs"


def load_config(argv=None) -> ShipperConfig:
    """Build ShipperConfig from environment variables, then override with CLI args.

    Pass argv for testability; when None, argparse reads sys.argv.
    """
    env = os.environ
    kwargs: dict = {
        "endpoint_url": env.get("ENDPOINT_URL", ShipperConfig.endpoint_url),
        "user_id": env.get("USER_ID", ShipperConfig.user_id),
        "log_level": env.get("LOG_LEVEL", ShipperConfig.log_level).lower(),
        "app_name": env.get("APP_NAME", ShipperConfig.app_name),
        "app_version": env.get("APP_VERSION", ShipperConfig.app_version),
        "batch_size": int(env.get("BATCH_SIZE", ShipperConfig.batch_size)),
        "batch_interval_ms": int(
            env.get("BATCH_INTERVAL_MS", ShipperConfig.batch_interval_ms)
        ),
        "retry_interval_ms": int(
            env.get("RETRY_INTERVAL_MS", ShipperConfig.retry_interval_ms)
        ),
        "location_interval_ms": int(
            env.get("LOCATION_INTERVAL_MS", ShipperConfig.location_interval_ms)
        ),
        "request_timeout": float(
            env.get("REQUEST_TIMEOUT", ShipperConfig.request_timeout)
        ),
        "batching": _parse_bool(env.get("BATCHING", "true")),
        "auto_start": _parse_bool(env.get("AUTO_START", "true")),
        "capture_errors": _parse_bool(env.get("CAPTURE_ERRORS", "true")),
        "capture_performance": _parse_bool(env.get("CAPTURE_PERFORMANCE", "true")),
        "capture_interactions": _parse_bool(env.get("CAPTURE_INTERACTIONS", "true")),
        "capture_location": _parse_bool(env.get("CAPTURE_LOCATION", "false")),
        "capture_notifications": _parse_bool(
            env.get("CAPTURE_NOTIFICATIONS", "true")
        ),
        "storage_path": env.get("STORAGE_PATH", ShipperConfig.storage_path),
        "logs_per_second": int(
            env.get("LOGS_PER_SECOND", ShipperConfig.logs_per_second)
        ),
        "run_time": int(env.get("RUN_TIME", ShipperConfig.run_time)),
    }

    # CLI flags override env vars
    parser = argparse.ArgumentParser(description="Mobile Log Shipper Client")
    parser.add_argument("--endpoint-url", type=str, default=None)
    parser.add_argument("--user-id", type=str, default=None)
    parser.add_argument("--log-level", type=str, choices=LOG_LEVELS, default=None)
    parser.add_argument("--batch-size", type=int, default=None)
    parser.add_argument("--batch-interval", type=int, default=None,
                        help="Milliseconds between scheduled flushes")
    parser.add_argument("--storage-path", type=str, default=None)
    parser.add_argument("--logs-per-second", type=int, default=None)
    parser.add_argument("--run-time", type=int, default=None)
    parser.add_argument("--no-batching", action="store_true", default=False)

    args = parser.parse_args(argv)

    overrides = {
        "endpoint_url": args.endpoint_url,
        "user_id": args.user_id,
        "log_level": args.log_level,
        "batch_size": args.batch_size,
        "batch_interval_ms": args.batch_interval,
        "storage_path": args.storage_path,
        "logs_per_second": args.logs_per_second,
        "run_time": args.run_time,
    }
    for key, value in overrides.items():
        if value is not None:
            kwargs[key] = value
    if args.no_batching:
        kwargs["batching"] = False

    if kwargs["log_level"] not in LOG_LEVELS:
        kwargs["log_level"] = ShipperConfig.log_level

    return ShipperConfig(**kwargs)
