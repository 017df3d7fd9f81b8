"""Log record model and wire-format helpers."""

import datetime
import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Optional

LEVELS = ("error", "warning", "info", "debug")

# Optional wire keys, emitted only when the attribute is set
_OPTIONAL_FIELDS = {
    "duration": "duration",
    "memory_usage": "memoryUsage",
    "network_status": "networkStatus",
    "error_code": "errorCode",
    "error_stack": "errorStack",
    "error_context": "errorContext",
}


class InvalidRecordError(ValueError):
    """Raised when a log record is missing required fields or cannot be serialized."""


def _utc_now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None

    @classmethod
    def from_dict(cls, data) -> "Location":
        """Accept the wire keys or the short ``lat``/``lon`` form."""
        if not isinstance(data, Mapping):
            raise InvalidRecordError(f"location must be a mapping, got {type(data).__name__}")
        latitude = data.get("latitude", data.get("lat"))
        longitude = data.get("longitude", data.get("lon", data.get("lng")))
        if latitude is None or longitude is None:
            raise InvalidRecordError("location requires latitude and longitude")
        try:
            accuracy = data.get("accuracy")
            return cls(
                latitude=float(latitude),
                longitude=float(longitude),
                accuracy=float(accuracy) if accuracy is not None else None,
            )
        except (TypeError, ValueError) as exc:
            raise InvalidRecordError(f"invalid location: {exc}") from exc

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy,
        }


@dataclass(frozen=True)
class LogRecord:
    """One observation, immutable once created."""

    app: str
    title: str
    content: str = ""
    level: str = "info"
    category: str = "event"
    device_id: str = ""
    user_id: str = ""
    session_id: str = ""
    app_version: str = ""
    os_version: str = ""
    device_model: str = ""
    screen: str = "Unknown"
    action: str = "log"
    timestamp: str = field(default_factory=_utc_now)
    metadata: dict = field(default_factory=dict)
    duration: Optional[int] = None
    memory_usage: Optional[str] = None
    network_status: Optional[str] = None
    error_code: Optional[str] = None
    error_stack: Optional[str] = None
    error_context: Optional[str] = None
    location: Optional[Location] = None

    def to_dict(self) -> dict:
        """Convert to the camelCase JSON object accepted by the ingestion endpoint."""
        data = {
            "app": self.app,
            "title": self.title,
            "content": self.content,
            "logLevel": self.level,
            "category": self.category,
            "deviceId": self.device_id,
            "userId": self.user_id,
            "sessionId": self.session_id,
            "appVersion": self.app_version,
            "osVersion": self.os_version,
            "deviceModel": self.device_model,
            "screen": self.screen,
            "action": self.action,
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
        }
        for attr, key in _OPTIONAL_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        if self.location is not None:
            data["location"] = self.location.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LogRecord":
        """Rebuild a record from its wire form (used for persisted failed entries)."""
        location = data.get("location")
        kwargs = {
            "app": data.get("app", ""),
            "title": data.get("title", ""),
            "content": data.get("content", ""),
            "level": data.get("logLevel", "info"),
            "category": data.get("category", "event"),
            "device_id": data.get("deviceId", ""),
            "user_id": data.get("userId", ""),
            "session_id": data.get("sessionId", ""),
            "app_version": data.get("appVersion", ""),
            "os_version": data.get("osVersion", ""),
            "device_model": data.get("deviceModel", ""),
            "screen": data.get("screen", "Unknown"),
            "action": data.get("action", "log"),
            "metadata": dict(data.get("metadata") or {}),
            "location": Location.from_dict(location) if location else None,
        }
        if "timestamp" in data:
            kwargs["timestamp"] = data["timestamp"]
        for attr, key in _OPTIONAL_FIELDS.items():
            if key in data:
                kwargs[attr] = data[key]
        return validate_record(cls(**kwargs))


@dataclass
class FailedLogEntry:
    """A record that could not be delivered, plus how many retries have failed."""

    record: LogRecord
    retry_count: int = 0

    def to_dict(self) -> dict:
        data = self.record.to_dict()
        data["retryCount"] = self.retry_count
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "FailedLogEntry":
        payload = dict(data)
        retry_count = int(payload.pop("retryCount", 0) or 0)
        return cls(record=LogRecord.from_dict(payload), retry_count=retry_count)


def validate_record(record: LogRecord) -> LogRecord:
    """Reject records lacking a title or app identifier, or that cannot be JSON-encoded."""
    if not record.title:
        raise InvalidRecordError("log record requires a title")
    if not record.app:
        raise InvalidRecordError("log record requires an app identifier")
    if record.level not in LEVELS:
        raise InvalidRecordError(f"unknown log level: {record.level!r}")
    try:
        json.dumps(record.to_dict())
    except (TypeError, ValueError) as exc:
        raise InvalidRecordError(f"log record is not serializable: {exc}") from exc
    return record


def create_log_record(app: str, title: str, **fields) -> LogRecord:
    """Factory function that creates and validates a LogRecord.

    Any bad caller input surfaces as ``InvalidRecordError``.
    """
    location = fields.get("location")
    if location is not None and not isinstance(location, Location):
        fields["location"] = Location.from_dict(location)
    metadata = fields.get("metadata")
    if metadata is None:
        fields["metadata"] = {}
    elif not isinstance(metadata, Mapping):
        raise InvalidRecordError(f"metadata must be a mapping, got {type(metadata).__name__}")
    else:
        fields["metadata"] = dict(metadata)
    try:
        record = LogRecord(app=app, title=title, **fields)
    except (TypeError, ValueError) as exc:
        raise InvalidRecordError(str(exc)) from exc
    return validate_record(record)
