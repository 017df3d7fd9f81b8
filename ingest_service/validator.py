from collections import defaultdict

import jsonschema

LOG_RECORD_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["title", "app"],
    "properties": {
        "app": {"type": "string", "minLength": 1},
        "title": {"type": "string", "minLength": 1},
        "content": {"type": "string"},
        "logLevel": {"enum": ["error", "warning", "info", "debug"]},
        "category": {"type": "string"},
        "deviceId": {"type": "string"},
        "userId": {"type": "string"},
        "sessionId": {"type": "string"},
        "appVersion": {"type": "string"},
        "osVersion": {"type": "string"},
        "deviceModel": {"type": "string"},
        "screen": {"type": "string"},
        "action": {"type": "string"},
        "timestamp": {"type": "string"},
        "metadata": {"type": "object"},
        "duration": {"type": ["number", "null"]},
        "memoryUsage": {"type": ["string", "null"]},
        "networkStatus": {"type": ["string", "null"]},
        "errorCode": {"type": ["string", "null"]},
        "errorStack": {"type": ["string", "null"]},
        "errorContext": {"type": ["string", "null"]},
        "retryCount": {"type": "integer", "minimum": 0},
        "location": {
            "type": "object",
            "required": ["latitude", "longitude"],
            "properties": {
                "latitude": {"type": "number"},
                "longitude": {"type": "number"},
                "accuracy": {"type": ["number", "null"]},
            },
        },
    },
}


class LogValidator:
    """Validates incoming log records against a JSON schema."""

    def __init__(self, schema=None):
        self._validator = jsonschema.Draft202012Validator(schema or LOG_RECORD_SCHEMA)
        self._stats = {
            "total": 0,
            "valid": 0,
            "invalid": 0,
            "error_types": defaultdict(int),
        }

    def validate(self, log_entry):
        """Validate a log record against the schema.

        Returns:
            tuple: (is_valid: bool, errors: list[str])
        """
        self._stats["total"] += 1
        errors = list(self._validator.iter_errors(log_entry))

        if not errors:
            self._stats["valid"] += 1
            return True, []

        self._stats["invalid"] += 1
        error_messages = []
        for error in errors:
            self._stats["error_types"][error.validator] += 1
            error_messages.append(error.message)

        return False, error_messages

    def get_stats(self):
        """Return a copy of the stats dict."""
        stats = dict(self._stats)
        stats["error_types"] = dict(stats["error_types"])
        return stats
