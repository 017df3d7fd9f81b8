import collections
import threading
import uuid
from datetime import datetime, timezone

# Query parameter -> stored key, compared case-insensitively for equality
EXACT_FILTERS = {
    "level": "logLevel",
    "category": "category",
    "deviceId": "deviceId",
    "userId": "userId",
    "sessionId": "sessionId",
}


class LogStore:
    """Thread-safe in-memory log storage backed by a bounded deque."""

    def __init__(self, max_size=1000):
        self._logs = collections.deque(maxlen=max_size)
        self._lock = threading.Lock()
        self._total_count = 0

    def add(self, log_entry):
        """Store a copy of the record with an assigned id and receive time; return the id."""
        now = datetime.now(timezone.utc).isoformat()
        stored = dict(log_entry)
        stored["id"] = uuid.uuid4().hex
        stored.setdefault("timestamp", now)
        stored["receivedAt"] = now
        with self._lock:
            self._logs.append(stored)
            self._total_count += 1
        return stored["id"]

    def query(self, app=None, sort="desc", limit=None, **filters):
        """Return matching records ordered by timestamp.

        ``app`` matches case-insensitively as a substring; the keys of
        ``EXACT_FILTERS`` match case-insensitively as whole values.
        """
        with self._lock:
            logs = list(self._logs)

        if app:
            needle = app.lower()
            logs = [log for log in logs if needle in str(log.get("app", "")).lower()]
        for param, key in EXACT_FILTERS.items():
            value = filters.get(param)
            if value:
                logs = [log for log in logs if str(log.get(key, "")).lower() == value.lower()]

        logs.sort(key=lambda log: log.get("timestamp", ""), reverse=(sort != "asc"))
        if limit is not None and limit > 0:
            logs = logs[:limit]
        return logs

    @property
    def total_count(self):
        """Total number of log entries ever added."""
        return self._total_count

    @property
    def current_size(self):
        """Number of log entries currently held in the store."""
        return len(self._logs)

    def clear(self):
        """Clear all entries; return how many were removed."""
        with self._lock:
            removed = len(self._logs)
            self._logs.clear()
            return removed
