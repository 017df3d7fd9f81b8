"""Persisted, bounded list of log records that could not be delivered."""

import logging

from mobile_logger.models import FailedLogEntry, InvalidRecordError, LogRecord
from mobile_logger.storage import MemoryStore, StorageError

logger = logging.getLogger(__name__)

FAILED_LOGS_KEY = "failed_logs"


class FailedLogStore:
    """Reads and writes the ``failed_logs`` list as a whole blob.

    Capped at ``max_entries``; appending past the cap evicts the oldest
    entry by insertion order. If the backing store fails, the list lives
    in memory for the rest of the process.
    """

    def __init__(self, store, max_entries: int = 50):
        self._store = store
        self._max_entries = max_entries
        self._fallback: MemoryStore | None = None

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def ephemeral(self) -> bool:
        return self._fallback is not None

    def _backend(self):
        return self._fallback if self._fallback is not None else self._store

    def _switch_to_memory(self, entries: list[dict]) -> None:
        logger.warning("Failed-log storage unavailable, keeping entries in memory")
        self._fallback = MemoryStore({FAILED_LOGS_KEY: entries})

    def load(self) -> list[FailedLogEntry]:
        try:
            raw = self._backend().get(FAILED_LOGS_KEY, []) or []
        except StorageError:
            logger.exception("Could not read failed logs")
            self._switch_to_memory([])
            raw = []

        entries = []
        for item in raw:
            try:
                entries.append(FailedLogEntry.from_dict(item))
            except (InvalidRecordError, TypeError, ValueError, AttributeError):
                logger.warning("Discarding unreadable failed-log entry")
        return entries

    def save(self, entries: list[FailedLogEntry]) -> None:
        payload = [entry.to_dict() for entry in entries[-self._max_entries:]]
        try:
            self._backend().set(FAILED_LOGS_KEY, payload)
        except StorageError:
            logger.exception("Could not persist failed logs")
            self._switch_to_memory(payload)

    def append(self, record: LogRecord) -> None:
        """Store a newly failed record with retryCount 0, evicting the oldest past the cap."""
        entries = self.load()
        entries.append(FailedLogEntry(record=record, retry_count=0))
        if len(entries) > self._max_entries:
            dropped = len(entries) - self._max_entries
            logger.debug("Evicting %d oldest failed log(s)", dropped)
        self.save(entries)

    def count(self) -> int:
        return len(self.load())
