"""Log shipper: batches records in memory and delivers them to the ingestion endpoint.

Everything runs on one asyncio event loop. The queue is swapped out
synchronously before each send, so records logged while a request is in
flight always land in the next batch and no lock is needed.
"""

import asyncio
import logging
import time
from collections.abc import Mapping
from enum import Enum
from typing import Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from mobile_logger.config import ShipperConfig
from mobile_logger.device import SystemMetricsProvider
from mobile_logger.failed_logs import FailedLogStore
from mobile_logger.identity import generate_session_id, resolve_device_id
from mobile_logger.metrics import MetricsCollector
from mobile_logger.models import FailedLogEntry, InvalidRecordError, LogRecord, create_log_record
from mobile_logger.storage import JsonFileStore
from mobile_logger.transport import HttpTransport

logger = logging.getLogger(__name__)

FLUSH_JOB = "mobile_logger.flush"
RETRY_JOB = "mobile_logger.retry_failed"
PERFORMANCE_JOB = "mobile_logger.performance"
LOCATION_JOB = "mobile_logger.location"

# Filled in from the shipper's own identity; callers may not override them
CONTEXT_FIELDS = frozenset(
    ("app", "device_id", "user_id", "session_id", "app_version", "os_version", "device_model")
)


class ShipperState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class LogShipper:
    """Captures log records from the host application and ships them in batches.

    The host constructs the shipper, awaits ``open()`` (or uses it as an
    async context manager) and keeps a reference to it; there is no
    process-wide instance.
    """

    def __init__(
        self,
        config: ShipperConfig,
        transport=None,
        store=None,
        provider=None,
        hub=None,
        scheduler: Optional[AsyncIOScheduler] = None,
    ):
        self._config = config
        self._transport = transport or HttpTransport(config.logs_url, config.request_timeout)
        self._store = store if store is not None else JsonFileStore(config.storage_path)
        self._provider = provider or SystemMetricsProvider()
        self._hub = hub
        self._scheduler = scheduler or AsyncIOScheduler()
        self._failed = FailedLogStore(self._store, config.max_failed_logs)
        self._metrics = MetricsCollector()

        self._state = ShipperState.STOPPED
        self._opened = False
        self._queue: list[LogRecord] = []
        self._pending: set[asyncio.Task] = set()
        self._unsubscribers: list = []
        self._retrying = False
        self._deferred_failures: list[LogRecord] = []

        self._device_id = ""
        self._session_id = generate_session_id()
        self._start_time = time.monotonic()
        self._interaction_count = 0
        self._current_screen = "Unknown"
        self._last_location = None
        self._location_failed = False
        self._device_info: dict = {}
        self._os_version = ""
        self._device_model = ""

    async def __aenter__(self) -> "LogShipper":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Resolve device identity, arm the failed-log retry job and auto-start if configured."""
        if self._opened:
            return
        self._device_id = resolve_device_id(self._store, self._provider)
        try:
            self._device_info = self._provider.device_info()
            self._os_version = self._provider.os_version()
            self._device_model = self._provider.device_model()
        except Exception:
            logger.warning("Device info unavailable", exc_info=True)

        self._scheduler.add_job(
            self.retry_failed_logs,
            "interval",
            seconds=self._config.retry_interval_ms / 1000,
            id=RETRY_JOB,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        self._opened = True

        logger.info(
            "Mobile logger initialized: device=%s endpoint=%s",
            self._device_id,
            self._config.endpoint_url,
        )
        if self._config.auto_start:
            self.start()

    def start(self) -> None:
        if self._state is ShipperState.RUNNING:
            logger.warning("Mobile logger is already running")
            return
        if not self._opened:
            logger.warning("Mobile logger is not open, call open() before start()")
            return

        self._state = ShipperState.RUNNING
        self._register_observers()
        self._scheduler.add_job(
            self.flush,
            "interval",
            seconds=self._config.batch_interval_ms / 1000,
            id=FLUSH_JOB,
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        if self._config.capture_performance:
            self._scheduler.add_job(
                self._sample_performance,
                "interval",
                seconds=self._config.performance_interval_ms / 1000,
                id=PERFORMANCE_JOB,
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )
        if self._config.capture_location:
            self._last_location = None
            self._location_failed = False
            self._capture_location()
            self._scheduler.add_job(
                self._sample_location,
                "interval",
                seconds=self._config.location_interval_ms / 1000,
                id=LOCATION_JOB,
                replace_existing=True,
                coalesce=True,
                max_instances=1,
            )

        logger.info("Mobile logger started (session %s)", self._session_id)
        self.record(
            "App Started",
            f"{self._config.app_name} started",
            level="info",
            category="system",
            action="app_start",
        )

    def stop(self) -> None:
        """Disarm timers and observers, flush what is queued, then queue an "App Stopped" record.

        The final record is only delivered if ``close()`` or a later flush runs.
        """
        if self._state is ShipperState.STOPPED:
            logger.warning("Mobile logger is not running")
            return

        self._state = ShipperState.STOPPED
        for job_id in (FLUSH_JOB, PERFORMANCE_JOB, LOCATION_JOB):
            try:
                self._scheduler.remove_job(job_id)
            except JobLookupError:
                pass
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

        self._schedule_flush(trigger="stop")
        try:
            self._enqueue(self._build_record(
                "App Stopped",
                f"{self._config.app_name} stopped",
                level="info",
                category="system",
                action="app_stop",
            ))
        except InvalidRecordError as exc:
            logger.warning("Rejected log record: %s", exc)
        logger.info("Mobile logger stopped")

    async def close(self) -> None:
        """Stop, wait for pending sends and any retry pass, flush once more and release resources."""
        if self._state is ShipperState.RUNNING:
            self.stop()
        if self._scheduler.running:
            # No new passes; one already running is awaited by drain()
            self._scheduler.pause()
        await self.drain()
        await self.flush(trigger="stop")
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        await self._transport.aclose()
        self._opened = False

    async def drain(self) -> None:
        """Wait until every send scheduled so far, and a running retry pass, has completed."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    @property
    def state(self) -> ShipperState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is ShipperState.RUNNING

    @property
    def device_id(self) -> str:
        return self._device_id

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    def queued_records(self) -> list[LogRecord]:
        return list(self._queue)

    def _build_record(self, title, content="", level=None, category="event",
                      action="log", screen=None, metadata=None, **extra) -> LogRecord:
        clashing = CONTEXT_FIELDS.intersection(extra)
        if clashing:
            raise InvalidRecordError(f"cannot override context field(s): {', '.join(sorted(clashing))}")
        if metadata is not None and not isinstance(metadata, Mapping):
            raise InvalidRecordError(f"metadata must be a mapping, got {type(metadata).__name__}")
        meta = dict(metadata or {})
        meta.setdefault("sessionDuration", round((time.monotonic() - self._start_time) * 1000))
        meta.setdefault("interactionCount", self._interaction_count)
        meta.setdefault("deviceInfo", self._device_info)
        return create_log_record(
            app=self._config.app_name,
            title=title,
            content=content,
            level=level or self._config.log_level,
            category=category,
            device_id=self._device_id,
            user_id=self._config.user_id,
            session_id=self._session_id,
            app_version=self._config.app_version,
            os_version=self._os_version,
            device_model=self._device_model,
            screen=screen or self._current_screen,
            action=action,
            metadata=meta,
            **extra,
        )

    def record(self, title: str, content: str = "", **fields) -> Optional[LogRecord]:
        """Build a record with auto-filled context and queue it for delivery.

        Returns the record, or None when the shipper is stopped or the
        record was rejected. Never raises into the caller.
        """
        if self._state is not ShipperState.RUNNING:
            logger.warning("Mobile logger is not running, dropping %r", title)
            return None
        try:
            record = self._build_record(title, content, **fields)
        except InvalidRecordError as exc:
            logger.warning("Rejected log record: %s", exc)
            return None
        except Exception:
            logger.exception("Could not build log record %r", title)
            return None

        logger.debug("[%s] %s: %s", record.category, record.title, record.content)
        if self._config.batching:
            self._enqueue(record)
        else:
            self._schedule_single(record)
        return record

    def _enqueue(self, record: LogRecord) -> None:
        self._queue.append(record)
        if len(self._queue) >= self._config.batch_size:
            self._schedule_flush(trigger="size")

    # Convenience wrappers

    def error(self, title: str, content: str = "", metadata: dict | None = None):
        return self.record(title, content, level="error", category="error", metadata=metadata)

    def warning(self, title: str, content: str = "", metadata: dict | None = None):
        return self.record(title, content, level="warning", category="system", metadata=metadata)

    def info(self, title: str, content: str = "", metadata: dict | None = None):
        return self.record(title, content, level="info", category="event", metadata=metadata)

    def debug(self, title: str, content: str = "", metadata: dict | None = None):
        return self.record(title, content, level="debug", category="event", metadata=metadata)

    def performance(self, title: str, duration: int, metadata: dict | None = None):
        return self.record(
            title,
            f"Duration: {duration}ms",
            level="info",
            category="performance",
            duration=duration,
            metadata=metadata,
        )

    def user_action(self, action: str, title: str, content: str = "", metadata: dict | None = None):
        self._interaction_count += 1
        return self.record(
            title, content, level="info", category="user_action", action=action, metadata=metadata
        )

    def screen_navigation(self, from_screen: str, to_screen: str, metadata: dict | None = None):
        self._current_screen = to_screen
        return self.record(
            "Screen Navigation",
            f"Navigated from {from_screen} to {to_screen}",
            level="info",
            category="user_action",
            action="screen_navigation",
            screen=to_screen,
            metadata={"fromScreen": from_screen, "toScreen": to_screen, **(metadata or {})},
        )

    def network_request(self, url: str, method: str, duration: int, status: int,
                        metadata: dict | None = None):
        failed = status >= 400
        return self.record(
            "Network Request",
            f"{method} {url} - {status} ({duration}ms)",
            level="error" if failed else "info",
            category="error" if failed else "performance",
            action="network_request",
            duration=duration,
            network_status="online",
            metadata={"url": url, "method": method, "status": status, **(metadata or {})},
        )

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _take_batch(self) -> list[LogRecord]:
        batch = self._queue
        self._queue = []
        return batch

    def _spawn(self, coro) -> bool:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            return False
        task = loop.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    def _schedule_flush(self, trigger: str) -> None:
        if not self._queue:
            return
        batch = self._take_batch()
        if not self._spawn(self._deliver_batch(batch, trigger)):
            logger.debug("No running event loop, %d record(s) wait for the next flush", len(batch))
            self._queue[:0] = batch

    def _schedule_single(self, record: LogRecord) -> None:
        if not self._spawn(self._send_single(record)):
            self._store_failed(record)

    async def flush(self, trigger: str = "timer") -> bool:
        """Send everything queued as one batch; on failure put it back at the front."""
        if not self._queue:
            return True
        return await self._deliver_batch(self._take_batch(), trigger)

    async def _deliver_batch(self, batch: list[LogRecord], trigger: str) -> bool:
        start = time.monotonic()
        try:
            await self._transport.send_batch(batch)
        except Exception as exc:
            logger.warning("Failed to send logs batch of %d: %s", len(batch), exc)
            self._queue[:0] = batch
            self._metrics.record_batch_failure(len(batch))
            return False

        elapsed_ms = (time.monotonic() - start) * 1000
        self._metrics.record_batch(len(batch), elapsed_ms, trigger=trigger)
        logger.debug("Sent batch of %d logs (%s)", len(batch), trigger)
        return True

    async def _send_single(self, record: LogRecord) -> bool:
        start = time.monotonic()
        try:
            await self._transport.send_one(record)
        except Exception as exc:
            logger.warning("Failed to send log %r: %s", record.title, exc)
            self._metrics.record_single_failure()
            self._store_failed(record)
            return False
        self._metrics.record_single((time.monotonic() - start) * 1000)
        return True

    def _store_failed(self, record: LogRecord) -> None:
        if self._retrying:
            # The retry pass rewrites the whole list when it finishes
            self._deferred_failures.append(record)
            return
        self._failed.append(record)

    async def retry_failed_logs(self) -> None:
        """Retry persisted failed entries, newest first.

        An entry is dropped once its retry count exceeds ``max_retries``.
        The list is written back after the pass whatever happened.
        """
        if self._retrying:
            return
        entries = self._failed.load()
        if not entries:
            return

        logger.info("Retrying %d failed logs...", len(entries))
        self._retrying = True
        # Lets close() wait for this pass before the transport goes away
        task = asyncio.current_task()
        if task is not None:
            self._pending.add(task)
        try:
            for i in range(len(entries) - 1, -1, -1):
                entry = entries[i]
                if entry.retry_count > self._config.max_retries:
                    self._drop_entry(entries, i)
                    continue
                try:
                    await self._transport.send_one(entry.record)
                except Exception as exc:
                    entry.retry_count += 1
                    logger.debug("Retry of %r failed (%d): %s",
                                 entry.record.title, entry.retry_count, exc)
                    if entry.retry_count > self._config.max_retries:
                        self._drop_entry(entries, i)
                    else:
                        self._metrics.record_retry(succeeded=False)
                    continue
                del entries[i]
                self._metrics.record_retry(succeeded=True)
        finally:
            entries.extend(FailedLogEntry(record=r) for r in self._deferred_failures)
            self._deferred_failures = []
            self._retrying = False
            self._failed.save(entries)
            self._pending.discard(task)

    def _drop_entry(self, entries: list[FailedLogEntry], index: int) -> None:
        entry = entries.pop(index)
        self._metrics.record_retry(succeeded=False, dropped=True)
        logger.debug("Dropping log %r after %d failed retries",
                     entry.record.title, entry.retry_count)

    # ------------------------------------------------------------------
    # Passive observers
    # ------------------------------------------------------------------

    def _register_observers(self) -> None:
        if self._hub is None:
            return
        cfg = self._config
        wanted = []
        if cfg.capture_errors:
            wanted.append(("error", self._on_error))
        if cfg.capture_interactions:
            wanted.append(("interaction", self._on_interaction))
            wanted.append(("navigation", self._on_navigation))
        if cfg.capture_performance:
            wanted.append(("network", self._on_network))
        if cfg.capture_notifications:
            wanted.append(("notification", self._on_notification))
        for kind, callback in wanted:
            self._unsubscribers.append(self._hub.subscribe(kind, callback))

    def _on_error(self, event: dict) -> None:
        self.record(
            "Unhandled Error" if event.get("fatal") else "Application Error",
            event.get("message", ""),
            level="error",
            category="error",
            action="unhandled_error",
            error_code="UNHANDLED_ERROR" if event.get("fatal") else "APP_ERROR",
            error_stack=event.get("stack") or None,
            error_context=event.get("context") or None,
            metadata={"isFatal": bool(event.get("fatal")), "excType": event.get("exc_type")},
        )

    def _on_interaction(self, event: dict) -> None:
        self._interaction_count += 1
        self.record(
            "User Interaction",
            f"{event.get('action', 'interaction')} on {event.get('target', 'unknown')}",
            level="info",
            category="user_action",
            action=event.get("action") or "interaction",
            screen=event.get("screen") or None,
            metadata=dict(event.get("details") or {}),
        )

    def _on_navigation(self, event: dict) -> None:
        self.screen_navigation(
            event.get("from_screen", "Unknown"),
            event.get("to_screen", "Unknown"),
            dict(event.get("details") or {}),
        )

    def _on_network(self, event: dict) -> None:
        if event.get("error") or event.get("status") is None:
            self.record(
                "Network Error",
                f"Request to {event.get('url')} failed: {event.get('error')}",
                level="error",
                category="error",
                action="network_error",
                duration=event.get("duration_ms"),
                error_code="NETWORK_ERROR",
                metadata={"url": event.get("url"), "method": event.get("method")},
            )
            return
        self.network_request(
            event.get("url", ""),
            event.get("method", "GET"),
            event.get("duration_ms", 0),
            event["status"],
        )

    def _on_notification(self, event: dict) -> None:
        self.record(
            "Notification",
            event.get("title", ""),
            level="info",
            category="notification",
            action="notification_received",
            metadata={"body": event.get("body", ""), **(event.get("details") or {})},
        )

    async def _sample_performance(self) -> None:
        try:
            memory = self._provider.memory_info()
            network = self._provider.network_info()
        except Exception:
            logger.exception("Performance sampling failed")
            return
        self.record(
            "Performance Metrics",
            f"Memory: {memory.get('used')}MB, Network: {network.get('type')}",
            level="info",
            category="performance",
            action="performance_check",
            memory_usage=f"{memory.get('used')}MB",
            network_status=network.get("type"),
            metadata={"memory": memory, "network": network},
        )

    async def _sample_location(self) -> None:
        self._capture_location()

    def _capture_location(self) -> None:
        """Record the position when it changed, or a warning when it first becomes unavailable."""
        try:
            location = self._provider.location()
        except Exception as exc:
            location = None
            reason = str(exc)
        else:
            reason = "no location source available"

        if location is None:
            if self._location_failed:
                return
            self._location_failed = True
            self._last_location = None
            self.record(
                "Location Error",
                f"Location error: {reason}",
                level="warning",
                category="error",
                action="location_error",
                error_code="LOCATION_ERROR",
            )
            return

        self._location_failed = False
        if location == self._last_location:
            return
        self._last_location = location
        self.record(
            "Location Updated",
            "Device location obtained",
            level="info",
            category="event",
            action="location_update",
            location=location,
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> dict:
        return {
            "isRunning": self.is_running,
            "deviceId": self._device_id,
            "sessionId": self._session_id,
            "sessionDuration": round((time.monotonic() - self._start_time) * 1000),
            "interactionCount": self._interaction_count,
            "queueSize": len(self._queue),
            "failedLogsCount": self._failed.count(),
            "metrics": self._metrics.snapshot(),
        }
