import asyncio

import pytest
import pytest_asyncio

from ingest_service.app import create_app
from ingest_service.config import ServiceConfig
from mobile_logger.config import ShipperConfig
from mobile_logger.device import FakeMetricsProvider
from mobile_logger.models import create_log_record
from mobile_logger.shipper import LogShipper
from mobile_logger.storage import MemoryStore, StorageError
from mobile_logger.transport import DeliveryError


class FakeTransport:
    """Records what the shipper sends; fails every call while ``fail`` is set."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.batches: list[list] = []
        self.singles: list = []
        self.batch_attempts = 0
        self.single_attempts = 0
        self.gate: asyncio.Event | None = None
        self.closed = False

    async def send_batch(self, records):
        self.batch_attempts += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise DeliveryError("HTTP error! status: 500")
        self.batches.append(list(records))
        return {"success": True, "count": len(records)}

    async def send_one(self, record):
        self.single_attempts += 1
        if self.fail:
            raise DeliveryError("HTTP error! status: 500")
        self.singles.append(record)
        return {"success": True, "count": 1}

    async def aclose(self):
        self.closed = True


class BrokenStore:
    """A store whose every read and write fails."""

    def get(self, key, default=None):
        raise StorageError("disk unavailable")

    def set(self, key, value):
        raise StorageError("disk unavailable")

    def delete(self, key):
        raise StorageError("disk unavailable")


def make_config(**overrides) -> ShipperConfig:
    """Build a ShipperConfig with test-friendly defaults."""
    defaults = {
        "endpoint_url": "http://ingest.test",
        "user_id": "user-123",
        "app_name": "TestApp",
        "batch_size": 10,
        "batch_interval_ms": 60000,
        "retry_interval_ms": 60000,
        "auto_start": False,
        "capture_performance": False,
        "capture_location": False,
    }
    defaults.update(overrides)
    return ShipperConfig(**defaults)


def make_record(title: str = "T", **fields):
    fields.setdefault("content", "C")
    return create_log_record(app="TestApp", title=title, **fields)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest_asyncio.fixture
async def make_shipper():
    """Factory that builds and opens shippers, closing them at teardown."""
    created = []

    async def _make(transport=None, store=None, provider=None, hub=None, **overrides):
        shipper = LogShipper(
            make_config(**overrides),
            transport=transport if transport is not None else FakeTransport(),
            store=store if store is not None else MemoryStore(),
            provider=provider or FakeMetricsProvider(),
            hub=hub,
        )
        await shipper.open()
        created.append(shipper)
        return shipper

    yield _make

    for shipper in created:
        await shipper.close()


@pytest.fixture
def app():
    """Create a Flask test app with default configuration."""
    application = create_app(ServiceConfig())
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()


@pytest.fixture
def sample_valid_log():
    return {
        "app": "MyApp",
        "title": "User Login",
        "content": "User successfully logged in",
        "logLevel": "info",
        "category": "user_action",
        "deviceId": "device_iphone_14",
        "userId": "user123",
        "sessionId": "session_abc123",
        "timestamp": "2024-01-15T10:30:00+00:00",
        "metadata": {"loginMethod": "email"},
    }
