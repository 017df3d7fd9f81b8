"""Tests for device and session identifiers."""

import re

from conftest import BrokenStore
from mobile_logger.device import FakeMetricsProvider
from mobile_logger.identity import (
    DEVICE_ID_KEY,
    generate_session_id,
    resolve_device_id,
)
from mobile_logger.storage import JsonFileStore, MemoryStore


def test_uses_provider_id_and_persists_it():
    store = MemoryStore()
    device_id = resolve_device_id(store, FakeMetricsProvider(unique_id="hw-1"))
    assert device_id == "hw-1"
    assert store.get(DEVICE_ID_KEY) == "hw-1"


def test_generates_fallback_without_provider_id():
    store = MemoryStore()
    device_id = resolve_device_id(store, FakeMetricsProvider(unique_id=None))
    assert re.fullmatch(r"py_\d+_[0-9a-z]{9}", device_id)
    assert store.get(DEVICE_ID_KEY) == device_id


def test_reused_across_restart(tmp_path):
    path = str(tmp_path / "state.json")
    first = resolve_device_id(JsonFileStore(path), FakeMetricsProvider(unique_id=None))
    # A different provider id must not replace the persisted one
    second = resolve_device_id(JsonFileStore(path), FakeMetricsProvider(unique_id="other"))
    assert first == second


def test_storage_failure_gives_ephemeral_id():
    device_id = resolve_device_id(BrokenStore(), FakeMetricsProvider())
    assert device_id.startswith("py_")


def test_session_ids_are_fresh():
    first = generate_session_id()
    second = generate_session_id()
    assert first != second
    assert re.fullmatch(r"session_\d+_[0-9a-z]{9}", first)
