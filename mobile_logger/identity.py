"""Device and session identifiers."""

import logging
import random
import string
import time

from mobile_logger.storage import StorageError

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "device_id"

_BASE36 = string.digits + string.ascii_lowercase


def _random_suffix(length: int = 9) -> str:
    return "".join(random.choice(_BASE36) for _ in range(length))


def generate_session_id() -> str:
    """Fresh id per process start; never persisted."""
    return f"session_{int(time.time() * 1000)}_{_random_suffix()}"


def fallback_device_id() -> str:
    return f"py_{int(time.time() * 1000)}_{_random_suffix()}"


def resolve_device_id(store, provider=None) -> str:
    """Return the persisted device id, generating and persisting one on first use.

    Prefers the provider's platform-unique id. If storage fails the id is
    ephemeral for this process.
    """
    try:
        device_id = store.get(DEVICE_ID_KEY)
    except StorageError:
        logger.exception("Could not read device id, using an ephemeral one")
        return fallback_device_id()

    if device_id:
        return device_id

    device_id = None
    if provider is not None:
        try:
            device_id = provider.unique_id()
        except Exception:
            logger.debug("Provider has no unique id", exc_info=True)
    if not device_id:
        device_id = fallback_device_id()

    try:
        store.set(DEVICE_ID_KEY, device_id)
    except StorageError:
        logger.exception("Could not persist device id, it will not survive a restart")
    return device_id
