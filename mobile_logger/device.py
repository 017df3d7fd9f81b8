"""Device metrics providers.

The shipper only talks to the ``DeviceMetricsProvider`` protocol. Hosts on
other platforms supply their own implementation; tests use
``FakeMetricsProvider`` for deterministic values.
"""

import logging
import platform
import uuid
from typing import Optional, Protocol

import psutil

from mobile_logger.models import Location

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


class DeviceMetricsProvider(Protocol):
    def unique_id(self) -> Optional[str]:
        """Platform-unique device id, or None when the platform has none."""
        ...

    def device_info(self) -> dict:
        ...

    def os_version(self) -> str:
        ...

    def device_model(self) -> str:
        ...

    def memory_info(self) -> dict:
        """Memory usage in MB: ``{"used", "total", "available"}``."""
        ...

    def network_info(self) -> dict:
        ...

    def location(self) -> Optional[Location]:
        ...


class SystemMetricsProvider:
    """Reads metrics of the host machine via psutil and the platform module."""

    def unique_id(self) -> Optional[str]:
        node = uuid.getnode()
        # getnode() sets the multicast bit when it had to invent a random MAC
        if (node >> 40) & 0x01:
            return None
        return str(uuid.uuid5(uuid.NAMESPACE_OID, f"{platform.node()}-{node:012x}"))

    def device_info(self) -> dict:
        return {
            "system": platform.system(),
            "release": platform.release(),
            "machine": platform.machine(),
            "hostname": platform.node(),
            "pythonVersion": platform.python_version(),
            "cpuCount": psutil.cpu_count(),
        }

    def os_version(self) -> str:
        return f"{platform.system()} {platform.release()}".strip()

    def device_model(self) -> str:
        return platform.machine() or "unknown"

    def memory_info(self) -> dict:
        try:
            vm = psutil.virtual_memory()
        except (OSError, RuntimeError):
            logger.debug("Memory info unavailable", exc_info=True)
            return {"used": 0, "total": 0, "available": 0}
        return {
            "used": round(vm.used / _MB),
            "total": round(vm.total / _MB),
            "available": round(vm.available / _MB),
        }

    def network_info(self) -> dict:
        try:
            stats = psutil.net_if_stats()
        except (OSError, RuntimeError):
            return {"type": "unknown", "isConnected": False}
        up = [name for name, st in stats.items() if st.isup and not name.startswith("lo")]
        return {
            "type": up[0] if up else "none",
            "isConnected": bool(up),
            "interfaces": up,
        }

    def location(self) -> Optional[Location]:
        # No positioning source on a generic host
        return None


class FakeMetricsProvider:
    """Deterministic provider for tests."""

    def __init__(
        self,
        unique_id: Optional[str] = "fake-device-0001",
        memory_used: int = 128,
        location: Optional[Location] = None,
    ):
        self._unique_id = unique_id
        self._memory_used = memory_used
        self._location = location

    def unique_id(self) -> Optional[str]:
        return self._unique_id

    def device_info(self) -> dict:
        return {"system": "FakeOS", "release": "1.0", "machine": "fake-model"}

    def os_version(self) -> str:
        return "FakeOS 1.0"

    def device_model(self) -> str:
        return "fake-model"

    def memory_info(self) -> dict:
        return {"used": self._memory_used, "total": 1024, "available": 1024 - self._memory_used}

    def network_info(self) -> dict:
        return {"type": "wifi", "isConnected": True}

    def location(self) -> Optional[Location]:
        return self._location

    def move_to(self, location: Optional[Location]) -> None:
        self._location = location
