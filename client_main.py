"""Client entry point: runs a shipper that emits sample records against the ingestion service."""

import asyncio
import logging
import random
import signal
import time

from mobile_logger.config import load_config
from mobile_logger.observers import EventHub, HubLogHandler
from mobile_logger.shipper import LogShipper

SAMPLE_SCREENS = ["HomeScreen", "ProfileScreen", "SettingsScreen", "MapScreen"]
SAMPLE_EVENTS = [
    ("info", "Request processed", "Profile data loaded"),
    ("info", "Cache miss", "Avatar not in cache"),
    ("warning", "Slow response", "Feed took longer than expected"),
    ("debug", "State restored", "Restored saved form state"),
    ("error", "Sync failed", "Could not sync settings"),
]


async def run(config) -> None:
    logger = logging.getLogger(__name__)
    shutdown = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, shutdown.set)

    hub = EventHub()
    logging.getLogger().addHandler(HubLogHandler(hub))

    async with LogShipper(config, hub=hub) as shipper:
        logger.info(
            "Shipping to %s: batch_size=%d, batch_interval=%dms",
            config.logs_url,
            config.batch_size,
            config.batch_interval_ms,
        )
        screen = SAMPLE_SCREENS[0]
        for _ in range(config.run_time):
            if shutdown.is_set():
                break
            second_start = time.monotonic()

            for _ in range(config.logs_per_second):
                level, title, content = random.choice(SAMPLE_EVENTS)
                shipper.record(title, content, level=level)
            if random.random() < 0.3:
                next_screen = random.choice(SAMPLE_SCREENS)
                hub.navigation(screen, next_screen)
                screen = next_screen
            hub.interaction("click", "button#refresh", screen=screen)

            remaining = 1.0 - (time.monotonic() - second_start)
            if remaining > 0:
                try:
                    await asyncio.wait_for(shutdown.wait(), timeout=remaining)
                except asyncio.TimeoutError:
                    pass

        logger.info("Shipper status: %s", shipper.get_status())


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    config = load_config()
    asyncio.run(run(config))


if __name__ == "__main__":
    main()
