"""Server entry point for the log ingestion service."""

import logging

from ingest_service.app import create_app
from ingest_service.config import load_service_config


def main():
    config = load_service_config()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)

    app = create_app(config)
    logger.info("Starting ingestion service on %s:%d", config.host, config.port)
    app.run(host=config.host, port=config.port, debug=config.debug)


if __name__ == "__main__":
    main()
