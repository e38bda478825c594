"""Entry point for the deployment agent."""

import asyncio
import sys

from mcmanager.config import load_settings
from mcmanager.errors import ConfigurationError
from mcmanager.logging import get_logger, setup_logging
from mcmanager.server import run_server


def main() -> None:
    """Validate configuration and start the HTTP server."""
    setup_logging()
    log = get_logger("mcmanager.main")

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        log.error("configuration_invalid", error=str(exc))
        sys.exit(1)

    setup_logging(settings.log_level, development=settings.is_development)

    try:
        asyncio.run(run_server(settings))
    except KeyboardInterrupt:
        log.info("shutdown_requested")


if __name__ == "__main__":
    main()
