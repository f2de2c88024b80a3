"""Entry point for the walkthrough."""

import asyncio
import logging
import sys

from pydantic import ValidationError

from .core.config import Settings, get_settings
from .core.exceptions import DomainException
from .core.logging_config import configure_logging
from .session import connect_session
from .walkthrough.reporting import Reporter
from .walkthrough.steps import run_walkthrough

logger = logging.getLogger(__name__)


async def run(settings: Settings) -> None:
    """Connect, run every step and always release the pool."""
    async with connect_session(
        settings.connection_config(),
        transaction_error_policy=settings.on_transaction_error,
    ) as session:
        await run_walkthrough(session, Reporter())


def main() -> int:
    configure_logging()
    try:
        settings = get_settings()
    except ValidationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 1

    logging.getLogger().setLevel(settings.log_level.upper())

    try:
        asyncio.run(run(settings))
    except DomainException as e:
        logger.error(f"Walkthrough failed: {e.message}", extra={"details": e.to_dict()})
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
