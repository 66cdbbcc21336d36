"""Logging configuration for workflow and memory services."""

import logging
from typing import Optional

from agentloom.core.config import settings

NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "sqlalchemy.engine")


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging and quiet third-party libraries."""
    logger = logging.getLogger(__name__)

    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Suppress external library INFO/DEBUG logs (keep WARNING+)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Enable verbose workflow logging (includes errors, warnings, info)
    logging.getLogger("agentloom.workflows").setLevel(logging.DEBUG)
    logging.getLogger("agentloom.services.llm").setLevel(logging.DEBUG)

    logger.info(f"✅ Logging configured: {len(NOISY_LOGGERS)} noisy loggers quieted, workflow logging verbose")
