"""Logging configuration for the storefront billing backend."""
import logging
import sys
from typing import Optional

# Chatty third-party loggers; the Stripe client logs every request at INFO
QUIET_LOGGERS = ("sqlalchemy", "stripe", "urllib3")


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure logging once at startup.

    Args:
        level: Level name such as "debug" or "INFO". Defaults to INFO.
    """
    log_level = (level or "INFO").upper()

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    logging.getLogger("uvicorn").setLevel(log_level)
    logging.getLogger("uvicorn.access").setLevel(log_level)
    # Webhook outcomes are the audit trail for entitlement changes
    logging.getLogger("storefront").setLevel(log_level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
