import logging
from typing import Optional

from civictrack.core.settings import settings


def configure_logging(level: Optional[int] = None) -> None:
    """
    Configure basic logging for the API.

    Safe to call more than once: if handlers already exist, only the level
    is adjusted.
    """
    if level is None:
        level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    root_logger = logging.getLogger()

    if root_logger.handlers:
        root_logger.setLevel(level)
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    # The Google client libraries are chatty at INFO
    logging.getLogger("google").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


__all__ = ["configure_logging"]
