"""Process-wide logging setup."""

import logging

from .config import settings
from .request_context import attach_request_id_filter

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once and tag every record with the current request id."""
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT)
    attach_request_id_filter()
