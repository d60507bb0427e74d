"""Logging setup shared by the CLI and embedding applications."""

import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Configure root logging for snapcal.

    httpx request logging is kept at WARNING.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("httpx").setLevel(logging.WARNING)
