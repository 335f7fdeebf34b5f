"""Process-wide logging setup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from packhub.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
REQUEST_LOGGER = "packhub.requests"


def configure_logging(settings: Settings) -> None:
    """Configure the packhub logger hierarchy.

    Application loggers write to stderr. When ``logging.request_log`` is set,
    the request logger additionally appends one line per request to that file.
    """
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    app_logger = logging.getLogger("packhub")
    app_logger.setLevel(level)
    if not any(getattr(h, "_packhub", False) for h in app_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._packhub = True
        app_logger.addHandler(handler)

    request_logger = logging.getLogger(REQUEST_LOGGER)
    request_logger.setLevel(logging.INFO)
    for handler in list(request_logger.handlers):
        if isinstance(handler, logging.FileHandler):
            request_logger.removeHandler(handler)
            handler.close()

    if settings.logging.request_log:
        log_path = Path(settings.logging.request_log)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        request_logger.addHandler(file_handler)
