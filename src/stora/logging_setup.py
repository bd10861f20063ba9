"""Logging configuration for the CLI and the scheduler daemon."""

from __future__ import annotations

import logging

from stora.config import Settings

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings, console: bool = True) -> None:
    """Attach stream and file handlers to the ``stora`` logger."""
    root = logging.getLogger("stora")
    root.setLevel(getattr(logging, settings.log_level, logging.INFO))

    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    settings.log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(settings.log_path)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)
