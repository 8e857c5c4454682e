"""Logging setup shared by the API process."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _parse_log_level(level_name: str | None) -> int:
    if not level_name:
        return logging.INFO
    return getattr(logging, level_name.strip().upper(), logging.INFO)


def configure_logging(level_name: str | None = None) -> None:
    """Attach a stream handler to the root logger unless one already exists.

    Uvicorn installs its own handlers when it runs the app; in that case only
    the level is aligned so ``notifyhub`` records are not filtered out.
    """

    level = _parse_log_level(level_name)
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger("notifyhub").setLevel(level)


__all__ = ["configure_logging"]
