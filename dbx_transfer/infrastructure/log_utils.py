"""Shortcuts for writing dbx-transfer log lines tagged by the calling module.

``log_message("Token cached", "INFO")`` inside ``token_manager`` is written with
the ``AUTH`` tag; pass ``tag=`` to override the inferred one.
"""

from __future__ import annotations

import inspect
import logging
from typing import Dict

from dbx_transfer.logging_setup import get_logger, get_tag_for_module

_LEVELS: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _caller_tag(depth: int) -> str:
    frame = inspect.stack()[depth]
    module = inspect.getmodule(frame[0])
    return get_tag_for_module(getattr(module, "__name__", "unknown"))


def log_message(msg: str, level: str = "INFO", tag: str | None = None, **kwargs) -> None:
    """Write ``msg`` at ``level`` through the package logger.

    Extra keyword arguments such as ``exc_info`` go straight to
    :meth:`logging.Logger.log`. Unknown levels are logged at INFO with a warning.
    """
    from_shortcut = kwargs.pop("_wrapped", False)
    logger = get_logger(tag or _caller_tag(3 if from_shortcut else 2))

    numeric_level = _LEVELS.get(str(level).upper())
    if numeric_level is None:
        logger.warning("Received unknown log level '%s'; defaulting to INFO. Message: %s", level, msg)
        numeric_level = logging.INFO

    logger.log(numeric_level, msg, **kwargs)


def debug(msg: str, tag: str | None = None, **kwargs) -> None:
    log_message(msg, "DEBUG", tag, _wrapped=True, **kwargs)


def info(msg: str, tag: str | None = None, **kwargs) -> None:
    log_message(msg, "INFO", tag, _wrapped=True, **kwargs)


def warn(msg: str, tag: str | None = None, **kwargs) -> None:
    log_message(msg, "WARNING", tag, _wrapped=True, **kwargs)


def error(msg: str, tag: str | None = None, **kwargs) -> None:
    log_message(msg, "ERROR", tag, _wrapped=True, **kwargs)
