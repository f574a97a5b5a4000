"""
Logging Utilities
=================

All package loggers live under the ``quadric_simplify`` namespace and are
obtained through :func:`get_logger`. The library never touches the process
root logger; applications opt in to output with :func:`configure_logging`.
"""

import logging
import sys
from typing import Optional, Union

ROOT_LOGGER_NAME = "quadric_simplify"

_FORMAT = logging.Formatter("%(levelname)s %(name)s: %(message)s")


def _to_level(level: Union[str, int, None], default: int = logging.INFO) -> int:
    if level is None:
        return default
    if isinstance(level, int):
        return level
    value = getattr(logging, str(level).upper(), None)
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return value


def configure_logging(level: Union[str, int] = "INFO",
                      stream=None) -> logging.Logger:
    """
    Attach a stream handler to the package logger and set its level.

    Calling this more than once replaces the previously installed stream
    handler instead of stacking handlers.

    Args:
        level: Logging level name or number
        stream: Target stream (defaults to stdout)

    Returns:
        The package root logger
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        if type(handler) is logging.StreamHandler:
            root.removeHandler(handler)

    handler = logging.StreamHandler(stream=stream or sys.stdout)
    handler.setFormatter(_FORMAT)
    root.addHandler(handler)
    root.setLevel(_to_level(level))
    root.propagate = False
    return root


def get_logger(name: str, level: Optional[Union[str, int]] = None) -> logging.Logger:
    """
    Return a logger under the package namespace.

    Without an explicit level the logger inherits from the package root,
    so a single ``configure_logging`` call controls every module.
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    log = logging.getLogger(name)
    log.setLevel(_to_level(level) if level is not None else logging.NOTSET)
    return log


__all__ = ["get_logger", "configure_logging", "ROOT_LOGGER_NAME"]
