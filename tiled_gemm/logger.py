"""Logging setup for tiled_gemm.

All modules log through children of the ``tiled_gemm`` logger. The level is
read from TILED_GEMM_LOG_LEVEL the first time a logger is requested.
"""

import logging
import os
import sys

ROOT_LOGGER_NAME = "tiled_gemm"
LOG_LEVEL_ENV = "TILED_GEMM_LOG_LEVEL"

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _level_from_env():
    name = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    return name, _LEVELS.get(name)


def _configure_root():
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if root.handlers:
        return root

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
    root.propagate = False

    name, level = _level_from_env()
    if level is None:
        root.setLevel(logging.INFO)
        root.warning(
            "Invalid %s '%s'. Valid levels are: %s. Using INFO.",
            LOG_LEVEL_ENV, name, ", ".join(_LEVELS),
        )
    else:
        root.setLevel(level)
    return root


def get_logger(name=None):
    """Return the package logger, or a child of it for ``name``."""
    root = _configure_root()
    if name is None or name == ROOT_LOGGER_NAME:
        return root
    if not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def set_log_level(level):
    """Set the package log level from a name such as ``"debug"``."""
    value = _LEVELS.get(str(level).upper())
    if value is None:
        raise ValueError(f"Unknown log level: {level!r}")
    _configure_root().setLevel(value)
