"""
Logging for the garment asset pipeline.

Every component logs through a child of the ``garment-assets`` package
logger (``garment-assets.upload``, ``garment-assets.render``, ...). Only the
package logger owns a handler, so a single level change reaches the whole
tree, including the render workers of a process pool.
"""

import os
import sys
import logging
from typing import Optional, Union

PACKAGE_LOGGER = "garment-assets"

# processName tells render workers apart from the event-loop process.
STRUCTURED_FORMAT = (
    "%(asctime)s | %(processName)s | %(name)s | %(levelname)-8s | %(message)s"
)
SIMPLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(level: Union[str, int, None]) -> int:
    if isinstance(level, int):
        return level
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logger(
    level: Union[str, int, None] = None,
    format_type: str = "structured",
    replace_handlers: bool = False,
) -> logging.Logger:
    """
    Configure the package logger and return it.

    Args:
        level: Level override; falls back to ``LOG_LEVEL``, then INFO
        format_type: "structured" or "simple"; ``LOG_FORMAT`` wins when set
        replace_handlers: Drop existing handlers first (worker start-up)
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(_resolve_level(level))

    if replace_handlers:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        env_format = os.getenv("LOG_FORMAT", format_type).lower()
        fmt = STRUCTURED_FORMAT if env_format == "structured" else SIMPLE_FORMAT
        handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(component: Optional[str] = None) -> logging.Logger:
    """
    Logger for one pipeline component.

    ``get_logger("upload")`` and ``get_logger("garment-assets.upload")`` name
    the same logger. Component loggers carry no handler or level of their
    own and inherit both from the package logger.
    """
    package = logging.getLogger(PACKAGE_LOGGER)
    if not package.handlers:
        setup_logger()
    if not component or component == PACKAGE_LOGGER:
        return package
    if not component.startswith(PACKAGE_LOGGER + "."):
        component = f"{PACKAGE_LOGGER}.{component}"
    return logging.getLogger(component)


def set_log_level(level: Union[str, int]) -> None:
    """Change the level of the whole package logger tree."""
    get_logger().setLevel(_resolve_level(level))


def current_log_level() -> str:
    return logging.getLevelName(get_logger().getEffectiveLevel())


def configure_multiprocessing_logging(level: Optional[str] = None) -> None:
    """
    ProcessPoolExecutor initializer for render workers.

    Rebuilds the handler a forked worker inherits and applies the level
    handed down by the parent process.
    """
    setup_logger(level, replace_handlers=True)
