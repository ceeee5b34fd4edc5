"""
Logging setup for gridsheet.

Library modules only call ``logging.getLogger(__name__)``; applications that
embed the editor call :func:`configure_logging` once at startup.
"""

import logging
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(
    level: Union[int, str, None] = None,
    format_string: Optional[str] = None,
) -> None:
    """Configure the ``gridsheet`` logger hierarchy.

    Args:
        level: Log level (int or name such as "DEBUG"). Defaults to the
               ``log_level`` setting.
        format_string: Custom format string (uses DEFAULT_FORMAT if None)
    """
    if level is None:
        from gridsheet.config import get_settings

        level = get_settings().log_level
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger = logging.getLogger("gridsheet")
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    logger.addHandler(handler)
