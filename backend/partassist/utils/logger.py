"""
Logging setup for the parts assistant.

Every module asks for its logger via ``get_logger(__name__)``. Console output
is colour-coded per level unless LOG_COLOR is off (e.g. when logs are shipped
to a collector that does not understand ANSI codes).
"""

import logging
import sys
from typing import Dict, Optional, Tuple, Union

from partassist.core.config import settings

LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# level name -> (ANSI colour, icon)
LEVEL_STYLES: Dict[str, Tuple[str, str]] = {
    'DEBUG': ('\033[36m', '🔍'),
    'INFO': ('\033[32m', '✅'),
    'WARNING': ('\033[33m', '⚠️'),
    'ERROR': ('\033[31m', '❌'),
    'CRITICAL': ('\033[35m', '🚨'),
}


class ColoredFormatter(logging.Formatter):
    """Colour and icon per level; the logger name is printed in bold."""

    RESET = '\033[0m'
    BOLD = '\033[1m'

    def format(self, record):
        # Styled copy, so other handlers still see the plain record
        styled = logging.makeLogRecord(record.__dict__)
        style = LEVEL_STYLES.get(styled.levelname)
        if style is not None:
            colour, icon = style
            styled.levelname = f"{colour}{self.BOLD}{icon} {record.levelname}{self.RESET}"
        styled.name = f"{self.BOLD}{record.name}{self.RESET}"
        return super().format(styled)


def _resolve_level(level: Union[int, str, None]) -> int:
    if level is None:
        level = settings.LOG_LEVEL
    if isinstance(level, int):
        return level
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logger(
    name: str,
    level: Union[int, str, None] = None,
    format_string: Optional[str] = None,
    colored: Optional[bool] = None,
) -> logging.Logger:
    """
    Configure ``name`` with a single stdout handler.

    Args:
        name: Logger name (typically __name__ of the module)
        level: Level name or number (default: LOG_LEVEL setting)
        format_string: Custom format string (optional)
        colored: Force colours on or off (default: LOG_COLOR setting)

    Returns:
        The configured logger; calling again for the same name is a no-op
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    resolved = _resolve_level(level)
    logger.setLevel(resolved)

    formatter_cls = ColoredFormatter if (settings.LOG_COLOR if colored is None else colored) else logging.Formatter
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    handler.setFormatter(formatter_cls(format_string or LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    return setup_logger(name)
