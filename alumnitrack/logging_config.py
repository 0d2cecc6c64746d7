"""
AlumniTrack - Logging Configuration

Console output for the user goes through rich; this module only wires the
diagnostic log (warnings on stderr, everything in an optional rotating file).
"""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from contextvars import ContextVar
from typing import Optional

from alumnitrack.config import ClientConfig


LOGGER_NAME = "alumnitrack"

# Context variable for the signed-in user
user_id_var: ContextVar[str] = ContextVar('user_id', default='')


def get_user_id() -> str:
    """Get current user ID from context"""
    return user_id_var.get() or ''


def set_user_id(user_id: Optional[str]) -> None:
    """Set user ID in context"""
    user_id_var.set(user_id or '')


class ContextualFormatter(logging.Formatter):
    """Formatter that adds the current user id to every record"""

    def format(self, record: logging.LogRecord) -> str:
        record.user_id = get_user_id() or '-'
        return super().format(record)


def setup_logging(config: ClientConfig) -> logging.Logger:
    """Setup the package logger from client configuration"""
    logger = logging.getLogger(LOGGER_NAME)
    level = getattr(logging, str(config.log_level).upper(), logging.INFO)
    if config.verbose:
        level = logging.DEBUG
    logger.setLevel(level)

    # Clear existing handlers
    logger.handlers.clear()
    logger.propagate = False

    detailed_format = (
        "%(asctime)s | %(levelname)-8s | [%(user_id)s] | "
        "%(name)s:%(lineno)d | %(message)s"
    )
    simple_format = "%(levelname)-8s | %(message)s"

    # Console handler - stderr so it never mixes with command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if config.verbose else logging.WARNING)
    console_handler.setFormatter(ContextualFormatter(simple_format))
    logger.addHandler(console_handler)

    # File handler - detailed format
    if config.log_file:
        log_file = Path(config.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=1048576,  # 1MB
            backupCount=3
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(ContextualFormatter(detailed_format))
        logger.addHandler(file_handler)

    return logger
