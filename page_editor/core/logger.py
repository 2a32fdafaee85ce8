"""
Logging configuration using Loguru.

Services log through the shared loguru `logger`. Hosts call setup_logging()
once at startup; editor sessions log through a logger bound to their page.
"""
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from page_editor.config import settings


CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> | "
    "<level>{message}</level>"
)

FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[component]} | page={extra[page_id]} | "
    "{name}:{function}:{line} | {message}"
)

LOG_FILE_NAME = "page-editor.log"


def setup_logging(level: Optional[str] = None, log_dir: Optional[str] = None) -> None:
    """
    Configure loguru sinks for the editor core.

    Args:
        level: Console level (defaults to settings.log_level)
        log_dir: Directory for the rotating file sink (defaults to
            settings.log_dir; no file sink when unset)
    """
    logger.remove()
    logger.configure(extra={"component": "page_editor", "page_id": "-"})

    console_level = (level or settings.log_level).upper()
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=console_level,
        colorize=settings.debug,
        backtrace=settings.debug,
        diagnose=settings.debug,
    )

    directory = log_dir or settings.log_dir
    if directory:
        path = Path(directory)
        path.mkdir(parents=True, exist_ok=True)
        logger.add(
            path / LOG_FILE_NAME,
            format=FILE_FORMAT,
            level="DEBUG" if settings.debug else "INFO",
            rotation=settings.log_rotation,
            retention=settings.log_retention,
            compression="zip",
        )

    logger.info(f"Logging configured - level={console_level} file_sink={bool(directory)}")


def get_logger(name: str, **context):
    """
    Logger bound to a component name plus optional context.

    Example:
        >>> log = get_logger("editor_session", page_id=page.id)
        >>> log.info("Undo")
    """
    return logger.bind(component=name, **context)
