# core/logging_config.py
"""Route structlog and stdlib records for an advisor CLI run.

Records go to stderr (Rich when enabled, otherwise plain) and, unless simple
mode is on, to a rotating file under the output directory. stdout is left to
the CLI's own summaries. Call `setup_logging()` once, before the first command
runs; calling it again replaces the previous handlers.
"""

import logging as stdlib_logging
import logging.handlers
from pathlib import Path

import structlog
from rich.console import Console
from rich.logging import RichHandler

import config
from config import rich_formatter, simple_formatter

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5
QUIET_LIBRARIES = ("httpx", "httpcore")


def _plain_stream_handler() -> stdlib_logging.Handler:
    handler = stdlib_logging.StreamHandler()
    handler.setLevel(config.LOG_LEVEL_STR)
    handler.setFormatter(simple_formatter)
    return handler


def _run_log_handler(log_path: Path) -> stdlib_logging.Handler:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = stdlib_logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(config.LOG_LEVEL_STR)
    handler.setFormatter(simple_formatter)
    return handler


def _rich_handler(console: Console | None) -> stdlib_logging.Handler:
    handler = RichHandler(
        level=config.LOG_LEVEL_STR,
        console=console or Console(stderr=True),
        rich_tracebacks=True,
        markup=True,
        show_path=False,
        show_time=False,  # rich_formatter stamps the time
        show_level=False,
    )
    handler.setFormatter(rich_formatter)
    return handler


def setup_logging(console: Console | None = None) -> None:
    """Install the run's log handlers on the root logger.

    Args:
        console: Rich console for the console sink. A stderr console is
            created when omitted.
    """
    root_logger = stdlib_logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(config.LOG_LEVEL_STR)

    if config.SIMPLE_LOGGING_MODE:
        root_logger.addHandler(_plain_stream_handler())
    else:
        root_logger.addHandler(_rich_handler(console) if config.ENABLE_RICH_PROGRESS else _plain_stream_handler())
        if config.LOG_FILE:
            log_path = Path(config.BASE_OUTPUT_DIR) / config.LOG_FILE
            try:
                root_logger.addHandler(_run_log_handler(log_path))
            except OSError as e:
                root_logger.error(f"Cannot write run log {log_path}: {e}; logging to stderr only")

    for name in QUIET_LIBRARIES:
        stdlib_logging.getLogger(name).setLevel(stdlib_logging.WARNING)

    structlog.get_logger(__name__).debug(
        "Logging configured",
        level=stdlib_logging.getLevelName(root_logger.level),
        simple_mode=config.SIMPLE_LOGGING_MODE,
        log_file=None if config.SIMPLE_LOGGING_MODE else config.LOG_FILE,
    )
