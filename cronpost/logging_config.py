"""Logging setup: colored console output plus an optional rotating log file.

Call ``setup_logging()`` once at startup.  Modules log through
``logging.getLogger(__name__)``; records carry the ``[op:job]`` prefix
from `cronpost.log_context`.
"""

from __future__ import annotations

import atexit
import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path

from cronpost.log_context import ContextFilter

LOG_FILE_NAME = "cronpost.log"
MAX_BYTES = 5 * 1024 * 1024  # 5 MB per file
BACKUP_COUNT = 3

CONSOLE_FMT = "%(asctime)s %(levelname)s %(name)s: %(ctx)s%(message)s"
FILE_FMT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(ctx)s%(message)s"
DATE_FMT = "%Y-%m-%dT%H:%M:%S"

logger = logging.getLogger(__name__)

_LEVEL_COLORS = {
    "DEBUG": "\x1b[36m",
    "INFO": "\x1b[32m",
    "WARNING": "\x1b[33m",
    "ERROR": "\x1b[31m",
    "CRITICAL": "\x1b[35m",
}
_RESET = "\x1b[0m"

# Noisy third-party loggers capped at WARNING.
_QUIET_LOGGERS = ("aiohttp.access", "aiohttp.client", "asyncio")

_file_listener: QueueListener | None = None
_atexit_registered = False


class _LevelFormatter(logging.Formatter):
    """Pads level names and colors them when writing to a terminal."""

    def __init__(self, fmt: str, datefmt: str | None = None, *, use_color: bool) -> None:
        super().__init__(fmt, datefmt)
        self._use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        original = record.levelname
        padded = f"{original:<8}"
        if self._use_color:
            padded = f"{_LEVEL_COLORS.get(original, '')}{padded}{_RESET}"
        record.levelname = padded
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _stop_file_listener() -> None:
    global _file_listener  # noqa: PLW0603
    if _file_listener is not None:
        _file_listener.stop()
        _file_listener = None


def level_from_name(name: str, default: int = logging.INFO) -> int:
    """Map a config string such as ``"debug"`` to a logging level."""
    level = logging.getLevelName(name.strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(
    level: int = logging.INFO,
    verbose: bool = False,
    log_dir: Path | None = None,
) -> None:
    """Configure the root logger. Safe to call again; handlers are replaced.

    Args:
        level: Minimum console level.
        verbose: Force DEBUG regardless of *level*.
        log_dir: Where to write ``cronpost.log``. None disables file logging.
    """
    if verbose:
        level = logging.DEBUG

    _stop_file_listener()
    ctx_filter = ContextFilter()

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    # stderr is None when running detached without a console
    if sys.stderr is not None:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(level)
        console.addFilter(ctx_filter)
        use_color = hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
        console.setFormatter(_LevelFormatter(CONSOLE_FMT, DATE_FMT, use_color=use_color))
        root.addHandler(console)

    if log_dir is not None:
        _attach_file_handler(root, log_dir, ctx_filter)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info("Logging initialized (level=%s)", logging.getLevelName(level))


def _attach_file_handler(root: logging.Logger, log_dir: Path, ctx_filter: ContextFilter) -> None:
    """Route file output through a QueueListener thread."""
    global _file_listener, _atexit_registered  # noqa: PLW0603

    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FMT, datefmt=DATE_FMT))

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue()
    queue_handler = QueueHandler(log_queue)
    queue_handler.setLevel(logging.DEBUG)
    queue_handler.addFilter(ctx_filter)
    root.addHandler(queue_handler)

    listener = QueueListener(log_queue, file_handler, respect_handler_level=True)
    listener.start()
    _file_listener = listener
    if not _atexit_registered:
        atexit.register(_stop_file_listener)
        _atexit_registered = True
