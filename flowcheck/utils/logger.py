# flowcheck/utils/logger.py
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler


ROOT_LOGGER = "flowcheck"

FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
DATEFMT = "%Y-%m-%d %H:%M:%S"

# threshold level -> ANSI color, checked from the most severe down
_COLORS = (
    (logging.ERROR, "\033[91m"),    # red
    (logging.WARNING, "\033[93m"),  # yellow
    (logging.INFO, "\033[92m"),     # green
)


def _env_level(default: str = "WARNING") -> int:
    """FLOWCHECK_LOG_LEVEL, then LOG_LEVEL; unknown names mean WARNING."""
    name = os.getenv("FLOWCHECK_LOG_LEVEL") or os.getenv("LOG_LEVEL") or default
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.WARNING


class _ColorFormatter(logging.Formatter):
    """Colors whole lines by level when stderr is a terminal."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        if not sys.stderr.isatty():
            return line
        for threshold, color in _COLORS:
            if record.levelno >= threshold:
                return f"{color}{line}\033[0m"
        return line


def init_logger(
    name: str = ROOT_LOGGER,
    level: int | None = None,
    log_dir: str | Path | None = None,
    file_name: str = "flowcheck.log",
    file_max_mb: int = 5,
    file_backup: int = 3,
) -> logging.Logger:
    """
    Configure the package logger. Diagnostics go to stderr so that reports
    printed on stdout stay machine-readable. A rotating file log is added when
    `log_dir` (or FLOWCHECK_LOG_DIR) is set.
    """
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.propagate = False
    logger.setLevel(level if level is not None else _env_level())

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(_ColorFormatter(fmt=FORMAT, datefmt=DATEFMT))
    logger.addHandler(stream)

    log_dir = log_dir or os.getenv("FLOWCHECK_LOG_DIR")
    if log_dir:
        folder = Path(log_dir)
        folder.mkdir(parents=True, exist_ok=True)
        fh = RotatingFileHandler(
            filename=str(folder / file_name),
            maxBytes=file_max_mb * 1024 * 1024,
            backupCount=file_backup,
            encoding="utf-8",
        )
        fh.setFormatter(logging.Formatter(fmt=FORMAT, datefmt=DATEFMT))
        logger.addHandler(fh)

    return logger


log = init_logger()


def set_level(level: int) -> None:
    """Change the verbosity of every flowcheck logger at runtime."""
    log.setLevel(level)


def get_logger(child: str) -> logging.Logger:
    """Child logger under the package logger, e.g. get_logger("structural")."""
    return log.getChild(child)
