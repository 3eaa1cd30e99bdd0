#!/usr/bin/env python3
"""Console + per-level file logging for the bot and the watcher."""
import logging
from pathlib import Path

from constants import C_BLUE, C_CYAN, C_GREY, C_RED, C_RESET, C_YELLOW

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"

_LEVEL_COLORS = {
    logging.DEBUG: C_GREY,
    logging.INFO: C_CYAN,
    logging.WARNING: C_YELLOW,
    logging.ERROR: C_RED,
    logging.CRITICAL: C_RED,
}


class ColorFormatter(logging.Formatter):
    """Colours the whole line by level, like the rest of the console output."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = _LEVEL_COLORS.get(record.levelno, C_BLUE)
        return f"{color}{line}{C_RESET}"


class _ExactLevelFilter(logging.Filter):
    def __init__(self, levelno: int) -> None:
        super().__init__()
        self.levelno = levelno

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno == self.levelno


def setup_logging(level: str = "info", log_dir: Path | str | None = "logs") -> None:
    """Configures the root logger; one file per level when ``log_dir`` is set."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    console = logging.StreamHandler()
    console.setFormatter(ColorFormatter(LOG_FORMAT))
    root.addHandler(console)

    if log_dir is None:
        return
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    for levelno in (logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR):
        file_handler = logging.FileHandler(log_path / f"{logging.getLevelName(levelno).lower()}.log")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.addFilter(_ExactLevelFilter(levelno))
        root.addHandler(file_handler)

    # library chatter stays at warning unless debugging
    if root.level > logging.DEBUG:
        for noisy in ("httpx", "telegram", "websockets", "apscheduler"):
            logging.getLogger(noisy).setLevel(logging.WARNING)
