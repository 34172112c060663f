"""
Run logging for patchrun.

Each run writes an append-only log file (patch_apply_<timestamp>.log or
repo_clean_<timestamp>.log) and mirrors every record to the console with
severity colours. Modules log through logging.getLogger(__name__); only the
CLI installs handlers.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from rich.console import Console

SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")

ROOT_LOGGER = "patchrun"

LOG_PREFIXES = {
    "apply": "patch_apply",
    "reset": "repo_clean",
}

# WARNING is tagged WARN in files and on the console
LEVEL_TAGS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUCCESS: "SUCCESS",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}

LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.INFO: "blue",
    SUCCESS: "green",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}


def success(logger: logging.Logger, message: str) -> None:
    """Log at SUCCESS level."""
    logger.log(SUCCESS, message)


class TaggedFormatter(logging.Formatter):
    """`2026-10-19 14:02:11 [WARN] message` lines for the run log file."""

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        tag = LEVEL_TAGS.get(record.levelno, record.levelname)
        line = f"{self.formatTime(record, self.datefmt)} [{tag}] {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class ConsoleHandler(logging.Handler):
    """Colour console output; errors go to stderr."""

    def __init__(self, stdout: Console | None = None, stderr: Console | None = None):
        super().__init__()
        self.stdout = stdout or Console(highlight=False)
        self.stderr = stderr or Console(stderr=True, highlight=False)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tag = LEVEL_TAGS.get(record.levelno, record.levelname)
            style = LEVEL_STYLES.get(record.levelno, "")
            console = self.stderr if record.levelno >= logging.ERROR else self.stdout
            console.print(f"[{tag}] {record.getMessage()}", style=style, markup=False)
        except Exception:
            self.handleError(record)


def log_file_path(log_dir: Path, command: str, now: datetime | None = None) -> Path:
    """Per-run log file name, e.g. patch_apply_20261019_140211.log."""
    stamp = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return log_dir / f"{LOG_PREFIXES[command]}_{stamp}.log"


@contextmanager
def run_logging(log_file: Path | None, verbose: bool = False, console: ConsoleHandler | None = None):
    """
    Install file and console handlers on the patchrun logger for one run.

    Args:
        log_file: run log path, or None for console only
        verbose: include DEBUG records (git command lines) on the console
        console: handler override (tests)
    """
    root = logging.getLogger(ROOT_LOGGER)
    previous_level = root.level
    root.setLevel(logging.DEBUG)

    handlers: list[logging.Handler] = []
    console = console or ConsoleHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    handlers.append(console)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(TaggedFormatter())
        handlers.append(file_handler)

    for handler in handlers:
        root.addHandler(handler)
    try:
        yield log_file
    finally:
        for handler in handlers:
            root.removeHandler(handler)
            handler.close()
        root.setLevel(previous_level)
