"""
YTCHAT Logging Utilities - Per-run file logging for chat turns

Overview:
---------
Centralised logging configuration for YTCHAT.  Each CLI run writes a
timestamped log file tagged with a short run ID so that routing decisions,
assembled prompts and raw model responses of one conversation can be
correlated afterwards.

Log Location:
-------------
- Default: ~/.ytchat/logs/
- A symlink 'ytchat.log' always points to the latest run
- Can be overridden via YTCHAT_LOG_DIR environment variable

Log Levels:
-----------
- DEBUG: Full prompts, raw model responses, tool arguments
- INFO: Chosen strategy per message, session lifecycle
- WARNING: Malformed attachments, cancelled streams
- ERROR: Model and persistence failures

Usage:
------
    from ytchat.utils.logging import get_logger, setup_logging

    log_file = setup_logging(level="DEBUG")   # once, at CLI start-up
    logger = get_logger(__name__)             # in any module
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

DEFAULT_LOG_DIR = Path.home() / ".ytchat" / "logs"
DEFAULT_LOG_LEVEL = "INFO"
SYMLINK_NAME = "ytchat.log"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(run_id)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(run_id)s | %(name)s:%(lineno)d | %(message)s"

_logging_initialised = False
_log_file_path: Optional[Path] = None
_run_id: Optional[str] = None


class RunIdFilter(logging.Filter):
    """Add run_id to all log records."""

    def __init__(self, run_id: str):
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.run_id  # type: ignore[attr-defined]
        return True


class RunFormatter(logging.Formatter):
    """Formatter that adds run_id, defaulting to 'N/A' if not present."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "run_id"):
            record.run_id = _run_id or "N/A"  # type: ignore[attr-defined]
        return super().format(record)


def generate_run_id() -> str:
    """Generate a short unique run ID (6 characters)."""
    return uuid.uuid4().hex[:6]


def get_log_directory() -> Path:
    """Get the log directory, respecting YTCHAT_LOG_DIR environment variable."""
    env_log_dir = os.getenv("YTCHAT_LOG_DIR")
    if env_log_dir:
        return Path(env_log_dir)
    return DEFAULT_LOG_DIR


def setup_logging(
    level: Optional[str] = None,
    log_dir: Optional[Path] = None,
    console_output: bool = False,
) -> Path:
    """Initialise YTCHAT logging with a per-run file and optional console output.

    Parameters
    ----------
    level : str, optional
        Log level: DEBUG, INFO, WARNING, ERROR. Defaults to INFO or
        YTCHAT_LOG_LEVEL.
    log_dir : Path, optional
        Directory for log files. Defaults to ~/.ytchat/logs/
    console_output : bool
        If True, also log to stderr.

    Returns
    -------
    Path
        Path to the log file being written to.
    """
    global _logging_initialised, _log_file_path, _run_id

    _run_id = generate_run_id()

    if level is None:
        level = os.getenv("YTCHAT_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_dir is None:
        log_dir = get_log_directory()
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"ytchat_{timestamp}_{_run_id}.log"
    _log_file_path = log_file

    root = logging.getLogger("ytchat")
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)
    for f in root.filters[:]:
        root.removeFilter(f)
    root.setLevel(log_level)
    root.addFilter(RunIdFilter(_run_id))

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(RunFormatter(FILE_LOG_FORMAT, LOG_DATE_FORMAT))
    root.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(log_level)
        console_handler.setFormatter(RunFormatter(LOG_FORMAT, LOG_DATE_FORMAT))
        root.addHandler(console_handler)

    root.propagate = False

    symlink_path = log_dir / SYMLINK_NAME
    try:
        if symlink_path.is_symlink() or symlink_path.exists():
            symlink_path.unlink()
        symlink_path.symlink_to(log_file.name)
    except OSError:
        # Symlinks are unavailable on some platforms.
        pass

    _logging_initialised = True
    root.info("YTCHAT run %s started, log level %s", _run_id, level.upper())
    return log_file


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``ytchat`` namespace."""
    if name.startswith("ytchat"):
        return logging.getLogger(name)
    return logging.getLogger(f"ytchat.{name}")


def get_current_log_file() -> Optional[Path]:
    """Return the path to the current log file, if logging is initialised."""
    return _log_file_path


def _truncate(content: str, truncate_at: int) -> str:
    if len(content) > truncate_at:
        return content[:truncate_at] + f"... [TRUNCATED, {len(content)} chars total]"
    return content


def log_prompt(
    logger: logging.Logger,
    prompt_type: str,
    prompt_content: str,
    truncate_at: int = 2000,
) -> None:
    """Log a prompt being sent to the model (DEBUG)."""
    logger.debug("PROMPT (%s):\n%s", prompt_type, _truncate(prompt_content, truncate_at))


def log_llm_response(
    logger: logging.Logger,
    response_type: str,
    response_content: str,
    truncate_at: int = 2000,
) -> None:
    """Log a model response (DEBUG)."""
    logger.debug("LLM RESPONSE (%s):\n%s", response_type, _truncate(response_content, truncate_at))
