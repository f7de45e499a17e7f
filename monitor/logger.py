"""
Logging setup with up to three outputs:
  - stderr: colored, compact console lines tagged with the guardian component
  - file (default on): verbose debug log at <log_dir>/guardian_[<mode>_]YYYYMMDD_HHMMSS.log
  - file (optional): single-line JSON records (ndjson) stamped with the
    execution mode, for machines
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from datetime import datetime, timezone


_RESET = "\033[0m"
_BOLD = "\033[1m"
_DIM = "\033[2m"
_RED = "\033[31m"
_YELLOW = "\033[33m"
_CYAN = "\033[36m"
_WHITE = "\033[37m"

_LEVEL_STYLES = {
    "DEBUG": (_DIM, "DBG"),
    "INFO": (_CYAN, "INF"),
    "WARNING": (_YELLOW, "WRN"),
    "ERROR": (_RED, "ERR"),
    "CRITICAL": (_RED + _BOLD, "CRT"),
}

_NOISY_LOGGERS = ("httpx", "httpcore", "web3", "urllib3", "openai", "uvicorn", "asyncio")

# Top-level package -> short console tag.
_COMPONENT_TAGS = {
    "client": "feed",
    "scanner": "scan",
    "executor": "exec",
    "pipeline": "loop",
    "monitor": "mon",
    "report": "api",
    "run": "cli",
    "config": "cfg",
}

DEFAULT_LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "logs")


def component_tag(logger_name: str) -> str:
    """Short tag for the guardian component that owns *logger_name*."""
    top = logger_name.split(".", 1)[0]
    return _COMPONENT_TAGS.get(top, top[:4] or "root")


class ConsoleFormatter(logging.Formatter):
    """Timestamp, level tag, component tag, message. Exceptions shown as one line."""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self._use_color = use_color and _supports_color()

    def format(self, record: logging.LogRecord) -> str:
        ts = time.strftime("%H:%M:%S", time.localtime(record.created))
        color, tag = _LEVEL_STYLES.get(record.levelname, (_WHITE, "???"))
        comp = component_tag(record.name)
        msg = record.getMessage()

        if self._use_color:
            line = f"{_DIM}{ts}{_RESET} {color}{tag}{_RESET} {_DIM}{comp:<4}{_RESET} {msg}"
        else:
            line = f"{ts} {tag} {comp:<4} {msg}"

        if record.exc_info and record.exc_info[1]:
            err = f"     {type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
            line += f"\n{_RED}{err}{_RESET}" if self._use_color else f"\n{err}"

        return line


class JSONFormatter(logging.Formatter):
    """Single-line JSON for machine consumption, stamped with the execution mode."""

    def __init__(self, mode: str | None = None):
        super().__init__()
        self._mode = mode

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "component": component_tag(record.name),
            "msg": record.getMessage(),
        }
        if self._mode:
            entry["mode"] = self._mode
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = f"{type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return json.dumps(entry, separators=(",", ":"))


def setup_logging(
    level: str = "INFO",
    json_log_file: str | None = None,
    log_dir: str | None = DEFAULT_LOG_DIR,
    mode: str | None = None,
) -> str:
    """
    Configure the root logger. Console respects *level*; the verbose file
    always captures DEBUG. Pass log_dir=None to skip the verbose file.
    *mode* (simulation or live) is stamped on JSON records and the verbose
    file name.

    Returns the verbose log path, or "" when disabled.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(getattr(logging, level.upper(), logging.INFO))
    console.setFormatter(ConsoleFormatter())
    root.addHandler(console)

    log_path = ""
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        stem = f"guardian_{mode}_{timestamp}" if mode else f"guardian_{timestamp}"
        log_path = os.path.join(log_dir, f"{stem}.log")

        verbose_handler = logging.FileHandler(log_path, mode="a")
        verbose_handler.setLevel(logging.DEBUG)
        verbose_handler.setFormatter(logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        root.addHandler(verbose_handler)

    if json_log_file:
        fh = logging.FileHandler(json_log_file, mode="a")
        fh.setFormatter(JSONFormatter(mode=mode))
        root.addHandler(fh)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_path


def _supports_color() -> bool:
    """Check if stderr supports ANSI color."""
    if os.environ.get("NO_COLOR"):
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()
