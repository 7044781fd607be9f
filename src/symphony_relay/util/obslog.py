from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, TextIO


_CONFIGURED: Dict[str, bool] = {}

# Short level names in log files: INFO, WARN, ERROR, DEBUG.
_LEVEL_NAMES = {
    "WARNING": "WARN",
    "CRITICAL": "ERROR",
}


class RelayLogFormatter(logging.Formatter):
    """`[2026-01-31 14:05:09] [INFO] message`, one record per line."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        try:
            return datetime.fromtimestamp(record.created).strftime(datefmt or "%Y-%m-%d %H:%M:%S")
        except Exception:
            return ""

    def format(self, record: logging.LogRecord) -> str:
        level = _LEVEL_NAMES.get(record.levelname, record.levelname)
        msg = record.getMessage().replace("\n", "\\n")
        line = f"[{self.formatTime(record)}] [{level}] {msg}"
        if record.exc_info:
            try:
                exc = self.formatException(record.exc_info).replace("\n", "\\n")
                line = f"{line} | {exc}"
            except Exception:
                pass
        return line


def _parse_level(level: str, default: int = logging.INFO) -> int:
    s = str(level or "").strip().upper()
    if not s:
        return default
    if s == "WARN":
        s = "WARNING"
    value = getattr(logging, s, default)
    return value if isinstance(value, int) else default


def setup_relay_logging(
    *,
    component: str,
    log_file: Optional[Path] = None,
    level: str = "INFO",
    stream: Optional[TextIO] = None,
    console: bool = True,
    force: bool = False,
) -> logging.Logger:
    """Configure the `symphony_relay` logger once per process and component.

    - Appends to `log_file` (never rotated).
    - Mirrors to `stream` (default stderr) when `console` is set.
    - `force=True` drops previously attached handlers.
    """
    logger = logging.getLogger("symphony_relay")
    key = f"{component}:{log_file or ''}"
    if _CONFIGURED.get(key) and not force:
        return logger
    _CONFIGURED[key] = True

    lvl = _parse_level(level)
    logger.setLevel(lvl)
    logger.propagate = False

    if force:
        for h in list(logger.handlers):
            try:
                logger.removeHandler(h)
                h.close()
            except Exception:
                pass

    fmt = RelayLogFormatter()
    if log_file is not None:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(str(log_file), mode="a", encoding="utf-8")
            fh.setLevel(lvl)
            fh.setFormatter(fmt)
            logger.addHandler(fh)
        except OSError as e:
            print(f"[{component}] cannot open log file {log_file}: {e}", file=sys.stderr)

    if console:
        # Avoid duplicate console handlers on repeated calls.
        for h in logger.handlers:
            if type(h) is logging.StreamHandler and isinstance(h.formatter, RelayLogFormatter):
                h.setLevel(lvl)
                return logger
        sh = logging.StreamHandler(stream or sys.stderr)
        sh.setLevel(lvl)
        sh.setFormatter(fmt)
        logger.addHandler(sh)
    return logger
