"""Rotating log files with client details masked.

Staff log lines routinely mention client phone numbers and e-mail
addresses.  :class:`ScrubFilter` masks those, along with credentials, before
any handler formats the record.  :func:`configure_logging` wires a rotating
``homestaff.log`` into the root logger and puts the filter on every handler.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


_DEFAULT_LOG_DIR = os.path.join(str(Path.home()), ".homestaff", "logs")
_LOG_FILE = "homestaff.log"
_LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"

_REDACTED = "***REDACTED***"

_SCRUB_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # key=value credentials, optionally quoted as in JSON or YAML dumps
    (re.compile(r'((?:api_key|token|password|secret)["\x27]?\s*[:=]\s*["\x27]?)([^"\x27\s,}{\]]+)', re.IGNORECASE),
     r'\1' + _REDACTED),
    (re.compile(r'(Authorization:\s*(?:Bearer|Basic)\s+)(\S+)', re.IGNORECASE),
     r'\1' + _REDACTED),
    (re.compile(r'[\w.+-]+@[\w-]+(?:\.[\w-]+)+'),
     _REDACTED),
    # Mobile numbers: 10 to 13 digits, optional leading +.
    (re.compile(r'(?<![\w.])\+?\d{10,13}(?![\w.])'),
     _REDACTED),
]


def _scrub(text: str) -> str:
    for pattern, replacement in _SCRUB_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _scrub_value(value):
    return _scrub(value) if isinstance(value, str) else value


class ScrubFilter(logging.Filter):
    """Mask contact details and credentials in a record's message and args."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str) and record.msg:
            record.msg = _scrub(record.msg)
        if isinstance(record.args, dict):
            record.args = {k: _scrub_value(v) for k, v in record.args.items()}
        elif isinstance(record.args, tuple) and record.args:
            record.args = tuple(_scrub_value(a) for a in record.args)
        return True


def _file_handler(path: str, level: int, max_bytes: int, backup_count: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def configure_logging(
    log_dir: Optional[str] = None,
    *,
    max_bytes: int = 5_000_000,
    backup_count: int = 5,
    level: Optional[str] = None,
) -> None:
    """Send root logging to ``<log_dir>/homestaff.log`` with masking.

    *log_dir* defaults to ``$HOMESTAFF_LOG_DIR`` or ``~/.homestaff/logs``;
    *level* defaults to ``$HOMESTAFF_LOG_LEVEL`` or ``INFO``.  Calling this
    again adds neither a second file handler nor a second filter.
    """
    log_dir = log_dir or os.environ.get("HOMESTAFF_LOG_DIR", _DEFAULT_LOG_DIR)
    level_name = level or os.environ.get("HOMESTAFF_LOG_LEVEL", "INFO")
    log_level = getattr(logging, level_name.upper(), logging.INFO)

    os.makedirs(log_dir, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(log_level)
    if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        root.addHandler(
            _file_handler(os.path.join(log_dir, _LOG_FILE), log_level, max_bytes, backup_count)
        )

    scrub_filter = ScrubFilter()
    for handler in root.handlers:
        if not any(isinstance(f, ScrubFilter) for f in handler.filters):
            handler.addFilter(scrub_filter)
