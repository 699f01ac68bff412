"""Log rotation and personal-data scrubbing.

Checkout logs pass through :class:`ScrubFilter`, which masks credentials,
the ``x-user-id`` session token, and anything shaped like a Social
Security number before a record reaches a handler.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

from movein import parse_int_env

_DEFAULT_LOG_DIR = os.path.join(str(Path.home()), ".movein", "logs")
_REDACTED = "***REDACTED***"

_KEY_VALUE = r'(%s["\x27]?\s*[:=]\s*["\x27]?)([^"\x27\s,}{\]]+)'

_SCRUB_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    *(
        (re.compile(_KEY_VALUE % key, re.IGNORECASE), rf"\1{_REDACTED}")
        for key in ("api_key", "token", "password", "secret", "x-user-id", "session_id", "userId")
    ),
    (re.compile(r"(Authorization:\s*(?:Bearer|Basic)\s+)(\S+)", re.IGNORECASE), rf"\1{_REDACTED}"),
    (re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), _REDACTED),
    (re.compile(r"(?<!\d)\d{9}(?!\d)"), _REDACTED),
]


class ScrubFilter(logging.Filter):
    """Redact sensitive values in the message and its arguments."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg and isinstance(record.msg, str):
            record.msg = scrub(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: scrub(v) if isinstance(v, str) else v for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(scrub(a) if isinstance(a, str) else a for a in record.args)
        return True


def scrub(text: str) -> str:
    for pattern, replacement in _SCRUB_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def configure_logging(
    log_dir: str | None = None,
    *,
    max_bytes: int | None = None,
    backup_count: int = 5,
    level: str | None = None,
) -> str:
    """Install a rotating log file and the scrub filter on the root logger.

    :param log_dir: Directory for ``movein.log``.  Reads ``MOVEIN_LOG_DIR``,
        then falls back to ``~/.movein/logs/``.
    :param max_bytes: Rotation size.  Reads ``MOVEIN_LOG_MAX_BYTES``, default 10 MB.
    :param backup_count: Rotated files to keep.
    :param level: Level name.  Reads ``MOVEIN_LOG_LEVEL``, default ``INFO``.
    :returns: Path of the log file.
    """
    log_dir = log_dir or os.environ.get("MOVEIN_LOG_DIR", _DEFAULT_LOG_DIR)
    level = level or os.environ.get("MOVEIN_LOG_LEVEL", "INFO")
    if max_bytes is None:
        max_bytes = parse_int_env("MOVEIN_LOG_MAX_BYTES", 10_000_000)

    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "movein.log")
    log_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)

    if not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        file_handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        )
        root.addHandler(file_handler)

    for handler in root.handlers:
        if not any(isinstance(f, ScrubFilter) for f in handler.filters):
            handler.addFilter(ScrubFilter())
    return log_path
