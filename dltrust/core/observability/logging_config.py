"""
Logging configuration — central setup for the CLI.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    --debug  >  --verbose  >  --quiet  >  DLTRUST_LOG_LEVEL env var  >  WARNING

Optional file output via DLTRUST_LOG_FILE / DLTRUST_LOG_FILE_LEVEL, and
one-JSON-object-per-line output with DLTRUST_LOG_FORMAT=json.  Every
handler scrubs credentials (GitHub tokens, bearer headers, URL userinfo)
from the rendered message.
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime

# ── Format strings ──────────────────────────────────────────────

# WARNING level: message only
_FMT_MINIMAL = "%(message)s"

# INFO level: timestamped with module context
_FMT_VERBOSE = "%(asctime)s [%(name)s] %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level: file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d | %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output: always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d | %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

_NOISY_LOGGERS = ("urllib3", "charset_normalizer")

# ── Secret scrubbing ────────────────────────────────────────────

_REDACTED = "***REDACTED***"

_SECRET_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"(authorization:\s*)(bearer|token|basic)\s+[^\s\"']+", re.I), rf"\1\2 {_REDACTED}"),
    (re.compile(r"\bgh[pousr]_[A-Za-z0-9_]+"), "***GITHUB_TOKEN_REDACTED***"),
    (re.compile(r"\bgithub_pat_[A-Za-z0-9_]+"), "***GITHUB_TOKEN_REDACTED***"),
    (re.compile(r"\b((?:GITHUB|GH)_TOKEN=)[^\s\"']+"), rf"\1{_REDACTED}"),
    (re.compile(r"\b((?:password|secret|api_key|secret_key)=)[^\s\"'&]+", re.I), rf"\1{_REDACTED}"),
    (re.compile(r"(https?://)[^\s@/]+:[^\s@/]+@"), r"\1***CREDENTIALS***@"),
)


def scrub_secrets(text: str) -> str:
    """Replace credentials in ``text`` with redaction markers."""
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SecretScrubbingFilter(logging.Filter):
    """Renders the record's message once and scrubs it in place."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = scrub_secrets(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: timestamp, level, logger, message."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
    json_format: bool = False,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
        quiet_third_party: Keep noisy third-party loggers at WARNING
            unless we're at DEBUG level.
        json_format: Emit JSON lines instead of text on every handler.
    """
    numeric_level = _parse_level(level)
    scrubber = SecretScrubbingFilter()

    # ── Console handler (stderr) ────────────────────────────────
    if json_format:
        console_fmt: logging.Formatter = JsonFormatter()
    elif numeric_level <= logging.DEBUG:
        console_fmt = logging.Formatter(_FMT_DEBUG, datefmt=_DATEFMT_DEBUG)
    elif numeric_level <= logging.INFO:
        console_fmt = logging.Formatter(_FMT_VERBOSE, datefmt=_DATEFMT_VERBOSE)
    else:
        console_fmt = logging.Formatter(_FMT_MINIMAL)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    console.setFormatter(console_fmt)
    console.addFilter(scrubber)

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    # Effective root level = minimum of console and file levels
    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(
            JsonFormatter() if json_format
            else logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE)
        )
        fh.addFilter(scrubber)
        root.addHandler(fh)

    root.setLevel(effective_level)

    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.raiseExceptions = False


def resolve_level(
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env_level: str | None = None,
) -> str:
    """Pick the console level from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return env_level or "WARNING"


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.WARNING
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.WARNING
    return numeric
