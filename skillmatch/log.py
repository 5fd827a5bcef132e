"""Logging configuration — stdlib logging under the 'skillmatch' root logger."""

import logging
import re
import sys
from pathlib import Path

_REDACTED = "***REDACTED***"

# Credentials that can end up in store URLs, headers, or env dumps
_SECRET_PATTERNS = [
    (re.compile(r"Bearer\s+[a-zA-Z0-9_.-]{10,}"), _REDACTED),
    (re.compile(r"(?:API_TOKEN|API_KEY|SECRET|PASSWORD)\s*=\s*\S+", re.IGNORECASE), _REDACTED),
    (re.compile(r"(https?://[^:/\s]+:)[^@\s]+(@)"), r"\1" + _REDACTED + r"\2"),
]


def _redact(text: str) -> str:
    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SecretFilter(logging.Filter):
    """Redacts bearer tokens and URL credentials from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _redact(record.msg)
        if record.args:
            args = record.args if isinstance(record.args, tuple) else (record.args,)
            record.args = tuple(_redact(a) if isinstance(a, str) else a for a in args)
        return True


def setup_logging(level: str = "INFO", log_file: Path | None = None,
                  redact_secrets: bool = True) -> logging.Logger:
    """Configure the root skillmatch logger. Safe to call more than once."""
    logger = logging.getLogger("skillmatch")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if not logger.handlers:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(formatter)
        logger.addHandler(console)

    if log_file:
        log_file = Path(log_file).resolve()
        already = any(isinstance(h, logging.FileHandler) and h.baseFilename == str(log_file)
                      for h in logger.handlers)
        if not already:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(str(log_file))
            fh.setFormatter(formatter)
            logger.addHandler(fh)

    # Logger-level filters skip records propagated from child loggers,
    # so the handlers carry the filter as well.
    if redact_secrets:
        for target in [logger, *logger.handlers]:
            if not any(isinstance(f, SecretFilter) for f in target.filters):
                target.addFilter(SecretFilter())

    return logger


def get_logger(module_name: str) -> logging.Logger:
    """Child logger of 'skillmatch'. Module names already under it are not prefixed twice."""
    if module_name == "skillmatch" or module_name.startswith("skillmatch."):
        return logging.getLogger(module_name)
    return logging.getLogger(f"skillmatch.{module_name}")
