"""Secret redaction for log records."""

from __future__ import annotations

import logging
import re
import traceback
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

SENSITIVE_QUERY_KEYS = frozenset({"access_token", "token", "client_secret", "key", "password", "sig"})
_TOKEN_PATTERN = re.compile(r"(?i)\b(Bearer|token)\s+[A-Za-z0-9._~+\-/]+=*")
_GITHUB_TOKEN_PATTERN = re.compile(r"\b(?:gh[pousr]|github_pat)_[A-Za-z0-9_]{16,}\b")
_URL_PATTERN = re.compile(r"(?i)https?://[^\s\"'<>]+")

_FILTER_LOGGERS = ("", "uvicorn", "uvicorn.error", "uvicorn.access", "httpx", "httpcore", "xpanel")


def redact_url(url: str) -> str:
    """Mask sensitive query values, keeping scheme, host and path readable."""
    if not url or "?" not in url:
        return url
    try:
        parsed = urlsplit(url)
    except ValueError:
        return url

    pairs = parse_qsl(parsed.query, keep_blank_values=True)
    if not any(key.lower() in SENSITIVE_QUERY_KEYS for key, _ in pairs):
        return url

    masked = [(key, "***" if key.lower() in SENSITIVE_QUERY_KEYS else value) for key, value in pairs]
    query = urlencode(masked, safe="*")
    return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, query, parsed.fragment))


def redact_text(value: str | None) -> str | None:
    if value is None:
        return None
    text = _URL_PATTERN.sub(lambda match: redact_url(match.group(0)), str(value))
    text = _GITHUB_TOKEN_PATTERN.sub("***", text)
    return _TOKEN_PATTERN.sub(lambda match: f"{match.group(1)} ***", text)


class SecretRedactionFilter(logging.Filter):
    """Rewrites each record's message (and traceback) with secrets masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            try:
                record.msg = record.getMessage()
            except (TypeError, ValueError):
                record.msg = str(record.msg)
            record.args = ()
        record.msg = redact_text(str(record.msg)) or ""
        if record.exc_info and not record.exc_text:
            formatted = "".join(traceback.format_exception(*record.exc_info)).rstrip("\n")
            record.exc_text = redact_text(formatted)
        return True


def install_log_redaction() -> None:
    redaction_filter = SecretRedactionFilter()
    for name in _FILTER_LOGGERS:
        logger = logging.getLogger(name)
        targets = [logger, *logger.handlers]
        for target in targets:
            if not any(isinstance(existing, SecretRedactionFilter) for existing in target.filters):
                target.addFilter(redaction_filter)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

