"""
Logging utilities.

Keeps credentials out of logs: bearer tokens, password fields and the raw
verification / reset tokens that travel as URL path segments (and so show
up in access logs).
"""

from __future__ import annotations

import logging
import re
from typing import Iterable


class RedactSecretsFilter(logging.Filter):
    """Best-effort redaction of secrets in formatted log messages."""

    _bearer_re = re.compile(r"(?i)\bBearer\s+([A-Za-z0-9._\-+/=]+)")
    _path_token_re = re.compile(r"(/(?:verify-email|reset-password)/)[^/\s?\"']+")
    _json_kv_re = re.compile(
        r"(?i)(\"?(password|token|secret)\"?\s*[:=]\s*)(\"?)[^\"\s,}&]+(\3)"
    )

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        try:
            msg = record.getMessage()
        except Exception:
            return True

        redacted = self._bearer_re.sub("Bearer REDACTED", msg)
        redacted = self._path_token_re.sub(r"\1REDACTED", redacted)
        redacted = self._json_kv_re.sub(
            lambda m: f"{m.group(1)}{m.group(3)}REDACTED{m.group(4)}", redacted
        )

        if redacted != msg:
            record.msg = redacted
            record.args = ()
        return True


_FILTER_NAME = "todo_auth_redact_secrets"


def _has_filter(filters: Iterable, name: str) -> bool:
    return any(getattr(f, "name", None) == name for f in filters)


def install_log_safety() -> None:
    """Attach ``RedactSecretsFilter`` to the root logger, its handlers and uvicorn's."""
    redact_filter = RedactSecretsFilter(_FILTER_NAME)

    root = logging.getLogger()
    loggers = [root] + [logging.getLogger(n) for n in ("uvicorn", "uvicorn.access", "uvicorn.error")]
    for lg in loggers:
        if not _has_filter(lg.filters, _FILTER_NAME):
            lg.addFilter(redact_filter)
        for handler in lg.handlers:
            if not _has_filter(handler.filters, _FILTER_NAME):
                handler.addFilter(redact_filter)
