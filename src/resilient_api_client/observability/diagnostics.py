"""Diagnostics capture for server and network failures.

`LoggingDiagnostics` is the default observability collaborator: it redacts
credentials from URLs and headers, then logs the captured exception. Any other
`Diagnostics` implementation (an error-tracking SDK adapter, for example) can
be injected into the error classifier instead.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import override

from ..protocols import Diagnostics
from .logging import get_logger

logger = get_logger("resilient_api_client.diagnostics")

_REDACTED = "[REDACTED]"
_SENSITIVE_QUERY_RE = re.compile(r"(token|password)=[^&]*", re.IGNORECASE)
_SENSITIVE_HEADERS = frozenset({"authorization", "cookie", "x-api-key"})


def redact_url(url: str) -> str:
    """Replace token and password query values with a redaction marker."""
    return _SENSITIVE_QUERY_RE.sub(lambda match: f"{match.group(1)}={_REDACTED}", url)


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Return a copy of headers with sensitive values redacted."""
    return {
        name: _REDACTED if name.lower() in _SENSITIVE_HEADERS else value
        for name, value in headers.items()
    }


def _redact_extra(extra: Mapping[str, object]) -> dict[str, object]:
    cleaned: dict[str, object] = {}
    for key, value in extra.items():
        if key == "url" and isinstance(value, str):
            cleaned[key] = redact_url(value)
        elif key == "headers" and isinstance(value, Mapping):
            cleaned[key] = redact_headers({str(k): str(v) for k, v in value.items()})
        else:
            cleaned[key] = value
    return cleaned


class LoggingDiagnostics(Diagnostics):
    """Diagnostics sink that writes redacted captures to the package logger."""

    def __init__(self) -> None:
        self.captured = 0

    @override
    def capture_exception(
        self,
        error: BaseException,
        *,
        tags: Mapping[str, object],
        extra: Mapping[str, object],
    ) -> None:
        self.captured += 1
        logger.error(
            "Captured %s: %s tags=%s extra=%s",
            type(error).__name__,
            redact_url(str(error)),
            dict(tags),
            _redact_extra(extra),
        )
