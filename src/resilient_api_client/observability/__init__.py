"""Observability helpers (logging and diagnostics capture)."""

from .diagnostics import Diagnostics, LoggingDiagnostics, redact_headers, redact_url
from .logging import get_logger

__all__ = [
    "Diagnostics",
    "LoggingDiagnostics",
    "get_logger",
    "redact_headers",
    "redact_url",
]
