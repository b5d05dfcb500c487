"""Error classification for transport failures.

Maps raw failures onto a fixed taxonomy with short, user-facing messages.
Raw details are logged and forwarded to diagnostics, never surfaced in
`ErrorInfo.message`.

Usage example:
    from resilient_api_client.errors import classify_error

    try:
        await client.get("/user/profile")
    except Exception as exc:
        info = classify_error(exc)
        if info.is_rate_limit:
            ...
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum

from .exceptions import HttpStatusError, TransportNetworkError, TransportTimeoutError
from .infrastructure.validation import parse_error_envelope
from .observability import LoggingDiagnostics, get_logger
from .protocols import Diagnostics

logger = get_logger("resilient_api_client.errors")

MSG_RATE_LIMIT = "Too many requests. Please try again later."
MSG_SERVICE_UNAVAILABLE = (
    "Service temporarily unavailable. The server may be starting up. "
    "Please try again in a moment."
)
MSG_SERVER_ERROR = "Server error. Our team has been notified. Please try again in a moment."
MSG_NOT_FOUND = "The requested resource was not found."
MSG_SESSION_EXPIRED = "Your session has expired. Please log in again."
MSG_FORBIDDEN = "You don't have permission to perform this action."
MSG_GENERIC = "An error occurred. Please try again."
MSG_NETWORK = "Network error. Please check your connection."
MSG_TIMEOUT = "Request timed out. The server may be slow to respond. Please try again."
MSG_OFFLINE = "You appear to be offline. Please check your internet connection and try again."
MSG_UNEXPECTED = "An unexpected error occurred"

_FRIENDLY_MESSAGES: tuple[tuple[str, str], ...] = (
    ("Network Error", "Connection lost. Please check your internet and try again."),
    ("timeout", "Request timed out. Please try again."),
    ("Failed to fetch", "Unable to reach the server. Please check your connection."),
)


class ErrorKind(StrEnum):
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    SERVICE_UNAVAILABLE = "service_unavailable"
    SERVER_ERROR = "server_error"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NETWORK = "network"
    UNKNOWN = "unknown"


def _no_errors() -> list[object]:
    return []


@dataclass(frozen=True)
class ErrorInfo:
    """Structured description of a failed request."""

    message: str
    status: int
    kind: ErrorKind
    errors: list[object] = field(default_factory=_no_errors)
    data: object = None
    is_rate_limit: bool = False
    is_service_unavailable: bool = False
    is_network_error: bool = False
    is_timeout: bool = False
    is_offline: bool = False


def _always_online() -> bool:
    return True


def _status_kind(status: int) -> tuple[ErrorKind, str]:
    if status == 429:
        return ErrorKind.RATE_LIMITED, MSG_RATE_LIMIT
    if status == 503:
        return ErrorKind.SERVICE_UNAVAILABLE, MSG_SERVICE_UNAVAILABLE
    if status >= 500:
        return ErrorKind.SERVER_ERROR, MSG_SERVER_ERROR
    if status == 404:
        return ErrorKind.NOT_FOUND, MSG_NOT_FOUND
    if status == 401:
        return ErrorKind.UNAUTHORIZED, MSG_SESSION_EXPIRED
    if status == 403:
        return ErrorKind.FORBIDDEN, MSG_FORBIDDEN
    return ErrorKind.VALIDATION, MSG_GENERIC


class ErrorClassifier:
    """Classify failures and report server/network ones to diagnostics."""

    def __init__(
        self,
        *,
        diagnostics: Diagnostics | None = None,
        is_online: Callable[[], bool] = _always_online,
    ) -> None:
        self.diagnostics = diagnostics or LoggingDiagnostics()
        self.is_online = is_online

    def classify(self, error: BaseException) -> ErrorInfo:
        if isinstance(error, HttpStatusError):
            return self._classify_response(error)
        if isinstance(error, TransportNetworkError):
            return self._classify_network(error)
        return self._classify_other(error)

    def _classify_response(self, error: HttpStatusError) -> ErrorInfo:
        response = error.response
        status = response.status
        envelope = parse_error_envelope(response.data)
        request = response.request

        if status == 400:
            logger.error(
                "400 Bad Request: %s %s errors=%s payload=%s",
                request.method.upper(),
                request.url,
                envelope.get("errors") or [],
                request.data,
            )
        else:
            logger.error(
                "API error: %s %s status=%s message=%s",
                request.method.upper(),
                request.url,
                status,
                envelope.get("message") or envelope.get("error") or "Unknown error",
            )
        if status >= 500:
            self._capture(
                error,
                tags={"errorType": "api_error", "statusCode": status},
                extra={
                    "url": request.url,
                    "method": request.method,
                    "status": status,
                    "errorMessage": envelope.get("message") or envelope.get("error"),
                },
            )

        kind, default_message = _status_kind(status)
        return ErrorInfo(
            message=envelope.get("message") or default_message,
            status=status,
            kind=kind,
            errors=list(envelope.get("errors") or []),
            data=envelope.get("data"),
            is_rate_limit=kind is ErrorKind.RATE_LIMITED,
            is_service_unavailable=kind is ErrorKind.SERVICE_UNAVAILABLE,
        )

    def _classify_network(self, error: TransportNetworkError) -> ErrorInfo:
        request = error.request
        logger.error(
            "API error: %s (request made but no response) %s %s",
            error,
            request.method.upper() if request else "-",
            request.url if request else "-",
        )
        self._capture(
            error,
            tags={"errorType": "network_error"},
            extra={
                "url": request.url if request else None,
                "method": request.method if request else None,
            },
        )

        is_timeout = isinstance(error, TransportTimeoutError) or "timeout" in str(error).lower()
        is_offline = not self._online()
        message = MSG_NETWORK
        if is_timeout:
            message = MSG_TIMEOUT
        elif is_offline:
            message = MSG_OFFLINE
        return ErrorInfo(
            message=message,
            status=0,
            kind=ErrorKind.NETWORK,
            is_network_error=True,
            is_timeout=is_timeout,
            is_offline=is_offline,
        )

    def _classify_other(self, error: BaseException) -> ErrorInfo:
        raw = str(error)
        logger.error("API error: %s (no request made)", raw or type(error).__name__)
        message = raw or MSG_UNEXPECTED
        for needle, friendly in _FRIENDLY_MESSAGES:
            if needle in raw:
                message = friendly
                break
        return ErrorInfo(
            message=message,
            status=0,
            kind=ErrorKind.UNKNOWN,
            is_network_error=True,
        )

    def _online(self) -> bool:
        try:
            return self.is_online()
        except Exception:
            logger.warning("Connectivity check failed; assuming online")
            return True

    def _capture(
        self,
        error: BaseException,
        *,
        tags: dict[str, object],
        extra: dict[str, object],
    ) -> None:
        try:
            self.diagnostics.capture_exception(error, tags=tags, extra=extra)
        except Exception:
            logger.warning("Diagnostics capture failed for %s", type(error).__name__)


_default_classifier: ErrorClassifier | None = None


def classify_error(error: BaseException) -> ErrorInfo:
    """Classify with a lazily created default classifier."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = ErrorClassifier()
    return _default_classifier.classify(error)
