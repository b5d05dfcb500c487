"""Custom exceptions for the resilient API client.

Transport failures carry the request (and, when the server answered, the
response) so the error classifier can map them onto user-facing messages.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .infrastructure.transport import RequestSpec, TransportResponse


class ApiClientError(Exception):
    """Base exception for all client errors."""

    pass


class TransportError(ApiClientError):
    """Raised when a request could not be completed successfully."""

    def __init__(self, message: str, *, request: RequestSpec | None = None) -> None:
        self.request = request
        super().__init__(message)


class HttpStatusError(TransportError):
    """Raised when the server answered with a non-2xx status.

    The response body (usually the `{message, errors}` envelope) is kept on
    `response.data` for classification.
    """

    def __init__(self, response: TransportResponse) -> None:
        self.response = response
        super().__init__(
            f"Request failed with status {response.status}: "
            f"{response.request.method} {response.request.url}",
            request=response.request,
        )

    @property
    def status(self) -> int:
        return self.response.status


class TransportNetworkError(TransportError):
    """Raised when a request was sent but no response arrived."""

    def __init__(self, message: str = "Network Error", *, request: RequestSpec) -> None:
        super().__init__(message, request=request)


class TransportTimeoutError(TransportNetworkError):
    """Raised when the transport deadline expired before a response arrived."""

    def __init__(self, timeout_seconds: float, *, request: RequestSpec) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(f"timeout of {timeout_seconds:g}s exceeded", request=request)


class RefreshResponseError(ApiClientError):
    """Raised when the refresh endpoint returns an unusable envelope."""

    def __init__(self) -> None:
        super().__init__("Refresh response did not contain data.accessToken.")


class ConfigFileNotFoundError(ApiClientError):
    """Raised when a client config file path does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Config file not found: {path}")


class ConfigFileParseError(ApiClientError):
    """Raised when a client config file is not valid TOML."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Config file {path} could not be parsed: {detail}")


class ConfigFileValidationError(ApiClientError):
    """Raised when a client config file fails schema validation."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Config file {path} is invalid: {detail}")
