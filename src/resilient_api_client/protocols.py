"""Protocol definitions for dependency injection.

These protocols define the collaborator interfaces the client core depends on,
enabling isolated unit testing with fake implementations.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .infrastructure.transport import RequestSpec, TransportResponse


@runtime_checkable
class KeyValueStorage(Protocol):
    """String key/value persistence primitive (one storage scope)."""

    def get_item(self, key: str) -> str | None:
        """Return the stored value, or None if absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store a value under key."""
        ...

    def remove_item(self, key: str) -> None:
        """Remove key if present."""
        ...


@runtime_checkable
class Transport(Protocol):
    """Abstract transport that issues a single request."""

    async def send(self, request: RequestSpec) -> TransportResponse:
        """Send a request and return the response.

        Raises:
            HttpStatusError: If the server answered with a non-2xx status.
            TransportNetworkError: If no response arrived.
        """
        ...


@runtime_checkable
class Diagnostics(Protocol):
    """Observability collaborator receiving failure reports."""

    def capture_exception(
        self,
        error: BaseException,
        *,
        tags: Mapping[str, object],
        extra: Mapping[str, object],
    ) -> None:
        """Record an exception with tags and extra context."""
        ...

