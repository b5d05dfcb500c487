"""Client-owned notifications and subscriptions.

Usage example:
    from resilient_api_client.events import CredentialRefreshed, EventHub

    hub = EventHub()
    unsubscribe = hub.subscribe(CredentialRefreshed, lambda event: print(event.expires_at))
    hub.emit(CredentialRefreshed(access_token="abc", expires_at=None))
    unsubscribe()
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

from .observability import get_logger

logger = get_logger("resilient_api_client.events")


@dataclass(frozen=True)
class CredentialRefreshed:
    """A new access token was stored."""

    access_token: str
    expires_at: int | None


@dataclass(frozen=True)
class RateLimited:
    """The server signalled rate limiting for a request."""

    error: Exception
    status: int


@dataclass(frozen=True)
class SessionInvalidated:
    """The refresh flow failed; the session must be treated as signed out."""

    error: Exception


type ClientEvent = CredentialRefreshed | RateLimited | SessionInvalidated


class EventHub:
    """Synchronous observer registry keyed by event type.

    Listener exceptions are logged and never propagate into the request
    pipeline that emitted the event.
    """

    def __init__(self) -> None:
        self._listeners: dict[type[Any], list[Callable[[Any], None]]] = {}

    def subscribe[EventT: ClientEvent](
        self, event_type: type[EventT], listener: Callable[[EventT], None]
    ) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""
        listeners = self._listeners.setdefault(event_type, [])
        listeners.append(cast(Callable[[Any], None], listener))

        def unsubscribe() -> None:
            try:
                listeners.remove(cast(Callable[[Any], None], listener))
            except ValueError:
                pass

        return unsubscribe

    def emit(self, event: ClientEvent) -> None:
        for listener in list(self._listeners.get(type(event), ())):
            try:
                listener(event)
            except Exception:
                logger.exception("Listener for %s failed", type(event).__name__)

    def listener_count(self, event_type: type[ClientEvent]) -> int:
        return len(self._listeners.get(event_type, ()))
