"""Single-flight access token refresh for 401 responses.

Usage example:
    from resilient_api_client.refresh import RefreshCoordinator

    refresher = RefreshCoordinator(
        refresh_call=transport.refresh_access_token,
        credentials=credential_store,
        events=hub,
    )
    response = await refresher.handle_unauthorized(request, error, transport.send)
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable

from .credentials import CredentialStore
from .events import EventHub, SessionInvalidated
from .exceptions import HttpStatusError
from .infrastructure.transport import RequestSpec
from .observability import get_logger

logger = get_logger("resilient_api_client.refresh")

_FAILURE_HISTORY = 8


def _consume_outcome(task: asyncio.Task[str]) -> None:
    if not task.cancelled():
        task.exception()


class RefreshCoordinator:
    """Ensures at most one refresh call is outstanding at any time.

    The first 401 creates the refresh handle; every 401 arriving while it is
    pending awaits the same handle. A failed refresh clears the stored
    credential, emits `SessionInvalidated` once and fails every waiter with
    the refresh error.
    """

    def __init__(
        self,
        *,
        refresh_call: Callable[[], Awaitable[str]],
        credentials: CredentialStore,
        events: EventHub,
    ) -> None:
        self.refresh_call = refresh_call
        self.credentials = credentials
        self.events = events
        self._handle: asyncio.Task[str] | None = None
        # A refresh orphaned by reset() that is still talking to the server.
        self._stale: asyncio.Task[str] | None = None
        self._failures: deque[BaseException] = deque(maxlen=_FAILURE_HISTORY)
        self.refresh_count = 0

    @property
    def is_refreshing(self) -> bool:
        return self._handle is not None

    def is_refresh_failure(self, error: BaseException) -> bool:
        """Return True if `error` is the exception a recent refresh failed with.

        A failed refresh signs the session out, so callers treat it as fatal
        rather than retrying the request that triggered it.
        """
        return any(error is failure for failure in self._failures)

    async def handle_unauthorized[ResultT](
        self,
        request: RequestSpec,
        error: HttpStatusError,
        replay: Callable[[RequestSpec], Awaitable[ResultT]],
    ) -> ResultT:
        """Refresh (or join the pending refresh) and replay `request` once.

        Raises:
            HttpStatusError: `error` itself when the request was already replayed.
            Exception: The refresh failure, unchanged.
        """
        if request.retried_for_auth:
            raise error
        retry_request = request.mark_retried_for_auth()

        if self._handle is None and self._stale is not None and not self._stale.done():
            logger.debug("Waiting for refresh orphaned by reset to settle")
            await asyncio.wait([self._stale])

        handle = self._handle
        if handle is None:
            handle = asyncio.ensure_future(self._refresh())
            handle.add_done_callback(_consume_outcome)
            self._handle = handle
        else:
            logger.debug("Joining pending token refresh for %s %s", request.method, request.url)

        token = await asyncio.shield(handle)
        return await replay(retry_request.with_bearer(token))

    async def _refresh(self) -> str:
        self.refresh_count += 1
        logger.info("Access token rejected; refreshing")
        try:
            token = await self.refresh_call()
        except asyncio.CancelledError:
            self._release()
            raise
        except Exception as exc:
            logger.warning("Token refresh failed: %s", exc)
            self._failures.append(exc)
            if self._release():
                self.credentials.clear()
                self.events.emit(SessionInvalidated(error=exc))
            raise
        if self._release():
            remember = self.credentials.read().remember_me
            self.credentials.store(token, remember=remember)
        else:
            logger.info("Session was reset during refresh; new token not stored")
        return token

    def _release(self) -> bool:
        """Clear the handle if the running task still owns it."""
        current = asyncio.current_task()
        if self._stale is current:
            self._stale = None
        if self._handle is current:
            self._handle = None
            return True
        return False

    def reset(self) -> None:
        """Forget the pending refresh handle (used at sign-out).

        A refresh still in flight is kept as stale: it can no longer store a
        token or sign out, but new 401s wait for it before starting another.
        """
        if self._handle is not None and not self._handle.done():
            self._stale = self._handle
        self._handle = None
