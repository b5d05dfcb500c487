"""API client composing transport, coordination, refresh and retries.

Control flow for one call:
    caller -> RetryPolicy -> RequestCoordinator -> Transport
           -> (401) RefreshCoordinator -> CredentialStore -> replay -> Transport

Usage example:
    client = build_api_client(ClientConfig.from_env())
    profile = await client.get("/user/profile")
    result = await client.call("GET", "/user/dashboard", retries=2)
    await client.put("/user/profile", data={"name": "Ada"}, invalidates="/user/profile")
    client.sign_out()
"""

from __future__ import annotations

from collections.abc import Mapping

from .coordinator import RequestCoordinator
from .credentials import CredentialStore
from .errors import ErrorClassifier, ErrorInfo
from .events import EventHub, RateLimited
from .exceptions import HttpStatusError
from .infrastructure.transport import RequestSpec, TransportResponse
from .infrastructure.validation import parse_error_envelope
from .observability import get_logger
from .protocols import Transport
from .refresh import RefreshCoordinator
from .retry import RequestResult, RetryCallback, RetryPolicy

logger = get_logger("resilient_api_client.client")


def is_rate_limited(error: HttpStatusError) -> bool:
    """Check if a failed response signals rate limiting."""
    if error.status == 429:
        return True
    envelope = parse_error_envelope(error.response.data)
    error_text = envelope.get("error") or ""
    message_text = envelope.get("message") or ""
    return "rate limit" in error_text or "Too many requests" in message_text


class ApiClient:
    """Auth-aware, deduplicating, caching and retrying API client.

    The client is the single owner of the pending-request map, the response
    cache and the refresh handle. `reset()` clears all of them.
    """

    def __init__(
        self,
        *,
        transport: Transport,
        credentials: CredentialStore,
        refresher: RefreshCoordinator,
        coordinator: RequestCoordinator | None = None,
        classifier: ErrorClassifier | None = None,
        events: EventHub | None = None,
        retry_defaults: RetryPolicy | None = None,
    ) -> None:
        self.transport = transport
        self.credentials = credentials
        self.refresher = refresher
        self.coordinator = coordinator or RequestCoordinator()
        self.classifier = classifier or ErrorClassifier()
        self.events = events or credentials.events
        self.retry_defaults = retry_defaults or RetryPolicy(classifier=self.classifier)

    async def send(self, request: RequestSpec) -> TransportResponse:
        """Send one request, refreshing the credential once on 401."""
        try:
            return await self.transport.send(request)
        except HttpStatusError as exc:
            if is_rate_limited(exc):
                logger.warning("Rate limited: %s %s", request.method, request.url)
                self.events.emit(RateLimited(error=exc, status=exc.status))
            if exc.status == 401 and not request.retried_for_auth:
                return await self.refresher.handle_unauthorized(request, exc, self.send)
            raise

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, object] | None = None,
        data: object = None,
        headers: Mapping[str, str] | None = None,
        skip_cache: bool = False,
        invalidates: str | None = None,
    ) -> TransportResponse:
        """Send through the request coordinator.

        Args:
            invalidates: Cache key substring to invalidate after a successful call.
        """
        spec = RequestSpec(
            method=method.upper(),
            url=url,
            params=params,
            data=data,
            headers=dict(headers or {}),
        )
        response = await self.coordinator.execute(
            lambda: self.send(spec),
            spec.method,
            url,
            params=params,
            data=data,
            skip_cache=skip_cache,
        )
        if invalidates:
            self.coordinator.invalidate(invalidates)
        return response

    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, object] | None = None,
        skip_cache: bool = False,
    ) -> TransportResponse:
        return await self.request("GET", url, params=params, skip_cache=skip_cache)

    async def post(
        self, url: str, *, data: object = None, invalidates: str | None = None
    ) -> TransportResponse:
        return await self.request("POST", url, data=data, invalidates=invalidates)

    async def put(
        self, url: str, *, data: object = None, invalidates: str | None = None
    ) -> TransportResponse:
        return await self.request("PUT", url, data=data, invalidates=invalidates)

    async def patch(
        self, url: str, *, data: object = None, invalidates: str | None = None
    ) -> TransportResponse:
        return await self.request("PATCH", url, data=data, invalidates=invalidates)

    async def delete(self, url: str, *, invalidates: str | None = None) -> TransportResponse:
        return await self.request("DELETE", url, invalidates=invalidates)

    async def call(
        self,
        method: str,
        url: str,
        *,
        params: Mapping[str, object] | None = None,
        data: object = None,
        skip_cache: bool = False,
        retries: int | None = None,
        base_delay_seconds: float | None = None,
        retryable_statuses: frozenset[int] | None = None,
        on_retry: RetryCallback | None = None,
    ) -> RequestResult:
        """Run a request through the retry policy and return a structured result."""
        defaults = self.retry_defaults
        policy = RetryPolicy(
            retries=defaults.retries if retries is None else retries,
            base_delay_seconds=defaults.base_delay_seconds
            if base_delay_seconds is None
            else base_delay_seconds,
            retryable_statuses=defaults.retryable_statuses
            if retryable_statuses is None
            else retryable_statuses,
            error_message=defaults.error_message,
            classifier=self.classifier,
            sleep=defaults.sleep,
            is_fatal=self.refresher.is_refresh_failure,
        )

        async def attempt() -> TransportResponse:
            return await self.request(
                method, url, params=params, data=data, skip_cache=skip_cache
            )

        return await policy.run(attempt, on_retry=on_retry)

    async def health_check(self) -> TransportResponse:
        return await self.get("/health", skip_cache=True)

    def describe_error(self, error: BaseException) -> ErrorInfo:
        return self.classifier.classify(error)

    def invalidate(self, pattern: str) -> int:
        return self.coordinator.invalidate(pattern)

    def reset(self) -> None:
        """Clear cached responses, in-flight bookkeeping and the refresh handle."""
        self.coordinator.clear()
        self.refresher.reset()

    def sign_out(self) -> None:
        """Forget the stored credential and all session-scoped state."""
        self.reset()
        self.credentials.clear()
        logger.info("Signed out; credentials and caches cleared")

