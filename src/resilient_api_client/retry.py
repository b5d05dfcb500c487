"""Retry policy with exponential backoff and structured results.

Usage example:
    from resilient_api_client.retry import RetryPolicy

    policy = RetryPolicy(retries=3, base_delay_seconds=1.0)
    result = await policy.run(lambda: client.get("/user/dashboard"))
    if result.success:
        render(result.data)
    else:
        show(result.error)
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field

from .errors import ErrorClassifier, ErrorInfo, classify_error
from .infrastructure.transport import TransportResponse
from .observability import get_logger

logger = get_logger("resilient_api_client.retry")

DEFAULT_RETRYABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})
NETWORK_STATUS = 0

type RetryCallback = Callable[[int, int, ErrorInfo], None]


def _no_errors() -> list[object]:
    return []


def _never_fatal(error: Exception) -> bool:
    return False


@dataclass(frozen=True)
class RequestResult:
    """Outcome of a request run through the retry policy."""

    success: bool
    data: object = None
    message: str | None = None
    error: str | None = None
    errors: list[object] = field(default_factory=_no_errors)
    status: int | None = None
    is_retryable: bool = False
    original_error: Exception | None = None


def _unwrap(result: object) -> tuple[object, str | None]:
    body = result.data if isinstance(result, TransportResponse) else result
    if isinstance(body, Mapping):
        message = body.get("message")
        data = body.get("data") or body
        return data, message if isinstance(message, str) else None
    return body, None


@dataclass
class RetryPolicy:
    """Bounded retries for network failures and retryable statuses.

    The delay before retry `k` (1-indexed) is `base_delay_seconds * 2**(k-1)`.
    """

    retries: int = 0
    base_delay_seconds: float = 1.0
    retryable_statuses: frozenset[int] = DEFAULT_RETRYABLE_STATUSES
    error_message: str = "An error occurred"
    classifier: ErrorClassifier | None = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    # Failures for which retrying is pointless whatever their status.
    is_fatal: Callable[[Exception], bool] = _never_fatal

    def compute_backoff(self, attempt: int) -> float:
        """Return the delay preceding retry number `attempt` (1-indexed)."""
        return self.base_delay_seconds * (2 ** (attempt - 1))

    def is_retryable(self, attempt: int, status: int) -> bool:
        return attempt < self.retries and (
            status in self.retryable_statuses or status == NETWORK_STATUS
        )

    def _classify(self, error: Exception) -> ErrorInfo:
        if self.classifier is not None:
            return self.classifier.classify(error)
        return classify_error(error)

    async def run(
        self,
        op: Callable[[], Awaitable[object]],
        *,
        on_retry: RetryCallback | None = None,
    ) -> RequestResult:
        """Run `op`, retrying classified-retryable failures.

        Never raises for failures of `op`; they become unsuccessful results.
        Cancellation still propagates.
        """
        attempt = 0
        while True:
            try:
                result = await op()
            except Exception as exc:
                info = self._classify(exc)
                if not self.is_fatal(exc) and self.is_retryable(attempt, info.status):
                    attempt += 1
                    if on_retry is not None:
                        on_retry(attempt, self.retries, info)
                    delay = self.compute_backoff(attempt)
                    logger.info(
                        "Retrying after status %s (attempt %d/%d) in %.2fs",
                        info.status,
                        attempt,
                        self.retries,
                        delay,
                    )
                    await self.sleep(delay)
                    continue
                return RequestResult(
                    success=False,
                    error=info.message or self.error_message,
                    errors=info.errors,
                    status=info.status,
                    is_retryable=False,
                    original_error=exc,
                )
            data, message = _unwrap(result)
            return RequestResult(success=True, data=data, message=message)
