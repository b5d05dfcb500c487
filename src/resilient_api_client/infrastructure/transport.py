"""Requests-backed transport for the API client.

Usage example:
    import requests

    from resilient_api_client.infrastructure.transport import RequestSpec, RequestsTransport

    transport = RequestsTransport(
        session=requests.Session(),
        base_url="http://localhost:5000/api",
        token_provider=lambda: None,
    )
    response = await transport.send(RequestSpec(method="GET", url="/health"))
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import override

import requests

from ..exceptions import (
    HttpStatusError,
    RefreshResponseError,
    TransportNetworkError,
    TransportTimeoutError,
)
from ..observability import get_logger
from ..protocols import Transport
from .validation import IncomingDataError, parse_refresh_token

logger = get_logger("resilient_api_client.infrastructure.transport")

_DEFAULT_HEADERS = {"Content-Type": "application/json"}


def _empty_headers() -> dict[str, str]:
    return {}


@dataclass(frozen=True)
class RequestSpec:
    """One outbound request.

    `retried_for_auth` is the one-shot flag that stops a replayed request from
    triggering a second credential refresh.
    """

    method: str
    url: str
    params: Mapping[str, object] | None = None
    data: object = None
    headers: Mapping[str, str] = field(default_factory=_empty_headers)
    retried_for_auth: bool = False

    def with_headers(self, **headers: str) -> RequestSpec:
        return replace(self, headers={**self.headers, **headers})

    def with_bearer(self, token: str) -> RequestSpec:
        return self.with_headers(Authorization=f"Bearer {token}")

    def mark_retried_for_auth(self) -> RequestSpec:
        return replace(self, retried_for_auth=True)


@dataclass(frozen=True)
class TransportResponse:
    """A server response; `data` is the decoded JSON body (or raw text)."""

    status: int
    data: object
    request: RequestSpec
    headers: Mapping[str, str] = field(default_factory=_empty_headers)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def _decode_body(response: requests.Response) -> object:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _response_details(response: TransportResponse) -> str:
    """Return a compact status/body summary for logging."""
    body = " ".join(str(response.data).split())
    if len(body) > 300:
        body = body[:300] + "..."
    return f"status={response.status}, body={body}"


class RequestsTransport(Transport):
    """Transport that runs blocking `requests` calls in a worker thread.

    The current access token is attached as a Bearer header unless the
    request already carries an Authorization header.
    """

    def __init__(
        self,
        *,
        session: requests.Session,
        base_url: str,
        token_provider: Callable[[], str | None],
        timeout_seconds: float = 30.0,
        refresh_path: str = "/auth/refresh",
    ) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.token_provider = token_provider
        self.timeout_seconds = timeout_seconds
        self.refresh_path = refresh_path

    def resolve_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    def _headers_for(self, request: RequestSpec, *, authorize: bool) -> dict[str, str]:
        headers = {**_DEFAULT_HEADERS, **request.headers}
        if authorize and "Authorization" not in headers:
            token = self.token_provider()
            if token:
                headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _dispatch(self, request: RequestSpec, *, authorize: bool) -> TransportResponse:
        url = self.resolve_url(request.url)
        try:
            raw = await asyncio.to_thread(
                self.session.request,
                request.method.upper(),
                url,
                params=dict(request.params) if request.params else None,
                json=request.data,
                headers=self._headers_for(request, authorize=authorize),
                timeout=self.timeout_seconds,
            )
        except requests.Timeout as exc:
            raise TransportTimeoutError(self.timeout_seconds, request=request) from exc
        except requests.ConnectionError as exc:
            raise TransportNetworkError(str(exc) or "Network Error", request=request) from exc

        response = TransportResponse(
            status=raw.status_code,
            data=_decode_body(raw),
            request=request,
            headers=dict(raw.headers),
        )
        if not response.ok:
            logger.debug("%s %s failed: %s", request.method, url, _response_details(response))
            raise HttpStatusError(response)
        return response

    @override
    async def send(self, request: RequestSpec) -> TransportResponse:
        return await self._dispatch(request, authorize=True)

    async def refresh_access_token(self) -> str:
        """Exchange the session's refresh cookie for a new access token.

        Raises:
            HttpStatusError: If the refresh endpoint rejects the request.
            TransportNetworkError: If the refresh endpoint is unreachable.
            RefreshResponseError: If the envelope lacks `data.accessToken`.
        """
        request = RequestSpec(method="POST", url=self.refresh_path, data={})
        response = await self._dispatch(request, authorize=False)
        try:
            return parse_refresh_token(response.data)
        except IncomingDataError as exc:
            raise RefreshResponseError() from exc
