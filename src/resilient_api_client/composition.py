"""Composition root for wiring the API client and CLI dependencies."""

from __future__ import annotations

from pathlib import Path

import requests

from .cli import CliDependencies, create_app
from .client import ApiClient
from .config import ClientConfig
from .coordinator import RequestCoordinator
from .credentials import CredentialStore
from .errors import ErrorClassifier
from .events import EventHub
from .infrastructure import InMemoryStorage, JsonFileStorage, RequestsTransport
from .observability import LoggingDiagnostics
from .protocols import Diagnostics, KeyValueStorage
from .refresh import RefreshCoordinator
from .retry import RetryPolicy


def build_api_client(
    config: ClientConfig,
    *,
    session: requests.Session | None = None,
    durable_storage: KeyValueStorage | None = None,
    session_storage: KeyValueStorage | None = None,
    diagnostics: Diagnostics | None = None,
) -> ApiClient:
    """Build a fully wired client from configuration.

    Args:
        config: Client configuration.
        session: Optional requests session (cookies carry the refresh credential).
        durable_storage: Storage for remembered sessions; defaults to a JSON file
            at `config.credentials_path`.
        session_storage: Storage for non-remembered sessions; defaults to memory.
        diagnostics: Observability collaborator for server/network failures.
    """
    events = EventHub()
    credentials = CredentialStore(
        durable=durable_storage or JsonFileStorage(Path(config.credentials_path)),
        session=session_storage or InMemoryStorage(),
        events=events,
    )
    transport = RequestsTransport(
        session=session or requests.Session(),
        base_url=config.base_url,
        token_provider=lambda: credentials.token,
        timeout_seconds=config.timeout_seconds,
        refresh_path=config.refresh_path,
    )
    classifier = ErrorClassifier(diagnostics=diagnostics or LoggingDiagnostics())
    refresher = RefreshCoordinator(
        refresh_call=transport.refresh_access_token,
        credentials=credentials,
        events=events,
    )
    coordinator = RequestCoordinator(
        ttl_seconds=config.cache_ttl_seconds,
        canonical_keys=config.canonical_request_keys,
    )
    retry_defaults = RetryPolicy(
        retries=config.retries,
        base_delay_seconds=config.retry_base_delay_seconds,
        retryable_statuses=frozenset(config.retryable_statuses),
        classifier=classifier,
    )
    return ApiClient(
        transport=transport,
        credentials=credentials,
        refresher=refresher,
        coordinator=coordinator,
        classifier=classifier,
        events=events,
        retry_defaults=retry_defaults,
    )


def build_cli_dependencies(*, config: ClientConfig) -> CliDependencies:
    """Build concrete dependencies for CLI commands."""
    return CliDependencies(client=build_api_client(config))


app = create_app(build_cli_dependencies)
