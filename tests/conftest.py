"""Pytest fixtures for client tests.

All tests are network-isolated - socket connections are blocked by default.
"""

from __future__ import annotations

import socket

import pytest

from resilient_api_client.client import ApiClient
from resilient_api_client.coordinator import RequestCoordinator
from resilient_api_client.credentials import CredentialStore
from resilient_api_client.errors import ErrorClassifier
from resilient_api_client.events import EventHub
from resilient_api_client.infrastructure.storage import InMemoryStorage
from resilient_api_client.refresh import RefreshCoordinator
from resilient_api_client.retry import RetryPolicy
from tests.fakes import (
    FakeClock,
    FakeRefresher,
    FakeTransport,
    RecordingDiagnostics,
    RecordingSleeper,
)
from tests.support.errors import NetworkIsolationError


def _blocked_socket_connect(self: socket.socket, *args: object, **kwargs: object) -> None:
    """Raise an error if any test tries to make a real network connection."""
    raise NetworkIsolationError(str(args))


@pytest.fixture(autouse=True)
def block_network_access(monkeypatch: pytest.MonkeyPatch) -> None:
    """Block all network access in tests.

    Tests that need HTTP should use FakeTransport or a mocked requests.Session.
    """
    monkeypatch.setattr(socket.socket, "connect", _blocked_socket_connect)


@pytest.fixture
def events() -> EventHub:
    return EventHub()


@pytest.fixture
def durable() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def session_storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def credentials(
    durable: InMemoryStorage, session_storage: InMemoryStorage, events: EventHub
) -> CredentialStore:
    return CredentialStore(durable=durable, session=session_storage, events=events)


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fake_refresher() -> FakeRefresher:
    return FakeRefresher(outcomes=["new-token"])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> RecordingSleeper:
    return RecordingSleeper()


@pytest.fixture
def diagnostics() -> RecordingDiagnostics:
    return RecordingDiagnostics()


@pytest.fixture
def classifier(diagnostics: RecordingDiagnostics) -> ErrorClassifier:
    return ErrorClassifier(diagnostics=diagnostics)


@pytest.fixture
def api_client(
    fake_transport: FakeTransport,
    fake_refresher: FakeRefresher,
    credentials: CredentialStore,
    events: EventHub,
    clock: FakeClock,
    sleeper: RecordingSleeper,
    classifier: ErrorClassifier,
) -> ApiClient:
    """Client wired entirely with fakes."""
    return ApiClient(
        transport=fake_transport,
        credentials=credentials,
        refresher=RefreshCoordinator(
            refresh_call=fake_refresher, credentials=credentials, events=events
        ),
        coordinator=RequestCoordinator(ttl_seconds=300, clock=clock),
        classifier=classifier,
        events=events,
        retry_defaults=RetryPolicy(classifier=classifier, sleep=sleeper),
    )
