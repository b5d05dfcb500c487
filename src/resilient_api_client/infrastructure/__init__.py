"""Concrete infrastructure implementations and shared helpers."""

from .storage import InMemoryStorage, JsonFileStorage
from .transport import RequestSpec, RequestsTransport, TransportResponse
from .validation import IncomingDataError, validate_as, validate_json_as

__all__ = [
    "IncomingDataError",
    "InMemoryStorage",
    "JsonFileStorage",
    "RequestSpec",
    "RequestsTransport",
    "TransportResponse",
    "validate_as",
    "validate_json_as",
]
