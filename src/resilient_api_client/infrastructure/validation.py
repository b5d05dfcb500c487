"""Pydantic-based validation helpers for inbound payloads."""

from __future__ import annotations

from typing import TypedDict

from pydantic import TypeAdapter, ValidationError


class IncomingDataError(ValueError):
    """Raised when inbound data fails validation."""


class RefreshDataInput(TypedDict):
    accessToken: str


class RefreshEnvelopeInput(TypedDict):
    data: RefreshDataInput


class TokenClaimsInput(TypedDict, total=False):
    exp: float | None


class ErrorEnvelopeInput(TypedDict, total=False):
    message: str | None
    error: str | None
    errors: list[object] | None
    data: object


def validate_as[SchemaT](schema: type[SchemaT], payload: object) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_python(payload)
    except ValidationError as exc:
        message = f"Invalid payload for {schema}."
        raise IncomingDataError(message) from exc


def validate_json_as[SchemaT](schema: type[SchemaT], payload: str | bytes | bytearray) -> SchemaT:
    try:
        return TypeAdapter(schema).validate_json(payload)
    except ValidationError as exc:
        message = f"Invalid JSON payload for {schema}."
        raise IncomingDataError(message) from exc


def parse_refresh_token(payload: object) -> str:
    """Return the access token from a `{data: {accessToken}}` envelope."""
    envelope = validate_as(RefreshEnvelopeInput, payload)
    token = envelope["data"]["accessToken"].strip()
    if not token:
        raise IncomingDataError("Refresh envelope carried an empty accessToken.")
    return token


def parse_error_envelope(payload: object) -> ErrorEnvelopeInput:
    """Coerce an error body into the `{message, error, errors, data}` shape.

    Non-mapping bodies (plain text, HTML error pages) yield an empty envelope.
    """
    if not isinstance(payload, dict):
        return {}
    try:
        return validate_as(ErrorEnvelopeInput, payload)
    except IncomingDataError:
        envelope: ErrorEnvelopeInput = {}
        message = payload.get("message")
        if isinstance(message, str):
            envelope["message"] = message
        return envelope
