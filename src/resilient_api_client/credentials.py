"""Access credential persistence across durable and session storage scopes.

Usage example:
    from resilient_api_client.credentials import CredentialStore
    from resilient_api_client.events import EventHub
    from resilient_api_client.infrastructure.storage import InMemoryStorage

    store = CredentialStore(durable=InMemoryStorage(), session=InMemoryStorage(), events=EventHub())
    store.store("header.payload.signature", remember=False)
    record = store.read()
"""

from __future__ import annotations

import base64
import binascii
import math
from dataclasses import dataclass

from .events import CredentialRefreshed, EventHub
from .infrastructure.validation import IncomingDataError, TokenClaimsInput, validate_json_as
from .observability import get_logger
from .protocols import KeyValueStorage

logger = get_logger("resilient_api_client.credentials")

ACCESS_TOKEN_KEY = "accessToken"
ACCESS_TOKEN_EXP_KEY = "accessTokenExpiresAt"
REMEMBER_ME_KEY = "rememberMe"


@dataclass(frozen=True)
class CredentialRecord:
    """Snapshot of the stored credential."""

    token: str | None
    expires_at: int | None
    remember_me: bool

    @property
    def scope(self) -> str:
        return "durable" if self.remember_me else "session"


def decode_expiry(token: str | None) -> int | None:
    """Return the `exp` claim of a dotted three-part token in epoch milliseconds.

    Never raises: malformed, empty or missing tokens yield None.
    """
    if not token or not isinstance(token, str):
        return None
    parts = token.split(".")
    if len(parts) != 3 or not parts[1]:
        return None
    segment = parts[1]
    padded = segment + "=" * (-len(segment) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
        claims = validate_json_as(TokenClaimsInput, raw)
    except (binascii.Error, UnicodeError, ValueError, IncomingDataError):
        logger.warning("Failed to decode token expiry")
        return None
    exp = claims.get("exp")
    if exp is None:
        return None
    millis = exp * 1000
    # Checked after scaling: a finite claim can still overflow to inf.
    if not math.isfinite(millis):
        return None
    return int(millis)


def _parse_expiry(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class CredentialStore:
    """Stores one access token in exactly one of two storage scopes.

    Remembered sessions live in the durable scope; others in the session
    scope. Writing one scope always clears the other. The remember preference
    is kept in the durable scope and survives `clear()`.
    """

    def __init__(
        self,
        *,
        durable: KeyValueStorage,
        session: KeyValueStorage,
        events: EventHub | None = None,
    ) -> None:
        self.durable = durable
        self.session = session
        self.events = events or EventHub()

    decode_expiry = staticmethod(decode_expiry)

    @property
    def remember_preference(self) -> bool:
        value = self.durable.get_item(REMEMBER_ME_KEY)
        return True if value is None else value == "true"

    def set_remember_preference(self, remember: bool) -> None:
        self.durable.set_item(REMEMBER_ME_KEY, "true" if remember else "false")

    def store(
        self,
        token: str,
        expires_at: int | None = None,
        remember: bool | None = None,
    ) -> None:
        """Persist a token, deriving expiry and scope when not given."""
        if not token:
            return
        if expires_at is None:
            expires_at = decode_expiry(token)
        if remember is None:
            remember = self.remember_preference

        target, other = (self.durable, self.session) if remember else (self.session, self.durable)
        target.set_item(ACCESS_TOKEN_KEY, token)
        if expires_at:
            target.set_item(ACCESS_TOKEN_EXP_KEY, str(expires_at))
        else:
            target.remove_item(ACCESS_TOKEN_EXP_KEY)
        other.remove_item(ACCESS_TOKEN_KEY)
        other.remove_item(ACCESS_TOKEN_EXP_KEY)

        self.set_remember_preference(remember)
        self.events.emit(CredentialRefreshed(access_token=token, expires_at=expires_at))

    def read(self) -> CredentialRecord:
        durable_token = self.durable.get_item(ACCESS_TOKEN_KEY)
        if durable_token:
            return CredentialRecord(
                token=durable_token,
                expires_at=_parse_expiry(self.durable.get_item(ACCESS_TOKEN_EXP_KEY)),
                remember_me=True,
            )
        session_token = self.session.get_item(ACCESS_TOKEN_KEY)
        if session_token:
            return CredentialRecord(
                token=session_token,
                expires_at=_parse_expiry(self.session.get_item(ACCESS_TOKEN_EXP_KEY)),
                remember_me=False,
            )
        return CredentialRecord(token=None, expires_at=None, remember_me=self.remember_preference)

    @property
    def token(self) -> str | None:
        return self.read().token

    def clear(self) -> None:
        for scope in (self.durable, self.session):
            scope.remove_item(ACCESS_TOKEN_KEY)
            scope.remove_item(ACCESS_TOKEN_EXP_KEY)
