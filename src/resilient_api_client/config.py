"""Centralised, injectable configuration for the API client."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Self

from dotenv import load_dotenv

from .config_file import ClientConfigFile

DEFAULT_BASE_URL = "http://localhost:5000/api"
DEFAULT_RETRYABLE_STATUSES: tuple[int, ...] = (408, 429, 500, 502, 503, 504)


class PositiveNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a positive number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive number.")


class NonNegativeIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be a non-negative integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a non-negative integer.")


class StatusListEnvVarError(ValueError):
    """Raised when an environment variable must be a list of HTTP statuses."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a comma-separated list of HTTP status codes.")


class BooleanEnvVarError(ValueError):
    """Raised when an environment variable must be a supported boolean."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a boolean value (true/false, 1/0, yes/no, on/off).")


@dataclass(frozen=True)
class ClientConfig:
    """Immutable configuration for the client pipeline.

    Load from environment with `ClientConfig.from_env()` or construct directly for testing.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 30.0
    cache_ttl_seconds: float = 300.0
    retries: int = 0
    retry_base_delay_seconds: float = 1.0
    retryable_statuses: tuple[int, ...] = DEFAULT_RETRYABLE_STATUSES
    refresh_path: str = "/auth/refresh"
    canonical_request_keys: bool = False
    credentials_path: str = "data/credentials.json"

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from environment variables.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.

        Returns:
            ClientConfig instance populated from environment.
        """
        load_dotenv(dotenv_path)

        return cls(
            base_url=os.getenv("API_BASE_URL", DEFAULT_BASE_URL).strip() or DEFAULT_BASE_URL,
            timeout_seconds=_parse_positive_float(
                os.getenv("API_TIMEOUT_SECONDS", "30"), env_name="API_TIMEOUT_SECONDS"
            ),
            cache_ttl_seconds=_parse_positive_float(
                os.getenv("API_CACHE_TTL_SECONDS", "300"), env_name="API_CACHE_TTL_SECONDS"
            ),
            retries=_parse_non_negative_int(
                os.getenv("API_RETRIES", "0"), env_name="API_RETRIES"
            ),
            retry_base_delay_seconds=_parse_positive_float(
                os.getenv("API_RETRY_BASE_DELAY_SECONDS", "1"),
                env_name="API_RETRY_BASE_DELAY_SECONDS",
            ),
            retryable_statuses=_parse_statuses(
                os.getenv("API_RETRYABLE_STATUSES", ""), env_name="API_RETRYABLE_STATUSES"
            ),
            refresh_path=os.getenv("API_REFRESH_PATH", "/auth/refresh").strip()
            or "/auth/refresh",
            canonical_request_keys=_parse_bool(
                os.getenv("API_CANONICAL_REQUEST_KEYS", ""),
                env_name="API_CANONICAL_REQUEST_KEYS",
            ),
            credentials_path=os.getenv("API_CREDENTIALS_PATH", "data/credentials.json").strip()
            or "data/credentials.json",
        )

    def with_overrides(self, **overrides: object) -> Self:
        """Return a copy with non-None overrides applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **values)

    def with_file_overrides(self, file_config: ClientConfigFile) -> Self:
        """Apply values from a config file; environment values fill the gaps."""
        return self.with_overrides(
            base_url=file_config.base_url,
            timeout_seconds=file_config.timeout_seconds,
            cache_ttl_seconds=file_config.cache_ttl_seconds,
            retries=file_config.retries,
            retry_base_delay_seconds=file_config.retry_base_delay_seconds,
            retryable_statuses=file_config.retryable_statuses,
            refresh_path=file_config.refresh_path,
            canonical_request_keys=file_config.canonical_request_keys,
            credentials_path=file_config.credentials_path,
        )


def _parse_positive_float(value: str, *, env_name: str) -> float:
    try:
        parsed = float(value.strip())
    except ValueError as exc:
        raise PositiveNumberEnvVarError(env_name) from exc
    if parsed <= 0:
        raise PositiveNumberEnvVarError(env_name)
    return parsed


def _parse_non_negative_int(value: str, *, env_name: str) -> int:
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise NonNegativeIntegerEnvVarError(env_name) from exc
    if parsed < 0:
        raise NonNegativeIntegerEnvVarError(env_name)
    return parsed


def _parse_statuses(value: str, *, env_name: str) -> tuple[int, ...]:
    """Parse a comma-separated status list; empty means the defaults."""
    items = [item.strip() for item in value.split(",") if item.strip()]
    if not items:
        return DEFAULT_RETRYABLE_STATUSES
    try:
        statuses = tuple(int(item) for item in items)
    except ValueError as exc:
        raise StatusListEnvVarError(env_name) from exc
    if any(status < 100 or status > 599 for status in statuses):
        raise StatusListEnvVarError(env_name)
    return statuses


def _parse_bool(value: str, *, env_name: str) -> bool:
    text = value.strip().lower()
    if not text:
        return False
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise BooleanEnvVarError(env_name)
