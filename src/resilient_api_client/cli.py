"""CLI for the resilient API client.

Commands:
- health: Call the API health endpoint
- get: Fetch a resource through the retrying, caching pipeline
- sign-out: Forget stored credentials
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Protocol

import typer
from rich import print as rprint

from .config import ClientConfig
from .config_file import load_client_config_file

if TYPE_CHECKING:
    from .client import ApiClient


class DependenciesBuilder(Protocol):
    """Protocol for constructing CLI dependencies."""

    def __call__(self, *, config: ClientConfig) -> CliDependencies:
        """Build dependencies for CLI commands."""
        ...


@dataclass(frozen=True)
class CliDependencies:
    """Concrete dependencies required by the CLI."""

    client: ApiClient


@dataclass(frozen=True)
class CliContext:
    """Runtime CLI context for a single command invocation."""

    config: ClientConfig
    deps_builder: DependenciesBuilder

    def build_dependencies(self) -> CliDependencies:
        return self.deps_builder(config=self.config)


class CliContextNotInitialisedError(typer.BadParameter):
    """Raised when CLI context is missing."""

    def __init__(self) -> None:
        super().__init__("CLI context is not initialised. Use the resilient-api entry point.")


class ParamFormatError(typer.BadParameter):
    """Raised when a --param value is not KEY=VALUE."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Expected KEY=VALUE, got {value!r}.")


def _get_context(ctx: typer.Context) -> CliContext:
    if not isinstance(ctx.obj, CliContext):
        raise CliContextNotInitialisedError()
    return ctx.obj


def _parse_params(values: list[str] | None) -> dict[str, object] | None:
    if not values:
        return None
    params: dict[str, object] = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key.strip():
            raise ParamFormatError(value)
        params[key.strip()] = item
    return params


def _dump(payload: object) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str)


def create_app(deps_builder: DependenciesBuilder) -> typer.Typer:
    """Create a Typer app wired with the provided dependencies builder."""
    app = typer.Typer(
        add_completion=False,
        help="Resilient API client: cached, deduplicated, retrying, auth-aware requests",
    )

    @app.callback()
    def main(
        ctx: typer.Context,
        config_path: Annotated[
            Path | None,
            typer.Option("--config", help="Client TOML config file (overrides environment)"),
        ] = None,
    ) -> None:
        """Initialise CLI context."""
        config = ClientConfig.from_env()
        if config_path is not None:
            config = config.with_file_overrides(load_client_config_file(config_path))
        ctx.obj = CliContext(config=config, deps_builder=deps_builder)

    @app.command()
    def health(ctx: typer.Context) -> None:
        """Call the API health endpoint."""
        client = _get_context(ctx).build_dependencies().client
        result = asyncio.run(client.call("GET", "/health", skip_cache=True))
        if not result.success:
            rprint(f"[red]✗[/red] {result.error} (status {result.status})")
            raise typer.Exit(code=1)
        rprint(f"[green]✓[/green] API healthy: {_dump(result.data)}")

    @app.command()
    def get(
        ctx: typer.Context,
        url: Annotated[str, typer.Argument(help="Path relative to the base URL, or absolute URL")],
        param: Annotated[
            list[str] | None,
            typer.Option("--param", "-p", help="Query parameter as KEY=VALUE (repeatable)"),
        ] = None,
        retries: Annotated[
            int | None,
            typer.Option("--retries", "-r", min=0, help="Override configured retry count"),
        ] = None,
    ) -> None:
        """Fetch a resource and print the response data as JSON."""
        params = _parse_params(param)
        client = _get_context(ctx).build_dependencies().client

        def report_retry(attempt: int, max_retries: int, info: object) -> None:
            rprint(f"[yellow]Retry {attempt}/{max_retries}[/yellow]")

        result = asyncio.run(
            client.call("GET", url, params=params, retries=retries, on_retry=report_retry)
        )
        if not result.success:
            rprint(f"[red]✗[/red] {result.error} (status {result.status})")
            for item in result.errors:
                rprint(f"  - {item}")
            raise typer.Exit(code=1)
        rprint(_dump(result.data))

    @app.command("sign-out")
    def sign_out(ctx: typer.Context) -> None:
        """Forget stored credentials."""
        client = _get_context(ctx).build_dependencies().client
        client.sign_out()
        rprint("[green]✓[/green] Signed out")

    return app
