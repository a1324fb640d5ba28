"""Shared CLI plumbing: settings, logging, output and error rendering."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import typer
from pydantic import BaseModel
from rich.console import Console
from rich.logging import RichHandler

from binforge.config import Settings
from binforge.errors import BinforgeError
from binforge.registry.client import RegistryClient

console = Console()
err_console = Console(stderr=True)


def configure_logging(level: str) -> None:
    """Route all ``binforge`` logging through a Rich handler on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def get_settings(ctx: typer.Context) -> Settings:
    settings = ctx.obj if ctx is not None else None
    if isinstance(settings, Settings):
        return settings
    return Settings()


def make_client(settings: Settings, *, api_version: int | None = None) -> RegistryClient:
    return RegistryClient.from_settings(settings, api_version=api_version)


def print_json(value: Any) -> None:
    """Print a model, list of models or plain data as indented JSON on stdout."""
    if isinstance(value, BaseModel):
        data = value.model_dump(mode="json", exclude_none=True)
    elif isinstance(value, list):
        data = [
            v.model_dump(mode="json", exclude_none=True) if isinstance(v, BaseModel) else v
            for v in value
        ]
    else:
        data = value
    console.print_json(json.dumps(data))


@contextmanager
def handle_errors() -> Iterator[None]:
    """Render ``BinforgeError`` in red and exit with status 1."""
    try:
        yield
    except BinforgeError as exc:
        err_console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
