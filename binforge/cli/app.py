"""Main Typer application: global options plus the resource sub-apps.

Entry point: ``binforge`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from binforge.cli.commands import artifacts, binaries, binary_signatures, bundles
from binforge.cli.common import configure_logging, console
from binforge.config import Settings

app = typer.Typer(
    name="binforge",
    help="binforge: upload, sign and bundle binaries for an artifact registry.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

app.add_typer(artifacts.app, name="artifacts")
app.add_typer(artifacts.versions_app, name="artifact-versions")
app.add_typer(binaries.app, name="binaries")
app.add_typer(binary_signatures.app, name="binary-signatures")
app.add_typer(bundles.app, name="bundles")


@app.callback()
def main_callback(
    ctx: typer.Context,
    api_key: Optional[str] = typer.Option(
        None, "--api-key", envvar="BINFORGE_API_KEY", help="Registry API key."
    ),
    base_url: Optional[str] = typer.Option(None, "--base-url", help="Registry API root URL."),
    ca_path: Optional[Path] = typer.Option(
        None, "--ca-path", help="CA bundle used to verify the registry's certificate."
    ),
    api_version: Optional[int] = typer.Option(
        None, "--api-version", help="Default registry API version (1 or 2)."
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level."),
) -> None:
    """Build settings once from the environment plus global flags."""
    overrides = {
        "api_key": api_key,
        "base_url": base_url,
        "ca_path": ca_path,
        "api_version": api_version,
        "log_level": log_level,
    }
    settings = Settings().model_copy(
        update={k: v for k, v in overrides.items() if v is not None}
    )
    configure_logging(settings.log_level)
    ctx.obj = settings


@app.command(name="version", help="Show the binforge version.")
def version_cmd() -> None:
    from binforge import __version__

    console.print(f"binforge {__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
