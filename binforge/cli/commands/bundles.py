"""``binforge bundles`` commands: create, get, list, update, delete, push and pull."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.panel import Panel

from binforge.archive.pull import BundlePuller
from binforge.archive.push import BundlePusher
from binforge.cli.common import (
    console,
    err_console,
    get_settings,
    handle_errors,
    make_client,
    print_json,
)
from binforge.cli.parsing import parse_bundle_binary, split_values
from binforge.core.uploader import RichProgressObserver
from binforge.errors import ValidationError
from binforge.models.resources import (
    CreateBundleParams,
    CreateBundleParamsV1,
    CreateBundleParamsV2,
)
from binforge.registry.prn import validate_prn

app = typer.Typer(help="Create, push and pull bundles.", no_args_is_help=True)


def build_create_params(
    api_version: int,
    artifact_version_prns: list[str],
    binaries: list[str],
    id: str | None,
    name: str | None,
) -> CreateBundleParams:
    """Validate the version-specific options of ``bundles create``."""
    if api_version == 1:
        if binaries:
            raise ValidationError(
                "The --binaries option is only supported in API version 2. Use "
                "--artifact-version-prns for API version 1 or use --api-version 2"
            )
        if not artifact_version_prns:
            raise ValidationError(
                "API version 1 requires --artifact-version-prns to be specified"
            )
        for prn in artifact_version_prns:
            validate_prn(prn, "artifact_version")
        return CreateBundleParamsV1(artifact_version_prns=artifact_version_prns, id=id, name=name)

    if api_version == 2:
        if artifact_version_prns:
            raise ValidationError(
                "The --artifact-version-prns option is only supported in API version 1. "
                "Use --binaries for API version 2 or use --api-version 1"
            )
        if not binaries:
            raise ValidationError("API version 2 requires --binaries to be specified")
        return CreateBundleParamsV2(
            binaries=[parse_bundle_binary(spec) for spec in binaries], id=id, name=name
        )

    raise ValidationError(f"Unsupported API version: {api_version}")


@app.command(name="create", help="Create a bundle from binaries (v2) or artifact versions (v1).")
def create_cmd(
    ctx: typer.Context,
    api_version: Optional[int] = typer.Option(
        None, "--api-version", help="Bundle API version (1 or 2); defaults to settings."
    ),
    artifact_version_prns: Optional[List[str]] = typer.Option(
        None,
        "--artifact-version-prns",
        help="Artifact version PRNs (API v1). Repeat the flag or separate with commas.",
    ),
    binaries: Optional[List[str]] = typer.Option(
        None,
        "--binaries",
        help="Binaries (API v2) as 'prn=<prn>[;custom_metadata={json}|null]'. Repeatable.",
    ),
    id_: Optional[str] = typer.Option(None, "--id", help="Custom UUID for the bundle."),
    name: Optional[str] = typer.Option(None, "--name", help="Bundle name."),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        version = api_version or settings.api_version
        params = build_create_params(
            version, split_values(artifact_version_prns), list(binaries or []), id_, name
        )
        bundle = make_client(settings, api_version=version).create_bundle(params)
    print_json(bundle)


@app.command(name="get", help="Show a bundle.")
def get_cmd(
    ctx: typer.Context,
    prn: str = typer.Option(..., "--prn", help="PRN of the bundle."),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "bundle")
        bundle = make_client(settings).get_bundle(prn)
    if bundle is None:
        err_console.print(f"[bold red]Bundle not found:[/bold red] {prn}")
        raise typer.Exit(code=1)
    print_json(bundle)


@app.command(name="push", help="Push a bundle archive to the registry.")
def push_cmd(
    ctx: typer.Context,
    path: Path = typer.Option(..., "--path", help="Bundle archive (.cpio.zst)."),
    binary_part_size: Optional[int] = typer.Option(
        None, "--binary-part-size", help="Part size in bytes (at least 5 MiB)."
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", min=1, max=255, help="Parallel part uploads."
    ),
    strict: bool = typer.Option(
        True,
        "--strict/--lenient",
        help="Require every payload to match its manifest entry by hash.",
    ),
    api_version: Optional[int] = typer.Option(
        None, "--api-version", help="Bundle schema to create (1 or 2); defaults to settings."
    ),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        version = api_version or settings.api_version
        if version not in (1, 2):
            raise ValidationError(f"Unsupported API version: {version}")
        client = make_client(settings, api_version=version)
        pusher = BundlePusher(
            client,
            upload_config=settings.upload_config(
                part_size=binary_part_size, concurrency=concurrency
            ),
            api_version=version,
            strict=strict,
            observer=RichProgressObserver(),
        )
        bundle = pusher.push(path)

    console.print(
        Panel(
            f"[bold green]Bundle pushed[/bold green]\n\n"
            f"  Name: {bundle.display_name}\n"
            f"  PRN:  {bundle.prn}",
            title="binforge",
            border_style="green",
        )
    )


@app.command(name="pull", help="Pull a bundle from the registry into an archive.")
def pull_cmd(
    ctx: typer.Context,
    bundle_prn: str = typer.Option(..., "--bundle-prn", help="PRN of the bundle."),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output archive; defaults to '<bundle name>.cpio.zst'."
    ),
    strict: bool = typer.Option(
        False,
        "--strict/--allow-placeholders",
        help="Fail when a binary has no download URL instead of writing zeros.",
    ),
    api_version: Optional[int] = typer.Option(
        None, "--api-version", help="Bundle schema to read (1 or 2); defaults to settings."
    ),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        client = make_client(settings, api_version=api_version)
        path = BundlePuller(client, strict=strict).pull(bundle_prn, output)
    console.print(f"[green]Bundle pulled successfully to:[/green] {path}")


@app.command(name="list", help="List bundles.")
def list_cmd(
    ctx: typer.Context,
    search: Optional[str] = typer.Option(None, "--search"),
    limit: Optional[int] = typer.Option(None, "--limit"),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        found = make_client(settings).list_bundles(search=search, limit=limit)
    print_json(found)


@app.command(name="update", help="Rename a bundle.")
def update_cmd(
    ctx: typer.Context,
    prn: str = typer.Option(..., "--prn"),
    name: str = typer.Option(..., "--name"),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "bundle")
        bundle = make_client(settings).update_bundle(prn, name=name)
    print_json(bundle)


@app.command(name="delete", help="Delete a bundle.")
def delete_cmd(ctx: typer.Context, prn: str = typer.Option(..., "--prn")) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "bundle")
        make_client(settings).delete_bundle(prn)
