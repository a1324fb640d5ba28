"""``binforge artifacts`` and ``binforge artifact-versions`` commands."""

from __future__ import annotations

from typing import Optional

import typer

from binforge.cli.common import err_console, get_settings, handle_errors, make_client, print_json
from binforge.cli.parsing import parse_json_object
from binforge.registry.prn import PRN, validate_prn

app = typer.Typer(help="Manage artifacts.", no_args_is_help=True)
versions_app = typer.Typer(help="Manage artifact versions.", no_args_is_help=True)


def _metadata(value: str | None) -> dict | None:
    return parse_json_object(value, "--custom-metadata") if value else None


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


@app.command(name="create", help="Create an artifact.")
def create_cmd(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name"),
    organization_prn: Optional[str] = typer.Option(
        None, "--organization-prn", help="Defaults to the API key's organization."
    ),
    description: Optional[str] = typer.Option(None, "--description"),
    custom_metadata: Optional[str] = typer.Option(None, "--custom-metadata"),
    id_: Optional[str] = typer.Option(None, "--id", help="Custom UUID for the artifact."),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        if organization_prn is not None:
            PRN.parse_organization_id(organization_prn)
        metadata = _metadata(custom_metadata)
        client = make_client(settings)
        artifact = client.create_artifact(
            organization_prn=organization_prn or client.me().organization_prn,
            name=name,
            id=id_,
            description=description,
            custom_metadata=metadata,
        )
    print_json(artifact)


@app.command(name="get", help="Show an artifact.")
def get_cmd(ctx: typer.Context, prn: str = typer.Option(..., "--prn")) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "artifact")
        artifact = make_client(settings).get_artifact(prn)
    if artifact is None:
        err_console.print(f"[bold red]Artifact not found:[/bold red] {prn}")
        raise typer.Exit(code=1)
    print_json(artifact)


@app.command(name="list", help="List artifacts.")
def list_cmd(
    ctx: typer.Context,
    search: Optional[str] = typer.Option(None, "--search"),
    limit: Optional[int] = typer.Option(None, "--limit"),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        artifacts = make_client(settings).list_artifacts(search=search, limit=limit)
    print_json(artifacts)


@app.command(name="update", help="Update an artifact's name, description or metadata.")
def update_cmd(
    ctx: typer.Context,
    prn: str = typer.Option(..., "--prn"),
    name: Optional[str] = typer.Option(None, "--name"),
    description: Optional[str] = typer.Option(None, "--description"),
    custom_metadata: Optional[str] = typer.Option(None, "--custom-metadata"),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "artifact")
        artifact = make_client(settings).update_artifact(
            prn, name=name, description=description, custom_metadata=_metadata(custom_metadata)
        )
    print_json(artifact)


@app.command(name="delete", help="Delete an artifact.")
def delete_cmd(ctx: typer.Context, prn: str = typer.Option(..., "--prn")) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "artifact")
        make_client(settings).delete_artifact(prn)


# ---------------------------------------------------------------------------
# Artifact versions
# ---------------------------------------------------------------------------


@versions_app.command(name="create", help="Create a version of an artifact.")
def create_version_cmd(
    ctx: typer.Context,
    artifact_prn: str = typer.Option(..., "--artifact-prn"),
    version: str = typer.Option(..., "--version"),
    description: Optional[str] = typer.Option(None, "--description"),
    custom_metadata: Optional[str] = typer.Option(None, "--custom-metadata"),
    id_: Optional[str] = typer.Option(None, "--id", help="Custom UUID for the version."),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(artifact_prn, "artifact")
        created = make_client(settings).create_artifact_version(
            artifact_prn=artifact_prn,
            version=version,
            id=id_,
            description=description,
            custom_metadata=_metadata(custom_metadata),
        )
    print_json(created)


@versions_app.command(name="get", help="Show an artifact version.")
def get_version_cmd(ctx: typer.Context, prn: str = typer.Option(..., "--prn")) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "artifact_version")
        found = make_client(settings).get_artifact_version(prn)
    if found is None:
        err_console.print(f"[bold red]Artifact version not found:[/bold red] {prn}")
        raise typer.Exit(code=1)
    print_json(found)


@versions_app.command(name="list", help="List artifact versions.")
def list_versions_cmd(
    ctx: typer.Context,
    search: Optional[str] = typer.Option(None, "--search"),
    limit: Optional[int] = typer.Option(None, "--limit"),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        found = make_client(settings).list_artifact_versions(search=search, limit=limit)
    print_json(found)


@versions_app.command(name="update", help="Update an artifact version's description or metadata.")
def update_version_cmd(
    ctx: typer.Context,
    prn: str = typer.Option(..., "--prn"),
    description: Optional[str] = typer.Option(None, "--description"),
    custom_metadata: Optional[str] = typer.Option(None, "--custom-metadata"),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "artifact_version")
        updated = make_client(settings).update_artifact_version(
            prn, description=description, custom_metadata=_metadata(custom_metadata)
        )
    print_json(updated)


@versions_app.command(name="delete", help="Delete an artifact version.")
def delete_version_cmd(ctx: typer.Context, prn: str = typer.Option(..., "--prn")) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "artifact_version")
        make_client(settings).delete_artifact_version(prn)
