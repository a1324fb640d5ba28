"""``binforge binaries`` commands: create (upload + sign), get, list, update and delete."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from binforge.cli.common import err_console, get_settings, handle_errors, make_client, print_json
from binforge.cli.parsing import parse_json_object
from binforge.config import Settings
from binforge.core.hasher import hash_file
from binforge.core.processor import BinaryProcessor
from binforge.core.resolver import ResourceResolver
from binforge.core.state_machine import check_transition
from binforge.core.uploader import RichProgressObserver
from binforge.errors import ValidationError
from binforge.models.binaries import BinaryState
from binforge.models.config import ProcessorConfig, SignatureConfig
from binforge.registry.prn import validate_prn

app = typer.Typer(help="Create and inspect binaries.", no_args_is_help=True)


def _signature_configs(
    settings: Settings,
    signing_key_pair: str | None,
    signing_key_prn: str | None,
    signing_key_private: Path | None,
) -> tuple[SignatureConfig, ...]:
    if signing_key_pair and (signing_key_prn or signing_key_private):
        raise ValidationError(
            "--signing-key-pair cannot be combined with --signing-key-prn or "
            "--signing-key-private"
        )
    if signing_key_pair:
        pair = settings.signing_key_pairs.get(signing_key_pair)
        if pair is None:
            raise ValidationError(f"Unknown signing key pair: {signing_key_pair}")
        return (SignatureConfig.from_key_pair(pair.signing_key_prn, signing_key_pair),)
    if signing_key_prn or signing_key_private:
        if not (signing_key_prn and signing_key_private):
            raise ValidationError(
                "--signing-key-prn and --signing-key-private must be given together"
            )
        validate_prn(signing_key_prn, "signing_key")
        return (SignatureConfig.from_private_key(signing_key_prn, signing_key_private),)
    return ()


@app.command(name="create", help="Create a binary, upload its content and sign it.")
def create_cmd(
    ctx: typer.Context,
    artifact_version_prn: str = typer.Option(
        ..., "--artifact-version-prn", help="PRN of the artifact version the binary belongs to."
    ),
    target: str = typer.Option(..., "--target", help="Target label, e.g. 'arm64-linux'."),
    content_path: Optional[Path] = typer.Option(
        None, "--content-path", help="Local file holding the binary content."
    ),
    hash_: Optional[str] = typer.Option(
        None, "--hash", help="SHA-256 of the content, when --content-path is not given."
    ),
    size: Optional[int] = typer.Option(
        None, "--size", help="Size in bytes of the content, when --content-path is not given."
    ),
    description: Optional[str] = typer.Option(None, "--description"),
    custom_metadata: Optional[str] = typer.Option(
        None, "--custom-metadata", help="JSON object of custom metadata."
    ),
    id_: Optional[str] = typer.Option(None, "--id", help="Custom UUID for the binary."),
    signing_key_pair: Optional[str] = typer.Option(
        None, "--signing-key-pair", help="Name of a signing key pair from settings."
    ),
    signing_key_prn: Optional[str] = typer.Option(
        None, "--signing-key-prn", help="PRN of the signing key (with --signing-key-private)."
    ),
    signing_key_private: Optional[Path] = typer.Option(
        None, "--signing-key-private", help="PKCS#8 PEM Ed25519 private key."
    ),
    concurrency: Optional[int] = typer.Option(
        None, "--concurrency", min=1, max=255, help="Parallel part uploads."
    ),
    binary_part_size: Optional[int] = typer.Option(
        None, "--binary-part-size", help="Part size in bytes (at least 5 MiB)."
    ),
) -> None:
    """Create or resume a binary and drive it as far as the options allow."""
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(artifact_version_prn, "artifact_version")

        if content_path is not None and (hash_ is not None or size is not None):
            raise ValidationError("--content-path cannot be combined with --hash or --size")
        if content_path is None and (hash_ is None or size is None):
            raise ValidationError("Either --content-path or both --hash and --size are required")

        metadata = parse_json_object(custom_metadata, "--custom-metadata") if custom_metadata else None
        signatures = _signature_configs(
            settings, signing_key_pair, signing_key_prn, signing_key_private
        )

        content: bytes | None = None
        if content_path is not None:
            if not content_path.is_file():
                raise ValidationError(f"Content file not found: {content_path}")
            hash_, size = hash_file(content_path)
            content = content_path.read_bytes()

        config = ProcessorConfig(
            upload=settings.upload_config(part_size=binary_part_size, concurrency=concurrency),
            signatures=signatures,
            content_hash=hash_,
            content_path=content_path,
        )

        client = make_client(settings)
        binary = ResourceResolver(client).get_or_create_binary(
            artifact_version_prn=artifact_version_prn,
            target=target,
            hash=hash_,
            size=size,
            description=description,
            custom_metadata=metadata,
            id=id_,
        )
        processor = BinaryProcessor(
            client,
            config,
            signing_key_pairs=settings.signing_key_pairs,
            observer=RichProgressObserver(f"Uploading {target}"),
        )
        binary = processor.process(binary, content)

    err_console.print(f"[green]Binary {binary.prn} is {binary.state.value}[/green]")
    print_json(binary)


@app.command(name="get", help="Show a binary.")
def get_cmd(
    ctx: typer.Context,
    prn: str = typer.Option(..., "--prn", help="PRN of the binary."),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "binary")
        binary = make_client(settings).get_binary(prn)
    if binary is None:
        err_console.print(f"[bold red]Binary not found:[/bold red] {prn}")
        raise typer.Exit(code=1)
    print_json(binary)


@app.command(name="list", help="List binaries.")
def list_cmd(
    ctx: typer.Context,
    search: Optional[str] = typer.Option(
        None, "--search", help="Registry search, e.g. \"target:'arm64-linux'\"."
    ),
    limit: Optional[int] = typer.Option(None, "--limit"),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        found = make_client(settings).list_binaries(search=search, limit=limit)
    print_json(found)


@app.command(name="update", help="Update a binary's description, metadata or state.")
def update_cmd(
    ctx: typer.Context,
    prn: str = typer.Option(..., "--prn"),
    description: Optional[str] = typer.Option(None, "--description"),
    custom_metadata: Optional[str] = typer.Option(None, "--custom-metadata"),
    state: Optional[BinaryState] = typer.Option(
        None, "--state", case_sensitive=False, help="Requested lifecycle state."
    ),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "binary")
        metadata = parse_json_object(custom_metadata, "--custom-metadata") if custom_metadata else None
        client = make_client(settings)
        if state is not None:
            current = client.get_binary(prn)
            if current is None:
                raise ValidationError(f"Binary not found: {prn}")
            check_transition(current.state, state)
        binary = client.update_binary(
            prn, state=state, description=description, custom_metadata=metadata
        )
    print_json(binary)


@app.command(name="delete", help="Delete a binary.")
def delete_cmd(ctx: typer.Context, prn: str = typer.Option(..., "--prn")) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(prn, "binary")
        make_client(settings).delete_binary(prn)
