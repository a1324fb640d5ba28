"""``binforge binary-signatures`` commands."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from binforge import crypto
from binforge.cli.common import get_settings, handle_errors, make_client, print_json
from binforge.core.hasher import hash_file
from binforge.errors import ValidationError
from binforge.registry.prn import validate_prn

app = typer.Typer(help="Attach and remove binary signatures.", no_args_is_help=True)


@app.command(name="create", help="Sign a binary's content hash and attach the signature.")
def create_cmd(
    ctx: typer.Context,
    binary_prn: str = typer.Option(..., "--binary-prn", help="PRN of the binary to sign."),
    binary_content_path: Optional[Path] = typer.Option(
        None, "--binary-content-path", help="File whose SHA-256 is signed."
    ),
    signature: Optional[str] = typer.Option(
        None, "--signature", help="Hex signature of the content's SHA-256, computed elsewhere."
    ),
    signing_key_pair: Optional[str] = typer.Option(
        None, "--signing-key-pair", help="Name of a signing key pair from settings."
    ),
    signing_key_private: Optional[Path] = typer.Option(
        None, "--signing-key-private", help="PKCS#8 PEM Ed25519 private key."
    ),
    signing_key_prn: Optional[str] = typer.Option(
        None, "--signing-key-prn", help="PRN of the key the registry verifies with."
    ),
) -> None:
    """Exactly one signature source is accepted.

    - ``--signing-key-pair`` with ``--binary-content-path`` or ``--signature``
    - ``--signing-key-private`` + ``--signing-key-prn`` + ``--binary-content-path``
    - ``--signature`` + ``--signing-key-prn``
    """
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(binary_prn, "binary")
        if signature and binary_content_path:
            raise ValidationError("--signature cannot be combined with --binary-content-path")
        if signing_key_pair and (signing_key_private or signing_key_prn):
            raise ValidationError(
                "--signing-key-pair cannot be combined with --signing-key-private or "
                "--signing-key-prn"
            )

        private_key_path: Path | None = signing_key_private
        key_prn = signing_key_prn
        if signing_key_pair:
            pair = settings.signing_key_pairs.get(signing_key_pair)
            if pair is None:
                raise ValidationError(f"Unknown signing key pair: {signing_key_pair}")
            key_prn = pair.signing_key_prn
            private_key_path = pair.signing_key_private_path

        if key_prn is None:
            raise ValidationError("--signing-key-prn or --signing-key-pair is required")

        if signature is None:
            if binary_content_path is None or private_key_path is None:
                raise ValidationError(
                    "Computing a signature needs --binary-content-path and a private key"
                )
            content_hash, _ = hash_file(binary_content_path)
            signature = crypto.sign_hash_with_file(content_hash, private_key_path)

        created = make_client(settings).create_binary_signature(
            binary_prn=binary_prn,
            signature=signature,
            signing_key_prn=key_prn,
        )
    print_json(created)


@app.command(name="delete", help="Delete a binary signature.")
def delete_cmd(
    ctx: typer.Context,
    binary_signature_prn: str = typer.Option(..., "--binary-signature-prn"),
) -> None:
    settings = get_settings(ctx)
    with handle_errors():
        validate_prn(binary_signature_prn, "binary_signature")
        make_client(settings).delete_binary_signature(binary_signature_prn)
