"""Attach one or more signatures to a binary, then mark it signed.

Signature configurations come in two kinds:

- **pre-computed**: the signature bytes are already known (bundle push).
  Submitted with ``signing_key_keyid``.
- **to-compute**: a named key pair from settings, or an explicit PEM path
  plus signing-key PRN (direct CLI use). The content hash is signed locally
  and submitted with ``signing_key_prn``.

A signature that already exists for the same key is counted as satisfied, so
re-running a push never creates duplicates. Failures are collected across
every configuration and reported together.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path

from binforge import crypto
from binforge.config import SigningKeyPair
from binforge.core.hasher import hash_file
from binforge.core.state_machine import check_transition
from binforge.errors import BinforgeError, SignatureError, ValidationError
from binforge.models.binaries import Binary, BinaryState
from binforge.models.config import SignatureConfig
from binforge.registry.client import RegistryClient

logger = logging.getLogger(__name__)


class SignatureOrchestrator:
    """Resolve signature configurations into registry signature records.

    Parameters
    ----------
    client:
        Registry client.
    signing_key_pairs:
        Named key pairs usable by ``SignatureConfig.from_key_pair``.
    content_hash:
        Hex SHA-256 of the content, if the caller already knows it.
    content_path:
        Local content file, hashed on demand when ``content_hash`` is absent.
    """

    def __init__(
        self,
        client: RegistryClient,
        *,
        signing_key_pairs: Mapping[str, SigningKeyPair] | None = None,
        content_hash: str | None = None,
        content_path: Path | None = None,
    ) -> None:
        self._client = client
        self._pairs = dict(signing_key_pairs or {})
        self._content_hash = content_hash
        self._content_path = content_path

    def sign(self, binary: Binary, configs: Iterable[SignatureConfig]) -> Binary:
        """Submit every configured signature and transition *binary* to SIGNED.

        Raises
        ------
        SignatureError
            If any configuration failed; names every failing key id. The
            binary is left in its current state.
        """
        configs = list(configs)
        failed: list[str] = []

        for config in configs:
            try:
                if config.needs_computation:
                    self._sign_computed(binary, config)
                else:
                    self._sign_pre_computed(binary, config)
            except BinforgeError as exc:
                logger.warning("Signature for key %s on %s failed: %s", config.keyid, binary.prn, exc)
                failed.append(config.keyid)

        if failed:
            raise SignatureError(binary.prn, failed)

        logger.info("Created or verified %d signature(s) for %s", len(configs), binary.prn)

        if binary.state == BinaryState.SIGNED:
            return binary
        check_transition(binary.state, BinaryState.SIGNED)
        return self._client.update_binary(binary.prn, state=BinaryState.SIGNED)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _signature_exists(self, binary: Binary, key: str) -> bool:
        current = self._client.get_binary(binary.prn)
        if current is None:
            return binary.signature_for(key) is not None
        return current.signature_for(key) is not None

    def _sign_pre_computed(self, binary: Binary, config: SignatureConfig) -> None:
        if self._signature_exists(binary, config.keyid):
            logger.info("Signature for key %s already exists on %s", config.keyid, binary.prn)
            return
        self._client.create_binary_signature(
            binary_prn=binary.prn,
            signature=config.signature,
            signing_key_keyid=config.keyid,
        )

    def _resolve_key(self, config: SignatureConfig) -> tuple[str, Path]:
        """Return ``(signing_key_prn, private_key_path)`` for a to-compute config."""
        if config.signing_key_pair is not None:
            pair = self._pairs.get(config.signing_key_pair)
            if pair is None:
                raise ValidationError(f"Unknown signing key pair: {config.signing_key_pair}")
            return pair.signing_key_prn, pair.signing_key_private_path
        if config.signing_key_private is not None:
            return config.keyid, config.signing_key_private
        raise ValidationError(
            f"Signature for key {config.keyid} has neither a signature, a key pair, "
            "nor a private key"
        )

    def _resolve_hash(self, binary: Binary) -> str:
        if self._content_hash is None and self._content_path is not None:
            self._content_hash, _ = hash_file(self._content_path)
        content_hash = self._content_hash or binary.hash
        if not content_hash:
            raise ValidationError(f"No content hash available to sign binary {binary.prn}")
        return content_hash

    def _sign_computed(self, binary: Binary, config: SignatureConfig) -> None:
        signing_key_prn, private_key_path = self._resolve_key(config)
        if binary.signature_for(config.keyid) or self._signature_exists(binary, signing_key_prn):
            logger.info("Signature for key %s already exists on %s", signing_key_prn, binary.prn)
            return
        signature = crypto.sign_hash_with_file(self._resolve_hash(binary), private_key_path)
        self._client.create_binary_signature(
            binary_prn=binary.prn,
            signature=signature,
            signing_key_prn=signing_key_prn,
        )
