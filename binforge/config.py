"""Runtime settings, env-driven via pydantic-settings.

Reads ``BINFORGE_*`` environment variables and an optional ``.env`` file.
Settings are built once by the CLI and turned into the frozen per-operation
configs in ``binforge.models.config``; nothing here is mutated at runtime.

Examples
--------
Override via environment::

    export BINFORGE_API_KEY=...
    export BINFORGE_BASE_URL=https://registry.example.com
    export BINFORGE_SIGNING_KEY_PAIRS='{"release": {"signing_key_prn": "prn:1:...", "signing_key_private_path": "/keys/release.pem"}}'
"""

from __future__ import annotations

from pathlib import Path

import pydantic
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from binforge.errors import ValidationError
from binforge.models.config import DEFAULT_PART_SIZE, UploadConfig, default_concurrency


class SigningKeyPair(BaseModel):
    """A named signing key: registry key PRN plus local PKCS#8 private key."""

    model_config = ConfigDict(frozen=True)

    signing_key_prn: str
    signing_key_private_path: Path


class Settings(BaseSettings):
    """Registry connection and pipeline defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BINFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Registry connection
    api_key: str | None = None
    base_url: str = "https://api.binforge.invalid"
    api_version: int = 2
    ca_path: Path | None = None
    request_timeout_seconds: float = 60.0

    log_level: str = "INFO"

    # Upload defaults
    binary_part_size: int = DEFAULT_PART_SIZE
    concurrency: int = Field(default_factory=default_concurrency)

    # Named key pairs usable with --signing-key-pair
    signing_key_pairs: dict[str, SigningKeyPair] = Field(default_factory=dict)

    def upload_config(
        self, *, part_size: int | None = None, concurrency: int | None = None
    ) -> UploadConfig:
        """Build an ``UploadConfig`` from these defaults plus overrides.

        Out-of-range values raise ``binforge.errors.ValidationError``.
        """
        try:
            return UploadConfig(
                part_size=part_size or self.binary_part_size,
                concurrency=concurrency or self.concurrency,
            )
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid upload configuration: {exc}") from exc
