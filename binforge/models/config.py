"""Per-operation configuration models, passed by value into the pipeline."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

MIB = 1024 * 1024

DEFAULT_PART_SIZE = 5 * MIB
MIN_PART_SIZE = 5 * MIB
MAX_PART_SIZE = 50_000_000_000  # exclusive upper bound of the multipart API
MAX_PARTS = 10_000


def default_concurrency() -> int:
    """Twice the available parallelism, capped at 16."""
    return min((os.cpu_count() or 1) * 2, 16)


class UploadConfig(BaseModel):
    """Chunked upload tunables."""

    model_config = ConfigDict(frozen=True)

    part_size: int = Field(default=DEFAULT_PART_SIZE, ge=MIN_PART_SIZE, lt=MAX_PART_SIZE)
    concurrency: int = Field(default_factory=default_concurrency, ge=1, le=255)


class SignatureConfig(BaseModel):
    """One signature to attach to a binary.

    Either pre-computed (``signature`` set, the bundle-push path) or to be
    computed from a named key pair or an explicit private key path.
    """

    model_config = ConfigDict(frozen=True)

    keyid: str
    signature: str = ""
    signing_key_pair: str | None = None
    signing_key_private: Path | None = None

    @classmethod
    def pre_computed(cls, keyid: str, signature: str) -> SignatureConfig:
        return cls(keyid=keyid, signature=signature)

    @classmethod
    def from_key_pair(cls, keyid: str, signing_key_pair: str) -> SignatureConfig:
        return cls(keyid=keyid, signing_key_pair=signing_key_pair)

    @classmethod
    def from_private_key(cls, keyid: str, signing_key_private: Path) -> SignatureConfig:
        return cls(keyid=keyid, signing_key_private=Path(signing_key_private))

    @property
    def needs_computation(self) -> bool:
        return not self.signature


class ProcessorConfig(BaseModel):
    """Configuration for driving one binary through its lifecycle."""

    model_config = ConfigDict(frozen=True)

    upload: UploadConfig = Field(default_factory=UploadConfig)
    signatures: tuple[SignatureConfig, ...] = ()
    content_hash: str | None = None
    content_path: Path | None = None
    poll_interval_seconds: float = Field(default=10.0, ge=0)
    poll_attempts: int = Field(default=30, ge=1)

    @property
    def has_signing_config(self) -> bool:
        return bool(self.signatures)
