"""The ``bundle.json`` manifest carried as the first record of a bundle archive.

The manifest alone is enough to rebuild the artifact -> version -> binary ->
bundle graph without talking to the registry.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SignatureInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    keyid: str
    sig: str


class BinaryInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str | None = None
    signatures: list[SignatureInfo] = Field(default_factory=list)


class ArtifactVersionInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: str
    description: str | None = None
    binaries: dict[str, BinaryInfo] = Field(default_factory=dict)  # binary id -> info


class ArtifactInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    description: str | None = None
    versions: dict[str, ArtifactVersionInfo] = Field(default_factory=dict)  # version id -> info


class ManifestItem(BaseModel):
    """One binary entry of the bundle, in payload order."""

    model_config = ConfigDict(frozen=True)

    hash: str
    size: int = Field(ge=0)
    binary_id: str
    target: str
    artifact_version_id: str
    artifact_id: str
    custom_metadata: dict[str, Any] = Field(default_factory=dict)


class BundleInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str | None = None
    signatures: list[SignatureInfo] = Field(default_factory=list)
    manifest: list[ManifestItem] = Field(default_factory=list)


class BundleManifest(BaseModel):
    """Top-level ``bundle.json`` document."""

    model_config = ConfigDict(frozen=True)

    artifacts: dict[str, ArtifactInfo] = Field(default_factory=dict)  # artifact id -> info
    bundle: BundleInfo
