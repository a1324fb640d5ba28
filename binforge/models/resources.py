"""Registry resource models: artifacts, versions, bundles and users."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Artifact(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    prn: str
    name: str
    description: str | None = None
    organization_prn: str | None = None
    custom_metadata: dict[str, Any] | None = None


class ArtifactVersion(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    prn: str
    artifact_prn: str
    version: str
    description: str | None = None
    custom_metadata: dict[str, Any] | None = None


class User(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    email: str | None = None
    username: str | None = None
    organization_name: str | None = None
    organization_prn: str


# ---------------------------------------------------------------------------
# Bundles: legacy (v1) and current (v2) schemas behind one tagged union
# ---------------------------------------------------------------------------


class BundleBinary(BaseModel):
    """A binary reference inside a v2 bundle, with its bundle-level metadata."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    prn: str
    custom_metadata: dict[str, Any] | None = None


class _BundleBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    prn: str
    name: str | None = None

    @property
    def resource_id(self) -> str:
        """The trailing identifier of the bundle PRN."""
        return self.prn.rsplit(":", 1)[-1]

    @property
    def display_name(self) -> str:
        return self.name or self.prn


class BundleV1(_BundleBase):
    """Legacy bundle: a list of artifact-version references."""

    api_version: Literal[1] = 1
    artifact_version_prns: list[str] = Field(default_factory=list)


class BundleV2(_BundleBase):
    """Current bundle: binaries plus per-binary custom metadata."""

    api_version: Literal[2] = 2
    binaries: list[BundleBinary] = Field(default_factory=list)


Bundle = Annotated[Union[BundleV1, BundleV2], Field(discriminator="api_version")]


class CreateBundleParamsV1(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_version: Literal[1] = 1
    artifact_version_prns: list[str]
    id: str | None = None
    name: str | None = None


class CreateBundleParamsV2(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_version: Literal[2] = 2
    binaries: list[BundleBinary]
    id: str | None = None
    name: str | None = None


CreateBundleParams = Annotated[
    Union[CreateBundleParamsV1, CreateBundleParamsV2],
    Field(discriminator="api_version"),
]
