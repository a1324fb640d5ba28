"""binforge data models: Pydantic v2, frozen."""

from binforge.models.binaries import (
    VALID_TRANSITIONS,
    Binary,
    BinaryPart,
    BinaryPartState,
    BinaryState,
    Signature,
)
from binforge.models.config import (
    DEFAULT_PART_SIZE,
    MAX_PART_SIZE,
    MAX_PARTS,
    MIN_PART_SIZE,
    ProcessorConfig,
    SignatureConfig,
    UploadConfig,
)
from binforge.models.manifest import (
    ArtifactInfo,
    ArtifactVersionInfo,
    BinaryInfo,
    BundleInfo,
    BundleManifest,
    ManifestItem,
    SignatureInfo,
)
from binforge.models.resources import (
    Artifact,
    ArtifactVersion,
    Bundle,
    BundleBinary,
    BundleV1,
    BundleV2,
    CreateBundleParams,
    CreateBundleParamsV1,
    CreateBundleParamsV2,
    User,
)

__all__ = [
    # binaries
    "BinaryState",
    "VALID_TRANSITIONS",
    "Binary",
    "BinaryPart",
    "BinaryPartState",
    "Signature",
    # config
    "DEFAULT_PART_SIZE",
    "MIN_PART_SIZE",
    "MAX_PART_SIZE",
    "MAX_PARTS",
    "UploadConfig",
    "SignatureConfig",
    "ProcessorConfig",
    # manifest
    "SignatureInfo",
    "BinaryInfo",
    "ArtifactVersionInfo",
    "ArtifactInfo",
    "ManifestItem",
    "BundleInfo",
    "BundleManifest",
    # resources
    "Artifact",
    "ArtifactVersion",
    "User",
    "Bundle",
    "BundleBinary",
    "BundleV1",
    "BundleV2",
    "CreateBundleParams",
    "CreateBundleParamsV1",
    "CreateBundleParamsV2",
]
