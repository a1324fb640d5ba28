"""Pull a bundle from the registry into a bundle archive."""

from __future__ import annotations

import logging
from pathlib import Path

import requests

from binforge.archive.codec import ARCHIVE_SUFFIX, build_archive
from binforge.core.hasher import sha256_hex
from binforge.errors import BundlePullError, IntegrityError
from binforge.models.binaries import Binary
from binforge.models.manifest import BundleManifest, ManifestItem
from binforge.models.resources import Artifact, ArtifactVersion, Bundle, BundleV1
from binforge.registry.client import RegistryClient
from binforge.registry.prn import resource_id, validate_prn

logger = logging.getLogger(__name__)


def default_output_path(bundle: Bundle) -> Path:
    """``<bundle name or PRN>.cpio.zst`` with unsafe characters replaced by ``_``."""
    safe = "".join(c if c.isalnum() or c in "-_" else "_" for c in bundle.display_name)
    return Path(f"{safe}{ARCHIVE_SUFFIX}")


class BundlePuller:
    """Rebuild a bundle archive from registry state.

    Parameters
    ----------
    client:
        Registry client.
    transfer_session:
        Session for payload downloads (no registry credentials attached).
    strict:
        Fail instead of writing a zero-filled placeholder when the registry
        offers no download URL for a binary.
    timeout:
        Per-download timeout in seconds.
    """

    def __init__(
        self,
        client: RegistryClient,
        *,
        transfer_session: requests.Session | None = None,
        strict: bool = False,
        timeout: float = 300.0,
    ) -> None:
        self._client = client
        self._session = transfer_session or requests.Session()
        self._strict = strict
        self._timeout = timeout
        self._versions: dict[str, ArtifactVersion] = {}
        self._artifacts: dict[str, Artifact] = {}

    def pull(self, bundle_prn: str, output: Path | None = None) -> Path:
        """Write the bundle *bundle_prn* to *output* and return the path."""
        validate_prn(bundle_prn, "bundle")
        bundle = self._client.get_bundle(bundle_prn)
        if bundle is None:
            raise BundlePullError(f"Bundle {bundle_prn} not found")

        path = Path(output) if output is not None else default_output_path(bundle)
        manifest, binaries = self.build_manifest(bundle)

        payloads = []
        items = manifest.bundle.manifest
        for position, (item, binary) in enumerate(zip(items, binaries), start=1):
            logger.info("Downloading binary %d/%d: %s", position, len(items), item.target)
            payloads.append(self.download(binary, item))

        build_archive(path, manifest, payloads)
        logger.info("Bundle pulled to %s", path)
        return path

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    def _bundle_binaries(self, bundle: Bundle) -> list[tuple[Binary, dict]]:
        if isinstance(bundle, BundleV1):
            pairs = []
            for version_prn in bundle.artifact_version_prns:
                for binary in self._client.find_binaries(version_prn):
                    pairs.append((binary, {}))
            return pairs

        pairs = []
        for ref in bundle.binaries:
            binary = self._client.get_binary(ref.prn)
            if binary is None:
                raise BundlePullError(f"Binary {ref.prn} not found")
            pairs.append((binary, ref.custom_metadata or {}))
        return pairs

    def _version(self, prn: str) -> ArtifactVersion:
        if prn not in self._versions:
            version = self._client.get_artifact_version(prn)
            if version is None:
                raise BundlePullError(f"Artifact version {prn} not found")
            self._versions[prn] = version
        return self._versions[prn]

    def _artifact(self, prn: str) -> Artifact:
        if prn not in self._artifacts:
            artifact = self._client.get_artifact(prn)
            if artifact is None:
                raise BundlePullError(f"Artifact {prn} not found")
            self._artifacts[prn] = artifact
        return self._artifacts[prn]

    def build_manifest(self, bundle: Bundle) -> tuple[BundleManifest, list[Binary]]:
        """Assemble ``bundle.json`` for *bundle*; also return the binaries in manifest order."""
        artifacts: dict[str, dict] = {}
        manifest: list[dict] = []
        binaries: list[Binary] = []

        for binary, custom_metadata in self._bundle_binaries(bundle):
            if binary.hash is None or binary.size is None:
                raise BundlePullError(
                    f"Binary {binary.prn} (target {binary.target!r}) has no hash or size "
                    f"yet (state {binary.state.value})"
                )
            version = self._version(binary.artifact_version_prn)
            artifact = self._artifact(version.artifact_prn)

            artifact_id = resource_id(artifact.prn)
            version_id = resource_id(version.prn)
            binary_id = resource_id(binary.prn)

            signatures = [
                {"keyid": sig.keyid or sig.signing_key_prn, "sig": sig.signature}
                for sig in binary.signatures or []
                if sig.keyid or sig.signing_key_prn
            ]

            artifact_entry = artifacts.setdefault(
                artifact_id,
                {"name": artifact.name, "description": artifact.description, "versions": {}},
            )
            version_entry = artifact_entry["versions"].setdefault(
                version_id,
                {"version": version.version, "description": version.description, "binaries": {}},
            )
            version_entry["binaries"][binary_id] = {
                "description": binary.description,
                "signatures": signatures,
            }

            manifest.append(
                {
                    "hash": binary.hash,
                    "size": binary.size,
                    "binary_id": binary_id,
                    "target": binary.target,
                    "artifact_version_id": version_id,
                    "artifact_id": artifact_id,
                    "custom_metadata": custom_metadata,
                }
            )
            binaries.append(binary)

        document = BundleManifest.model_validate(
            {
                "artifacts": artifacts,
                "bundle": {
                    "id": bundle.resource_id,
                    "name": bundle.name,
                    "signatures": [],
                    "manifest": manifest,
                },
            }
        )
        return document, binaries

    # ------------------------------------------------------------------
    # Payloads
    # ------------------------------------------------------------------

    def download(self, binary: Binary, item: ManifestItem) -> bytes:
        """Fetch and verify the content of *binary*.

        Raises
        ------
        BundlePullError
            If the download fails, or no URL exists and the puller is strict.
        IntegrityError
            If the content's size or hash differs from the manifest.
        """
        url = self._client.get_binary_download_url(binary.prn)
        if url is None:
            if self._strict:
                raise BundlePullError(
                    f"No download URL available for binary {binary.prn} ({item.target})"
                )
            logger.warning(
                "No download URL for binary %s (%s); writing a %d byte zero-filled placeholder",
                binary.prn,
                item.target,
                item.size,
            )
            return bytes(item.size)

        try:
            response = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise BundlePullError(f"Download of binary {binary.prn} failed: {exc}") from exc
        if not 200 <= response.status_code < 300:
            raise BundlePullError(
                f"Download of binary {binary.prn} failed with status {response.status_code}"
            )

        content = response.content
        if len(content) != item.size:
            raise IntegrityError(
                f"Size mismatch for binary {item.binary_id}: expected {item.size}, "
                f"got {len(content)}"
            )
        digest = sha256_hex(content)
        if digest != item.hash.lower():
            raise IntegrityError(
                f"Hash mismatch for binary {item.binary_id}: expected {item.hash}, got {digest}"
            )
        return content
