"""Push a bundle archive: materialize its resources in the registry.

Flow
----
1. Parse the archive and match a payload to every manifest entry.
2. Get-or-create each artifact and artifact version. Failures here are
   logged and the item is skipped.
3. Resolve each binary by its deterministic PRN and run the processor with
   the matched payload and the manifest's pre-computed signatures. Any
   failure here aborts the push.
4. Create the bundle referencing every binary. A bundle id that already
   exists is returned when it references the same binaries (or artifact
   versions), so a push can be re-run. Different contents are an error.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

import requests

from binforge.archive.codec import match_payloads, parse_archive
from binforge.core.processor import BinaryProcessor
from binforge.core.resolver import ResourceResolver
from binforge.core.retry import retry_with_backoff
from binforge.core.uploader import BinaryUploader, ProgressObserver
from binforge.errors import BinforgeError, BundlePushError, ConflictError
from binforge.models.binaries import Binary, BinaryState
from binforge.models.config import ProcessorConfig, SignatureConfig, UploadConfig
from binforge.models.manifest import BinaryInfo, BundleManifest, ManifestItem
from binforge.models.resources import (
    Bundle,
    BundleBinary,
    BundleV1,
    CreateBundleParamsV1,
    CreateBundleParamsV2,
)
from binforge.registry.client import RegistryClient
from binforge.registry.prn import PRNBuilder

logger = logging.getLogger(__name__)

_UNPROCESSABLE = (BinaryState.DESTROYED, BinaryState.UNKNOWN)


class BundlePusher:
    """Push bundle archives to the registry.

    Parameters
    ----------
    client:
        Registry client.
    upload_config:
        Part size and concurrency for binary uploads.
    api_version:
        Bundle schema to create: 2 (binaries) or 1 (artifact versions).
    strict:
        Require every manifest entry to match a payload by hash.
    """

    def __init__(
        self,
        client: RegistryClient,
        *,
        upload_config: UploadConfig | None = None,
        api_version: int = 2,
        strict: bool = True,
        transfer_session: requests.Session | None = None,
        observer: ProgressObserver | None = None,
        sleep: Callable[[float], None] = time.sleep,
        poll_interval_seconds: float = 10.0,
        poll_attempts: int = 30,
    ) -> None:
        self._client = client
        self._upload_config = upload_config or UploadConfig()
        self._api_version = api_version
        self._strict = strict
        self._sleep = sleep
        self._poll_interval_seconds = poll_interval_seconds
        self._poll_attempts = poll_attempts
        self._resolver = ResourceResolver(client, sleep=sleep)
        self._uploader = BinaryUploader(
            client,
            self._upload_config,
            transfer_session=transfer_session,
            observer=observer,
        )

    def push(self, path: Path) -> Bundle:
        """Push the archive at *path* and return the created bundle."""
        logger.info("Opening archive %s", path)
        archive = parse_archive(path)
        manifest = archive.manifest
        payloads = match_payloads(manifest, archive.entries, strict=self._strict)

        organization_prn = self._client.me().organization_prn
        logger.info("Processing bundle with %d artifacts", len(manifest.artifacts))

        versions = self._create_artifacts_and_versions(manifest, organization_prn)
        binaries = self._process_binaries(manifest, payloads, versions)

        missing = [
            item.binary_id for item in manifest.bundle.manifest if item.binary_id not in binaries
        ]
        if missing:
            raise BundlePushError(
                "Refusing to create bundle with missing binaries (their artifact or "
                f"version could not be created): {', '.join(missing)}"
            )

        bundle = self._create_bundle(manifest, binaries)
        logger.info("Bundle push completed: %s", bundle.prn)
        return bundle

    # ------------------------------------------------------------------
    # Artifacts and versions (best effort)
    # ------------------------------------------------------------------

    def _create_artifacts_and_versions(
        self, manifest: BundleManifest, organization_prn: str
    ) -> dict[str, tuple[str, BinaryInfo]]:
        """Return binary id -> (artifact version PRN, binary info)."""
        resolved: dict[str, tuple[str, BinaryInfo]] = {}

        for artifact_id, artifact_info in manifest.artifacts.items():
            try:
                artifact = self._resolver.get_or_create_artifact(
                    organization_prn, artifact_id, artifact_info
                )
            except BinforgeError as exc:
                logger.error("Skipping artifact %s: %s", artifact_info.name, exc)
                continue

            for version_id, version_info in artifact_info.versions.items():
                try:
                    version = self._resolver.get_or_create_artifact_version(
                        organization_prn, artifact.prn, version_id, version_info
                    )
                except BinforgeError as exc:
                    logger.error(
                        "Skipping version %s of artifact %s: %s",
                        version_info.version,
                        artifact_info.name,
                        exc,
                    )
                    continue

                for binary_id, binary_info in version_info.binaries.items():
                    resolved[binary_id] = (version.prn, binary_info)

        return resolved

    # ------------------------------------------------------------------
    # Binaries (fatal on failure)
    # ------------------------------------------------------------------

    def _process_binaries(
        self,
        manifest: BundleManifest,
        payloads: list[bytes],
        versions: dict[str, tuple[str, BinaryInfo]],
    ) -> dict[str, Binary]:
        processed: dict[str, Binary] = {}
        items = manifest.bundle.manifest

        for position, (item, payload) in enumerate(zip(items, payloads), start=1):
            if item.binary_id in processed:
                continue
            if item.binary_id not in versions:
                logger.warning(
                    "Binary %s has no artifact version; skipping it", item.binary_id
                )
                continue
            version_prn, info = versions[item.binary_id]
            logger.info("Binary %d/%d: %s (%s)", position, len(items), item.binary_id, item.target)
            processed[item.binary_id] = self._process_binary(item, info, version_prn, payload)

        return processed

    def _process_binary(
        self, item: ManifestItem, info: BinaryInfo, version_prn: str, payload: bytes
    ) -> Binary:
        binary_prn = PRNBuilder.from_prn(version_prn).binary(item.binary_id)
        binary = self._resolver.get_or_create_binary_by_prn(
            binary_prn,
            artifact_version_prn=version_prn,
            target=item.target,
            hash=item.hash,
            size=item.size,
            description=info.description,
            custom_metadata=item.custom_metadata or None,
        )

        if binary.state in _UNPROCESSABLE:
            raise BundlePushError(
                f"Binary {binary.prn} (target {item.target!r}) is in state "
                f"{binary.state.value} and cannot be processed"
            )

        config = ProcessorConfig(
            upload=self._upload_config,
            signatures=tuple(
                SignatureConfig.pre_computed(sig.keyid, sig.sig) for sig in info.signatures
            ),
            content_hash=item.hash,
            poll_interval_seconds=self._poll_interval_seconds,
            poll_attempts=self._poll_attempts,
        )
        processor = BinaryProcessor(
            self._client, config, uploader=self._uploader, sleep=self._sleep
        )
        result = processor.process(binary, payload)
        logger.info("Processed binary %s (state: %s)", item.binary_id, result.state.value)
        return result

    # ------------------------------------------------------------------
    # Bundle
    # ------------------------------------------------------------------

    def _create_bundle(self, manifest: BundleManifest, binaries: dict[str, Binary]) -> Bundle:
        info = manifest.bundle
        if self._api_version == 1:
            version_prns: list[str] = []
            for item in info.manifest:
                prn = binaries[item.binary_id].artifact_version_prn
                if prn not in version_prns:
                    version_prns.append(prn)
            params = CreateBundleParamsV1(
                artifact_version_prns=version_prns, id=info.id, name=info.name
            )
        else:
            params = CreateBundleParamsV2(
                binaries=[
                    BundleBinary(
                        prn=binaries[item.binary_id].prn,
                        custom_metadata=item.custom_metadata or None,
                    )
                    for item in info.manifest
                ],
                id=info.id,
                name=info.name,
            )

        try:
            return retry_with_backoff(lambda: self._client.create_bundle(params), sleep=self._sleep)
        except ConflictError:
            # Pushed before: the bundle id in the manifest is already taken.
            any_binary = next(iter(binaries.values()), None)
            if any_binary is None:
                raise
            prn = PRNBuilder.from_prn(any_binary.prn).bundle(info.id)
            existing = self._client.get_bundle(prn, api_version=self._api_version)
            if existing is None:
                raise
            if _referenced_prns(existing) != _referenced_prns(params):
                raise BundlePushError(
                    f"Bundle {info.id} already exists with different contents; "
                    "give the archive a new bundle id to push it"
                ) from None
            logger.info("Bundle %s already exists", prn)
            return existing


def _referenced_prns(bundle: Bundle | CreateBundleParamsV1 | CreateBundleParamsV2) -> set[str]:
    """Binary PRNs of a v2 bundle, or artifact version PRNs of a v1 bundle."""
    if isinstance(bundle, (BundleV1, CreateBundleParamsV1)):
        return set(bundle.artifact_version_prns)
    return {binary.prn for binary in bundle.binaries}
