"""Get-or-create for artifacts, artifact versions and binaries.

Binaries are looked up either by ``(artifact version, target)`` (direct CLI
use) or by their deterministic PRN (bundle push). When an existing binary's
hash or size differs from the local content:

- a SIGNED binary is immutable, so the conflict is an ``IntegrityError``;
- any other binary is reset to UPLOADABLE and given the new hash/size, so the
  processor starts over from the upload.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from binforge.core.retry import retry_with_backoff
from binforge.core.state_machine import check_transition, is_immutable
from binforge.errors import ConflictError, IntegrityError, RegistryError
from binforge.models.binaries import Binary, BinaryState
from binforge.models.manifest import ArtifactInfo, ArtifactVersionInfo
from binforge.models.resources import Artifact, ArtifactVersion
from binforge.registry.client import RegistryClient
from binforge.registry.prn import PRNBuilder

logger = logging.getLogger(__name__)


class ResourceResolver:
    """Idempotent resolution of registry resources.

    Parameters
    ----------
    client:
        Registry client.
    max_retries:
        Rate-limit retries for each lookup and create.
    sleep:
        Sleep function used by the rate-limit backoff.
    """

    def __init__(
        self,
        client: RegistryClient,
        *,
        max_retries: int = 3,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._max_retries = max_retries
        self._sleep = sleep

    def _retry(self, operation: Callable[[], Any]) -> Any:
        return retry_with_backoff(operation, max_retries=self._max_retries, sleep=self._sleep)

    # ------------------------------------------------------------------
    # Artifacts and versions
    # ------------------------------------------------------------------

    def get_or_create_artifact(
        self, organization_prn: str, artifact_id: str, info: ArtifactInfo
    ) -> Artifact:
        """Return the artifact ``artifact_id`` of the organization, creating it if absent."""
        prn = PRNBuilder.from_prn(organization_prn).artifact(artifact_id)

        existing = self._retry(lambda: self._client.get_artifact(prn))
        if existing is not None:
            logger.info("Found existing artifact %s", info.name)
            return existing

        try:
            artifact = self._retry(
                lambda: self._client.create_artifact(
                    organization_prn=organization_prn,
                    id=artifact_id,
                    name=info.name,
                    description=info.description,
                )
            )
        except ConflictError:
            # Created concurrently between our lookup and create.
            artifact = self._retry(lambda: self._client.get_artifact(prn))
            if artifact is None:
                raise
        else:
            logger.info("Created artifact %s", info.name)
        return artifact

    def get_or_create_artifact_version(
        self,
        organization_prn: str,
        artifact_prn: str,
        version_id: str,
        info: ArtifactVersionInfo,
    ) -> ArtifactVersion:
        """Return the artifact version ``version_id``, creating it if absent."""
        prn = PRNBuilder.from_prn(organization_prn).artifact_version(version_id)

        existing = self._retry(lambda: self._client.get_artifact_version(prn))
        if existing is not None:
            logger.info("Found existing artifact version v%s", info.version)
            return existing

        try:
            version = self._retry(
                lambda: self._client.create_artifact_version(
                    artifact_prn=artifact_prn,
                    id=version_id,
                    version=info.version,
                    description=info.description,
                )
            )
        except ConflictError:
            version = self._retry(lambda: self._client.get_artifact_version(prn))
            if version is None:
                raise
        else:
            logger.info("Created artifact version v%s", info.version)
        return version

    # ------------------------------------------------------------------
    # Binaries
    # ------------------------------------------------------------------

    def get_or_create_binary(
        self,
        *,
        artifact_version_prn: str,
        target: str,
        hash: str,
        size: int,
        description: str | None = None,
        custom_metadata: dict[str, Any] | None = None,
        id: str | None = None,
    ) -> Binary:
        """Resolve the binary for ``(artifact_version_prn, target)``.

        Raises
        ------
        IntegrityError
            If the existing binary is SIGNED with a different hash or size,
            or more than one binary matches.
        """
        matches = self._retry(lambda: self._client.find_binaries(artifact_version_prn, target))

        if not matches:
            return self._create_binary(
                artifact_version_prn=artifact_version_prn,
                target=target,
                hash=hash,
                size=size,
                description=description,
                custom_metadata=custom_metadata,
                id=id,
            )

        if len(matches) > 1:
            raise IntegrityError(
                f"Found {len(matches)} binaries for target {target!r} in "
                f"{self._describe_version(artifact_version_prn)}; resolve the duplicates "
                "manually before retrying"
            )

        return self._reconcile(matches[0], hash, size)

    def get_or_create_binary_by_prn(
        self,
        binary_prn: str,
        *,
        artifact_version_prn: str,
        target: str,
        hash: str,
        size: int,
        description: str | None = None,
        custom_metadata: dict[str, Any] | None = None,
    ) -> Binary:
        """Resolve a binary with a known, deterministic PRN."""
        existing = self._retry(lambda: self._client.get_binary(binary_prn))
        if existing is None:
            return self._create_binary(
                artifact_version_prn=artifact_version_prn,
                target=target,
                hash=hash,
                size=size,
                description=description,
                custom_metadata=custom_metadata,
                id=binary_prn.rsplit(":", 1)[-1],
            )
        return self._reconcile(existing, hash, size)

    def _create_binary(self, **params: Any) -> Binary:
        binary = self._retry(lambda: self._client.create_binary(**params))
        logger.info("Created binary %s for target %s", binary.prn, binary.target)
        return binary

    def _reconcile(self, binary: Binary, hash: str, size: int) -> Binary:
        if binary.content_matches(hash, size):
            logger.info("Found existing binary %s in state %s", binary.prn, binary.state.value)
            return binary

        if is_immutable(binary.state):
            raise IntegrityError(
                f"Binary for target {binary.target!r} in "
                f"{self._describe_version(binary.artifact_version_prn)} is signed with "
                f"hash {binary.hash} and size {binary.size}, but the local content has "
                f"hash {hash} and size {size}. Signed binaries are immutable; create a "
                "new artifact version instead"
            )

        logger.warning(
            "Binary %s has hash %s and size %s, local content has hash %s and size %d; "
            "resetting it to uploadable",
            binary.prn,
            binary.hash,
            binary.size,
            hash,
            size,
        )
        if binary.state != BinaryState.UPLOADABLE:
            check_transition(binary.state, BinaryState.UPLOADABLE)
            binary = self._client.update_binary(binary.prn, state=BinaryState.UPLOADABLE)
        return self._client.update_binary(binary.prn, hash=hash, size=size)

    def _describe_version(self, artifact_version_prn: str) -> str:
        """Human-readable ``artifact <name> version <v>``, falling back to the PRN."""
        try:
            version = self._client.get_artifact_version(artifact_version_prn)
            if version is None:
                return f"artifact version {artifact_version_prn}"
            artifact = self._client.get_artifact(version.artifact_prn)
        except RegistryError as exc:
            logger.debug("Could not describe %s: %s", artifact_version_prn, exc)
            return f"artifact version {artifact_version_prn}"
        name = artifact.name if artifact is not None else version.artifact_prn
        return f"artifact {name!r} version {version.version!r}"
