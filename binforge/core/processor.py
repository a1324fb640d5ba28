"""Drive a binary through its lifecycle: upload -> hash -> sign.

``BinaryProcessor.process`` re-reads the binary from the registry and dispatches
on its current state, so calling it again on a partially processed (or
stale) record resumes where the previous run stopped.

======================  ===================================================
State                   Action
======================  ===================================================
UPLOADABLE              upload content, request HASHABLE then HASHING
HASHABLE                request HASHING
HASHING                 poll until SIGNABLE (only when signing is configured)
SIGNABLE                sign (only when signing is configured)
SIGNED / other          returned unchanged
======================  ===================================================
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping

from binforge.config import SigningKeyPair
from binforge.core.retry import NotReady, poll
from binforge.core.signer import SignatureOrchestrator
from binforge.core.state_machine import check_transition
from binforge.core.uploader import BinaryUploader, ProgressObserver
from binforge.errors import NotFoundError, ValidationError
from binforge.models.binaries import Binary, BinaryState
from binforge.models.config import ProcessorConfig
from binforge.registry.client import RegistryClient

logger = logging.getLogger(__name__)

# Returned as-is, without a registry read.
_SETTLED_STATES = frozenset({BinaryState.SIGNED, BinaryState.DESTROYED, BinaryState.UNKNOWN})


class BinaryProcessor:
    """Lifecycle driver for a single binary.

    Parameters
    ----------
    client:
        Registry client.
    config:
        Upload tunables, signature configurations and polling budget.
    uploader:
        Optional pre-built uploader; one is created from ``config.upload``
        otherwise.
    signing_key_pairs:
        Named key pairs for to-compute signatures.
    observer:
        Progress observer for the default uploader.
    sleep:
        Sleep function used between polls.
    """

    def __init__(
        self,
        client: RegistryClient,
        config: ProcessorConfig | None = None,
        *,
        uploader: BinaryUploader | None = None,
        signing_key_pairs: Mapping[str, SigningKeyPair] | None = None,
        observer: ProgressObserver | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self._config = config or ProcessorConfig()
        self._uploader = uploader or BinaryUploader(
            client, self._config.upload, observer=observer
        )
        self._signer = SignatureOrchestrator(
            client,
            signing_key_pairs=signing_key_pairs,
            content_hash=self._config.content_hash,
            content_path=self._config.content_path,
        )
        self._sleep = sleep

    @property
    def config(self) -> ProcessorConfig:
        return self._config

    def process(self, binary: Binary, content: bytes | None = None) -> Binary:
        """Advance *binary* as far as the configuration allows.

        Parameters
        ----------
        binary:
            The registry record to process.
        content:
            Full content bytes. Required when the binary is UPLOADABLE.

        Returns
        -------
        Binary
            The latest record returned by the registry.
        """
        if binary.state not in _SETTLED_STATES:
            binary = self._refresh(binary)
        state = binary.state

        if state == BinaryState.UPLOADABLE:
            if content is None:
                raise ValidationError(
                    f"Binary content is required to upload {binary.prn} (state uploadable)"
                )
            binary = self._upload(binary, content)
            return self._after_hashing(binary)

        if state == BinaryState.HASHABLE:
            logger.info("Updating binary %s to hashing", binary.prn)
            binary = self._transition(binary, BinaryState.HASHING)
            return self._after_hashing(binary)

        if state == BinaryState.HASHING:
            return self._after_hashing(binary)

        if state == BinaryState.SIGNABLE:
            if self._config.has_signing_config:
                return self._sign(binary)
            return binary

        if state == BinaryState.SIGNED:
            logger.info("Binary %s is already signed", binary.prn)
            return binary

        logger.info("Binary %s is in state %s, nothing to do", binary.prn, state.value)
        return binary

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _refresh(self, binary: Binary) -> Binary:
        current = self._client.get_binary(binary.prn)
        if current is None:
            raise NotFoundError(f"Binary {binary.prn} no longer exists", status_code=404)
        if current.state != binary.state:
            logger.info(
                "Binary %s is %s in the registry (was %s), resuming from there",
                binary.prn,
                current.state.value,
                binary.state.value,
            )
        return current

    def _transition(self, binary: Binary, target: BinaryState) -> Binary:
        check_transition(binary.state, target)
        return self._client.update_binary(binary.prn, state=target)

    def _upload(self, binary: Binary, content: bytes) -> Binary:
        self._uploader.upload(binary, content)
        logger.info("Upload of %s complete, requesting server-side hashing", binary.prn)
        binary = self._transition(binary, BinaryState.HASHABLE)
        return self._transition(binary, BinaryState.HASHING)

    def _after_hashing(self, binary: Binary) -> Binary:
        if not self._config.has_signing_config:
            return binary
        logger.info("Waiting for server-side hashing of %s", binary.prn)
        binary = self.wait_for_signable(binary)
        return self._sign(binary)

    def _sign(self, binary: Binary) -> Binary:
        return self._signer.sign(binary, self._config.signatures)

    def wait_for_signable(self, binary: Binary) -> Binary:
        """Poll the registry until *binary* reports SIGNABLE.

        Raises
        ------
        PollingTimeoutError
            After ``config.poll_attempts`` unsuccessful fetches.
        """
        prn = binary.prn

        def attempt() -> Binary:
            current = self._client.get_binary(prn)
            if current is None:
                raise NotReady(f"binary {prn} not found during state check")
            if current.state != BinaryState.SIGNABLE:
                raise NotReady(f"binary {prn} is {current.state.value}")
            return current

        return poll(
            attempt,
            interval_seconds=self._config.poll_interval_seconds,
            max_attempts=self._config.poll_attempts,
            description=f"binary {prn} to become signable",
            sleep=self._sleep,
        )
