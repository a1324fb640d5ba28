"""Chunked, resumable, concurrent upload of binary content.

Each chunk is registered as a binary part (index, size, SHA-256, expected
binary size) to obtain a pre-signed URL, then PUT there with an
``x-amz-checksum-sha256`` header. Parts the registry already reports as
``valid`` are skipped, so a failed upload can simply be re-run.

Chunks are sent on a bounded ``ThreadPoolExecutor``; the content buffer is
shared read-only between workers and the only shared mutable state is the
progress counter.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from typing import Protocol

import requests
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from binforge.core.chunk_planner import Chunk, plan_chunks
from binforge.core.hasher import checksum_b64, sha256_hex
from binforge.errors import IntegrityError, TransferError
from binforge.models.binaries import Binary, BinaryPartState
from binforge.models.config import UploadConfig
from binforge.registry.client import RegistryClient

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Progress reporting
# ---------------------------------------------------------------------------


class ProgressObserver(Protocol):
    """Receives byte counts as chunks complete. Never alters control flow."""

    def start(self, total_bytes: int) -> None: ...

    def advance(self, completed_bytes: int) -> None: ...

    def finish(self) -> None: ...


class NullProgressObserver:
    def start(self, total_bytes: int) -> None:
        pass

    def advance(self, completed_bytes: int) -> None:
        pass

    def finish(self) -> None:
        pass


class RichProgressObserver:
    """Render upload progress as a ``rich`` progress bar on stderr."""

    def __init__(self, description: str = "Uploading", *, transient: bool = True) -> None:
        self._description = description
        self._progress = Progress(
            SpinnerColumn(),
            TimeElapsedColumn(),
            BarColumn(),
            DownloadColumn(),
            TransferSpeedColumn(),
            TimeRemainingColumn(),
            transient=transient,
        )
        self._task_id = None

    def start(self, total_bytes: int) -> None:
        self._progress.start()
        self._task_id = self._progress.add_task(self._description, total=total_bytes)

    def advance(self, completed_bytes: int) -> None:
        if self._task_id is not None:
            self._progress.update(self._task_id, advance=completed_bytes)

    def finish(self) -> None:
        self._progress.stop()


class ByteCounter:
    """Thread-safe running total of processed bytes."""

    def __init__(self, observer: ProgressObserver | None = None) -> None:
        self._lock = threading.Lock()
        self._value = 0
        self._observer = observer or NullProgressObserver()

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def add(self, amount: int) -> None:
        with self._lock:
            self._value += amount
        self._observer.advance(amount)


# ---------------------------------------------------------------------------
# Uploader
# ---------------------------------------------------------------------------


class BinaryUploader:
    """Upload binary content in parts to pre-signed storage URLs.

    Parameters
    ----------
    client:
        Registry client used to list and register binary parts.
    config:
        Part size and worker count.
    transfer_session:
        Session used for the PUTs to object storage. It must not carry the
        registry's ``Authorization`` header, so it is separate from the
        client's session.
    observer:
        Optional progress observer.
    timeout:
        Per-PUT timeout in seconds.
    """

    def __init__(
        self,
        client: RegistryClient,
        config: UploadConfig | None = None,
        *,
        transfer_session: requests.Session | None = None,
        observer: ProgressObserver | None = None,
        timeout: float = 300.0,
    ) -> None:
        self._client = client
        self._config = config or UploadConfig()
        self._session = transfer_session or requests.Session()
        self._observer = observer or NullProgressObserver()
        self._timeout = timeout

    @property
    def config(self) -> UploadConfig:
        return self._config

    def upload(self, binary: Binary, content: bytes) -> int:
        """Upload every non-valid part of *content* for *binary*.

        Returns the number of parts actually transferred. The first failed
        part cancels the parts not yet started and its error is raised.

        Raises
        ------
        IntegrityError
            If the binary record declares a size different from the content.
        TransferError
            If a PUT to object storage fails or returns a non-2xx status.
        RegistryError
            If registering a part fails.
        """
        total = len(content)
        if binary.size is not None and binary.size != total:
            raise IntegrityError(
                f"Binary {binary.prn} declares {binary.size} bytes but the content "
                f"has {total} bytes"
            )

        chunks = plan_chunks(total, self._config.part_size)
        existing = {part.index: part for part in self._client.list_binary_parts(binary.prn)}

        pending: list[Chunk] = []
        resumed_bytes = 0
        for chunk in chunks:
            part = existing.get(chunk.index)
            if part is not None and part.state == BinaryPartState.VALID:
                resumed_bytes += part.size
            else:
                pending.append(chunk)

        logger.info(
            "Uploading %s: %d bytes in %d parts (%d already valid, concurrency %d)",
            binary.prn,
            total,
            len(chunks),
            len(chunks) - len(pending),
            self._config.concurrency,
        )

        counter = ByteCounter(self._observer)
        self._observer.start(total)
        try:
            if resumed_bytes:
                counter.add(resumed_bytes)
            self._upload_pending(binary, content, pending, counter)
        finally:
            self._observer.finish()

        logger.info("Uploaded %d parts for %s", len(pending), binary.prn)
        return len(pending)

    def _upload_pending(
        self,
        binary: Binary,
        content: bytes,
        pending: list[Chunk],
        counter: ByteCounter,
    ) -> None:
        if not pending:
            return

        view = memoryview(content)
        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self._config.concurrency,
            thread_name_prefix="binforge-upload",
        ) as executor:
            futures = {
                executor.submit(self._upload_chunk, binary, view[c.start : c.end], c, len(content)): c
                for c in pending
            }
            try:
                for future in concurrent.futures.as_completed(futures):
                    future.result()
                    counter.add(futures[future].size)
            except BaseException:
                for future in futures:
                    future.cancel()
                raise

    def _upload_chunk(
        self, binary: Binary, data: memoryview, chunk: Chunk, expected_binary_size: int
    ) -> None:
        digest = sha256_hex(data)
        part = self._client.create_binary_part(
            binary.prn,
            index=chunk.index,
            size=chunk.size,
            hash=digest,
            expected_binary_size=expected_binary_size,
        )
        if not part.presigned_upload_url:
            raise TransferError(
                f"Registry returned no upload URL for part {chunk.index} of {binary.prn}"
            )

        headers = {
            "x-amz-checksum-sha256": checksum_b64(digest),
            "content-length": str(chunk.size),
            "content-type": "application/octet-stream",
        }
        try:
            response = self._session.put(
                part.presigned_upload_url,
                data=bytes(data),
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise TransferError(
                f"Upload of part {chunk.index} of {binary.prn} failed: {exc}"
            ) from exc

        if not 200 <= response.status_code < 300:
            raise TransferError(
                f"Upload of part {chunk.index} of {binary.prn} failed with "
                f"status {response.status_code}"
            )
        logger.debug("Uploaded part %d of %s (%d bytes)", chunk.index, binary.prn, chunk.size)
