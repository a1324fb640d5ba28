"""Bundle archive container: ``bundle.json`` followed by binary payloads.

Layout
------
A zstd-compressed ``cpio`` (newc) stream. The first record is
``bundle.json`` (a ``BundleManifest``); each following record is the raw
content of one binary, named after its target, in the order of
``bundle.manifest``.

Reading and writing go through ``libarchive-c``, so the host libarchive must
be built with zstd support.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path
from typing import NamedTuple

import libarchive
import pydantic

from binforge.core.hasher import sha256_hex
from binforge.errors import IntegrityError, ValidationError
from binforge.models.manifest import BundleManifest, ManifestItem

logger = logging.getLogger(__name__)

MANIFEST_NAME = "bundle.json"
ARCHIVE_FORMAT = "cpio_newc"
ARCHIVE_FILTER = "zstd"
ARCHIVE_SUFFIX = ".cpio.zst"


class BundleArchive(NamedTuple):
    """A parsed archive: the manifest plus ``(name, content)`` payload records in file order."""

    manifest: BundleManifest
    entries: list[tuple[str, bytes]]


# ---------------------------------------------------------------------------
# Write
# ---------------------------------------------------------------------------


def build_archive(path: Path, manifest: BundleManifest, payloads: Sequence[bytes]) -> Path:
    """Write *manifest* and *payloads* (in manifest order) to *path*.

    Raises
    ------
    ValidationError
        If the payload count differs from the manifest entry count.
    IntegrityError
        If a payload's length differs from its manifest ``size``.
    """
    items = manifest.bundle.manifest
    if len(payloads) != len(items):
        raise ValidationError(
            f"Manifest lists {len(items)} binaries but {len(payloads)} payloads were given"
        )
    for item, payload in zip(items, payloads):
        if len(payload) != item.size:
            raise IntegrityError(
                f"Size mismatch for binary {item.binary_id}: expected {item.size}, "
                f"got {len(payload)}"
            )

    path = Path(path)
    document = manifest.model_dump_json(indent=2).encode("utf-8")
    try:
        with libarchive.file_writer(str(path), ARCHIVE_FORMAT, ARCHIVE_FILTER) as archive:
            archive.add_file_from_memory(MANIFEST_NAME, len(document), document)
            for item, payload in zip(items, payloads):
                archive.add_file_from_memory(item.target, len(payload), bytes(payload))
                logger.debug("Added %s to archive (%d bytes)", item.target, len(payload))
    except libarchive.ArchiveError as exc:
        raise ValidationError(f"Failed to write archive {path}: {exc}") from exc

    logger.info("Wrote bundle archive %s with %d binaries", path, len(items))
    return path


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


def parse_archive(path: Path) -> BundleArchive:
    """Read an archive written by ``build_archive``.

    The first record whose name ends with ``bundle.json`` is the manifest.
    Every other non-empty regular record is kept as a payload.
    """
    path = Path(path)
    if not path.is_file():
        raise ValidationError(f"Archive not found: {path}")

    manifest: BundleManifest | None = None
    entries: list[tuple[str, bytes]] = []
    try:
        with libarchive.file_reader(str(path)) as archive:
            for entry in archive:
                if not entry.isfile:
                    continue
                name = entry.pathname
                content = b"".join(entry.get_blocks())
                if manifest is None and name.endswith(MANIFEST_NAME):
                    manifest = _load_manifest(content, path)
                elif content:
                    entries.append((name, content))
    except libarchive.ArchiveError as exc:
        raise ValidationError(f"Failed to read archive {path}: {exc}") from exc

    if manifest is None:
        raise ValidationError(f"{MANIFEST_NAME} not found in archive {path}")

    logger.info(
        "Parsed %s: %d artifacts, %d manifest entries, %d payloads",
        path,
        len(manifest.artifacts),
        len(manifest.bundle.manifest),
        len(entries),
    )
    return BundleArchive(manifest=manifest, entries=entries)


def _load_manifest(content: bytes, path: Path) -> BundleManifest:
    try:
        return BundleManifest.model_validate_json(content)
    except pydantic.ValidationError as exc:
        raise ValidationError(f"Invalid {MANIFEST_NAME} in {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Payload matching
# ---------------------------------------------------------------------------


def _basename(name: str) -> str:
    return name.rsplit("/", 1)[-1]


def match_payloads(
    manifest: BundleManifest,
    entries: Sequence[tuple[str, bytes]],
    *,
    strict: bool = True,
) -> list[bytes]:
    """Assign one payload to each manifest entry, in manifest order.

    Every entry is first matched by SHA-256. Unless *strict*, entries left
    over fall back to a payload named after the binary id or target, then to
    the first unclaimed payload; both fallbacks log a warning.

    Raises
    ------
    IntegrityError
        If a manifest entry is left without a payload.
    """
    items = manifest.bundle.manifest
    hashes = [sha256_hex(content) for _, content in entries]
    claimed = [False] * len(entries)
    assigned: list[int | None] = [None] * len(items)

    for i, item in enumerate(items):
        wanted = item.hash.lower()
        for j, digest in enumerate(hashes):
            if not claimed[j] and digest == wanted:
                claimed[j] = True
                assigned[i] = j
                break

    empty_hash = sha256_hex(b"")
    payloads: list[bytes | None] = [entries[j][1] if j is not None else None for j in assigned]

    for i, item in enumerate(items):
        if assigned[i] is not None:
            continue
        if item.size == 0 and item.hash.lower() == empty_hash:
            # Empty records are not kept by parse_archive.
            payloads[i] = b""
            continue
        if strict:
            raise IntegrityError(
                f"No payload in the archive matches binary {item.binary_id} "
                f"(target {item.target!r}, hash {item.hash})"
            )
        j = _fallback(item, entries, claimed)
        if j is None:
            raise IntegrityError(
                f"No payload left in the archive for binary {item.binary_id} "
                f"(target {item.target!r})"
            )
        claimed[j] = True
        payloads[i] = entries[j][1]

    return [payload for payload in payloads if payload is not None]


def _fallback(
    item: ManifestItem, entries: Sequence[tuple[str, bytes]], claimed: list[bool]
) -> int | None:
    for j, (name, _) in enumerate(entries):
        if not claimed[j] and _basename(name) in (item.binary_id, item.target):
            logger.warning(
                "Binary %s matched payload %r by name, its hash does not match the manifest",
                item.binary_id,
                name,
            )
            return j
    for j, (name, _) in enumerate(entries):
        if not claimed[j]:
            logger.warning(
                "Binary %s matched the first unclaimed payload %r; it may be the wrong file",
                item.binary_id,
                name,
            )
            return j
    return None
