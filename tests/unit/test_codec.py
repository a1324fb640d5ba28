"""Tests for the bundle archive container and payload matching."""

from __future__ import annotations

from pathlib import Path

import libarchive
import pytest
from fakes import new_id

from binforge.archive.codec import (
    MANIFEST_NAME,
    build_archive,
    match_payloads,
    parse_archive,
)
from binforge.core.hasher import sha256_hex
from binforge.errors import IntegrityError, ValidationError
from binforge.models.manifest import (
    ArtifactInfo,
    ArtifactVersionInfo,
    BinaryInfo,
    BundleInfo,
    BundleManifest,
    ManifestItem,
    SignatureInfo,
)

KERNEL = b"kernel image" * 1000
ROOTFS = b"root filesystem" * 500


def make_manifest(*payloads: tuple[str, bytes]) -> BundleManifest:
    """Build a one-artifact, one-version manifest for ``(target, content)`` pairs."""
    artifact_id, version_id = new_id(), new_id()
    items = []
    binaries = {}
    for target, content in payloads:
        binary_id = new_id()
        binaries[binary_id] = BinaryInfo(
            description=f"{target} build",
            signatures=[SignatureInfo(keyid="release", sig="AB" * 64)],
        )
        items.append(
            ManifestItem(
                hash=sha256_hex(content),
                size=len(content),
                binary_id=binary_id,
                target=target,
                artifact_version_id=version_id,
                artifact_id=artifact_id,
                custom_metadata={"slot": target},
            )
        )
    return BundleManifest(
        artifacts={
            artifact_id: ArtifactInfo(
                name="os",
                versions={version_id: ArtifactVersionInfo(version="3.2.1", binaries=binaries)},
            )
        },
        bundle=BundleInfo(id=new_id(), name="release-3.2.1", manifest=items),
    )


class TestArchiveRoundtrip:
    def test_manifest_and_payloads_survive(self, tmp_path: Path):
        manifest = make_manifest(("kernel", KERNEL), ("rootfs", ROOTFS))
        path = build_archive(tmp_path / "bundle.cpio.zst", manifest, [KERNEL, ROOTFS])

        archive = parse_archive(path)

        assert archive.manifest == manifest
        assert archive.entries == [("kernel", KERNEL), ("rootfs", ROOTFS)]

    def test_manifest_is_first_record(self, tmp_path: Path):
        manifest = make_manifest(("kernel", KERNEL))
        path = build_archive(tmp_path / "b.cpio.zst", manifest, [KERNEL])

        with libarchive.file_reader(str(path)) as archive:
            names = [entry.pathname for entry in archive]
        assert names == [MANIFEST_NAME, "kernel"]

    def test_empty_payloads_are_not_kept(self, tmp_path: Path):
        manifest = make_manifest(("kernel", KERNEL), ("empty", b""))
        path = build_archive(tmp_path / "b.cpio.zst", manifest, [KERNEL, b""])

        archive = parse_archive(path)
        assert archive.entries == [("kernel", KERNEL)]
        assert match_payloads(archive.manifest, archive.entries) == [KERNEL, b""]

    def test_payload_count_mismatch(self, tmp_path: Path):
        manifest = make_manifest(("kernel", KERNEL))
        with pytest.raises(ValidationError, match="1 binaries but 2 payloads"):
            build_archive(tmp_path / "b.cpio.zst", manifest, [KERNEL, ROOTFS])

    def test_payload_size_mismatch(self, tmp_path: Path):
        manifest = make_manifest(("kernel", KERNEL))
        with pytest.raises(IntegrityError, match="Size mismatch"):
            build_archive(tmp_path / "b.cpio.zst", manifest, [KERNEL[:-1]])


class TestParseErrors:
    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ValidationError, match="not found"):
            parse_archive(tmp_path / "absent.cpio.zst")

    def test_missing_manifest(self, tmp_path: Path):
        path = tmp_path / "nomanifest.cpio.zst"
        with libarchive.file_writer(str(path), "cpio_newc", "zstd") as archive:
            archive.add_file_from_memory("kernel", len(KERNEL), KERNEL)
        with pytest.raises(ValidationError, match=f"{MANIFEST_NAME} not found"):
            parse_archive(path)

    def test_invalid_manifest(self, tmp_path: Path):
        path = tmp_path / "bad.cpio.zst"
        document = b'{"artifacts": {}}'
        with libarchive.file_writer(str(path), "cpio_newc", "zstd") as archive:
            archive.add_file_from_memory(MANIFEST_NAME, len(document), document)
        with pytest.raises(ValidationError, match="Invalid bundle.json"):
            parse_archive(path)


class TestMatchPayloads:
    def test_matches_by_hash_regardless_of_order(self):
        manifest = make_manifest(("kernel", KERNEL), ("rootfs", ROOTFS))
        entries = [("b", ROOTFS), ("a", KERNEL)]
        assert match_payloads(manifest, entries) == [KERNEL, ROOTFS]

    def test_identical_content_is_claimed_once_per_item(self):
        manifest = make_manifest(("slot-a", KERNEL), ("slot-b", KERNEL))
        entries = [("slot-a", KERNEL), ("slot-b", KERNEL)]
        assert match_payloads(manifest, entries) == [KERNEL, KERNEL]

    def test_strict_rejects_hash_mismatch(self):
        manifest = make_manifest(("kernel", KERNEL))
        with pytest.raises(IntegrityError, match="No payload in the archive matches"):
            match_payloads(manifest, [("kernel", b"tampered")])

    def test_lenient_falls_back_to_name(self, caplog: pytest.LogCaptureFixture):
        manifest = make_manifest(("kernel", KERNEL), ("rootfs", ROOTFS))
        entries = [("other", b"xx"), ("kernel", b"patched"), ("rootfs", ROOTFS)]

        payloads = match_payloads(manifest, entries, strict=False)

        assert payloads == [b"patched", ROOTFS]
        assert "by name" in caplog.text

    def test_lenient_falls_back_to_first_unclaimed(self, caplog: pytest.LogCaptureFixture):
        manifest = make_manifest(("kernel", KERNEL))
        payloads = match_payloads(manifest, [("renamed", b"whatever")], strict=False)
        assert payloads == [b"whatever"]
        assert "first unclaimed" in caplog.text

    def test_lenient_still_fails_without_payloads(self):
        manifest = make_manifest(("kernel", KERNEL), ("rootfs", ROOTFS))
        with pytest.raises(IntegrityError, match="No payload left"):
            match_payloads(manifest, [("kernel", KERNEL)], strict=False)
