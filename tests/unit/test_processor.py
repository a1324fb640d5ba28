"""Tests for the BinaryProcessor lifecycle driver."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from fakes import FakeRegistry, FakeTransferSession, signature_is_valid

from binforge.core.hasher import sha256_hex
from binforge.core.processor import BinaryProcessor
from binforge.core.uploader import BinaryUploader
from binforge.errors import NotFoundError, PollingTimeoutError, ValidationError
from binforge.models.binaries import Binary, BinaryState
from binforge.models.config import MIB, ProcessorConfig, SignatureConfig, UploadConfig
from binforge.models.resources import ArtifactVersion

CONTENT = b"\x7fELF" + bytes(range(256)) * 64
CONTENT_HASH = sha256_hex(CONTENT)


@pytest.fixture
def binary(registry: FakeRegistry, artifact_version: ArtifactVersion) -> Binary:
    return registry.create_binary(
        artifact_version_prn=artifact_version.prn,
        target="x86_64-linux",
        hash=CONTENT_HASH,
        size=len(CONTENT),
    )


@pytest.fixture
def make_processor(
    registry: FakeRegistry,
    transfer: FakeTransferSession,
    no_sleep: Callable[[float], None],
) -> Callable[..., BinaryProcessor]:
    """Factory fixture: a processor wired to the fake registry and storage."""

    def _factory(*signatures: SignatureConfig, **config: object) -> BinaryProcessor:
        upload = UploadConfig(part_size=5 * MIB, concurrency=2)
        processor_config = ProcessorConfig(
            upload=upload, signatures=signatures, content_hash=CONTENT_HASH, **config
        )
        uploader = BinaryUploader(registry, upload, transfer_session=transfer)
        return BinaryProcessor(registry, processor_config, uploader=uploader, sleep=no_sleep)

    return _factory


class TestWithoutSignatures:
    def test_upload_stops_at_hashing(self, registry: FakeRegistry, binary: Binary, make_processor):
        result = make_processor().process(binary, CONTENT)

        assert result.state == BinaryState.HASHING
        assert registry.content_of(binary.prn) == CONTENT
        assert registry.count("create_binary_signature") == 0
        # One refresh before acting, no polling without signatures
        assert registry.count("get_binary") == 1

    def test_hashable_is_moved_to_hashing(self, registry: FakeRegistry, binary: Binary, make_processor):
        registry.update_binary(binary.prn, state=BinaryState.HASHABLE)
        hashable = registry.binaries[binary.prn]

        result = make_processor().process(hashable)
        assert result.state == BinaryState.HASHING

    def test_signable_is_left_alone(self, registry: FakeRegistry, artifact_version, make_processor):
        binary = registry.seed_binary(
            artifact_version_prn=artifact_version.prn,
            target="t",
            hash=CONTENT_HASH,
            size=len(CONTENT),
            state=BinaryState.SIGNABLE,
        )
        assert make_processor().process(binary) == binary
        assert registry.call_names() == ["get_binary"]

    def test_uploadable_without_content(self, binary: Binary, make_processor):
        with pytest.raises(ValidationError, match="content is required"):
            make_processor().process(binary)


class TestNoOpStates:
    @pytest.mark.parametrize(
        "state", [BinaryState.SIGNED, BinaryState.DESTROYED, BinaryState.UNKNOWN]
    )
    def test_returns_unchanged_without_calls(
        self, registry: FakeRegistry, artifact_version, make_processor, state: BinaryState
    ):
        binary = registry.seed_binary(
            artifact_version_prn=artifact_version.prn, target="t", state=state
        )
        signature = SignatureConfig.pre_computed("key-1", "AB" * 64)

        assert make_processor(signature).process(binary, CONTENT) is binary
        assert registry.calls == []


class TestWithSignatures:
    def test_full_pipeline_to_signed(self, registry: FakeRegistry, binary: Binary, make_processor):
        registry.hashing_delay = 2
        signatures = (
            SignatureConfig.pre_computed("key-1", "AA" * 64),
            SignatureConfig.pre_computed("key-2", "BB" * 64),
        )

        result = make_processor(*signatures).process(binary, CONTENT)

        assert result.state == BinaryState.SIGNED
        stored = registry.binaries[binary.prn]
        assert {s.keyid for s in stored.signatures} == {"key-1", "key-2"}
        assert registry.count("create_binary_signature") == 2

    def test_polls_at_configured_interval(
        self, registry: FakeRegistry, binary: Binary, make_processor, no_sleep
    ):
        registry.hashing_delay = 3
        signature = SignatureConfig.pre_computed("key-1", "AA" * 64)

        make_processor(signature, poll_interval_seconds=10.0).process(binary, CONTENT)

        assert no_sleep.delays == [10.0, 10.0, 10.0]

    def test_polling_timeout(self, registry: FakeRegistry, binary: Binary, make_processor, no_sleep):
        registry.hashing_delay = 1_000
        signature = SignatureConfig.pre_computed("key-1", "AA" * 64)

        with pytest.raises(PollingTimeoutError) as exc_info:
            make_processor(signature, poll_attempts=30).process(binary, CONTENT)

        assert exc_info.value.attempts == 30
        assert len(no_sleep.delays) == 29
        assert registry.binaries[binary.prn].state == BinaryState.HASHING
        assert registry.count("create_binary_signature") == 0

    def test_resume_from_hashing(self, registry: FakeRegistry, binary: Binary, make_processor):
        make_processor().process(binary, CONTENT)
        hashing = registry.binaries[binary.prn]
        assert hashing.state == BinaryState.HASHING

        signature = SignatureConfig.pre_computed("key-1", "AA" * 64)
        result = make_processor(signature).process(hashing)
        assert result.state == BinaryState.SIGNED
        assert registry.count("create_binary_part") == 1

    def test_computed_signature_verifies(
        self,
        registry: FakeRegistry,
        binary: Binary,
        make_processor,
        signing_key: tuple[Path, str],
        signing_key_prn: str,
    ):
        pem_path, public_hex = signing_key
        config = SignatureConfig.from_private_key(signing_key_prn, pem_path)

        result = make_processor(config).process(binary, CONTENT)

        assert result.state == BinaryState.SIGNED
        sig = registry.binaries[binary.prn].signature_for(signing_key_prn)
        assert sig is not None
        assert signature_is_valid(CONTENT_HASH, sig.signature, public_hex)


class TestStaleRecord:
    def test_stale_uploadable_resumes_from_registry_state(
        self, registry: FakeRegistry, binary: Binary, make_processor
    ):
        make_processor().process(binary, CONTENT)
        assert registry.binaries[binary.prn].state == BinaryState.HASHING
        assert binary.state == BinaryState.UPLOADABLE

        signature = SignatureConfig.pre_computed("key-1", "AA" * 64)
        result = make_processor(signature).process(binary, CONTENT)

        assert result.state == BinaryState.SIGNED
        assert registry.count("create_binary_part") == 1
        assert registry.binaries[binary.prn].signature_for("key-1") is not None

    def test_stale_hashable_does_not_repeat_transition(
        self, registry: FakeRegistry, binary: Binary, make_processor
    ):
        registry.update_binary(binary.prn, state=BinaryState.HASHABLE)
        stale = registry.binaries[binary.prn]
        registry.hashing_delay = 5
        registry.update_binary(binary.prn, state=BinaryState.HASHING)
        registry.calls.clear()

        result = make_processor().process(stale)

        assert result.state == BinaryState.HASHING
        assert registry.count("update_binary") == 0

    def test_binary_deleted_from_registry(
        self, registry: FakeRegistry, binary: Binary, make_processor
    ):
        del registry.binaries[binary.prn]
        with pytest.raises(NotFoundError, match="no longer exists"):
            make_processor().process(binary, CONTENT)
