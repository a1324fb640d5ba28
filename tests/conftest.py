"""Shared test fixtures for binforge."""

from __future__ import annotations

import random
from collections.abc import Callable
from pathlib import Path

import pytest
from fakes import ORG_ID, FakeRegistry, FakeTransferSession, new_id

from binforge import crypto
from binforge.models.resources import ArtifactVersion


@pytest.fixture
def registry() -> FakeRegistry:
    """Provide an empty in-memory registry."""
    return FakeRegistry()


@pytest.fixture
def transfer(registry: FakeRegistry) -> FakeTransferSession:
    """Provide object storage wired to the fake registry."""
    return FakeTransferSession(registry)


@pytest.fixture
def no_sleep() -> Callable[[float], None]:
    """Provide a sleep function that records delays instead of sleeping."""
    delays: list[float] = []

    def _sleep(seconds: float) -> None:
        delays.append(seconds)

    _sleep.delays = delays  # type: ignore[attr-defined]
    return _sleep


@pytest.fixture
def artifact_version(registry: FakeRegistry) -> ArtifactVersion:
    """Provide an artifact version already present in the registry."""
    return registry.seed_artifact_version()


@pytest.fixture
def signing_key(tmp_path: Path) -> tuple[Path, str]:
    """Provide ``(pem_path, public_key_hex)`` for a fresh Ed25519 key."""
    private_hex, public_hex = crypto.generate_keypair()
    pem_path = tmp_path / "signing_key.pem"
    pem_path.write_bytes(crypto.private_key_pem(private_hex))
    return pem_path, public_hex


@pytest.fixture
def signing_key_prn() -> str:
    return f"prn:1:{ORG_ID}:signing_key:{new_id()}"


@pytest.fixture
def make_content() -> Callable[[int], bytes]:
    """Factory fixture: deterministic, non-repeating content of a given size."""

    def _factory(size: int, seed: int = 0) -> bytes:
        return random.Random(seed).randbytes(size)

    return _factory


