"""Tests for runtime settings and per-operation config models."""

from __future__ import annotations

from pathlib import Path

import pydantic
import pytest

from binforge.config import Settings, SigningKeyPair
from binforge.errors import ValidationError
from binforge.models.config import (
    DEFAULT_PART_SIZE,
    MIB,
    ProcessorConfig,
    SignatureConfig,
    UploadConfig,
    default_concurrency,
)


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)
        assert settings.api_version == 2
        assert settings.log_level == "INFO"
        assert settings.binary_part_size == DEFAULT_PART_SIZE

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("BINFORGE_API_KEY", "secret")
        monkeypatch.setenv("BINFORGE_API_VERSION", "1")
        settings = Settings(_env_file=None)
        assert settings.api_key == "secret"
        assert settings.api_version == 1

    def test_signing_key_pairs_from_json(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv(
            "BINFORGE_SIGNING_KEY_PAIRS",
            '{"release": {"signing_key_prn": "prn:1:x", "signing_key_private_path": "/k.pem"}}',
        )
        settings = Settings(_env_file=None)
        assert settings.signing_key_pairs["release"] == SigningKeyPair(
            signing_key_prn="prn:1:x", signing_key_private_path=Path("/k.pem")
        )

    def test_upload_config_overrides(self):
        settings = Settings(_env_file=None)
        config = settings.upload_config(part_size=8 * MIB, concurrency=3)
        assert config.part_size == 8 * MIB
        assert config.concurrency == 3

    def test_upload_config_rejects_small_parts(self):
        settings = Settings(_env_file=None)
        with pytest.raises(ValidationError, match="Invalid upload configuration"):
            settings.upload_config(part_size=MIB)


class TestUploadConfig:
    def test_default_concurrency_is_capped(self):
        assert 1 <= default_concurrency() <= 16

    def test_concurrency_bounds(self):
        with pytest.raises(pydantic.ValidationError):
            UploadConfig(concurrency=0)
        with pytest.raises(pydantic.ValidationError):
            UploadConfig(concurrency=256)

    def test_frozen(self):
        config = UploadConfig()
        with pytest.raises(pydantic.ValidationError):
            config.part_size = 6 * MIB  # type: ignore[misc]


class TestSignatureConfig:
    def test_pre_computed(self):
        config = SignatureConfig.pre_computed("key-1", "ABCD")
        assert not config.needs_computation

    def test_from_key_pair(self):
        config = SignatureConfig.from_key_pair("prn:1:key", "release")
        assert config.needs_computation
        assert config.signing_key_pair == "release"

    def test_processor_config_signing_flag(self):
        assert not ProcessorConfig().has_signing_config
        config = ProcessorConfig(signatures=(SignatureConfig.pre_computed("k", "s"),))
        assert config.has_signing_config
        assert config.poll_interval_seconds == 10.0
        assert config.poll_attempts == 30
