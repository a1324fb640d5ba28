"""Unit tests for the CLI: command registration, option parsing and validation.

Commands run through typer.testing.CliRunner with the registry client
replaced by the in-memory fake.
"""

from __future__ import annotations

import pytest
from fakes import ORG_ID, FakeRegistry, new_id
from typer.testing import CliRunner

from binforge.cli.app import app
from binforge.cli.commands import artifacts as artifacts_cmd
from binforge.cli.commands import binaries as binaries_cmd
from binforge.cli.commands import bundles as bundles_cmd
from binforge.cli.commands.bundles import build_create_params
from binforge.cli.parsing import parse_bundle_binary, parse_json_object, split_values
from binforge.core.hasher import sha256_hex
from binforge.errors import ValidationError
from binforge.models.binaries import BinaryState
from binforge.models.resources import ArtifactVersion, CreateBundleParamsV1, CreateBundleParamsV2

runner = CliRunner()

BINARY_PRN = f"prn:1:{ORG_ID}:binary:{new_id()}"
VERSION_PRN = f"prn:1:{ORG_ID}:artifact_version:{new_id()}"


@pytest.fixture
def fake_client(registry: FakeRegistry, monkeypatch: pytest.MonkeyPatch) -> FakeRegistry:
    """Route every command's registry client to the fake."""

    def _make_client(settings, *, api_version=None):
        return registry

    monkeypatch.setattr(artifacts_cmd, "make_client", _make_client)
    monkeypatch.setattr(binaries_cmd, "make_client", _make_client)
    monkeypatch.setattr(bundles_cmd, "make_client", _make_client)
    return registry


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    """The CLI must register every command group and show help."""

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)
        assert "Usage" in result.output

    def test_help_lists_groups(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for group in ("artifacts", "artifact-versions", "binaries", "binary-signatures", "bundles"):
            assert group in result.output

    @pytest.mark.parametrize("group", ["binaries", "binary-signatures", "bundles"])
    def test_group_help(self, group: str):
        result = runner.invoke(app, [group, "--help"])
        assert result.exit_code == 0
        assert "create" in result.output

    def test_version(self):
        from binforge import __version__

        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output


# ---------------------------------------------------------------------------
# Test: option parsers
# ---------------------------------------------------------------------------


class TestParseBundleBinary:
    def test_prn_only(self):
        parsed = parse_bundle_binary(f"prn={BINARY_PRN}")
        assert parsed.prn == BINARY_PRN
        assert parsed.custom_metadata is None

    def test_with_metadata(self):
        parsed = parse_bundle_binary(f'prn={BINARY_PRN};custom_metadata={{"version":"1.0"}}')
        assert parsed.custom_metadata == {"version": "1.0"}

    def test_explicit_null_metadata(self):
        parsed = parse_bundle_binary(f"prn={BINARY_PRN};custom_metadata=null")
        assert parsed.custom_metadata is None

    def test_missing_equals(self):
        with pytest.raises(ValidationError, match="Invalid binary format"):
            parse_bundle_binary(BINARY_PRN)

    def test_unknown_key(self):
        with pytest.raises(ValidationError, match="Unknown key 'slot'"):
            parse_bundle_binary(f"prn={BINARY_PRN};slot=a")

    def test_invalid_json(self):
        with pytest.raises(ValidationError, match="Invalid JSON in custom_metadata"):
            parse_bundle_binary(f"prn={BINARY_PRN};custom_metadata={{oops")

    def test_missing_prn(self):
        with pytest.raises(ValidationError, match="Missing required 'prn'"):
            parse_bundle_binary("custom_metadata=null")


class TestOtherParsers:
    def test_split_values(self):
        assert split_values(["a,b", " c ", ""]) == ["a", "b", "c"]
        assert split_values(None) == []

    def test_json_object_required(self):
        assert parse_json_object('{"a": 1}', "--custom-metadata") == {"a": 1}
        with pytest.raises(ValidationError, match="must be a JSON object"):
            parse_json_object("[1]", "--custom-metadata")


class TestBuildCreateParams:
    def test_v1(self):
        params = build_create_params(1, [VERSION_PRN], [], None, "legacy")
        assert isinstance(params, CreateBundleParamsV1)
        assert params.artifact_version_prns == [VERSION_PRN]

    def test_v1_rejects_binaries(self):
        with pytest.raises(ValidationError, match="only supported in API version 2"):
            build_create_params(1, [], [f"prn={BINARY_PRN}"], None, None)

    def test_v1_requires_versions(self):
        with pytest.raises(ValidationError, match="requires --artifact-version-prns"):
            build_create_params(1, [], [], None, None)

    def test_v2(self):
        params = build_create_params(2, [], [f"prn={BINARY_PRN}"], None, "r1")
        assert isinstance(params, CreateBundleParamsV2)
        assert params.binaries[0].prn == BINARY_PRN

    def test_v2_rejects_versions(self):
        with pytest.raises(ValidationError, match="only supported in API version 1"):
            build_create_params(2, [VERSION_PRN], [], None, None)

    def test_v2_requires_binaries(self):
        with pytest.raises(ValidationError, match="requires --binaries"):
            build_create_params(2, [], [], None, None)

    def test_unsupported_version(self):
        with pytest.raises(ValidationError, match="Unsupported API version: 3"):
            build_create_params(3, [], [], None, None)


# ---------------------------------------------------------------------------
# Test: commands against the fake registry
# ---------------------------------------------------------------------------


class TestBundleCommands:
    def test_create_v2(self, fake_client: FakeRegistry):
        result = runner.invoke(
            app,
            [
                "bundles",
                "create",
                "--api-version",
                "2",
                "--binaries",
                f'prn={BINARY_PRN};custom_metadata={{"slot":"a"}}',
                "--name",
                "r1",
            ],
        )
        assert result.exit_code == 0, result.output
        (bundle,) = fake_client.bundles.values()
        assert bundle.binaries[0].custom_metadata == {"slot": "a"}

    def test_create_v1_with_comma_separated_versions(self, fake_client: FakeRegistry):
        other = f"prn:1:{ORG_ID}:artifact_version:{new_id()}"
        result = runner.invoke(
            app,
            [
                "bundles",
                "create",
                "--api-version",
                "1",
                "--artifact-version-prns",
                f"{VERSION_PRN},{other}",
            ],
        )
        assert result.exit_code == 0, result.output
        (bundle,) = fake_client.bundles.values()
        assert bundle.artifact_version_prns == [VERSION_PRN, other]

    def test_create_v1_with_binaries_fails(self, fake_client: FakeRegistry):
        result = runner.invoke(
            app,
            ["bundles", "create", "--api-version", "1", "--binaries", f"prn={BINARY_PRN}"],
        )
        assert result.exit_code == 1
        assert "Error" in result.output
        assert fake_client.bundles == {}

    def test_get_missing_bundle(self, fake_client: FakeRegistry):
        prn = f"prn:1:{ORG_ID}:bundle:{new_id()}"
        result = runner.invoke(app, ["bundles", "get", "--prn", prn])
        assert result.exit_code == 1

    def test_get_rejects_wrong_prn_type(self, fake_client: FakeRegistry):
        result = runner.invoke(app, ["bundles", "get", "--prn", BINARY_PRN])
        assert result.exit_code == 1
        assert fake_client.calls == []


class TestBinaryCommands:
    def test_content_path_excludes_hash(self, fake_client: FakeRegistry, tmp_path):
        content = tmp_path / "app.bin"
        content.write_bytes(b"app")
        result = runner.invoke(
            app,
            [
                "binaries",
                "create",
                "--artifact-version-prn",
                VERSION_PRN,
                "--target",
                "arm64",
                "--content-path",
                str(content),
                "--hash",
                sha256_hex(b"app"),
            ],
        )
        assert result.exit_code == 1
        assert fake_client.calls == []

    def test_requires_content_or_hash_and_size(self, fake_client: FakeRegistry):
        result = runner.invoke(
            app,
            ["binaries", "create", "--artifact-version-prn", VERSION_PRN, "--target", "arm64"],
        )
        assert result.exit_code == 1

    def test_existing_signed_binary_is_reported(
        self, fake_client: FakeRegistry, artifact_version: ArtifactVersion
    ):
        digest = sha256_hex(b"released")
        signed = fake_client.seed_binary(
            artifact_version_prn=artifact_version.prn,
            target="arm64",
            hash=digest,
            size=8,
            state=BinaryState.SIGNED,
        )
        result = runner.invoke(
            app,
            [
                "binaries",
                "create",
                "--artifact-version-prn",
                artifact_version.prn,
                "--target",
                "arm64",
                "--hash",
                digest,
                "--size",
                "8",
            ],
        )
        assert result.exit_code == 0, result.output
        assert fake_client.count("create_binary") == 0
        assert fake_client.count("update_binary") == 0
        assert fake_client.binaries[signed.prn].state == BinaryState.SIGNED

    def test_signed_mismatch_fails(
        self, fake_client: FakeRegistry, artifact_version: ArtifactVersion
    ):
        fake_client.seed_binary(
            artifact_version_prn=artifact_version.prn,
            target="arm64",
            hash=sha256_hex(b"released"),
            size=8,
            state=BinaryState.SIGNED,
        )
        result = runner.invoke(
            app,
            [
                "binaries",
                "create",
                "--artifact-version-prn",
                artifact_version.prn,
                "--target",
                "arm64",
                "--hash",
                sha256_hex(b"rebuilt"),
                "--size",
                "7",
            ],
        )
        assert result.exit_code == 1
        assert fake_client.count("update_binary") == 0

    def test_unknown_signing_key_pair(self, fake_client: FakeRegistry):
        result = runner.invoke(
            app,
            [
                "binaries",
                "create",
                "--artifact-version-prn",
                VERSION_PRN,
                "--target",
                "arm64",
                "--hash",
                sha256_hex(b"x"),
                "--size",
                "1",
                "--signing-key-pair",
                "nope",
            ],
        )
        assert result.exit_code == 1
        assert fake_client.calls == []

    def test_update_rejects_invalid_transition(
        self, fake_client: FakeRegistry, artifact_version: ArtifactVersion
    ):
        binary = fake_client.seed_binary(artifact_version_prn=artifact_version.prn, target="arm64")
        result = runner.invoke(
            app, ["binaries", "update", "--prn", binary.prn, "--state", "signed"]
        )
        assert result.exit_code == 1
        assert fake_client.count("update_binary") == 0

    def test_update_state(self, fake_client: FakeRegistry, artifact_version: ArtifactVersion):
        binary = fake_client.seed_binary(artifact_version_prn=artifact_version.prn, target="arm64")
        result = runner.invoke(
            app, ["binaries", "update", "--prn", binary.prn, "--state", "destroyed"]
        )
        assert result.exit_code == 0, result.output
        assert fake_client.binaries[binary.prn].state == BinaryState.DESTROYED


class TestArtifactCommands:
    def test_create_defaults_to_own_organization(self, fake_client: FakeRegistry):
        result = runner.invoke(app, ["artifacts", "create", "--name", "gateway"])
        assert result.exit_code == 0, result.output
        (artifact,) = fake_client.artifacts.values()
        assert artifact.name == "gateway"
        assert artifact.organization_prn == f"prn:1:{ORG_ID}"
        assert fake_client.count("me") == 1

    def test_create_version(self, fake_client: FakeRegistry, artifact_version: ArtifactVersion):
        result = runner.invoke(
            app,
            [
                "artifact-versions",
                "create",
                "--artifact-prn",
                artifact_version.artifact_prn,
                "--version",
                "2.0.0",
            ],
        )
        assert result.exit_code == 0, result.output
        assert {v.version for v in fake_client.versions.values()} == {"1.0.0", "2.0.0"}

    def test_get_missing_artifact(self, fake_client: FakeRegistry):
        prn = f"prn:1:{ORG_ID}:artifact:{new_id()}"
        result = runner.invoke(app, ["artifacts", "get", "--prn", prn])
        assert result.exit_code == 1
