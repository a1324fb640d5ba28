"""HTTP client for the artifact registry API.

The registry is an opaque service; this module only encodes the request and
response shapes the pipeline depends on. Every call is a synchronous round
trip on a shared ``requests.Session``.

Conventions
-----------
- ``get_*`` return ``None`` when the registry answers 404.
- Any other non-2xx answer raises the matching ``RegistryError`` subclass,
  wrapping the response body.
- Transport failures (DNS, TLS, timeouts) raise ``RegistryError`` with no
  status code and the original exception chained.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

import requests
from pydantic import TypeAdapter

from binforge.config import Settings
from binforge.errors import (
    ConflictError,
    NotFoundError,
    RateLimitedError,
    RegistryError,
    ValidationError,
)
from binforge.models.binaries import Binary, BinaryPart, BinaryState, Signature
from binforge.models.resources import (
    Artifact,
    ArtifactVersion,
    Bundle,
    CreateBundleParams,
    CreateBundleParamsV1,
    User,
)

logger = logging.getLogger(__name__)

_BUNDLE_ADAPTER: TypeAdapter[Bundle] = TypeAdapter(Bundle)

SUPPORTED_API_VERSIONS = (1, 2)

_STATUS_ERRORS: dict[int, type[RegistryError]] = {
    404: NotFoundError,
    409: ConflictError,
    429: RateLimitedError,
}


def _drop_none(payload: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


def _quote(value: str) -> str:
    """Single-quote a search term, backslash-escaping quotes and backslashes."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class RegistryClient:
    """Typed access to registry resources.

    Parameters
    ----------
    base_url:
        Registry API root, e.g. ``https://registry.example.com``.
    api_key:
        Token sent as ``Authorization: Token <api_key>``.
    api_version:
        Default API version (1 or 2) for bundle calls.
    ca_path:
        Optional CA bundle used to verify the registry's TLS certificate.
    timeout:
        Per-request timeout in seconds.
    session:
        Optional pre-built session (tests inject a stub here).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        api_version: int = 2,
        ca_path: str | None = None,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        if api_version not in SUPPORTED_API_VERSIONS:
            raise ValidationError(f"Unsupported API version: {api_version}")
        self._base_url = base_url.rstrip("/")
        self._api_version = api_version
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Token {api_key}",
                "Accept": "application/json",
                "User-Agent": "binforge",
            }
        )
        if ca_path:
            self._session.verify = str(ca_path)

    @classmethod
    def from_settings(cls, settings: Settings, *, api_version: int | None = None) -> RegistryClient:
        if not settings.api_key:
            raise ValidationError(
                "An API key is required (set BINFORGE_API_KEY or pass --api-key)"
            )
        return cls(
            settings.base_url,
            settings.api_key,
            api_version=api_version or settings.api_version,
            ca_path=str(settings.ca_path) if settings.ca_path else None,
            timeout=settings.request_timeout_seconds,
        )

    @property
    def api_version(self) -> int:
        return self._api_version

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        api_version: int | None = None,
        allow_not_found: bool = False,
    ) -> dict[str, Any] | None:
        url = f"{self._base_url}{path}"
        headers = {"X-Api-Version": str(api_version or self._api_version)}
        logger.debug("%s %s", method, url)
        try:
            response = self._session.request(
                method,
                url,
                json=json,
                params=_drop_none(params) if params else None,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise RegistryError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 404 and allow_not_found:
            return None

        if not 200 <= response.status_code < 300:
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
            error_cls = _STATUS_ERRORS.get(response.status_code, RegistryError)
            raise error_cls(
                f"{method} {path} failed with status {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise RegistryError(
                f"{method} {path} returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from exc

    def _paginate(
        self, path: str, key: str, params: dict[str, Any] | None = None
    ) -> Iterator[dict[str, Any]]:
        query = dict(params or {})
        while True:
            page = self._request("GET", path, params=query) or {}
            yield from page.get(key, [])
            next_page = page.get("next_page")
            if not next_page:
                return
            query["page"] = next_page

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def me(self) -> User:
        data = self._request("GET", "/users/me") or {}
        return User.model_validate(data.get("data", data))

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def create_artifact(
        self,
        *,
        organization_prn: str,
        name: str,
        id: str | None = None,
        description: str | None = None,
        custom_metadata: dict[str, Any] | None = None,
    ) -> Artifact:
        body = _drop_none(
            {
                "organization_prn": organization_prn,
                "name": name,
                "id": id,
                "description": description,
                "custom_metadata": custom_metadata,
            }
        )
        data = self._request("POST", "/artifacts", json=body) or {}
        return Artifact.model_validate(data["artifact"])

    def get_artifact(self, prn: str) -> Artifact | None:
        data = self._request("GET", f"/artifacts/{prn}", allow_not_found=True)
        return Artifact.model_validate(data["artifact"]) if data else None

    def update_artifact(self, prn: str, **fields: Any) -> Artifact:
        data = self._request("PATCH", f"/artifacts/{prn}", json=_drop_none(fields)) or {}
        return Artifact.model_validate(data["artifact"])

    def list_artifacts(self, *, search: str | None = None, limit: int | None = None) -> list[Artifact]:
        return [
            Artifact.model_validate(item)
            for item in self._paginate("/artifacts", "artifacts", {"search": search, "limit": limit})
        ]

    def delete_artifact(self, prn: str) -> None:
        self._request("DELETE", f"/artifacts/{prn}")

    # ------------------------------------------------------------------
    # Artifact versions
    # ------------------------------------------------------------------

    def create_artifact_version(
        self,
        *,
        artifact_prn: str,
        version: str,
        id: str | None = None,
        description: str | None = None,
        custom_metadata: dict[str, Any] | None = None,
    ) -> ArtifactVersion:
        body = _drop_none(
            {
                "artifact_prn": artifact_prn,
                "version": version,
                "id": id,
                "description": description,
                "custom_metadata": custom_metadata,
            }
        )
        data = self._request("POST", "/artifact_versions", json=body) or {}
        return ArtifactVersion.model_validate(data["artifact_version"])

    def get_artifact_version(self, prn: str) -> ArtifactVersion | None:
        data = self._request("GET", f"/artifact_versions/{prn}", allow_not_found=True)
        return ArtifactVersion.model_validate(data["artifact_version"]) if data else None

    def update_artifact_version(self, prn: str, **fields: Any) -> ArtifactVersion:
        data = self._request("PATCH", f"/artifact_versions/{prn}", json=_drop_none(fields)) or {}
        return ArtifactVersion.model_validate(data["artifact_version"])

    def list_artifact_versions(
        self, *, search: str | None = None, limit: int | None = None
    ) -> list[ArtifactVersion]:
        return [
            ArtifactVersion.model_validate(item)
            for item in self._paginate(
                "/artifact_versions", "artifact_versions", {"search": search, "limit": limit}
            )
        ]

    def delete_artifact_version(self, prn: str) -> None:
        self._request("DELETE", f"/artifact_versions/{prn}")

    # ------------------------------------------------------------------
    # Binaries
    # ------------------------------------------------------------------

    def create_binary(
        self,
        *,
        artifact_version_prn: str,
        target: str,
        hash: str,
        size: int,
        id: str | None = None,
        description: str | None = None,
        custom_metadata: dict[str, Any] | None = None,
    ) -> Binary:
        body = _drop_none(
            {
                "artifact_version_prn": artifact_version_prn,
                "target": target,
                "hash": hash,
                "size": size,
                "id": id,
                "description": description,
                "custom_metadata": custom_metadata,
            }
        )
        data = self._request("POST", "/binaries", json=body) or {}
        return Binary.model_validate(data["binary"])

    def get_binary(self, prn: str) -> Binary | None:
        data = self._request("GET", f"/binaries/{prn}", allow_not_found=True)
        return Binary.model_validate(data["binary"]) if data else None

    def update_binary(
        self,
        prn: str,
        *,
        state: BinaryState | None = None,
        hash: str | None = None,
        size: int | None = None,
        description: str | None = None,
        custom_metadata: dict[str, Any] | None = None,
    ) -> Binary:
        body = _drop_none(
            {
                "state": state.value if state is not None else None,
                "hash": hash,
                "size": size,
                "description": description,
                "custom_metadata": custom_metadata,
            }
        )
        data = self._request("PATCH", f"/binaries/{prn}", json=body) or {}
        return Binary.model_validate(data["binary"])

    def list_binaries(self, *, search: str | None = None, limit: int | None = None) -> list[Binary]:
        return [
            Binary.model_validate(item)
            for item in self._paginate("/binaries", "binaries", {"search": search, "limit": limit})
        ]

    def find_binaries(self, artifact_version_prn: str, target: str | None = None) -> list[Binary]:
        """Binaries of an artifact version, optionally restricted to one target."""
        search = f"artifact_version_prn:{_quote(artifact_version_prn)}"
        if target is not None:
            search += f" and target:{_quote(target)}"
        return self.list_binaries(search=search)

    def delete_binary(self, prn: str) -> None:
        self._request("DELETE", f"/binaries/{prn}")

    def get_binary_download_url(self, prn: str) -> str | None:
        """A time-limited URL for the binary's content, or ``None`` if unavailable."""
        data = self._request("GET", f"/binaries/{prn}/download_url", allow_not_found=True)
        if not data:
            return None
        return data.get("url")

    # ------------------------------------------------------------------
    # Binary parts
    # ------------------------------------------------------------------

    def list_binary_parts(self, binary_prn: str) -> list[BinaryPart]:
        return [
            BinaryPart.model_validate(item)
            for item in self._paginate(f"/binaries/{binary_prn}/binary_parts", "binary_parts")
        ]

    def create_binary_part(
        self,
        binary_prn: str,
        *,
        index: int,
        size: int,
        hash: str,
        expected_binary_size: int,
    ) -> BinaryPart:
        body = {"expected_binary_size": expected_binary_size, "hash": hash, "size": size}
        data = self._request("POST", f"/binaries/{binary_prn}/binary_parts/{index}", json=body) or {}
        return BinaryPart.model_validate(data["binary_part"])

    # ------------------------------------------------------------------
    # Binary signatures
    # ------------------------------------------------------------------

    def create_binary_signature(
        self,
        *,
        binary_prn: str,
        signature: str,
        signing_key_prn: str | None = None,
        signing_key_keyid: str | None = None,
    ) -> Signature:
        if (signing_key_prn is None) == (signing_key_keyid is None):
            raise ValidationError(
                "Exactly one of signing_key_prn or signing_key_keyid is required"
            )
        body = _drop_none(
            {
                "binary_prn": binary_prn,
                "signature": signature,
                "signing_key_prn": signing_key_prn,
                "signing_key_keyid": signing_key_keyid,
            }
        )
        data = self._request("POST", "/binary_signatures", json=body) or {}
        return Signature.model_validate(data["binary_signature"])

    def delete_binary_signature(self, prn: str) -> None:
        self._request("DELETE", f"/binary_signatures/{prn}")

    # ------------------------------------------------------------------
    # Bundles
    # ------------------------------------------------------------------

    def _bundle(self, payload: dict[str, Any], api_version: int) -> Bundle:
        return _BUNDLE_ADAPTER.validate_python({**payload, "api_version": api_version})

    def create_bundle(self, params: CreateBundleParams) -> Bundle:
        body = params.model_dump(exclude={"api_version"}, exclude_none=True)
        if isinstance(params, CreateBundleParamsV1):
            body = {
                "artifact_version_prns": params.artifact_version_prns,
                **_drop_none({"id": params.id, "name": params.name}),
            }
        data = self._request("POST", "/bundles", json=body, api_version=params.api_version) or {}
        return self._bundle(data["bundle"], params.api_version)

    def get_bundle(self, prn: str, *, api_version: int | None = None) -> Bundle | None:
        version = api_version or self._api_version
        data = self._request("GET", f"/bundles/{prn}", api_version=version, allow_not_found=True)
        return self._bundle(data["bundle"], version) if data else None

    def update_bundle(self, prn: str, *, name: str | None = None) -> Bundle:
        data = self._request("PATCH", f"/bundles/{prn}", json=_drop_none({"name": name})) or {}
        return self._bundle(data["bundle"], self._api_version)

    def list_bundles(self, *, search: str | None = None, limit: int | None = None) -> list[Bundle]:
        return [
            self._bundle(item, self._api_version)
            for item in self._paginate("/bundles", "bundles", {"search": search, "limit": limit})
        ]

    def delete_bundle(self, prn: str) -> None:
        self._request("DELETE", f"/bundles/{prn}")
