"""Resource names (PRNs): ``prn:1:<organization uuid>:<type>:<resource uuid>``.

PRNs are deterministic, so a resource's name can be built from its id and
the organization without looking anything up first.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from binforge.errors import ValidationError

PRN_PREFIX = "prn"
PRN_VERSION = "1"

RESOURCE_TYPES = frozenset(
    {
        "artifact",
        "artifact_version",
        "binary",
        "binary_signature",
        "bundle",
        "signing_key",
    }
)


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value)
    except ValueError:
        return False
    return True


def _check_header(parts: list[str]) -> None:
    if parts[0] != PRN_PREFIX:
        raise ValidationError(f"Invalid PRN prefix: {parts[0]}")
    if parts[1] != PRN_VERSION:
        raise ValidationError(f"Unsupported PRN version: {parts[1]}")
    if not _is_uuid(parts[2]):
        raise ValidationError(f"Invalid organization ID: {parts[2]}")


@dataclass(frozen=True)
class PRN:
    version: str
    organization_id: str
    resource_type: str
    resource_id: str

    @classmethod
    def parse(cls, prn: str) -> PRN:
        """Parse a five-part resource PRN."""
        parts = prn.split(":")
        if len(parts) != 5:
            raise ValidationError(
                f"Invalid PRN format: PRN must have 5 parts separated by colons, "
                f"got {len(parts)} parts ({prn!r})"
            )
        _check_header(parts)
        if not _is_uuid(parts[4]):
            raise ValidationError(f"Invalid resource ID: {parts[4]}")
        return cls(
            version=parts[1],
            organization_id=parts[2],
            resource_type=parts[3],
            resource_id=parts[4],
        )

    @staticmethod
    def parse_organization_id(prn: str) -> str:
        """Extract the organization id from a three-part organization PRN."""
        parts = prn.split(":")
        if len(parts) != 3:
            raise ValidationError(
                f"Invalid PRN format: organization PRN must have 3 parts separated "
                f"by colons, got {len(parts)} parts ({prn!r})"
            )
        _check_header(parts)
        return parts[2]

    def __str__(self) -> str:
        return ":".join(
            (PRN_PREFIX, self.version, self.organization_id, self.resource_type, self.resource_id)
        )


def resource_id(prn: str) -> str:
    """Return the resource id of a five-part PRN."""
    return PRN.parse(prn).resource_id


def validate_prn(prn: str, resource_type: str) -> str:
    """Ensure *prn* is a well-formed PRN of *resource_type*; return it unchanged."""
    parsed = PRN.parse(prn)
    if parsed.resource_type != resource_type:
        raise ValidationError(
            f"Expected a {resource_type} PRN, got a {parsed.resource_type} PRN: {prn}"
        )
    return prn


class PRNBuilder:
    """Build organization-scoped PRNs.

    Parameters
    ----------
    organization_id:
        UUID of the owning organization.
    """

    def __init__(self, organization_id: str) -> None:
        self.organization_id = organization_id

    @classmethod
    def from_prn(cls, prn: str) -> PRNBuilder:
        """Create a builder from an organization PRN or any resource PRN."""
        parts = prn.split(":")
        if len(parts) == 3:
            return cls(PRN.parse_organization_id(prn))
        if len(parts) == 5:
            return cls(PRN.parse(prn).organization_id)
        raise ValidationError(
            f"Invalid PRN format: PRN must have 3 or 5 parts separated by colons, "
            f"got {len(parts)} parts ({prn!r})"
        )

    def build(self, resource_type: str, resource_id: str) -> str:
        if not _is_uuid(self.organization_id):
            raise ValidationError(f"Invalid organization ID: {self.organization_id}")
        if not _is_uuid(resource_id):
            raise ValidationError(f"Invalid resource ID: {resource_id}")
        return f"{PRN_PREFIX}:{PRN_VERSION}:{self.organization_id}:{resource_type}:{resource_id}"

    def artifact(self, artifact_id: str) -> str:
        return self.build("artifact", artifact_id)

    def artifact_version(self, version_id: str) -> str:
        return self.build("artifact_version", version_id)

    def binary(self, binary_id: str) -> str:
        return self.build("binary", binary_id)

    def bundle(self, bundle_id: str) -> str:
        return self.build("bundle", bundle_id)
