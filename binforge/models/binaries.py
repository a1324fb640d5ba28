"""Binary lifecycle models: states, transitions, parts and signatures."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BinaryState(str, Enum):
    """Lifecycle state of a binary record.

    Values the registry may add in the future are folded into ``UNKNOWN``
    instead of failing validation; the processor treats them as no-ops.
    """

    UPLOADABLE = "uploadable"
    HASHABLE = "hashable"
    HASHING = "hashing"
    SIGNABLE = "signable"
    SIGNED = "signed"
    DESTROYED = "destroyed"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> BinaryState:
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.UNKNOWN


# Valid state transitions, enforced by binforge.core.state_machine.
# Any non-signed state may be reset to UPLOADABLE or destroyed.
VALID_TRANSITIONS: dict[BinaryState, set[BinaryState]] = {
    BinaryState.UPLOADABLE: {BinaryState.HASHABLE, BinaryState.DESTROYED},
    BinaryState.HASHABLE: {
        BinaryState.HASHING,
        BinaryState.UPLOADABLE,
        BinaryState.DESTROYED,
    },
    BinaryState.HASHING: {
        BinaryState.SIGNABLE,
        BinaryState.UPLOADABLE,
        BinaryState.DESTROYED,
    },
    BinaryState.SIGNABLE: {
        BinaryState.SIGNED,
        BinaryState.UPLOADABLE,
        BinaryState.DESTROYED,
    },
    BinaryState.SIGNED: set(),  # immutable
    BinaryState.DESTROYED: set(),  # terminal
    BinaryState.UNKNOWN: set(),
}


class Signature(BaseModel):
    """A detached signature attached to a binary."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    prn: str | None = None
    binary_prn: str | None = None
    keyid: str | None = None
    signing_key_prn: str | None = None
    signature: str

    def matches_key(self, key: str) -> bool:
        """Whether this signature was made with *key* (keyid or signing-key PRN)."""
        return key in (self.keyid, self.signing_key_prn)


class BinaryPartState(str, Enum):
    PENDING = "pending"
    VALID = "valid"

    @classmethod
    def _missing_(cls, value: object) -> BinaryPartState:
        return cls.PENDING


class BinaryPart(BaseModel):
    """One uploaded chunk of a binary, addressed by its 1-based index."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    binary_prn: str | None = None
    index: int = Field(ge=1, le=10_000)
    size: int
    hash: str
    state: BinaryPartState = BinaryPartState.PENDING
    presigned_upload_url: str | None = None


class Binary(BaseModel):
    """A content-addressed artifact record tracked through its lifecycle.

    ``hash`` and ``size`` become immutable once the binary is SIGNED.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    prn: str
    artifact_version_prn: str
    target: str
    state: BinaryState = BinaryState.UPLOADABLE
    hash: str | None = None
    size: int | None = None
    description: str | None = None
    custom_metadata: dict[str, Any] | None = None
    signatures: list[Signature] | None = None

    @property
    def resource_id(self) -> str:
        """The trailing identifier of the binary PRN."""
        return self.prn.rsplit(":", 1)[-1]

    def content_matches(self, hash_hex: str, size: int) -> bool:
        """Whether the stored hash/size equal the given local values."""
        if self.hash is None or self.size is None:
            return False
        return self.hash.lower() == hash_hex.lower() and self.size == size

    def signature_for(self, key: str) -> Signature | None:
        """Return the existing signature made with *key*, if any."""
        for sig in self.signatures or []:
            if sig.matches_key(key):
                return sig
        return None
