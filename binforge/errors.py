"""Error taxonomy shared by the pipeline, registry client and archive codec.

Every error raised on purpose by binforge derives from ``BinforgeError`` so the
CLI can render it and exit non-zero without catching unrelated exceptions.
"""

from __future__ import annotations

from typing import Any


class BinforgeError(RuntimeError):
    """Base class for all binforge errors."""


class ValidationError(BinforgeError):
    """Raised for malformed input before any network call is made."""


class RegistryError(BinforgeError):
    """Raised when a registry API call fails.

    Parameters
    ----------
    message:
        Human-readable description, usually naming the resource.
    status_code:
        HTTP status returned by the registry, or ``None`` for transport
        failures (connection refused, timeout, ...).
    body:
        Decoded response body when available.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class NotFoundError(RegistryError):
    """The registry answered 404."""


class ConflictError(RegistryError):
    """The registry answered 409 (resource already exists)."""


class RateLimitedError(RegistryError):
    """The registry answered 429 (too many requests)."""


class TransferError(BinforgeError):
    """Raised when a chunk byte transfer to its upload target fails."""


class IntegrityError(BinforgeError):
    """Raised when local content conflicts with an immutable remote record."""


class InvalidTransitionError(BinforgeError):
    """Raised when a binary state change is not allowed."""


class SignatureError(BinforgeError):
    """Aggregate failure of one or more signature submissions."""

    def __init__(self, binary_prn: str, failed_keyids: list[str]) -> None:
        self.binary_prn = binary_prn
        self.failed_keyids = list(failed_keyids)
        super().__init__(
            f"Failed to create signatures for binary {binary_prn} "
            f"(failed keyids: {', '.join(self.failed_keyids)})"
        )


class PollingTimeoutError(BinforgeError):
    """Raised when a polling budget is exhausted."""

    def __init__(self, message: str, *, attempts: int, last_error: Exception | None) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class BundlePushError(BinforgeError):
    """Fatal failure while pushing a bundle archive."""


class BundlePullError(BinforgeError):
    """Fatal failure while pulling a bundle into an archive."""
