"""
Error taxonomy for capurl.

Every failure the gateway can produce maps to one of these classes.
Verification failures carry a client-safe message; the more specific
reason is only ever written to the log.
"""

from datetime import datetime, timezone
from typing import Optional


class CapURLError(Exception):
    """Base class for all capurl errors."""


class ConfigError(CapURLError):
    """Raised when the gateway cannot be configured (e.g. missing secret)."""


class VerificationError(CapURLError):
    """
    A signed URL failed verification.

    Attributes:
        reason: Stable machine-readable reason code
        public_message: Text safe to return to the client
    """

    reason = "verification_failed"
    public_message = "Access denied"

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.public_message
        super().__init__(self.detail)


class MissingToken(VerificationError):
    """No `verify` query parameter was supplied."""

    reason = "missing_token"
    public_message = "Authentication required"


class InvalidToken(VerificationError):
    """The `verify` parameter is malformed (or issued in the future)."""

    reason = "invalid_token"
    # Same text as MacMismatch: the client must not learn which check failed
    public_message = "Invalid MAC"


class MacMismatch(VerificationError):
    """The recomputed MAC does not match the token's MAC."""

    reason = "mac_mismatch"
    public_message = "Invalid MAC"


class Expired(VerificationError):
    """The token's expiry window has passed."""

    reason = "expired"

    def __init__(self, expires_at: int):
        self.expires_at = expires_at
        super().__init__(f"URL expired at {format_epoch(expires_at)}")

    @property
    def public_message(self) -> str:
        return self.detail


class ObjectNotFound(CapURLError):
    """The object store has no object under the requested key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Object not found: {key}")


class PolicyDenied(CapURLError):
    """The request path is not matched by any access rule."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Access denied: {path}")


def format_epoch(epoch_seconds: int) -> str:
    """Render epoch seconds as an ISO-8601 UTC timestamp."""
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc).isoformat()
