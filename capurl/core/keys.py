"""
Secret key provider.

The gateway signs and verifies with a single symmetric secret. The key is
loaded once at startup and shared read-only by every request.
"""

import hashlib
import hmac
import logging
from typing import Optional, Union

from pydantic import SecretStr

from .errors import ConfigError

logger = logging.getLogger(__name__)

# HMAC-SHA256 tag length in bytes
MAC_SIZE = hashlib.sha256().digest_size

# Demo-only fallback used when explicitly allowed. Anyone can forge URLs with it.
INSECURE_DEFAULT_SECRET = "my secret symmetric key"

SecretInput = Union[str, bytes, SecretStr, None]


class SecretKey:
    """
    Immutable HMAC-SHA256 signing key.

    The HMAC object is keyed once here; every call to `mac()` works on a
    copy of that template, so concurrent callers never share mutable state.
    The secret itself is never exposed through repr/str.
    """

    __slots__ = ("_template",)

    def __init__(self, secret: bytes):
        if not secret:
            raise ConfigError("Secret key must not be empty")
        object.__setattr__(self, "_template", hmac.new(secret, digestmod=hashlib.sha256))

    def __setattr__(self, name, value):
        raise AttributeError("SecretKey is immutable")

    def mac(self, message: bytes) -> bytes:
        """
        Compute HMAC-SHA256 over a message.

        Args:
            message: Canonical message bytes

        Returns:
            32-byte MAC
        """
        h = self._template.copy()
        h.update(message)
        return h.digest()

    def __repr__(self) -> str:
        return "SecretKey(hmac-sha256, <redacted>)"

    __str__ = __repr__


def _to_bytes(secret: SecretInput) -> Optional[bytes]:
    if secret is None:
        return None
    if isinstance(secret, SecretStr):
        secret = secret.get_secret_value()
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    return secret or None


def load_secret_key(
    secret: SecretInput,
    allow_insecure_default: bool = False,
) -> SecretKey:
    """
    Build the process-wide signing key.

    Args:
        secret: Secret material (str is UTF-8 encoded)
        allow_insecure_default: Fall back to the well-known demo secret
            instead of failing when no secret is configured

    Returns:
        SecretKey ready for signing and verifying

    Raises:
        ConfigError: No secret supplied and the fallback is not allowed
    """
    secret_bytes = _to_bytes(secret)

    if secret_bytes is None:
        if not allow_insecure_default:
            raise ConfigError(
                "No signing secret configured (set SECRET_DATA)"
            )
        logger.warning(
            "No signing secret configured, using the INSECURE built-in demo key. "
            "Signed URLs can be forged by anyone."
        )
        secret_bytes = INSECURE_DEFAULT_SECRET.encode("utf-8")

    key = SecretKey(secret_bytes)
    logger.info("Loaded HMAC-SHA256 signing key")
    return key
