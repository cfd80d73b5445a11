"""
Token codec.

A token travels in the `verify` query parameter as

    <timestamp>-<base64(mac)>

where timestamp is decimal seconds since the epoch and the MAC is encoded
with the standard base64 alphabet. The standard alphabet never contains
`-`, so the first hyphen always separates the two fields.
"""

import base64
import binascii
import re
from dataclasses import dataclass

from .keys import MAC_SIZE

VERIFY_PARAM = "verify"

_TIMESTAMP_RE = re.compile(r"[0-9]{1,20}")
_BASE64_RE = re.compile(r"[A-Za-z0-9+/]*={0,2}")


class TokenParseError(ValueError):
    """The raw `verify` value is not a well-formed token."""


@dataclass(frozen=True)
class Token:
    """Capability token: issue time plus MAC."""
    timestamp: int  # seconds since epoch
    mac: bytes

    def __repr__(self) -> str:
        return f"Token(timestamp={self.timestamp}, mac=<{len(self.mac)} bytes>)"


def canonical_message(path: str, timestamp: int) -> bytes:
    """
    Build the signed message for a (path, timestamp) pair.

    Path and decimal timestamp are concatenated with no separator, matching
    URLs already issued by earlier deployments.
    """
    return f"{path}{int(timestamp)}".encode("utf-8")


def encode_token(token: Token) -> str:
    """Serialize a token to its `verify` parameter value."""
    return f"{token.timestamp}-{base64.b64encode(token.mac).decode('ascii')}"


def parse_token(raw: str) -> Token:
    """
    Parse a `verify` parameter value.

    Args:
        raw: Value of the `verify` query parameter (already URL-decoded)

    Returns:
        Parsed Token

    Raises:
        TokenParseError: Any structural problem with the value
    """
    if not raw:
        raise TokenParseError("empty token")

    timestamp_part, sep, mac_part = raw.partition("-")
    if not sep:
        raise TokenParseError("missing separator")

    if not _TIMESTAMP_RE.fullmatch(timestamp_part):
        raise TokenParseError("timestamp is not a non-negative integer")

    # An unescaped '+' arrives as a space after form decoding
    mac_part = mac_part.replace(" ", "+")
    if not _BASE64_RE.fullmatch(mac_part):
        raise TokenParseError("mac is not standard base64")

    try:
        mac = base64.b64decode(mac_part, validate=True)
    except (binascii.Error, ValueError) as e:
        raise TokenParseError("mac is not standard base64") from e

    if len(mac) != MAC_SIZE:
        raise TokenParseError(f"mac must be {MAC_SIZE} bytes, got {len(mac)}")

    return Token(timestamp=int(timestamp_part), mac=mac)
