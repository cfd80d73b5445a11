"""
Core signed-URL protocol: key handling, token codec, issuing and verification.
"""

from .errors import (
    CapURLError,
    ConfigError,
    VerificationError,
    MissingToken,
    InvalidToken,
    MacMismatch,
    Expired,
    ObjectNotFound,
    PolicyDenied,
)
from .keys import SecretKey, load_secret_key, MAC_SIZE
from .tokens import Token, TokenParseError, VERIFY_PARAM, canonical_message, encode_token, parse_token
from .signing import URLSigner, SignedURL, DEFAULT_EXPIRY_SECONDS

__all__ = [
    "CapURLError",
    "ConfigError",
    "VerificationError",
    "MissingToken",
    "InvalidToken",
    "MacMismatch",
    "Expired",
    "ObjectNotFound",
    "PolicyDenied",
    "SecretKey",
    "load_secret_key",
    "MAC_SIZE",
    "Token",
    "TokenParseError",
    "VERIFY_PARAM",
    "canonical_message",
    "encode_token",
    "parse_token",
    "URLSigner",
    "SignedURL",
    "DEFAULT_EXPIRY_SECONDS",
]
