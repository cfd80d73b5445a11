"""
capurl - capability URLs for blob storage

Time-limited, statelessly verifiable access to stored objects. A signed URL
carries `?verify=<timestamp>-<base64 HMAC-SHA256>`; the gateway recomputes
the MAC from the requested path and checks the expiry window, so no
server-side session state is needed.

Quick Start:
    >>> from capurl import URLSigner, load_secret_key
    >>>
    >>> signer = URLSigner(load_secret_key("test-secret"))
    >>>
    >>> # Issue a signed URL
    >>> signed = signer.issue("/uploads/file.txt", now=1700000000)
    >>> signed.url
    '/uploads/file.txt?verify=1700000000-...'
    >>>
    >>> # Verify it later
    >>> signer.verify("/uploads/file.txt", signed.verify_value, now=1700000500)

Features:
    - HMAC-SHA256 tokens with constant-time verification
    - Fixed expiry window (600 seconds by default)
    - Prefix-based access policy (public / generate / protected / denied)
    - Local, in-memory and HTTP origin object stores
    - FastAPI gateway server and `capurl` CLI
"""

from .core import (
    CapURLError,
    ConfigError,
    VerificationError,
    MissingToken,
    InvalidToken,
    MacMismatch,
    Expired,
    ObjectNotFound,
    PolicyDenied,
    SecretKey,
    load_secret_key,
    Token,
    URLSigner,
    SignedURL,
)
from .auth import AccessPolicy, PathClassifier, classify

__version__ = "1.0.0"
__author__ = "capurl Team"

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
    "Token",
    "URLSigner",
    "SignedURL",
    "AccessPolicy",
    "PathClassifier",
    "classify",
]
