"""
Signed URL issuing and verification.

Issuing binds a request path to the current time with an HMAC; verifying
recomputes the HMAC from the path actually requested and the timestamp
carried in the token, compares in constant time, then checks expiry.
"""

import hmac
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import quote, urlencode

from .errors import (
    Expired,
    InvalidToken,
    MacMismatch,
    MissingToken,
    VerificationError,
)
from .keys import SecretKey
from .tokens import (
    VERIFY_PARAM,
    Token,
    TokenParseError,
    canonical_message,
    encode_token,
    parse_token,
)

logger = logging.getLogger(__name__)

# How long a signed URL stays valid, in seconds
DEFAULT_EXPIRY_SECONDS = 600


@dataclass(frozen=True)
class SignedURL:
    """Relative URL carrying a capability token."""
    path: str
    token: Token

    @property
    def verify_value(self) -> str:
        return encode_token(self.token)

    @property
    def query(self) -> str:
        """Form-encoded query string (`+`, `/` and `=` are escaped)."""
        return urlencode({VERIFY_PARAM: self.verify_value})

    @property
    def url(self) -> str:
        return f"{quote(self.path)}?{self.query}"

    def __str__(self) -> str:
        return self.url


class URLSigner:
    """
    Issues and verifies signed URLs.

    Stateless apart from the immutable key and settings, so one instance
    is shared by all concurrent requests.
    """

    def __init__(
        self,
        key: SecretKey,
        expiry_seconds: int = DEFAULT_EXPIRY_SECONDS,
        max_clock_skew: int = 0,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize signer.

        Args:
            key: Process-wide signing key
            expiry_seconds: Validity window after issuance
            max_clock_skew: Seconds a token timestamp may lie in the future
                (tolerates skew between issuing and verifying hosts)
            clock: Source of the current time in epoch seconds
        """
        if expiry_seconds <= 0:
            raise ValueError("expiry_seconds must be positive")
        if max_clock_skew < 0:
            raise ValueError("max_clock_skew must not be negative")

        self.key = key
        self.expiry_seconds = int(expiry_seconds)
        self.max_clock_skew = int(max_clock_skew)
        self.clock = clock

    def now(self) -> int:
        """Current time truncated to whole seconds."""
        return int(self.clock())

    def sign(self, path: str, timestamp: int) -> Token:
        """Compute the token for a path at a given timestamp."""
        mac = self.key.mac(canonical_message(path, timestamp))
        return Token(timestamp=int(timestamp), mac=mac)

    def issue(self, target_path: str, now: Optional[int] = None) -> SignedURL:
        """
        Issue a signed URL for an object path.

        Args:
            target_path: Real object path (e.g. /uploads/file.txt)
            now: Issue time; defaults to the clock

        Returns:
            SignedURL valid for `expiry_seconds`
        """
        if not target_path or not target_path.startswith("/"):
            raise ValueError("target_path must be a non-empty absolute path")

        timestamp = self.now() if now is None else int(now)
        signed = SignedURL(path=target_path, token=self.sign(target_path, timestamp))
        logger.debug(f"Issued signed URL for {target_path} at {timestamp}")
        return signed

    def verify(
        self,
        path: str,
        raw_verify: Optional[str],
        now: Optional[int] = None,
    ) -> Token:
        """
        Verify a token against the requested path.

        Args:
            path: Path actually requested (never taken from the token)
            raw_verify: Value of the `verify` query parameter, or None
            now: Verification time; defaults to the clock

        Returns:
            The verified Token

        Raises:
            MissingToken: No token supplied
            InvalidToken: Token malformed or issued in the future
            MacMismatch: MAC does not match path + timestamp
            Expired: Token older than the expiry window
        """
        if raw_verify is None:
            raise MissingToken()

        try:
            token = parse_token(raw_verify)
        except TokenParseError as e:
            logger.info(f"Rejected malformed token for {path}: {e}")
            raise InvalidToken() from None

        expected = self.key.mac(canonical_message(path, token.timestamp))
        if not hmac.compare_digest(expected, token.mac):
            logger.info(f"Rejected token with bad MAC for {path}")
            raise MacMismatch()

        current = self.now() if now is None else int(now)

        if token.timestamp > current + self.max_clock_skew:
            logger.info(f"Rejected token from the future for {path}")
            raise InvalidToken()

        expires_at = self.expires_at(token)
        if current > expires_at:
            logger.info(f"Rejected expired token for {path} (expired at {expires_at})")
            raise Expired(expires_at)

        return token

    def is_valid(
        self,
        path: str,
        raw_verify: Optional[str],
        now: Optional[int] = None,
    ) -> bool:
        """Boolean form of `verify()`."""
        try:
            self.verify(path, raw_verify, now)
        except VerificationError:
            return False
        return True

    def expires_at(self, token: Token) -> int:
        return token.timestamp + self.expiry_seconds
