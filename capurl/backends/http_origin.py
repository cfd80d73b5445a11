"""
HTTP origin object store.

Reads objects from a remote bucket endpoint (any HTTP server or
S3-compatible public/private-network endpoint) with aiohttp. The body is
streamed straight through, so cancelling the request abandons the fetch.
"""

import logging
from typing import AsyncIterator, Optional
from urllib.parse import quote

import aiohttp

from ..core.errors import ObjectNotFound
from .base import CHUNK_SIZE, ObjectStore, StoredObject, key_segments

logger = logging.getLogger(__name__)


class HTTPOriginBackend(ObjectStore):
    """
    Object store backed by an HTTP origin.

    `get("uploads/a.txt")` requests `<base_url>/uploads/a.txt`.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
        chunk_size: int = CHUNK_SIZE,
    ):
        """
        Initialize HTTP origin backend.

        Args:
            base_url: Origin URL objects are resolved against
            timeout: Total timeout per request (seconds)
            session: Shared client session (created lazily if omitted)
            chunk_size: Bytes per streamed chunk
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.chunk_size = chunk_size
        self._session = session
        self._owns_session = session is None

        logger.info(f"Initialized HTTP origin backend (origin: {self.base_url})")

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    def _object_url(self, key: str) -> Optional[str]:
        """Origin URL for a key, or None for keys that could be normalized away."""
        if key_segments(key) is None:
            return None
        return f"{self.base_url}/{quote(key)}"

    async def get(self, key: str) -> StoredObject:
        """
        Fetch an object from the origin.

        Raises:
            ObjectNotFound: Origin answered 404, or the key is unsafe
            aiohttp.ClientResponseError: Any other non-2xx answer
        """
        url = self._object_url(key)
        if url is None:
            logger.debug(f"Refusing unsafe key {key!r}")
            raise ObjectNotFound(key)

        response = await self._get_session().get(url)

        if response.status == 404:
            response.release()
            logger.debug(f"Object {key} not found at origin")
            raise ObjectNotFound(key)

        try:
            response.raise_for_status()
        except aiohttp.ClientResponseError:
            response.release()
            logger.error(f"Origin returned {response.status} for {key}")
            raise

        return StoredObject(
            key=key,
            body=self._iter_body(response),
            content_type=response.headers.get("Content-Type"),
            size=self._decoded_size(response),
            release=response.release,
        )

    async def exists(self, key: str) -> bool:
        url = self._object_url(key)
        if url is None:
            return False
        async with self._get_session().head(url) as response:
            return 200 <= response.status < 300

    @staticmethod
    def _decoded_size(response: aiohttp.ClientResponse) -> Optional[int]:
        # Content-Length counts encoded bytes; aiohttp hands back decoded ones
        if response.headers.get("Content-Encoding", "identity").lower() != "identity":
            return None
        return response.content_length

    async def close(self):
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()

    async def _iter_body(self, response: aiohttp.ClientResponse) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.content.iter_chunked(self.chunk_size):
                yield chunk
        finally:
            response.release()
