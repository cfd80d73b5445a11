"""
Object store interface.

The gateway only ever reads objects: look up a key, stream its body and
report its content type.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Callable, List, Optional

# Read granularity for streamed bodies
CHUNK_SIZE = 64 * 1024


@dataclass
class StoredObject:
    """An object resolved from the store."""
    key: str
    body: AsyncIterator[bytes]
    content_type: Optional[str] = None
    size: Optional[int] = None
    release: Optional[Callable[[], None]] = None

    async def discard(self):
        """Drop the body without reading it (HEAD requests)."""
        aclose = getattr(self.body, "aclose", None)
        if aclose is not None:
            await aclose()
        if self.release is not None:
            self.release()


async def iter_bytes(data: bytes, chunk_size: int = CHUNK_SIZE) -> AsyncIterator[bytes]:
    """Yield an in-memory body in chunks."""
    for i in range(0, len(data), chunk_size):
        yield data[i:i + chunk_size]


def key_segments(key: str) -> Optional[List[str]]:
    """
    Split an object key into path segments.

    Returns None for keys no store may serve: empty keys, empty / `.` /
    `..` segments, and NUL bytes.
    """
    if not key or "\x00" in key:
        return None
    segments = key.split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        return None
    return segments


async def read_all(obj: StoredObject) -> bytes:
    """Drain a StoredObject body into memory."""
    chunks = []
    async for chunk in obj.body:
        chunks.append(chunk)
    return b"".join(chunks)


class ObjectStore(ABC):
    """
    Read-only object store.

    Keys are request paths without the leading slash, e.g.
    `uploads/report.pdf`.
    """

    @abstractmethod
    async def get(self, key: str) -> StoredObject:
        """
        Resolve a key to its content and metadata.

        Raises:
            ObjectNotFound: No object under `key`
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """
        Check if an object exists without opening it.

        Not used on the request path (the gateway always calls `get`);
        kept for seeding scripts and operator tooling.
        """

    async def close(self):
        """Release any resources held by the store."""
