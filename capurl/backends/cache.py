"""
Read-through cache over an ObjectStore.

Small objects are kept in memory after the first read. The cache is a
pure optimization: a miss or eviction only costs another fetch.
"""

import logging
from collections import OrderedDict
from typing import Optional, Tuple

from .base import ObjectStore, StoredObject, iter_bytes, read_all

logger = logging.getLogger(__name__)


class CachingStore(ObjectStore):
    """
    LRU read-through cache.

    Only objects whose size is known up front and at most
    `max_object_bytes` are cached. Missing keys are never cached.
    """

    def __init__(
        self,
        inner: ObjectStore,
        max_entries: int = 100,
        max_object_bytes: int = 1_000_000,  # 1MB
    ):
        self.inner = inner
        self.max_entries = max_entries
        self.max_object_bytes = max_object_bytes
        self._entries: "OrderedDict[str, Tuple[bytes, Optional[str]]]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> StoredObject:
        entry = self._entries.get(key)
        if entry is not None:
            self._entries.move_to_end(key)
            self.hits += 1
            data, content_type = entry
            return StoredObject(key=key, body=iter_bytes(data), content_type=content_type, size=len(data))

        self.misses += 1
        obj = await self.inner.get(key)

        if obj.size is None or obj.size > self.max_object_bytes:
            return obj

        data = await read_all(obj)
        self._store(key, data, obj.content_type)
        return StoredObject(key=key, body=iter_bytes(data), content_type=obj.content_type, size=len(data))

    async def exists(self, key: str) -> bool:
        if key in self._entries:
            return True
        return await self.inner.exists(key)

    async def close(self):
        self._entries.clear()
        await self.inner.close()

    def invalidate(self, key: Optional[str] = None):
        """Drop one cached key, or everything."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def _store(self, key: str, data: bytes, content_type: Optional[str]):
        self._entries[key] = (data, content_type)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug(f"Evicted {evicted} from object cache")
