"""
In-memory object store for tests and demos.
"""

import logging
from typing import Dict, Optional, Tuple

from ..core.errors import ObjectNotFound
from .base import ObjectStore, StoredObject, iter_bytes

logger = logging.getLogger(__name__)


class MemoryBackend(ObjectStore):
    """Dict-backed object store: key -> (data, content_type)."""

    def __init__(self, objects: Optional[Dict[str, Tuple[bytes, Optional[str]]]] = None):
        self.objects: Dict[str, Tuple[bytes, Optional[str]]] = dict(objects or {})

    def put(self, key: str, data: bytes, content_type: Optional[str] = None):
        self.objects[key] = (data, content_type)

    async def get(self, key: str) -> StoredObject:
        if key not in self.objects:
            raise ObjectNotFound(key)
        data, content_type = self.objects[key]
        return StoredObject(
            key=key,
            body=iter_bytes(data),
            content_type=content_type,
            size=len(data),
        )

    async def exists(self, key: str) -> bool:
        return key in self.objects
