"""
Object store backends for capurl.

Supports local filesystem, in-memory, and HTTP origin storage, plus an
optional read-through cache.
"""

from .base import ObjectStore, StoredObject, read_all
from .local import LocalBackend
from .memory import MemoryBackend
from .http_origin import HTTPOriginBackend
from .cache import CachingStore

__all__ = [
    "ObjectStore",
    "StoredObject",
    "read_all",
    "LocalBackend",
    "MemoryBackend",
    "HTTPOriginBackend",
    "CachingStore",
]
