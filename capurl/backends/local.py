"""
Local filesystem object store.

Serves objects from a directory tree with an optional JSON sidecar per
object carrying its metadata.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import AsyncIterator, Optional

from ..core.errors import ObjectNotFound
from .base import CHUNK_SIZE, ObjectStore, StoredObject, key_segments

logger = logging.getLogger(__name__)

META_SUFFIX = ".meta.json"


class LocalBackend(ObjectStore):
    """
    Local filesystem storage backend.

    Directory structure:
    storage_dir/
        assets/
            logo.png
            logo.png.meta.json     {"content_type": "image/png"}
        uploads/
            report.pdf
            report.pdf.meta.json

    The object key is the path relative to `storage_dir`. Keys that would
    resolve outside their top-level directory are treated as missing.
    """

    def __init__(self, storage_dir: Path, chunk_size: int = CHUNK_SIZE):
        """
        Initialize local backend.

        Args:
            storage_dir: Base directory for objects
            chunk_size: Bytes per read when streaming
        """
        self.storage_dir = Path(storage_dir).resolve()
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size

        logger.info(f"Initialized local backend at {self.storage_dir}")

    async def get(self, key: str) -> StoredObject:
        """
        Open an object for streaming.

        Args:
            key: Object key (e.g. uploads/report.pdf)

        Returns:
            StoredObject whose body reads the file lazily

        Raises:
            ObjectNotFound: Missing file, directory, or key outside the root
        """
        file_path = self._get_file_path(key)

        if file_path is None or not await asyncio.to_thread(self._is_file, file_path):
            logger.debug(f"Object {key} not found")
            raise ObjectNotFound(key)

        size = (await asyncio.to_thread(file_path.stat)).st_size
        content_type = await asyncio.to_thread(self._read_content_type, file_path)

        return StoredObject(
            key=key,
            body=self._iter_file(file_path),
            content_type=content_type,
            size=size,
        )

    async def exists(self, key: str) -> bool:
        file_path = self._get_file_path(key)
        if file_path is None:
            return False
        return await asyncio.to_thread(self._is_file, file_path)

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> Path:
        """
        Store an object (used for seeding and tests).

        Args:
            key: Object key
            data: Object body
            content_type: MIME type recorded in the sidecar

        Returns:
            Path of the written file
        """
        file_path = self._get_file_path(key)
        if file_path is None:
            raise ValueError(f"Invalid object key: {key}")

        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(data)

        meta_path = self._meta_path(file_path)
        if content_type:
            meta_path.write_text(json.dumps({"content_type": content_type}))
        elif meta_path.exists():
            meta_path.unlink()

        logger.debug(f"Stored {key} ({len(data)} bytes) at {file_path}")
        return file_path

    # Internal methods

    def _get_file_path(self, key: str) -> Optional[Path]:
        """
        Resolve a key to a file path, or None if the key is unusable.

        The resolved path must stay under the key's top-level directory
        (`uploads/...` never resolves outside `storage_dir/uploads`).
        """
        segments = key_segments(key)
        if segments is None or key.endswith(META_SUFFIX):
            return None

        root = self.storage_dir / segments[0] if len(segments) > 1 else self.storage_dir
        try:
            candidate = (self.storage_dir / key).resolve()
        except (OSError, ValueError) as e:
            logger.debug(f"Unresolvable key {key!r}: {e}")
            return None

        if root not in candidate.parents:
            return None
        return candidate

    @staticmethod
    def _is_file(file_path: Path) -> bool:
        try:
            return file_path.is_file()
        except (OSError, ValueError):
            return False

    @staticmethod
    def _meta_path(file_path: Path) -> Path:
        return file_path.with_name(file_path.name + META_SUFFIX)

    def _read_content_type(self, file_path: Path) -> Optional[str]:
        meta_path = self._meta_path(file_path)
        if not meta_path.exists():
            return None
        try:
            meta = json.loads(meta_path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable metadata {meta_path}: {e}")
            return None
        return meta.get("content_type") if isinstance(meta, dict) else None

    async def _iter_file(self, file_path: Path) -> AsyncIterator[bytes]:
        """Read the file in chunks off the event loop."""
        f = await asyncio.to_thread(open, file_path, "rb")
        try:
            while True:
                chunk = await asyncio.to_thread(f.read, self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            f.close()
