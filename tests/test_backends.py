"""
Tests for object store backends.

Covers LocalBackend, MemoryBackend, HTTPOriginBackend (against an aiohttp
test server) and the read-through CachingStore.
"""

import gzip

import aiohttp
import pytest
from aiohttp import test_utils, web

from capurl.backends import (
    CachingStore,
    HTTPOriginBackend,
    LocalBackend,
    MemoryBackend,
    read_all,
)
from capurl.core.errors import ObjectNotFound


# ===== LOCAL BACKEND =====

@pytest.mark.unit
class TestLocalBackend:
    """Test local filesystem backend."""

    @pytest.mark.asyncio
    async def test_get_with_metadata(self, temp_storage_dir):
        backend = LocalBackend(temp_storage_dir)
        backend.put("uploads/file.txt", b"hello", content_type="text/plain")

        obj = await backend.get("uploads/file.txt")

        assert obj.key == "uploads/file.txt"
        assert obj.content_type == "text/plain"
        assert obj.size == 5
        assert await read_all(obj) == b"hello"

    @pytest.mark.asyncio
    async def test_get_without_metadata(self, temp_storage_dir):
        backend = LocalBackend(temp_storage_dir)
        backend.put("assets/blob", b"\x00\x01")

        obj = await backend.get("assets/blob")

        assert obj.content_type is None
        assert await read_all(obj) == b"\x00\x01"

    @pytest.mark.asyncio
    async def test_streams_in_chunks(self, temp_storage_dir):
        backend = LocalBackend(temp_storage_dir, chunk_size=4)
        backend.put("uploads/big", b"0123456789")

        obj = await backend.get("uploads/big")
        chunks = [chunk async for chunk in obj.body]

        assert chunks == [b"0123", b"4567", b"89"]

    @pytest.mark.asyncio
    async def test_missing_object(self, temp_storage_dir):
        backend = LocalBackend(temp_storage_dir)
        with pytest.raises(ObjectNotFound) as exc_info:
            await backend.get("uploads/nope.txt")
        assert exc_info.value.key == "uploads/nope.txt"
        assert not await backend.exists("uploads/nope.txt")

    @pytest.mark.asyncio
    async def test_directory_is_not_an_object(self, temp_storage_dir):
        backend = LocalBackend(temp_storage_dir)
        backend.put("uploads/a/b.txt", b"x")
        with pytest.raises(ObjectNotFound):
            await backend.get("uploads/a")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", ["../outside.txt", "uploads/../../outside.txt", ""])
    async def test_traversal_is_not_found(self, temp_storage_dir, key):
        """Keys escaping the storage root are never served."""
        (temp_storage_dir / "outside.txt").write_bytes(b"nope")
        backend = LocalBackend(temp_storage_dir / "root")
        with pytest.raises(ObjectNotFound):
            await backend.get(key)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", [
        "assets/../uploads/file.txt",
        "assets/./../uploads/file.txt",
        "assets//../uploads/file.txt",
        "uploads/./file.txt",
    ])
    async def test_key_cannot_cross_prefix(self, temp_storage_dir, key):
        """Keys resolving inside the root but outside their own prefix are refused."""
        backend = LocalBackend(temp_storage_dir)
        backend.put("uploads/file.txt", b"secret upload contents")

        with pytest.raises(ObjectNotFound):
            await backend.get(key)
        assert not await backend.exists(key)

    @pytest.mark.asyncio
    async def test_symlink_out_of_prefix_refused(self, temp_storage_dir):
        backend = LocalBackend(temp_storage_dir)
        target = backend.put("uploads/file.txt", b"secret upload contents")
        (temp_storage_dir / "assets").mkdir()
        (temp_storage_dir / "assets" / "link.txt").symlink_to(target)

        with pytest.raises(ObjectNotFound):
            await backend.get("assets/link.txt")

    @pytest.mark.asyncio
    async def test_nul_byte_is_not_found(self, temp_storage_dir):
        backend = LocalBackend(temp_storage_dir)
        with pytest.raises(ObjectNotFound):
            await backend.get("assets/a\x00b")
        assert not await backend.exists("assets/a\x00b")

    @pytest.mark.asyncio
    async def test_sidecar_is_not_served(self, temp_storage_dir):
        backend = LocalBackend(temp_storage_dir)
        backend.put("uploads/file.txt", b"hello", content_type="text/plain")
        with pytest.raises(ObjectNotFound):
            await backend.get("uploads/file.txt.meta.json")

    @pytest.mark.asyncio
    async def test_corrupt_sidecar_ignored(self, temp_storage_dir):
        backend = LocalBackend(temp_storage_dir)
        path = backend.put("uploads/file.txt", b"hello")
        path.with_name("file.txt.meta.json").write_text("{not json")

        obj = await backend.get("uploads/file.txt")
        assert obj.content_type is None

    def test_put_rejects_escaping_key(self, temp_storage_dir):
        backend = LocalBackend(temp_storage_dir)
        with pytest.raises(ValueError):
            backend.put("../evil", b"x")

    def test_put_overwrite_clears_metadata(self, temp_storage_dir):
        backend = LocalBackend(temp_storage_dir)
        path = backend.put("uploads/a", b"1", content_type="text/plain")
        backend.put("uploads/a", b"2")
        assert not path.with_name("a.meta.json").exists()


# ===== MEMORY BACKEND =====

@pytest.mark.unit
class TestMemoryBackend:
    """Test in-memory backend."""

    @pytest.mark.asyncio
    async def test_get_and_exists(self, memory_store):
        obj = await memory_store.get("uploads/file.txt")
        assert obj.content_type == "text/plain"
        assert await read_all(obj) == b"secret upload contents"
        assert await memory_store.exists("uploads/file.txt")

    @pytest.mark.asyncio
    async def test_missing(self):
        with pytest.raises(ObjectNotFound):
            await MemoryBackend().get("uploads/x")

    @pytest.mark.asyncio
    async def test_empty_object(self):
        store = MemoryBackend({"assets/empty": (b"", None)})
        obj = await store.get("assets/empty")
        assert obj.size == 0
        assert await read_all(obj) == b""


# ===== HTTP ORIGIN BACKEND =====

GZIP_PAYLOAD = b"compressible line\n" * 300


def _origin_app() -> web.Application:
    async def handler(request: web.Request) -> web.Response:
        key = request.match_info["key"]
        if key == "uploads/file.txt":
            return web.Response(body=b"from origin", content_type="text/plain")
        if key == "uploads/broken":
            return web.Response(status=500)
        if key == "assets/big.txt":
            return web.Response(
                body=gzip.compress(GZIP_PAYLOAD),
                headers={"Content-Encoding": "gzip", "Content-Type": "text/plain"},
            )
        return web.Response(status=404)

    app = web.Application()
    app.router.add_route("*", "/bucket/{key:.*}", handler)
    return app


@pytest.mark.integration
class TestHTTPOriginBackend:
    """Test HTTP origin backend against a local aiohttp server."""

    @pytest.mark.asyncio
    async def test_get(self):
        async with test_utils.TestServer(_origin_app()) as server:
            backend = HTTPOriginBackend(str(server.make_url("/bucket")))
            try:
                obj = await backend.get("uploads/file.txt")
                assert obj.content_type.startswith("text/plain")
                assert obj.size == len(b"from origin")
                assert await read_all(obj) == b"from origin"
                assert await backend.exists("uploads/file.txt")
            finally:
                await backend.close()

    @pytest.mark.asyncio
    async def test_not_found(self):
        async with test_utils.TestServer(_origin_app()) as server:
            backend = HTTPOriginBackend(str(server.make_url("/bucket")))
            try:
                with pytest.raises(ObjectNotFound):
                    await backend.get("uploads/missing")
                assert not await backend.exists("uploads/missing")
            finally:
                await backend.close()

    @pytest.mark.asyncio
    async def test_compressed_body_has_no_size(self):
        """The origin's Content-Length counts gzip bytes, not what is streamed."""
        async with test_utils.TestServer(_origin_app()) as server:
            backend = HTTPOriginBackend(str(server.make_url("/bucket")))
            try:
                obj = await backend.get("assets/big.txt")
                assert obj.size is None
                assert await read_all(obj) == GZIP_PAYLOAD
            finally:
                await backend.close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", [
        "assets/../uploads/file.txt",
        "assets/%2E%2E/uploads/file.txt",
        "assets/./../uploads/file.txt",
    ])
    async def test_key_cannot_cross_prefix(self, key):
        """Dot segments would be normalized by the URL, so they never reach the origin."""
        requested = []

        @web.middleware
        async def record(request, handler):
            requested.append(request.path)
            return await handler(request)

        app = _origin_app()
        app.middlewares.append(record)
        async with test_utils.TestServer(app) as server:
            backend = HTTPOriginBackend(str(server.make_url("/bucket")))
            try:
                with pytest.raises(ObjectNotFound):
                    await backend.get(key)
                assert "/bucket/uploads/file.txt" not in requested
            finally:
                await backend.close()

    @pytest.mark.asyncio
    async def test_discard_releases_response(self):
        async with test_utils.TestServer(_origin_app()) as server:
            backend = HTTPOriginBackend(str(server.make_url("/bucket")))
            try:
                obj = await backend.get("uploads/file.txt")
                await obj.discard()
                obj = await backend.get("uploads/file.txt")
                assert await read_all(obj) == b"from origin"
            finally:
                await backend.close()

    @pytest.mark.asyncio
    async def test_origin_error_propagates(self):
        async with test_utils.TestServer(_origin_app()) as server:
            backend = HTTPOriginBackend(str(server.make_url("/bucket")))
            try:
                with pytest.raises(aiohttp.ClientResponseError):
                    await backend.get("uploads/broken")
            finally:
                await backend.close()


# ===== CACHING STORE =====

class CountingStore(MemoryBackend):
    """MemoryBackend that counts fetches."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.gets = 0

    async def get(self, key):
        self.gets += 1
        return await super().get(key)


@pytest.mark.unit
class TestCachingStore:
    """Test read-through cache."""

    @pytest.mark.asyncio
    async def test_second_read_is_cached(self):
        inner = CountingStore({"assets/a": (b"aaa", "text/css")})
        store = CachingStore(inner)

        first = await store.get("assets/a")
        second = await store.get("assets/a")

        assert await read_all(first) == b"aaa"
        assert await read_all(second) == b"aaa"
        assert second.content_type == "text/css"
        assert inner.gets == 1
        assert (store.hits, store.misses) == (1, 1)

    @pytest.mark.asyncio
    async def test_misses_not_cached(self):
        inner = CountingStore()
        store = CachingStore(inner)
        for _ in range(2):
            with pytest.raises(ObjectNotFound):
                await store.get("assets/none")
        assert inner.gets == 2

    @pytest.mark.asyncio
    async def test_large_objects_pass_through(self):
        inner = CountingStore({"assets/big": (b"x" * 100, None)})
        store = CachingStore(inner, max_object_bytes=10)

        await read_all(await store.get("assets/big"))
        await read_all(await store.get("assets/big"))

        assert inner.gets == 2

    @pytest.mark.asyncio
    async def test_lru_eviction(self):
        inner = CountingStore({f"assets/{i}": (b"x", None) for i in range(3)})
        store = CachingStore(inner, max_entries=2)

        await store.get("assets/0")
        await store.get("assets/1")
        await store.get("assets/0")  # refresh 0
        await store.get("assets/2")  # evicts 1
        await store.get("assets/0")
        assert inner.gets == 3

        await store.get("assets/1")
        assert inner.gets == 4

    @pytest.mark.asyncio
    async def test_invalidate(self):
        inner = CountingStore({"assets/a": (b"a", None)})
        store = CachingStore(inner)
        await store.get("assets/a")
        store.invalidate("assets/a")
        await store.get("assets/a")
        assert inner.gets == 2
