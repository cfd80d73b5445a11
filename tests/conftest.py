"""
Shared fixtures for the capurl test suite.
"""

import shutil
import tempfile
from pathlib import Path

import pytest

from capurl.backends import MemoryBackend
from capurl.core.keys import load_secret_key
from capurl.core.signing import URLSigner


TEST_SECRET = "test-secret"
TEST_TIMESTAMP = 1700000000


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests that exercise the HTTP surface")


@pytest.fixture
def temp_storage_dir():
    """Create a temporary directory for storage tests."""
    temp_dir = tempfile.mkdtemp(prefix="capurl_test_")
    yield Path(temp_dir)
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def secret_key():
    """Provide the shared test signing key."""
    return load_secret_key(TEST_SECRET)


@pytest.fixture
def frozen_clock():
    """A clock pinned to TEST_TIMESTAMP (mutable via clock.now)."""
    class Clock:
        now = float(TEST_TIMESTAMP)

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def signer(secret_key, frozen_clock):
    """Provide a signer with the default 600s expiry and a frozen clock."""
    return URLSigner(secret_key, clock=frozen_clock)


@pytest.fixture
def memory_store():
    """Provide an in-memory store with a few objects."""
    store = MemoryBackend()
    store.put("assets/logo.png", b"\x89PNG fake image", "image/png")
    store.put("uploads/file.txt", b"secret upload contents", "text/plain")
    store.put("invoices/2024/inv-001.pdf", b"%PDF-1.7 invoice", "application/pdf")
    store.put("uploads/raw.bin", b"\x00\x01\x02")
    return store
