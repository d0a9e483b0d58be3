"""Pytest fixtures: in-memory and local storage, API client with the storage dependency overridden."""
import pytest
from httpx import ASGITransport, AsyncClient

from archive.core.config import get_settings
from archive.core.deps import get_storage
from archive.main import app
from archive.services.storage.base import MiB
from archive.services.storage.local import LocalStorage
from archive.services.storage.memory import MemoryStorage

TEST_SECRET = "test-secret"


@pytest.fixture
def memory_storage():
    return MemoryStorage(bucket="test-bucket", part_size=8 * MiB, concurrency=4)


@pytest.fixture
def local_storage(tmp_path):
    return LocalStorage(
        tmp_path / "objects",
        secret_key=TEST_SECRET,
        base_url="http://test",
        part_size=8 * MiB,
        concurrency=4,
    )


async def _client_for(storage):
    app.dependency_overrides[get_storage] = lambda: storage
    transport = ASGITransport(app=app)
    return AsyncClient(transport=transport, base_url="http://test")


@pytest.fixture
async def client(memory_storage):
    ac = await _client_for(memory_storage)
    async with ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def local_client(local_storage):
    ac = await _client_for(local_storage)
    async with ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def clean_settings():
    """Clear the settings cache before and after, so monkeypatched env vars take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
