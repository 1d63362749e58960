"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator, Generator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from src.core import db_client
from src.core.cache_client import InMemoryCache
from src.core.config import settings
from src.core.storage_client import StorageClient
from src.main import app


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> InMemoryCache:
    """Point the database, cache and file storage at per-test locations."""
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "taskdeck.db"))
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))

    cache = InMemoryCache()
    monkeypatch.setattr("src.core.cache_client.cache_client", cache)

    storage = StorageClient(upload_dir=str(tmp_path / "uploads"))
    monkeypatch.setattr("src.services.user_service.storage_client", storage)
    monkeypatch.setattr("src.services.task_service.storage_client", storage)
    return cache


@pytest.fixture
def memory_cache(isolated_environment: InMemoryCache) -> InMemoryCache:
    """The in-memory cache backing this test."""
    return isolated_environment


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
async def test_db() -> AsyncGenerator[None, None]:
    """Fresh schema in a temporary SQLite file."""
    await db_client.init_db()
    yield
    await db_client.close_connection()


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """TestClient with the application lifespan (schema creation) running."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def registered_user(client: TestClient) -> dict[str, Any]:
    """Register a user over HTTP and return its user body, token and auth headers."""
    response = client.post(
        "/api/auth/register",
        json={"name": "Alice Example", "email": "alice@example.com", "password": "password123"},
    )
    assert response.status_code == 201
    body = response.json()
    return {
        "user": body["user"],
        "token": body["token"],
        "headers": {"Authorization": f"Bearer {body['token']}"},
    }
