# tests/conftest.py

"""
Shared fixtures for the Product Service tests.

Every test gets its own in-memory SQLite database and upload directory.
The remote media host is replaced by FakeMediaStore, which records calls.
"""
import logging
import os

# The module-level app in product_service.main reads the environment on import
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient

from product_service.config import Settings
from product_service.db import Database
from product_service.main import create_app
from product_service.media import extract_public_id
from product_service.repository import ProductRepository
from product_service.storage import MediaStore, StoredMedia

# Suppress noisy logs from SQLAlchemy/FastAPI during tests for cleaner output
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)


class FakeMediaStore(MediaStore):
    """In-memory stand-in for the Cloudinary store."""

    name = "Fake media host"

    def __init__(self, fail_deletes=False):
        self.fail_deletes = fail_deletes
        self.saved = []
        self.deleted = []

    async def save(self, upload, file_name, media_type, resource_type, max_bytes):
        data = await upload.read()
        stem = os.path.splitext(file_name)[0]
        extension = os.path.splitext(file_name)[1]
        self.saved.append(file_name)
        return StoredMedia(
            reference=f"https://res.example.com/demo/{resource_type}/upload/v1/products/{stem}{extension}",
            public_id=f"products/{stem}",
            resource_type=resource_type,
            byte_size=len(data),
            file_name=file_name,
            media_type=media_type,
        )

    async def delete(self, public_id, resource_type="image"):
        self.deleted.append((public_id, resource_type))
        if self.fail_deletes:
            raise RuntimeError("media host unreachable")
        return "ok"

    async def list_files(self):
        return [{"name": name, "url": None, "size": None, "created": None} for name in self.saved]

    def reference_to_id(self, reference):
        return extract_public_id(reference)


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url="sqlite://",
        db_connect_retries=1,
        db_retry_delay_seconds=0,
        upload_dir=str(tmp_path / "uploads"),
        log_level="WARNING",
        app_env="test",
    )


@pytest.fixture
def media_store() -> FakeMediaStore:
    return FakeMediaStore()


@pytest.fixture
def client(test_settings, media_store):
    """
    TestClient for an app whose media host is the fake store.
    Entering the client runs the startup handler, which creates the tables.
    """
    app = create_app(test_settings, media_store=media_store)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def local_client(test_settings):
    """TestClient for an app that stores uploads on the local filesystem."""
    app = create_app(test_settings)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.connect()
    yield db
    db.dispose()


@pytest.fixture
def repository(database):
    session = database.session()
    try:
        yield ProductRepository(session)
    finally:
        session.close()


@pytest.fixture
def product_data():
    return {
        "product_name": "Oak Side Table",
        "price_new": 149.5,
        "brand": "Nordwood",
        "category": "Furniture",
        "description": "Solid oak with a matte finish",
        "image_url": "",
        "video_url": "",
    }
