"""
Shared pytest fixtures for caption server and client tests.
"""
import io
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from PIL import Image

from services.object_storage import LocalObjectStorage
from services.realtime.broadcast import BroadcastHub
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings


def make_jpeg(size=(16, 12), color=(200, 40, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


def make_openai_response(text: str):
    """Mimic the attributes the captioner reads from a Responses API result."""
    return SimpleNamespace(
        output_text=text,
        output=[],
        usage=SimpleNamespace(input_tokens=120, output_tokens=40),
    )


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_jpeg()


@pytest.fixture
def openai_response():
    return make_openai_response


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_dir=tmp_path / "db",
        database_reset=False,
        storage_dir=tmp_path / "storage",
        bucket="vision-images",
        public_base_url="http://testserver",
        upload_ttl_seconds=3600,
        max_upload_bytes=5 * 1024 * 1024,
        openai_model="gpt-4o-mini",
        inline_images=True,
    )


@pytest.fixture
def fake_openai():
    """OpenAI stand-in whose responses.create returns a fixed caption."""
    create = AsyncMock(return_value=make_openai_response("A person waves at the camera."))
    return SimpleNamespace(responses=SimpleNamespace(create=create))


@pytest.fixture
def db_initializer(settings) -> AsyncDatabaseInitializer:
    return AsyncDatabaseInitializer(settings.database_dir)


@pytest.fixture
def storage(settings) -> LocalObjectStorage:
    return LocalObjectStorage(settings.storage_dir, settings.public_base_url, settings.upload_ttl_seconds)


@pytest.fixture
def app_request(settings, db_initializer, storage, fake_openai):
    """Minimal stand-in for a FastAPI Request exposing app.state."""
    state = SimpleNamespace(
        settings=settings,
        db_initializer=db_initializer,
        storage=storage,
        broadcast_hub=BroadcastHub(),
        openai_client=fake_openai,
    )
    return SimpleNamespace(app=SimpleNamespace(state=state))


@pytest.fixture
def client(settings, fake_openai, monkeypatch):
    """TestClient running the full app lifespan with a fake OpenAI client."""
    from fastapi.testclient import TestClient

    from main import create_app

    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    app = create_app(settings)
    with TestClient(app) as c:
        app.state.openai_client = fake_openai
        yield c
