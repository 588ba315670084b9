import inspect
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from openai import AsyncOpenAI

from routes.caption_route import router as caption_router
from routes.history_route import router as history_router
from routes.realtime_ws import router as realtime_router
from routes.upload_route import router as upload_router
from services.object_storage import PUBLIC_PREFIX, LocalObjectStorage
from services.realtime.broadcast import BroadcastHub
from utils.database_init import AsyncDatabaseInitializer
from utils.settings import Settings

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env file if present

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager to initialize:
      - the SQLite database (at <DATABASE_DIR>/app.db)
      - the local object storage and the broadcast hub
      - the OpenAI async client
    and attach them to `app.state`.
    """
    settings: Settings = app.state.settings

    db_initializer = AsyncDatabaseInitializer(settings.database_dir, reset=settings.database_reset)
    await db_initializer.ensure_database()
    app.state.db_initializer = db_initializer

    app.state.storage = LocalObjectStorage(
        settings.storage_dir, settings.public_base_url, upload_ttl_seconds=settings.upload_ttl_seconds
    )
    app.state.broadcast_hub = BroadcastHub()

    openai_api_key = os.getenv("OPENAI_API_KEY")
    if not openai_api_key:
        raise RuntimeError("OPENAI_API_KEY environment variable is not set")

    try:
        openai_client = AsyncOpenAI()
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc

    app.state.openai_client = openai_client
    LOGGER.info("Caption server ready (db=%s, storage=%s)", db_initializer.db_path, settings.storage_dir)

    try:
        yield
    finally:
        # Gracefully close the OpenAI client if it exposes a close/aclose method.
        client = getattr(app.state, "openai_client", None)
        if client is not None:
            aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
            if aclose is not None:
                try:
                    result = aclose()
                    if inspect.isawaitable(result):
                        await result
                except Exception as exc:
                    LOGGER.warning("Error while closing OpenAI client: %s", exc)


def _field_errors(errors: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Group pydantic errors by field name, dropping the body/query location prefix."""
    details: Dict[str, List[str]] = {}
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        details.setdefault(".".join(loc) or "request", []).append(error.get("msg", "Invalid value"))
    return details


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.
    """
    settings = settings or Settings.from_env()
    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        """Reject malformed requests with 400 and every offending field."""
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request data", "details": _field_errors(exc.errors())},
        )

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that verifies DB initializer and OpenAI client presence.
        """
        has_db = hasattr(request.app.state, "db_initializer")
        has_openai = (
            hasattr(request.app.state, "openai_client")
            and request.app.state.openai_client is not None
        )
        return {"ok": True, "db_initialized": has_db, "openai_available": has_openai}

    # Register application routers
    app.include_router(upload_router)
    app.include_router(caption_router)
    app.include_router(history_router)
    app.include_router(realtime_router)

    # Public, read-only view of the storage buckets.
    app.mount(PUBLIC_PREFIX, StaticFiles(directory=settings.storage_dir, check_dir=False), name="storage")

    return app


app = create_app()
