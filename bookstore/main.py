# bookstore/main.py
import logging
import sys
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from .catalog import api_router, pages_router
from .catalog.store import BookStore, StoreError
from .settings import CatalogSettings
from . import storage

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"


def create_app(
    settings: Optional[CatalogSettings] = None, store: Optional[BookStore] = None
) -> FastAPI:
    """Build a catalog service replica.

    When ``store`` is given it is used as is; otherwise the lifespan
    connects to ``settings.database_uri`` and prepares the collection.
    Any replica can serve every route.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = None
        if store is None:
            client, app.state.store = storage.open_store(settings or CatalogSettings())
        try:
            yield
        finally:
            if client is not None:
                client.close()

    app = FastAPI(
        title="Bookstore catalog",
        description="CRUD API and pages for a collection of books stored in MongoDB.",
        version="1.0.0",
        lifespan=lifespan,
    )
    if store is not None:
        app.state.store = store

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %d (%.1f ms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
        )
        return response

    @app.get("/health")
    def health_check():
        return {"status": "ok"}

    app.include_router(api_router)
    app.include_router(pages_router)
    app.mount("/css", StaticFiles(directory=str(STATIC_DIR / "css")), name="css")
    return app


def run() -> None:
    """Console entry point: start one replica, exiting with status 1 on startup failure."""
    try:
        settings = CatalogSettings()
    except ValidationError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("Invalid configuration, is DATABASE_URI set? %s", exc)
        sys.exit(1)

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        client, store = storage.open_store(settings)
    except StoreError as exc:
        logger.error("Cannot prepare the database: %s", exc)
        sys.exit(1)

    try:
        uvicorn.run(create_app(settings, store), host=settings.host, port=settings.port)
    finally:
        client.close()


if __name__ == "__main__":
    run()
