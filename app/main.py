from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import router
from datastore.record_store import build_default_store
from logging_config import configure_logging
from services.system_of_record import build_default_system_of_record


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    build_default_system_of_record()
    try:
        yield
    finally:
        build_default_system_of_record.cache_clear()
        build_default_store.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Pipeline Readings System of Record",
        description=(
            "Reference system of record for slot readings: rosters, reading "
            "lifecycle commands and slot snapshots."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    return app


app = create_app()
