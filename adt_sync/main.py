import logging
from contextlib import asynccontextmanager
from typing import List
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from adt_sync.db.dynamodb_connector import close_client

# Routers
from adt_sync.api.routers.problems import get_settings, router as problems_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Ensure resources (like the DynamoDB client) are closed on shutdown."""
    try:
        yield
    finally:
        close_client()


def _cors_origins() -> List[str]:
    """Allowed extension origins; none when the configuration cannot be read."""
    try:
        return get_settings().extension_origins
    except RuntimeError as exc:
        logger.error("Invalid configuration, CORS allows no origins: %s", exc)
        return []


app = FastAPI(title="ADT Problems Sync", version="0.1", lifespan=lifespan)

# Only the browser extension may call the API, read-only
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_methods=["GET"],
    allow_headers=["content-type", "x-extension-name"],
)

app.include_router(problems_router)
