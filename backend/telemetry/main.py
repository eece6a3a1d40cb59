"""FastAPI application for the telemetry store.

Plays the remote store's role for the node: append-only reading log,
on-demand forecast runs into a full-replace table, and AI insights.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings
from .models.database import init_database
from .api.router import api_router

# Configure logging for our app (uvicorn only configures its own loggers)
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(levelname)s:     %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_database()
    logger.info("Telemetry store ready (db %s)", settings.db_path)
    yield


app = FastAPI(title="Telemetry Store", lifespan=lifespan)
app.include_router(api_router)


@app.get("/health")
def health():
    return {"status": "ok"}
