"""
FastAPI application entry point.

    uvicorn src.app_layer.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from config import setup_logging
from src.app_layer.routers import simulation, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("UserMirrorer API starting")
    yield


app = FastAPI(
    title="UserMirrorer: User Behavior Simulation API",
    description="Simulate which exposed item a user would choose, and why, across several models",
    version="0.3.0",
    lifespan=lifespan,
)

app.include_router(
    users.router, prefix="/api/v1/users", tags=["users"]
)
app.include_router(
    simulation.router, prefix="/api/v1/simulation", tags=["simulation"]
)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
