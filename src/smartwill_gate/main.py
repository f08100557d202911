# src/smartwill_gate/main.py
"""Main entry point for the SmartWill Gate application."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from smartwill_gate.api.v1 import auth_router
from smartwill_gate.core.container import build_container
from smartwill_gate.core.settings import settings
from smartwill_gate.services.sweeper import ExpirySweeper

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="SmartWill Gate API",
    description="Wallet signature and email code verification with session tokens",
    version=settings.app_version,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

app.state.container = build_container(settings)
app.state.sweeper = None

# Include API routers
app.include_router(auth_router, prefix="/api/v1")


@app.on_event("startup")
async def on_startup() -> None:
    sweeper = app.state.container.build_sweeper()
    await sweeper.start()
    app.state.sweeper = sweeper
    logger.info("Expiry sweeper running every %.0f seconds", sweeper.interval_seconds)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    sweeper: ExpirySweeper | None = getattr(app.state, "sweeper", None)
    if sweeper:
        await sweeper.stop()
        app.state.sweeper = None

@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}

@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Wallet signature and email code verification with session tokens",
        "docs": "/docs",
        "redoc": "/redoc"
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("smartwill_gate.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
