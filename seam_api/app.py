"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application for the
SEAM Face Authentication API.

The application provides:
- REST endpoint for single-shot authentication
- WebSocket endpoint streaming authentication state changes
- REST endpoints for the attempt audit log
- Health check endpoint

Usage:
    # From project root:
    uvicorn seam_api.app:app --host 0.0.0.0 --port 8000 --reload

    # Or run directly:
    python -m seam_api.app
"""

import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from seam.attempt_log import AttemptLog
from seam.config import (
    get_face_detection_config,
    get_storage_config,
    get_timeouts_config,
    get_verifier_config,
)
from seam.face_detector import create_engine_handle
from seam.identity_verifier import get_verifier
from seam_api.dependencies import AppServices, get_services
from seam_api.routes import attempts_router, authentication_router, authentication_ws_router
from seam_api.schemas import HealthResponse


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup:
    - Create the face detection engine handle (the model loads lazily on
      the first attempt and is then shared by every client)
    - Build the configured identity verifier
    - Open the attempt log

    Runs on shutdown:
    - Close the verifier, engine and attempt log
    """
    logger.info("=" * 60)
    logger.info("Starting SEAM Face Authentication API")
    logger.info("=" * 60)

    engine_handle = create_engine_handle(get_face_detection_config())
    verifier = get_verifier(get_verifier_config())
    logger.info(f"Identity verifier: {type(verifier).__name__}")

    attempt_log = AttemptLog(get_storage_config()["db_path"])
    stats = attempt_log.get_stats()
    logger.info(f"Attempt log ready: {stats['total_attempts']} attempts logged")

    app.state.services = AppServices(
        engine_handle=engine_handle,
        verifier=verifier,
        attempt_log=attempt_log,
        timeouts=get_timeouts_config(),
    )

    logger.info("API startup complete!")

    yield

    logger.info("Shutting down API...")
    await verifier.aclose()
    engine_handle.close()
    attempt_log.close()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="SEAM Face Authentication API",
    description="""
Single-factor face authentication: capture a still, require exactly one face,
verify the identity.

## Features
- **Authenticate**: `POST /authenticate` with a base64 JPEG still
- **Live attempts**: WebSocket `/ws/authenticate` streams state changes
- **Audit log**: list attempts and aggregate statistics

## WebSocket Authentication
Send `{"type": "start_attempt", "data": "<base64 JPEG>"}` and receive
`{"type": "state_changed", "state": ...}` for every transition.
    """,
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for browser clients
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(authentication_router)
app.include_router(authentication_ws_router)
app.include_router(attempts_router)


# ============================================================
# Health Check Endpoint
# ============================================================

@app.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check(services: AppServices = Depends(get_services)):
    """
    Check the health of the API and its dependencies.

    Returns whether the face detector has been loaded, which identity
    verifier is configured and how many attempts are logged.
    """
    stats = services.attempt_log.get_stats()

    return HealthResponse(
        status="healthy",
        engine_initialized=services.engine_handle.is_initialized,
        verifier_backend=type(services.verifier).__name__,
        total_attempts=stats["total_attempts"],
    )


@app.get("/", tags=["system"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": "SEAM Face Authentication API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    from seam.config import get_server_config

    server = get_server_config()
    logger.info(f"Starting server on {server['host']}:{server['port']}")
    uvicorn.run(
        "seam_api.app:app",
        host=server["host"],
        port=server["port"],
        reload=True,
        log_level="info",
    )
