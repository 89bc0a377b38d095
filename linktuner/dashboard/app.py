"""
FastAPI Application

JSON and WebSocket service for LinkTuner with middleware, error handling
and lifecycle management.
"""

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import ALLOWED_ORIGINS, APP_VERSION
from modules.errors import LinkTunerError, SettingsError

logger = logging.getLogger(__name__)


def create_app(
    db_manager=None,
    controller=None,
    lifespan=None,
) -> FastAPI:
    """
    Create and configure FastAPI application.

    Args:
        db_manager: Database manager instance (result history)
        controller: ScanController instance
        lifespan: Optional lifespan context manager for startup/shutdown

    Returns:
        Configured FastAPI app
    """
    app = FastAPI(
        title="LinkTuner",
        description="Point-to-point radio link frequency scanner",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request timing middleware
    @app.middleware("http")
    async def add_timing_header(request: Request, call_next):
        start = time.monotonic()
        response = await call_next(request)
        duration = time.monotonic() - start
        response.headers["X-Response-Time"] = f"{duration:.4f}s"
        return response

    @app.exception_handler(SettingsError)
    async def settings_exception_handler(request: Request, exc: SettingsError):
        logger.warning(f"Rejected settings on {request.url.path}: {exc.errors}")
        content = exc.report.to_dict()
        content["errors"] = exc.errors
        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(LinkTunerError)
    async def linktuner_exception_handler(request: Request, exc: LinkTunerError):
        logger.error(f"{exc.report} on {request.url.path}")
        return JSONResponse(status_code=500, content=exc.report.to_dict())

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc), "inner": None},
        )

    # Store shared resources in app state
    app.state.db_manager = db_manager
    app.state.controller = controller

    # Import and include routes
    from .routes import router as api_router
    from .websocket import router as ws_router

    app.include_router(api_router)
    app.include_router(ws_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        db_ok = db_manager is not None
        controller_ok = controller is not None

        return {
            "status": "healthy" if (db_ok and controller_ok) else "degraded",
            "version": APP_VERSION,
            "components": {
                "database": {"available": db_ok},
                "controller": {
                    "available": controller_ok,
                    "connected": controller.is_connected if controller_ok else False,
                    "running": controller.is_running() if controller_ok else False,
                },
            },
        }

    logger.info(f"FastAPI application v{APP_VERSION} created successfully")
    return app
