"""
Main entrypoint for the Services Marketplace API.

``create_app`` builds and configures the FastAPI application, which is
then instantiated at import time as ``app``.  Run it with uvicorn, e.g.::

    uvicorn marketplace_api.app.main:app --reload

or through ``run.py`` at the repository root.
"""

from fastapi import FastAPI

from .api.v1.router import router as v1_router
from .core.config import settings
from .core.db import close_db, init_db
from .core.errors import register_error_handlers
from .core.logging_config import install_request_logging, setup_logging


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Sets up logging, the centralized error handlers and the versioned
    routers, and connects MongoDB on startup.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(title=settings.project_name, version=settings.api_version)
    register_error_handlers(app)
    if settings.is_development:
        install_request_logging(app)

    app.include_router(v1_router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event() -> None:
        await init_db()

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        close_db()

    return app


app = create_app()
