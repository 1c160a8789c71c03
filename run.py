"""Entry point for running the marketplace API.

Starts the FastAPI application with Uvicorn.  It is intended to be
executed from the project root, for example under Docker or a process
manager where you only specify a single Python file to run.

Host and port are read from the environment variables ``API_HOST`` and
``API_PORT`` (defaults ``0.0.0.0`` and ``8000``); everything else is
configured through the variables documented in
``marketplace_api/app/core/config.py``.

Usage:
    python run.py
"""
import asyncio
import os

from uvicorn import Config, Server

from marketplace_api.app.core.config import settings
from marketplace_api.app.main import app


async def main() -> None:
    """Serve the API until interrupted."""
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    config = Config(app=app, host=host, port=port, reload=False, log_level=settings.log_level.lower())
    server = Server(config)
    await server.serve()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
