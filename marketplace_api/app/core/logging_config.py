"""
Logging setup for the marketplace API.

``setup_logging`` configures the root logger once (console handler
plus an optional file handler) and quiets the MongoDB driver, which
is very chatty at DEBUG.  ``install_request_logging`` adds a small
HTTP middleware that writes one line per request; ``create_app`` only
installs it in development mode.
"""

import logging
import time
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that flood the output below WARNING.
_NOISY_LOGGERS = ("pymongo", "motor", "httpx", "httpcore")


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Configure the root logger.

    Parameters
    ----------
    level : str
        Logging level name (e.g. ``"DEBUG"``, ``"INFO"``).  Case
        insensitive; unknown names fall back to ``INFO``.
    logfile : Optional[str]
        Path of a file to additionally log to.  Empty or ``None``
        disables the file handler.
    """
    root = logging.getLogger()
    if root.handlers:
        # Already configured, e.g. by pytest or a second ``create_app`` call.
        return

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if logfile:
        file_handler = logging.FileHandler(Path(logfile).resolve(), encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def install_request_logging(app: FastAPI) -> None:
    """Log method, path, status code and duration of every request."""
    logger = logging.getLogger("marketplace_api.requests")

    @app.middleware("http")
    async def log_request(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "%s %s %s %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response
