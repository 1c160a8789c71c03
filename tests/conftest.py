"""
Shared test configuration.
Every test runs against its own in-memory MongoDB (mongomock-motor), so
no server is needed and tests stay deterministic.
"""

from __future__ import annotations

import os
import sys
import uuid
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

# Settings are read once at import time, so defaults go in before any
# application module is imported.
TEST_ENV = {
    "ENVIRONMENT": "development",
    "LOG_LEVEL": "WARNING",
    "SECRET_KEY": "test-secret-key",
    "MONGO_DB_NAME": "marketplace_test",
    "PUBLIC_BASE_URL": "http://testserver",
    "EMAIL_HOST": "",
    "SMS_API_URL": "",
    "DEFAULT_PAGE_LIMIT": "100",
    "MAX_PAGE_LIMIT": "0",
}
for _key, _value in TEST_ENV.items():
    os.environ.setdefault(_key, _value)

from mongomock_motor import AsyncMongoMockClient  # noqa: E402

from marketplace_api.app.core import db  # noqa: E402


@pytest.fixture(autouse=True)
def database():
    """Point the application at a fresh in-memory database."""

    mock_database = AsyncMongoMockClient()[f"marketplace_{uuid.uuid4().hex}"]
    db.use_database(mock_database)
    try:
        yield mock_database
    finally:
        db.use_database(None)
