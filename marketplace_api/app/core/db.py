"""
MongoDB integration.

This module owns the single ``AsyncIOMotorClient`` of the process and
hands out the configured database (``get_database``).  ``init_db``
runs at application start and makes sure the indexes the services
rely on exist; uniqueness of user emails/phones and of one review per
(user, service) pair is enforced here as a backstop to the explicit
checks in the service layer.

Collections are addressed by the names in ``USERS``, ``SERVICES`` and
``REVIEWS``.  Every stored document carries ``createdAt``,
``updatedAt`` and a ``__v`` version marker (see ``new_document``).
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from .config import settings
from .errors import InvalidObjectId

logger = logging.getLogger(__name__)

USERS = "users"
SERVICES = "services"
REVIEWS = "reviews"

_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


def get_client() -> AsyncIOMotorClient:
    """Return the process-wide Motor client, creating it on first use."""
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(settings.mongo_url)
    return _client


def get_database() -> AsyncIOMotorDatabase:
    """Return the application database."""
    global _database
    if _database is None:
        _database = get_client()[settings.mongo_db_name]
    return _database


def use_database(database: Any) -> None:
    """Replace the application database (used by tests and scripts)."""
    global _database
    _database = database


async def init_db() -> None:
    """Create the indexes required by the service layer."""
    database = get_database()
    await database[USERS].create_index("email", unique=True)
    await database[USERS].create_index("phone", unique=True)
    await database[SERVICES].create_index([("createdAt", DESCENDING)])
    await database[SERVICES].create_index("tags")
    await database[SERVICES].create_index("providerId")
    await database[REVIEWS].create_index(
        [("userId", ASCENDING), ("serviceId", ASCENDING)], unique=True
    )
    await database[REVIEWS].create_index("serviceId")
    logger.info("MongoDB indexes ensured on database %s", settings.mongo_db_name)


def close_db() -> None:
    """Close the Motor client if one was opened."""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None


def utcnow() -> datetime:
    """Naive UTC timestamp, the form pymongo hands back from the server."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_document(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``fields`` stamped with creation metadata."""
    now = utcnow()
    return {**fields, "createdAt": now, "updatedAt": now, "__v": 0}


def parse_object_id(value: Any, field: str = "id") -> ObjectId:
    """Convert ``value`` to an ``ObjectId`` or raise a 400 ``AppError``."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise InvalidObjectId(field, value) from None
