"""
Service layer for marketplace service listings.

Listings are owned by the provider who created them.  Only the owner
may change or delete a listing; deleting one also deletes its reviews.
The rating fields (``averageRating``, ``totalReviews``) are never
written here: they start at zero and are maintained by
``ReviewStatsService``.
"""

import logging
from typing import Any, Dict, List

from pymongo import ReturnDocument

from ..core.db import REVIEWS, SERVICES, get_database, new_document, parse_object_id, utcnow
from ..core.errors import AppError
from ..core.query_features import QuerySpec

logger = logging.getLogger(__name__)


class ListingService:

    @classmethod
    async def list_services(cls, spec: QuerySpec) -> List[Dict[str, Any]]:
        """Run a parsed list query against the services collection."""
        cursor = get_database()[SERVICES].find(**spec.find_kwargs())
        return await cursor.to_list(length=None)

    @classmethod
    async def get_service(cls, service_id: Any) -> Dict[str, Any]:
        oid = parse_object_id(service_id)
        service = await get_database()[SERVICES].find_one({"_id": oid})
        if not service:
            raise AppError("No service found with that ID", 404)
        return service

    @classmethod
    async def create_service(cls, fields: Dict[str, Any], provider: Dict[str, Any]) -> Dict[str, Any]:
        document = new_document(
            {
                **fields,
                "providerId": provider["_id"],
                "averageRating": 0,
                "totalReviews": 0,
                "reviews": [],
            }
        )
        result = await get_database()[SERVICES].insert_one(document)
        document["_id"] = result.inserted_id
        logger.info("Provider %s created service %s", provider["_id"], result.inserted_id)
        return document

    @classmethod
    def _ensure_owner(cls, service: Dict[str, Any], user: Dict[str, Any]) -> None:
        if service.get("providerId") != user["_id"]:
            raise AppError("You can only modify your own services.", 403)

    @classmethod
    async def update_service(
        cls, service_id: Any, fields: Dict[str, Any], user: Dict[str, Any]
    ) -> Dict[str, Any]:
        service = await cls.get_service(service_id)
        cls._ensure_owner(service, user)
        if not fields:
            return service
        updated = await get_database()[SERVICES].find_one_and_update(
            {"_id": service["_id"]},
            {"$set": {**fields, "updatedAt": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        logger.info("Service %s updated fields %s", service["_id"], sorted(fields))
        return updated

    @classmethod
    async def delete_service(cls, service_id: Any, user: Dict[str, Any]) -> None:
        service = await cls.get_service(service_id)
        cls._ensure_owner(service, user)
        database = get_database()
        await database[SERVICES].delete_one({"_id": service["_id"]})
        removed = await database[REVIEWS].delete_many({"serviceId": service["_id"]})
        logger.info("Service %s deleted with %d reviews", service["_id"], removed.deleted_count)
