"""
Service layer for reviews.

A user may review a given service once, and providers cannot review
their own listings.  Each review id is also kept in the service's
``reviews`` array.  Every insert or delete is followed by an awaited
``ReviewStatsService.recompute`` so the service's rating fields are up
to date when the request returns.
"""

import logging
from typing import Any, Dict, List

from ..core.db import REVIEWS, SERVICES, get_database, new_document, parse_object_id
from ..core.errors import AppError
from ..schemas.review import ReviewCreate
from .stats_service import ReviewStatsService

logger = logging.getLogger(__name__)


class ReviewService:

    @classmethod
    async def _get_service(cls, service_id: Any) -> Dict[str, Any]:
        oid = parse_object_id(service_id, "serviceId")
        service = await get_database()[SERVICES].find_one({"_id": oid})
        if not service:
            raise AppError("Service not found", 404)
        return service

    @classmethod
    async def create_review(cls, data: ReviewCreate, user: Dict[str, Any]) -> Dict[str, Any]:
        service = await cls._get_service(data.service_id)
        if service.get("providerId") == user["_id"]:
            raise AppError("You cannot review your own service.", 403)

        database = get_database()
        existing = await database[REVIEWS].find_one({"userId": user["_id"], "serviceId": service["_id"]})
        if existing:
            raise AppError("You have already reviewed this service.", 400)

        review = new_document(
            {
                "userId": user["_id"],
                "serviceId": service["_id"],
                "rating": data.rating,
                "comment": data.comment,
            }
        )
        result = await database[REVIEWS].insert_one(review)
        review["_id"] = result.inserted_id
        await database[SERVICES].update_one(
            {"_id": service["_id"]}, {"$push": {"reviews": review["_id"]}}
        )
        await ReviewStatsService.recompute(service["_id"])
        logger.info("User %s reviewed service %s", user["_id"], service["_id"])
        return review

    @classmethod
    async def list_for_service(cls, service_id: Any) -> List[Dict[str, Any]]:
        service = await cls._get_service(service_id)
        cursor = get_database()[REVIEWS].find(
            filter={"serviceId": service["_id"]},
            projection={"__v": 0},
            sort=[("createdAt", -1)],
        )
        return await cursor.to_list(length=None)

    @classmethod
    async def get_review(cls, review_id: Any) -> Dict[str, Any]:
        oid = parse_object_id(review_id, "reviewId")
        review = await get_database()[REVIEWS].find_one({"_id": oid})
        if not review:
            raise AppError("Review not found", 404)
        return review

    @classmethod
    async def delete_review(cls, review_id: Any, user: Dict[str, Any]) -> None:
        """Delete a review written by ``user`` and refresh the service stats."""
        review = await cls.get_review(review_id)
        if review["userId"] != user["_id"]:
            raise AppError("You can only delete your own reviews", 403)

        database = get_database()
        await database[REVIEWS].delete_one({"_id": review["_id"]})
        await database[SERVICES].update_one(
            {"_id": review["serviceId"]}, {"$pull": {"reviews": review["_id"]}}
        )
        await ReviewStatsService.recompute(review["serviceId"])
        logger.info("User %s deleted review %s", user["_id"], review["_id"])
