"""
Review statistics for services.

``averageRating`` and ``totalReviews`` on a service document are
derived data.  ``ReviewStatsService.recompute`` rebuilds both from the
``reviews`` collection with a single aggregation and writes them back.
It must be awaited after every review insert or delete, before the
request that caused it returns.

The read-aggregate and the write are not atomic: two concurrent review
mutations on the same service may interleave and the last writer wins.
"""

import logging
from typing import Any, Dict

from ..core.db import REVIEWS, SERVICES, get_database, parse_object_id, utcnow

logger = logging.getLogger(__name__)

ZERO_STATS = {"averageRating": 0, "totalReviews": 0}


class ReviewStatsService:

    @classmethod
    def pipeline(cls, service_id) -> list:
        return [
            {"$match": {"serviceId": service_id}},
            {
                "$group": {
                    "_id": "$serviceId",
                    "averageRating": {"$avg": "$rating"},
                    "totalReviews": {"$sum": 1},
                }
            },
        ]

    @classmethod
    async def recompute(cls, service_id: Any) -> Dict[str, Any]:
        """Recalculate and store the rating stats of one service.

        Returns the values written.  A service without reviews gets the
        zero state regardless of what was stored before.
        """
        sid = parse_object_id(service_id, "serviceId")
        database = get_database()
        rows = await database[REVIEWS].aggregate(cls.pipeline(sid)).to_list(length=None)
        if rows:
            stats = {
                "averageRating": rows[0]["averageRating"],
                "totalReviews": rows[0]["totalReviews"],
            }
        else:
            stats = dict(ZERO_STATS)
        await database[SERVICES].update_one(
            {"_id": sid},
            {"$set": {**stats, "updatedAt": utcnow()}},
        )
        logger.info(
            "Service %s stats: average %.2f over %d reviews",
            sid,
            stats["averageRating"],
            stats["totalReviews"],
        )
        return stats
