"""
Top-level router for version 1 of the API.

Aggregates the domain routers under a unified prefix.  When a new
domain is added, include its router here.
"""

from fastapi import APIRouter

from .endpoints import reviews, services, users

router = APIRouter()

router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(services.router, prefix="/services", tags=["services"])
router.include_router(reviews.router, prefix="/reviews", tags=["reviews"])
