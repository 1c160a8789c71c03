"""
Review endpoints for API v1.

Any logged-in user can review a service once.  Listing the reviews of
a service is public; reading a single review requires a login and
deleting one is reserved for its author.
"""

from fastapi import APIRouter, Depends, Response, status

from marketplace_api.app.core.security import get_current_user
from marketplace_api.app.schemas.common import success, to_public
from marketplace_api.app.schemas.review import ReviewCreate
from marketplace_api.app.services.review_service import ReviewService

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED, summary="Submit a review")
async def create_review(data: ReviewCreate, current_user: dict = Depends(get_current_user)) -> dict:
    """Create a review and refresh the service's rating statistics."""
    review = await ReviewService.create_review(data, current_user)
    return success({"review": to_public(review)})


@router.get("/service/{service_id}", summary="List reviews of a service")
async def list_service_reviews(service_id: str) -> dict:
    reviews = await ReviewService.list_for_service(service_id)
    return success({"reviews": [to_public(review) for review in reviews]}, results=len(reviews))


@router.get("/{review_id}", summary="Get a review")
async def get_review(review_id: str, current_user: dict = Depends(get_current_user)) -> dict:
    review = await ReviewService.get_review(review_id)
    return success({"review": to_public(review)})


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a review")
async def delete_review(review_id: str, current_user: dict = Depends(get_current_user)) -> Response:
    await ReviewService.delete_review(review_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
