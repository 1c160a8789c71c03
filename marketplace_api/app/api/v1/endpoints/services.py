"""
Service listing endpoints for API v1.

``GET /services`` accepts filter, sort, projection and pagination
parameters in the query string, e.g.::

    GET /api/v1/services?price[gte]=10&price[lt]=50&tags=plumbing,repair
        &sort=-averageRating,price&fields=title,price&page=2&limit=20

Creating, changing and deleting listings is limited to providers,
moderators and admins with a verified email, and only the owner of a
listing may change or delete it.
"""

from fastapi import APIRouter, Depends, Request, Response, status

from marketplace_api.app.core.config import settings
from marketplace_api.app.core.query_features import build_query_spec, params_from_items
from marketplace_api.app.core.security import require_verified, restrict_to
from marketplace_api.app.schemas.common import success, to_public
from marketplace_api.app.schemas.service import ServiceCreate, ServiceUpdate, service_fields
from marketplace_api.app.schemas.user import UserRole
from marketplace_api.app.services.listing_service import ListingService

router = APIRouter()

_manage_services = restrict_to(
    UserRole.SERVICE_PROVIDER.value,
    UserRole.MODERATOR.value,
    UserRole.ADMIN.value,
)


@router.get("")
async def list_services(request: Request) -> dict:
    spec = build_query_spec(
        params_from_items(request.query_params.multi_items()),
        default_limit=settings.default_page_limit,
        max_limit=settings.max_page_limit,
    )
    services = await ListingService.list_services(spec)
    return success(
        {"services": [to_public(service) for service in services]},
        results=len(services),
    )


@router.get("/{service_id}")
async def get_service(service_id: str) -> dict:
    service = await ListingService.get_service(service_id)
    return success({"service": to_public(service)})


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_verified)])
async def create_service(data: ServiceCreate, current_user: dict = Depends(_manage_services)) -> dict:
    service = await ListingService.create_service(service_fields(data), current_user)
    return success({"service": to_public(service)})


@router.patch("/{service_id}", dependencies=[Depends(require_verified)])
async def update_service(
    service_id: str,
    data: ServiceUpdate,
    current_user: dict = Depends(_manage_services),
) -> dict:
    service = await ListingService.update_service(service_id, service_fields(data), current_user)
    return success({"service": to_public(service)})


@router.delete(
    "/{service_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_verified)],
)
async def delete_service(service_id: str, current_user: dict = Depends(_manage_services)) -> Response:
    await ListingService.delete_service(service_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
