"""
Pydantic schemas for service reviews.
"""

from pydantic import BaseModel, ConfigDict, Field


class ReviewCreate(BaseModel):
    """Schema for creating a new review."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    service_id: str = Field(..., alias="serviceId", description="Identifier of the reviewed service")
    rating: float = Field(..., ge=0, le=5, description="Rating from 0 to 5")
    comment: str = Field(..., min_length=10, max_length=2000)
