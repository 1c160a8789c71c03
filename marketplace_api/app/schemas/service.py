"""
Pydantic schemas for marketplace services.

Tags are normalized on the way in (trimmed, lower-cased,
de-duplicated) and may only contain letters, digits and spaces.
Images must be absolute http(s) URLs and are stored as plain strings.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator


def normalize_tags(tags: List[str]) -> List[str]:
    normalized: List[str] = []
    for raw in tags:
        tag = raw.strip().lower()
        if not 2 <= len(tag) <= 30:
            raise ValueError("each tag must be between 2 and 30 characters long")
        if not all(ch.isalnum() or ch == " " for ch in tag):
            raise ValueError("tags may only contain letters, digits and spaces")
        if tag not in normalized:
            normalized.append(tag)
    return normalized


class ServiceCreate(BaseModel):
    """Payload for creating a service."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=3, max_length=100)
    description: str = Field(..., min_length=10, max_length=2000)
    price: float = Field(..., ge=0)
    tags: List[str] = Field(default_factory=list)
    images: List[HttpUrl] = Field(default_factory=list)

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)


class ServiceUpdate(BaseModel):
    """Partial update; unspecified fields are left untouched."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    price: Optional[float] = Field(None, ge=0)
    tags: Optional[List[str]] = None
    images: Optional[List[HttpUrl]] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return None if v is None else normalize_tags(v)


def service_fields(model: BaseModel) -> dict:
    """Dump ``model`` for storage, skipping unset fields and stringifying URLs."""
    fields = model.model_dump(exclude_none=True, exclude_unset=True)
    if "images" in fields:
        fields["images"] = [str(url) for url in fields["images"]]
    return fields
