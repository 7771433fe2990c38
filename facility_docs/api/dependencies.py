from typing import Optional

from bson import ObjectId
from fastapi import Header, Request

from facility_docs.core.cache import TTLCache
from facility_docs.core.errors import ValidationError
from facility_docs.storage import S3ObjectStore


def get_object_store(request: Request) -> S3ObjectStore:
    return request.app.state.object_store


def get_cache(request: Request) -> TTLCache:
    return request.app.state.cache


def get_owner_id(x_user_id: Optional[str] = Header(default=None)) -> Optional[str]:
    """Identity of the uploader, if the caller supplied one."""
    if x_user_id is None or not x_user_id.strip():
        return None
    if not ObjectId.is_valid(x_user_id.strip()):
        raise ValidationError("Invalid user ID format")
    return x_user_id.strip()
