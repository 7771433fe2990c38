# facility_docs/models/documents.py
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

ALLOWED_CONTENT_TYPES = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
)

DESCRIPTION_MAX_LENGTH = 500


class DocumentCategory(str, Enum):
    IMAGE = "image"
    DOCUMENT = "document"
    SPREADSHEET = "spreadsheet"
    PRESENTATION = "presentation"
    OTHER = "other"


# First matching rule wins; order matters.
CATEGORY_RULES: Tuple[Tuple[Callable[[str], bool], DocumentCategory], ...] = (
    (lambda ct: ct.startswith("image/"), DocumentCategory.IMAGE),
    (lambda ct: ct == "application/pdf", DocumentCategory.DOCUMENT),
    (lambda ct: "spreadsheet" in ct, DocumentCategory.SPREADSHEET),
    (lambda ct: "presentation" in ct, DocumentCategory.PRESENTATION),
)


def derive_category(content_type: str) -> DocumentCategory:
    for matches, category in CATEGORY_RULES:
        if matches(content_type):
            return category
    return DocumentCategory.DOCUMENT


def normalize_tags(value: Union[str, Sequence[str], None]) -> List[str]:
    """Collapse the form-field union (comma string or list) into a list of tags."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return [tag.strip() for tag in items if tag and tag.strip()]


class DocumentIn(BaseModel):
    storage_url: str
    storage_id: str
    original_filename: str
    content_type: str
    size_bytes: int = Field(ge=0)
    folder: str = "documents"
    owner_id: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    tags: List[str] = Field(default_factory=list)

    @field_validator("storage_url", "storage_id", "original_filename", "folder", mode="before")
    @classmethod
    def _trim(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("storage_url", "storage_id", "original_filename")
    @classmethod
    def _required(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("description", mode="before")
    @classmethod
    def _trim_description(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("content_type")
    @classmethod
    def _allowed_content_type(cls, v: str) -> str:
        if v not in ALLOWED_CONTENT_TYPES:
            raise ValueError(f"unsupported content type '{v}'")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, v):
        return normalize_tags(v)


class DocumentOut(DocumentIn):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(alias="_id")
    category: DocumentCategory = DocumentCategory.DOCUMENT
    is_archived: bool = False
    uploaded_at: datetime
    last_accessed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class DocumentUpdate(BaseModel):
    """Mutable catalog fields. Storage identity is not updatable."""

    model_config = ConfigDict(extra="forbid")

    folder: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    tags: Optional[List[str]] = None
    content_type: Optional[str] = None

    @field_validator("folder", mode="before")
    @classmethod
    def _trim_folder(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("content_type")
    @classmethod
    def _allowed_content_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ALLOWED_CONTENT_TYPES:
            raise ValueError(f"unsupported content type '{v}'")
        return v

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, v):
        return None if v is None else normalize_tags(v)


class DocumentFilter(BaseModel):
    folder: Optional[str] = None
    category: Optional[DocumentCategory] = None
    tags: List[str] = Field(default_factory=list)
    owner_id: Optional[str] = None
    include_archived: bool = False
