from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Query

from facility_docs.api.dependencies import get_cache
from facility_docs.config import settings
from facility_docs.database import document_crud
from facility_docs.models.documents import DocumentCategory, DocumentFilter, DocumentOut, DocumentUpdate, normalize_tags

router = APIRouter()

STATS_CACHE_KEY = "documents:stats"


def _out(doc: dict) -> dict:
    return DocumentOut.model_validate(doc).model_dump(mode="json")


def _check_id(doc_id: str) -> None:
    if not ObjectId.is_valid(doc_id):
        raise HTTPException(status_code=400, detail="Invalid document ID format")


@router.get("")
async def list_documents(
    folder: Optional[str] = None,
    category: Optional[DocumentCategory] = None,
    tags: Optional[str] = None,
    owner: Optional[str] = None,
    include_archived: bool = False,
    limit: int = Query(100, ge=1, le=500),
    skip: int = Query(0, ge=0),
):
    if owner is not None and not ObjectId.is_valid(owner):
        raise HTTPException(status_code=400, detail="Invalid owner ID format")
    filters = DocumentFilter(
        folder=folder,
        category=category,
        tags=normalize_tags(tags),
        owner_id=owner,
        include_archived=include_archived,
    )
    docs = await document_crud.list_documents(filters, limit=limit, skip=skip)
    return {"success": True, "count": len(docs), "data": [_out(d) for d in docs]}


@router.get("/search")
async def search_documents(q: str = Query(..., min_length=1), limit: int = Query(100, ge=1, le=500)):
    if not q.strip():
        raise HTTPException(status_code=400, detail="Search text must not be blank")
    docs = await document_crud.search_documents(q, limit=limit)
    return {"success": True, "count": len(docs), "data": [_out(d) for d in docs]}


@router.get("/stats")
async def document_stats(cache=Depends(get_cache)):
    counts = await cache.get_or_fetch(
        STATS_CACHE_KEY, document_crud.count_by_category, settings.cache_ttl_seconds
    )
    return {"success": True, "data": counts}


@router.get("/by-public-id/{public_id:path}")
async def get_document_by_public_id(public_id: str):
    doc = await document_crud.find_by_storage_id(public_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return {"success": True, "data": _out(doc)}


@router.get("/{doc_id}")
async def get_document(doc_id: str):
    _check_id(doc_id)
    doc = await document_crud.get_document_by_id(doc_id, touch=True)
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return {"success": True, "data": _out(doc)}


@router.patch("/{doc_id}")
async def update_document(doc_id: str, changes: DocumentUpdate, cache=Depends(get_cache)):
    _check_id(doc_id)
    updates = changes.model_dump(exclude_unset=True)
    if "folder" in updates and not updates["folder"]:
        raise HTTPException(status_code=400, detail="Folder must not be empty")
    if "content_type" in updates and updates["content_type"] is None:
        raise HTTPException(status_code=400, detail="Content type must not be empty")
    if "tags" in updates and updates["tags"] is None:
        updates["tags"] = []
    doc = await document_crud.update_document(doc_id, updates)
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    cache.invalidate(STATS_CACHE_KEY)
    return {"success": True, "data": _out(doc)}
