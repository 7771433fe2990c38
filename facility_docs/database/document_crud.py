# facility_docs/database/document_crud.py
import re
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId

import facility_docs.database.mongo as mongo
from facility_docs.models.documents import DocumentCategory, DocumentFilter, derive_category

SEARCH_FIELDS = ("original_filename", "content_type", "folder", "category", "description", "tags")
LIST_SORT = [("folder", 1), ("uploaded_at", -1)]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_document_collection():
    if mongo.db is None:
        raise RuntimeError("Database not initialized. Ensure connect_to_mongo() is called.")
    return mongo.db["documents"]


def get_orphan_collection():
    if mongo.db is None:
        raise RuntimeError("Database not initialized. Ensure connect_to_mongo() is called.")
    return mongo.db["storage_orphans"]


def _serialize(doc: Optional[dict]) -> Optional[dict]:
    if doc is None:
        return None
    doc["_id"] = str(doc["_id"])
    if doc.get("owner_id") is not None:
        doc["owner_id"] = str(doc["owner_id"])
    return doc


def build_list_query(filters: DocumentFilter) -> dict:
    query: dict = {}
    if not filters.include_archived:
        query["is_archived"] = False
    if filters.folder:
        query["folder"] = filters.folder
    if filters.category:
        query["category"] = filters.category.value
    if filters.tags:
        query["tags"] = {"$all": list(filters.tags)}
    if filters.owner_id:
        query["owner_id"] = ObjectId(filters.owner_id)
    return query


def build_search_query(text: str, include_archived: bool = False) -> dict:
    text = text.strip()
    if not text:
        raise ValueError("Search text must not be blank")
    pattern = re.escape(text)
    query: dict = {
        "$or": [{field: {"$regex": pattern, "$options": "i"}} for field in SEARCH_FIELDS]
    }
    if not include_archived:
        query["is_archived"] = False
    return query


async def create_document(doc: dict) -> dict:
    """Insert a catalog record. Category is derived from the content type."""
    collection = get_document_collection()
    now = _now()
    record = dict(doc)
    if record.get("owner_id") is not None:
        record["owner_id"] = ObjectId(record["owner_id"])
    record["category"] = derive_category(record["content_type"]).value
    record["is_archived"] = False
    record["uploaded_at"] = now
    record["last_accessed_at"] = now
    record["created_at"] = now
    record["updated_at"] = now
    result = await collection.insert_one(record)
    record["_id"] = result.inserted_id
    return _serialize(record)


async def get_document_by_id(doc_id: str, touch: bool = False):
    collection = get_document_collection()
    if touch:
        await collection.update_one(
            {"_id": ObjectId(doc_id)}, {"$set": {"last_accessed_at": _now()}}
        )
    doc = await collection.find_one({"_id": ObjectId(doc_id)})
    return _serialize(doc)


async def find_by_storage_id(storage_id: str):
    collection = get_document_collection()
    doc = await collection.find_one({"storage_id": storage_id})
    return _serialize(doc)


async def list_documents(filters: DocumentFilter, limit: int = 100, skip: int = 0):
    collection = get_document_collection()
    cursor = collection.find(build_list_query(filters)).sort(LIST_SORT).skip(skip).limit(limit)
    docs = await cursor.to_list(length=limit)
    return [_serialize(doc) for doc in docs]


async def search_documents(text: str, limit: int = 100):
    collection = get_document_collection()
    cursor = collection.find(build_search_query(text)).sort(LIST_SORT).limit(limit)
    docs = await cursor.to_list(length=limit)
    return [_serialize(doc) for doc in docs]


async def update_document(doc_id: str, changes: dict):
    """Apply catalog changes; a new content type re-derives the category."""
    collection = get_document_collection()
    updates = {k: v for k, v in changes.items() if k not in {"storage_id", "storage_url"}}
    if "content_type" in updates:
        updates["category"] = derive_category(updates["content_type"]).value
    updates["updated_at"] = _now()
    result = await collection.update_one({"_id": ObjectId(doc_id)}, {"$set": updates})
    if result.matched_count == 0:
        return None
    return await get_document_by_id(doc_id)


async def archive_document(storage_id: str) -> bool:
    collection = get_document_collection()
    result = await collection.update_one(
        {"storage_id": storage_id},
        {"$set": {"is_archived": True, "updated_at": _now()}},
    )
    return result.matched_count > 0


async def count_by_category() -> dict:
    collection = get_document_collection()
    counts = {}
    for category in DocumentCategory:
        counts[category.value] = await collection.count_documents(
            {"is_archived": False, "category": category.value}
        )
    counts["total"] = sum(counts.values())
    return counts


async def record_orphan(public_id: str, folder: str, reason: str) -> str:
    collection = get_orphan_collection()
    result = await collection.insert_one(
        {
            "public_id": public_id,
            "folder": folder,
            "reason": reason,
            "created_at": _now(),
            "resolved_at": None,
        }
    )
    return str(result.inserted_id)


async def list_unresolved_orphans(limit: int = 100):
    collection = get_orphan_collection()
    cursor = collection.find({"resolved_at": None}).sort([("created_at", 1)]).limit(limit)
    docs = await cursor.to_list(length=limit)
    for doc in docs:
        doc["_id"] = str(doc["_id"])
    return docs


async def resolve_orphan(orphan_id: str):
    collection = get_orphan_collection()
    await collection.update_one(
        {"_id": ObjectId(orphan_id)}, {"$set": {"resolved_at": _now()}}
    )


async def count_unresolved_orphans() -> int:
    collection = get_orphan_collection()
    return await collection.count_documents({"resolved_at": None})


async def ensure_indexes():
    collection = get_document_collection()
    await collection.create_index([("folder", 1), ("uploaded_at", -1)])
    await collection.create_index([("content_type", 1)])
    await collection.create_index([("category", 1)])
    await collection.create_index([("tags", 1)])
    await collection.create_index([("owner_id", 1)])
    await collection.create_index([("storage_id", 1)], unique=True)
    orphans = get_orphan_collection()
    await orphans.create_index([("resolved_at", 1), ("created_at", 1)])
