from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from facility_docs.api.dependencies import get_cache, get_object_store, get_owner_id
from facility_docs.api.documents import STATS_CACHE_KEY
from facility_docs.config import settings
from facility_docs.core.errors import ValidationError
from facility_docs.models.documents import normalize_tags
from facility_docs.services import ingestion, lifecycle
from facility_docs.services.ingestion import IncomingFile, UploadFields

router = APIRouter()


def _tags_field(values: Optional[List[str]]) -> List[str]:
    # A single form value may carry a comma-separated list; repeated values are tags already.
    if not values:
        return []
    if len(values) == 1:
        return normalize_tags(values[0])
    return normalize_tags(values)


async def _read(file: UploadFile) -> IncomingFile:
    return IncomingFile(
        filename=file.filename or "",
        content_type=file.content_type or "application/octet-stream",
        data=await file.read(),
    )


@router.post("/single", status_code=201)
async def upload_single_file(
    file: Optional[UploadFile] = File(None),
    folder: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[List[str]] = Form(None),
    owner_id: Optional[str] = Depends(get_owner_id),
    store=Depends(get_object_store),
    cache=Depends(get_cache),
):
    if file is None:
        raise ValidationError("No file uploaded")

    fields = UploadFields(
        folder=(folder or "").strip() or settings.default_folder,
        description=description,
        tags=_tags_field(tags),
        owner_id=owner_id,
    )
    data = await ingestion.upload_single(store, await _read(file), fields)
    cache.invalidate(STATS_CACHE_KEY)
    return {"success": True, "message": "File uploaded successfully", "data": data}


@router.post("/multiple", status_code=201)
async def upload_multiple_files(
    files: Optional[List[UploadFile]] = File(None),
    folder: Optional[str] = Form(None),
    descriptions: Optional[List[str]] = Form(None),
    tags: Optional[List[str]] = Form(None),
    owner_id: Optional[str] = Depends(get_owner_id),
    store=Depends(get_object_store),
    cache=Depends(get_cache),
):
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > settings.max_batch_files:
        raise ValidationError(f"At most {settings.max_batch_files} files can be uploaded at once")

    target_folder = (folder or "").strip() or settings.default_folder
    descriptions = descriptions or []
    tags = tags or []
    incoming = [await _read(f) for f in files]
    fields = [
        UploadFields(
            folder=target_folder,
            description=descriptions[i] if i < len(descriptions) and descriptions[i] else None,
            tags=normalize_tags(tags[i]) if i < len(tags) else [],
            owner_id=owner_id,
        )
        for i in range(len(incoming))
    ]

    data = await ingestion.upload_multiple(store, incoming, fields)
    cache.invalidate(STATS_CACHE_KEY)
    return {
        "success": True,
        "message": "Files uploaded successfully",
        "count": len(data),
        "data": data,
    }


@router.post("/orphans/sweep")
async def sweep_orphaned_objects(store=Depends(get_object_store)):
    result = await lifecycle.sweep_orphans(store)
    return {"success": True, **result}


@router.delete("/{public_id:path}")
async def delete_file(
    public_id: str,
    store=Depends(get_object_store),
    cache=Depends(get_cache),
):
    outcome = await lifecycle.delete_document(store, public_id)
    cache.invalidate(STATS_CACHE_KEY)
    return JSONResponse(status_code=outcome.status_code, content=outcome.to_dict())
