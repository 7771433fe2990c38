# facility_docs/services/ingestion.py
"""Upload ingestion: validate, commit to the object store, then record.

Each file goes through ``commit -> record``. The record step never runs
before a successful commit. If it fails, the committed object is deleted
again; if that delete fails too, the object is written to the orphan ledger
so a later sweep can remove it.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from facility_docs.config import settings
from facility_docs.core.errors import PartialConsistencyError, UploadError, UploadFailure, ValidationError
from facility_docs.database import document_crud
from facility_docs.models.documents import ALLOWED_CONTENT_TYPES, DESCRIPTION_MAX_LENGTH, DocumentIn
from facility_docs.storage import StoredObject

logger = logging.getLogger(__name__)


@dataclass
class IncomingFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class UploadFields:
    folder: str = "documents"
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    owner_id: Optional[str] = None


def validate_file(file: IncomingFile, fields: UploadFields, max_size: Optional[int] = None) -> None:
    """Reject a payload before any network I/O happens."""
    max_size = settings.max_upload_size if max_size is None else max_size
    if not file.filename:
        raise ValidationError("No file uploaded")
    if file.size == 0:
        raise ValidationError(f"File '{file.filename}' is empty")
    if file.size > max_size:
        raise ValidationError(
            f"File '{file.filename}' exceeds the maximum size of {max_size // (1024 * 1024)} MB",
            size=file.size,
            max_size=max_size,
        )
    if file.content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(f"Unsupported file type '{file.content_type}'")
    if fields.description and len(fields.description.strip()) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters")


def build_document_summary(record: dict) -> dict:
    return {
        "id": record["_id"],
        "url": record["storage_url"],
        "public_id": record["storage_id"],
        "originalname": record["original_filename"],
        "mimetype": record["content_type"],
        "size": record["size_bytes"],
        "folder": record["folder"],
        "category": record["category"],
        "description": record.get("description"),
        "tags": record.get("tags", []),
        "uploadedAt": record["uploaded_at"],
        "createdAt": record["created_at"],
        "updatedAt": record["updated_at"],
    }


def build_upload_summary(stored: StoredObject, record: dict) -> dict:
    summary = {
        "url": stored.url,
        "public_id": stored.public_id,
        "format": stored.format,
        "size": stored.bytes,
    }
    if stored.width is not None:
        summary["width"] = stored.width
    if stored.height is not None:
        summary["height"] = stored.height
    summary["document"] = build_document_summary(record)
    return summary


async def _compensate(store, stored: StoredObject, folder: str, reason: str) -> None:
    try:
        await store.delete(stored.public_id)
        logger.warning(
            "Removed committed object %s after its record failed to save",
            stored.public_id,
            extra={"public_id": stored.public_id, "folder": folder},
        )
        return
    except UploadError as e:
        logger.warning("Compensating delete of %s failed: %s", stored.public_id, e)

    try:
        await document_crud.record_orphan(stored.public_id, folder, reason)
    except Exception:
        logger.error(
            "Orphaned object %s in folder %s could not be recorded for reconciliation",
            stored.public_id,
            folder,
            exc_info=True,
            extra={"public_id": stored.public_id, "folder": folder},
        )
        return
    logger.error(
        "Orphaned object %s in folder %s recorded for reconciliation",
        stored.public_id,
        folder,
        extra={"public_id": stored.public_id, "folder": folder},
    )


async def _record(store, stored: StoredObject, file: IncomingFile, fields: UploadFields) -> dict:
    try:
        document = DocumentIn(
            storage_url=stored.url,
            storage_id=stored.public_id,
            original_filename=file.filename,
            content_type=file.content_type,
            size_bytes=stored.bytes,
            folder=fields.folder,
            owner_id=fields.owner_id,
            description=fields.description,
            tags=fields.tags,
        )
        return await document_crud.create_document(document.model_dump())
    except Exception as e:
        await _compensate(store, stored, fields.folder, str(e))
        raise PartialConsistencyError(error=str(e), public_id=stored.public_id) from e


async def _ingest(store, file: IncomingFile, fields: UploadFields) -> dict:
    stored = await store.put(file.data, fields.folder, file.filename, file.content_type)
    if stored.bytes != file.size:
        await _compensate(store, stored, fields.folder, "size mismatch after commit")
        raise UploadFailure(error=f"Stored {stored.bytes} bytes, expected {file.size}")
    record = await _record(store, stored, file, fields)
    logger.info(
        "Uploaded %s (%d bytes) as %s",
        file.filename,
        file.size,
        stored.public_id,
        extra={"public_id": stored.public_id, "folder": fields.folder},
    )
    return build_upload_summary(stored, record)


async def upload_single(store, file: IncomingFile, fields: UploadFields) -> dict:
    validate_file(file, fields)
    store.ensure_configured()
    try:
        return await _ingest(store, file, fields)
    except UploadError:
        raise
    except Exception as e:
        raise UploadFailure(error=str(e)) from e


async def upload_multiple(
    store, files: Sequence[IncomingFile], fields: Sequence[UploadFields]
) -> List[dict]:
    """Upload a batch concurrently; any failure fails the whole batch.

    Every file is attempted before the failure is reported. Files that did
    succeed keep their records. Results keep the caller's order.
    """
    if not files:
        raise ValidationError("No files uploaded")
    if len(files) > settings.max_batch_files:
        raise ValidationError(f"At most {settings.max_batch_files} files can be uploaded at once")
    for file, file_fields in zip(files, fields):
        validate_file(file, file_fields)
    store.ensure_configured()

    results = await asyncio.gather(
        *(_ingest(store, file, file_fields) for file, file_fields in zip(files, fields)),
        return_exceptions=True,
    )

    failures = [(i, r) for i, r in enumerate(results) if isinstance(r, BaseException)]
    if failures:
        logger.error(
            "Batch upload failed for %d of %d files (first failure at #%d)",
            len(failures),
            len(files),
            failures[0][0] + 1,
        )
        first = failures[0][1]
        if isinstance(first, UploadError):
            raise first
        raise UploadFailure(error=str(first)) from first

    return [
        {
            "index": index,
            **{k: v for k, v in summary.items() if k != "document"},
            "document": {
                "id": summary["document"]["id"],
                "originalname": summary["document"]["originalname"],
                "category": summary["document"]["category"],
                "uploadedAt": summary["document"]["uploadedAt"],
            },
        }
        for index, summary in enumerate(results, start=1)
    ]
