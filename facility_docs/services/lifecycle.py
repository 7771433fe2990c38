# facility_docs/services/lifecycle.py
import logging
from dataclasses import dataclass

from facility_docs.core.errors import NotFoundError, UploadError, ValidationError
from facility_docs.database import document_crud

logger = logging.getLogger(__name__)


@dataclass
class DeleteOutcome:
    message: str
    document_archived: bool
    status_code: int = 200

    def to_dict(self) -> dict:
        return {
            "success": True,
            "message": self.message,
            "documentArchived": self.document_archived,
        }


async def delete_document(store, public_id: str) -> DeleteOutcome:
    """Archive the catalog record, then remove the stored object.

    Archival happens first and is not rolled back if the store misbehaves:
    the object may already have been removed out of band.
    """
    store.ensure_configured()
    public_id = (public_id or "").strip()
    if not public_id:
        raise ValidationError("Public ID is required")

    record = await document_crud.find_by_storage_id(public_id)
    if record is not None:
        await document_crud.archive_document(public_id)
        logger.info("Archived document %s", record["_id"], extra={"public_id": public_id})

    found = await store.delete(public_id)

    if found:
        return DeleteOutcome("File deleted successfully", document_archived=record is not None)
    if record is not None:
        return DeleteOutcome(
            "File marked as archived in database (not found in storage)",
            document_archived=True,
        )
    raise NotFoundError("File not found")


async def sweep_orphans(store, limit: int = 100) -> dict:
    """Retry removal of objects whose catalog record was never written."""
    swept = 0
    for orphan in await document_crud.list_unresolved_orphans(limit=limit):
        try:
            await store.delete(orphan["public_id"])
        except UploadError as e:
            logger.warning(
                "Orphan %s still not removable: %s",
                orphan["public_id"],
                e,
                extra={"public_id": orphan["public_id"], "folder": orphan.get("folder")},
            )
            continue
        await document_crud.resolve_orphan(orphan["_id"])
        swept += 1
    remaining = await document_crud.count_unresolved_orphans()
    if swept:
        logger.info("Swept %d orphaned objects, %d remaining", swept, remaining)
    return {"swept": swept, "remaining": remaining}
