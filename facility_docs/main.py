import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

import facility_docs.database.mongo as mongo
from facility_docs.api import documents, upload
from facility_docs.config import settings
from facility_docs.core.cache import TTLCache
from facility_docs.core.errors import register_exception_handlers
from facility_docs.core.logging import setup_logging
from facility_docs.database.document_crud import ensure_indexes
from facility_docs.database.mongo import close_mongo_connection, connect_to_mongo
from facility_docs.storage import S3ObjectStore

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.storage_fail_fast:
        app.state.object_store.ensure_configured()
    elif not settings.storage_configured:
        logger.warning("Object storage credentials are not configured; uploads will fail")
    await connect_to_mongo()
    await ensure_indexes()
    yield
    await close_mongo_connection()


app = FastAPI(title="Facility Document Service", lifespan=lifespan)
app.state.object_store = S3ObjectStore.from_settings(settings)
app.state.cache = TTLCache()

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.info(
        "%s %s %s",
        request.method,
        request.url.path,
        response.status_code,
        extra={"http_method": request.method, "path": request.url.path, "status_code": response.status_code},
    )
    return response


app.include_router(upload.router, prefix="/upload", tags=["Upload"])
app.include_router(documents.router, prefix="/documents", tags=["Documents"])


@app.get("/")
async def root():
    return {"message": "API is running."}


@app.get("/health")
async def health():
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": "Connected" if mongo.db is not None else "Disconnected",
    }
