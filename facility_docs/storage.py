# facility_docs/storage.py
"""S3-backed remote object store.

Objects are written under ``<folder>/<uuid><ext>``; that key is the public id
handed back to clients and stored on the catalog record as ``storage_id``.
"""
import asyncio
import logging
import mimetypes
import os
import threading
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
    ReadTimeoutError,
)

from facility_docs.core.errors import (
    AuthorizationError,
    ConfigurationError,
    NetworkError,
    RemoteDeleteError,
    UploadError,
    UploadFailure,
)

logger = logging.getLogger(__name__)

AUTH_ERROR_CODES = {"InvalidAccessKeyId", "SignatureDoesNotMatch", "InvalidToken", "ExpiredToken"}
NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
NETWORK_ERRORS = (EndpointConnectionError, ConnectTimeoutError, ReadTimeoutError, ConnectionClosedError)


@dataclass
class StoredObject:
    public_id: str
    url: str
    format: str
    bytes: int
    resource_type: str
    width: Optional[int] = None
    height: Optional[int] = None


def object_format(filename: str, content_type: str) -> str:
    ext = os.path.splitext(filename)[1].lstrip(".").lower()
    if ext:
        return ext
    guessed = mimetypes.guess_extension(content_type) or ""
    return guessed.lstrip(".")


def resource_type(content_type: str) -> str:
    return "image" if content_type.startswith("image/") else "raw"


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def translate_storage_error(exc: Exception, action: str = "Upload") -> UploadError:
    """Classify an SDK failure into the pipeline's error taxonomy."""
    if isinstance(exc, UploadError):
        return exc
    if isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        return ConfigurationError(error=str(exc))
    if isinstance(exc, ClientError) and _error_code(exc) in AUTH_ERROR_CODES:
        return AuthorizationError(error=str(exc))
    if isinstance(exc, NETWORK_ERRORS):
        return NetworkError()
    if isinstance(exc, asyncio.TimeoutError):
        return NetworkError("Storage request timed out", retryable=True)
    return UploadFailure(error=str(exc), generic_error=f"{action} failed")


class S3ObjectStore:
    def __init__(
        self,
        bucket: Optional[str],
        access_key: Optional[str],
        secret_key: Optional[str],
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.bucket = bucket
        self.access_key = access_key
        self.secret_key = secret_key
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_base_url = public_base_url
        self.timeout = timeout
        self._s3 = None
        self._client_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings) -> "S3ObjectStore":
        return cls(
            bucket=settings.aws_bucket,
            access_key=settings.aws_access_key_id,
            secret_key=settings.aws_secret_access_key,
            region=settings.aws_region,
            endpoint_url=settings.s3_endpoint_url,
            public_base_url=settings.s3_public_base_url,
            timeout=settings.storage_timeout_seconds,
        )

    def ensure_configured(self) -> None:
        missing = [
            name
            for name, value in (
                ("AWS_S3_BUCKET_NAME", self.bucket),
                ("AWS_ACCESS_KEY_ID", self.access_key),
                ("AWS_SECRET_ACCESS_KEY", self.secret_key),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(error=f"Missing settings: {', '.join(missing)}")

    @property
    def client(self):
        # boto3 sessions are not thread-safe; build one client, once, on a private session.
        with self._client_lock:
            if self._s3 is None:
                self.ensure_configured()
                session = boto3.session.Session(
                    aws_access_key_id=self.access_key,
                    aws_secret_access_key=self.secret_key,
                    region_name=self.region,
                )
                self._s3 = session.client(
                    "s3",
                    endpoint_url=self.endpoint_url,
                    config=Config(
                        connect_timeout=self.timeout,
                        read_timeout=self.timeout,
                        retries={"max_attempts": 2},
                    ),
                )
            return self._s3

    def object_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def _put_sync(self, key: str, data: bytes, content_type: str) -> int:
        """Write the object and return the byte count the store reports for it."""
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        head = self.client.head_object(Bucket=self.bucket, Key=key)
        return int(head["ContentLength"])

    def _delete_sync(self, key: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in NOT_FOUND_CODES:
                return False
            raise
        self.client.delete_object(Bucket=self.bucket, Key=key)
        return True

    async def put(self, data: bytes, folder: str, filename: str, content_type: str) -> StoredObject:
        self.ensure_configured()
        key = f"{folder}/{uuid4().hex}{os.path.splitext(filename)[1].lower()}"
        logger.debug("Committing %d bytes to %s", len(data), key, extra={"public_id": key, "folder": folder})
        try:
            size = await asyncio.wait_for(
                asyncio.to_thread(self._put_sync, key, data, content_type), timeout=self.timeout
            )
        except (BotoCoreError, ClientError, asyncio.TimeoutError) as e:
            raise translate_storage_error(e, "Upload") from e
        return StoredObject(
            public_id=key,
            url=self.object_url(key),
            format=object_format(filename, content_type),
            bytes=size,
            resource_type=resource_type(content_type),
        )

    async def delete(self, public_id: str) -> bool:
        """Remove an object. Returns False when the store has no such object."""
        self.ensure_configured()
        logger.debug("Deleting %s", public_id, extra={"public_id": public_id})
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(self._delete_sync, public_id), timeout=self.timeout
            )
        except ClientError as e:
            if _error_code(e) in AUTH_ERROR_CODES:
                raise AuthorizationError(error=str(e)) from e
            raise RemoteDeleteError(details=e.response.get("Error", {})) from e
        except (BotoCoreError, asyncio.TimeoutError) as e:
            raise translate_storage_error(e, "Delete") from e
