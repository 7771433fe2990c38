# facility_docs/config.py
import os
import warnings
from dataclasses import dataclass
from enum import StrEnum
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class Env(StrEnum):
    LOCAL = "local"
    DEV = "dev"
    TEST = "test"
    PROD = "prod"


SYNONYMS: dict[str, Env] = {
    "development": Env.DEV,
    "dev": Env.DEV,
    "local": Env.LOCAL,
    "test": Env.TEST,
    "prod": Env.PROD,
    "production": Env.PROD,
}


def resolve_env(raw: Optional[str]) -> Env:
    """Map APP_ENV onto an Env, falling back to LOCAL for unknown values."""
    if not raw:
        return Env.LOCAL
    val = raw.strip().lower()
    if val in (e.value for e in Env):
        return Env(val)
    env = SYNONYMS.get(val)
    if env is None:
        warnings.warn(
            f"Unrecognized environment '{raw}', defaulting to 'local'.",
            RuntimeWarning,
            stacklevel=2,
        )
        return Env.LOCAL
    return env


def _bool(raw: Optional[str], default: bool = False) -> bool:
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    env: Env
    mongo_uri: str
    mongo_db_name: str
    aws_access_key_id: Optional[str]
    aws_secret_access_key: Optional[str]
    aws_bucket: Optional[str]
    aws_region: str
    s3_endpoint_url: Optional[str]
    s3_public_base_url: Optional[str]
    max_upload_size: int
    max_batch_files: int
    storage_timeout_seconds: float
    default_folder: str
    storage_fail_fast: bool
    cache_ttl_seconds: float

    @property
    def is_prod(self) -> bool:
        return self.env is Env.PROD

    @property
    def storage_configured(self) -> bool:
        return bool(self.aws_access_key_id and self.aws_secret_access_key and self.aws_bucket)


def load_settings() -> Settings:
    return Settings(
        env=resolve_env(os.getenv("APP_ENV")),
        mongo_uri=os.getenv("MONGO_URI") or "mongodb://localhost:27017",
        mongo_db_name=os.getenv("MONGO_DB_NAME") or "facility_docs",
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        aws_bucket=os.getenv("AWS_S3_BUCKET_NAME"),
        aws_region=os.getenv("AWS_REGION", "us-east-1"),
        s3_endpoint_url=os.getenv("S3_ENDPOINT_URL") or None,
        s3_public_base_url=os.getenv("S3_PUBLIC_BASE_URL") or None,
        max_upload_size=int(os.getenv("MAX_UPLOAD_SIZE", str(5 * 1024 * 1024))),
        max_batch_files=int(os.getenv("MAX_BATCH_FILES", "10")),
        storage_timeout_seconds=float(os.getenv("STORAGE_TIMEOUT_SECONDS", "30")),
        default_folder=os.getenv("DEFAULT_FOLDER") or "documents",
        storage_fail_fast=_bool(os.getenv("STORAGE_FAIL_FAST")),
        cache_ttl_seconds=float(os.getenv("CACHE_TTL_SECONDS", "60")),
    )


settings = load_settings()
