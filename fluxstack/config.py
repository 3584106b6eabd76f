"""Project configuration and paths."""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Project structure
PROJECT_ROOT = Path(__file__).parent.parent
DATA_DIR = PROJECT_ROOT / "data"
CATALOG_FILE = DATA_DIR / "catalog.json"

DEFAULT_FETCH_TIMEOUT = 5.0


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Environment variable {name} must be set for the MinIO storage backend.")
    return value


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    admin_token: str
    storage_backend: str
    data_file: Path
    fetch_timeout: float
    log_level: str
    log_dir: Path
    web_host: str
    web_port: int
    minio_endpoint: Optional[str] = None
    minio_access_key: Optional[str] = None
    minio_secret_key: Optional[str] = None
    minio_bucket_name: Optional[str] = None
    minio_secure: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            admin_token=os.getenv("ADMIN_TOKEN", ""),
            storage_backend=os.getenv("FLUXSTACK_STORAGE_BACKEND", "local").lower(),
            data_file=Path(os.getenv("FLUXSTACK_DATA_FILE", str(CATALOG_FILE))),
            fetch_timeout=_env_float("FLUXSTACK_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_dir=Path(os.getenv("LOG_DIR", "logs")),
            web_host=os.getenv("WEB_HOST", "127.0.0.1"),
            web_port=int(os.getenv("WEB_PORT", "8000")),
            minio_endpoint=os.getenv("MINIO_ENDPOINT"),
            minio_access_key=os.getenv("MINIO_ACCESS_KEY"),
            minio_secret_key=os.getenv("MINIO_SECRET_KEY"),
            minio_bucket_name=os.getenv("MINIO_BUCKET_NAME"),
            minio_secure=_env_flag("MINIO_SECURE", True),
        )

    def minio_credentials(self) -> dict:
        """Connection arguments for the MinIO backend, failing loudly when incomplete."""
        return {
            "endpoint": self.minio_endpoint or _require_env("MINIO_ENDPOINT"),
            "access_key": self.minio_access_key or _require_env("MINIO_ACCESS_KEY"),
            "secret_key": self.minio_secret_key or _require_env("MINIO_SECRET_KEY"),
            "bucket_name": self.minio_bucket_name or _require_env("MINIO_BUCKET_NAME"),
            "secure": self.minio_secure,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
