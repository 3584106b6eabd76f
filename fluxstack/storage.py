"""Persistence backends for the tool and submission collections.

Both backends keep the whole catalog in one JSON document:

    {"tools": [...], "submissions": [...]}

Records are stored in wire shape (camelCase keys) and new records are
prepended so the stored order is newest first. Every mutation is a single
read-modify-write performed under a lock, which makes it atomic per record
for one server process.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import threading
from functools import lru_cache
from io import BytesIO
from pathlib import Path
from typing import Any
from typing import Callable
from typing import Dict
from typing import List

import urllib3
from minio import Minio
from minio.error import MinioException
from minio.error import S3Error

from .config import get_settings
from .errors import DuplicateKeyError
from .errors import NotFoundError
from .errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

TOOLS = "tools"
SUBMISSIONS = "submissions"
COLLECTIONS = (TOOLS, SUBMISSIONS)
RECORD_KINDS = {TOOLS: "Tool", SUBMISSIONS: "Submission"}

Record = Dict[str, Any]
Document = Dict[str, List[Record]]


def empty_document() -> Document:
    return {collection: [] for collection in COLLECTIONS}


def _normalize_document(data: Any) -> Document:
    if not isinstance(data, dict):
        raise ValueError("Catalog payload is not a JSON object")
    document = empty_document()
    for collection in COLLECTIONS:
        records = data.get(collection) or []
        if not isinstance(records, list):
            raise ValueError(f"Catalog collection {collection!r} is not a list")
        document[collection] = records
    return document


def _find_index(records: List[Record], record_id: str) -> int:
    for index, record in enumerate(records):
        if record.get("id") == record_id:
            return index
    return -1


class CatalogStore:
    """Per-record operations over a catalog document.

    Subclasses provide ``_read_document`` and ``_write_document``.
    """

    backend_name = "abstract"

    def __init__(self) -> None:
        self._lock = threading.RLock()

    def _read_document(self) -> Document:
        raise NotImplementedError

    def _write_document(self, document: Document) -> None:
        raise NotImplementedError

    def _records(self, document: Document, collection: str) -> List[Record]:
        if collection not in COLLECTIONS:
            raise KeyError(f"Unknown collection: {collection}")
        return document[collection]

    def list(self, collection: str) -> List[Record]:
        with self._lock:
            return copy.deepcopy(self._records(self._read_document(), collection))

    def get(self, collection: str, record_id: str) -> Record:
        with self._lock:
            records = self._records(self._read_document(), collection)
            index = _find_index(records, record_id)
            if index == -1:
                raise NotFoundError(RECORD_KINDS[collection], record_id)
            return copy.deepcopy(records[index])

    def insert(self, collection: str, record: Record) -> Record:
        with self._lock:
            document = self._read_document()
            records = self._records(document, collection)
            if _find_index(records, record["id"]) != -1:
                raise DuplicateKeyError(collection, record["id"])
            records.insert(0, copy.deepcopy(record))
            self._write_document(document)
            return copy.deepcopy(record)

    def update(self, collection: str, record_id: str, patch: Record) -> Record:
        with self._lock:
            document = self._read_document()
            records = self._records(document, collection)
            index = _find_index(records, record_id)
            if index == -1:
                raise NotFoundError(RECORD_KINDS[collection], record_id)
            updated = {**records[index], **copy.deepcopy(patch), "id": record_id}
            records[index] = updated
            self._write_document(document)
            return copy.deepcopy(updated)

    def delete(self, collection: str, record_id: str) -> Record:
        with self._lock:
            document = self._read_document()
            records = self._records(document, collection)
            index = _find_index(records, record_id)
            if index == -1:
                raise NotFoundError(RECORD_KINDS[collection], record_id)
            removed = records.pop(index)
            self._write_document(document)
            return removed

    def increment_vote(self, collection: str, record_id: str) -> int:
        with self._lock:
            document = self._read_document()
            records = self._records(document, collection)
            index = _find_index(records, record_id)
            if index == -1:
                raise NotFoundError(RECORD_KINDS[collection], record_id)
            votes = int(records[index].get("votes") or 0) + 1
            records[index]["votes"] = votes
            self._write_document(document)
            return votes

    def move(
        self,
        source: str,
        target: str,
        record_id: str,
        transform: Callable[[Record], Record],
    ) -> Record:
        """Remove a record from ``source`` and insert ``transform(record)`` into ``target`` in one write."""
        with self._lock:
            document = self._read_document()
            source_records = self._records(document, source)
            target_records = self._records(document, target)
            index = _find_index(source_records, record_id)
            if index == -1:
                raise NotFoundError(RECORD_KINDS[source], record_id)
            moved = transform(copy.deepcopy(source_records[index]))
            if _find_index(target_records, moved["id"]) != -1:
                raise DuplicateKeyError(target, moved["id"])
            source_records.pop(index)
            target_records.insert(0, moved)
            self._write_document(document)
            return copy.deepcopy(moved)


class LocalCatalogStore(CatalogStore):
    """Catalog kept in a local JSON file."""

    backend_name = "local"

    def __init__(self, path: Path) -> None:
        super().__init__()
        self.path = Path(path)

    def _read_document(self) -> Document:
        if not self.path.exists():
            return empty_document()
        try:
            return _normalize_document(json.loads(self.path.read_text(encoding="utf-8")))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read catalog file {self.path}: {e}")
            raise UpstreamUnavailableError() from e

    def _write_document(self, document: Document) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to write catalog file {self.path}: {e}")
            raise UpstreamUnavailableError() from e


class MinioCatalogStore(CatalogStore):
    """Catalog kept as a single JSON object in a MinIO bucket."""

    backend_name = "minio"

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket_name: str,
        secure: bool = True,
        object_name: str = "catalog.json",
        client: Minio | None = None,
    ) -> None:
        super().__init__()
        self.bucket_name = bucket_name
        self.object_name = object_name
        self.client = client or Minio(
            endpoint,
            access_key=access_key,
            secret_key=secret_key,
            secure=secure,
        )
        self._bucket_ready = False

    def _ensure_bucket(self) -> None:
        """Ensure the bucket exists, create if it doesn't."""
        if self._bucket_ready:
            return
        if not self.client.bucket_exists(self.bucket_name):
            self.client.make_bucket(self.bucket_name)
            logger.info(f"Created bucket: {self.bucket_name}")
        self._bucket_ready = True

    def _read_document(self) -> Document:
        response = None
        try:
            self._ensure_bucket()
            response = self.client.get_object(self.bucket_name, self.object_name)
            return _normalize_document(json.loads(response.read()))
        except S3Error as e:
            if "NoSuchKey" in str(e):
                logger.info(f"No {self.object_name} found, starting with an empty catalog")
                return empty_document()
            logger.error(f"Failed to get {self.object_name}: {e}")
            raise UpstreamUnavailableError() from e
        except (MinioException, urllib3.exceptions.HTTPError, ValueError) as e:
            logger.error(f"Failed to get {self.object_name}: {e}")
            raise UpstreamUnavailableError() from e
        finally:
            if response is not None:
                response.close()
                response.release_conn()

    def _write_document(self, document: Document) -> None:
        try:
            json_bytes = json.dumps(document, indent=2).encode("utf-8")
            self.client.put_object(
                self.bucket_name,
                self.object_name,
                data=BytesIO(json_bytes),
                length=len(json_bytes),
                content_type="application/json",
            )
        except (MinioException, urllib3.exceptions.HTTPError) as e:
            logger.error(f"Failed to update {self.object_name}: {e}")
            raise UpstreamUnavailableError() from e


def _backend() -> str:
    return get_settings().storage_backend


def use_local_storage() -> bool:
    return _backend() == "local"


@lru_cache(maxsize=1)
def get_store() -> CatalogStore:
    """Build the configured backend once per process."""
    settings = get_settings()
    if use_local_storage():
        logger.info(f"Using local catalog file {settings.data_file}")
        return LocalCatalogStore(settings.data_file)
    if _backend() == "minio":
        credentials = settings.minio_credentials()
        logger.info(f"Using MinIO bucket {credentials['bucket_name']}")
        return MinioCatalogStore(**credentials)
    raise RuntimeError(f"Unknown storage backend: {_backend()}")
