"""Tests for the catalog storage backends."""

import json
from unittest.mock import MagicMock

import pytest
from minio.error import S3Error

from fluxstack.errors import DuplicateKeyError
from fluxstack.errors import NotFoundError
from fluxstack.errors import UpstreamUnavailableError
from fluxstack.storage import SUBMISSIONS
from fluxstack.storage import TOOLS
from fluxstack.storage import LocalCatalogStore
from fluxstack.storage import MinioCatalogStore


def record(record_id, **fields):
    return {"id": record_id, "name": record_id.title(), "votes": 0, **fields}


def s3_error(code):
    return S3Error(
        code=code,
        message="request failed",
        resource="/catalog/catalog.json",
        request_id="req",
        host_id="host",
        response=MagicMock(),
    )


class TestLocalCatalogStore:
    """Tests for the JSON file backend."""

    def test_missing_file_is_an_empty_catalog(self, store):
        assert store.list(TOOLS) == []
        assert store.list(SUBMISSIONS) == []

    def test_insert_prepends_and_persists(self, store, catalog_file):
        store.insert(TOOLS, record("a"))
        store.insert(TOOLS, record("b"))

        assert [r["id"] for r in store.list(TOOLS)] == ["b", "a"]
        on_disk = json.loads(catalog_file.read_text())
        assert [r["id"] for r in on_disk["tools"]] == ["b", "a"]
        assert on_disk["submissions"] == []

    def test_insert_duplicate_id(self, store):
        store.insert(TOOLS, record("a"))
        with pytest.raises(DuplicateKeyError):
            store.insert(TOOLS, record("a"))
        assert len(store.list(TOOLS)) == 1

    def test_returned_records_are_copies(self, store):
        store.insert(TOOLS, record("a", tags=["x"]))
        store.list(TOOLS)[0]["tags"].append("y")
        assert store.get(TOOLS, "a")["tags"] == ["x"]

    def test_update_merges_and_keeps_id(self, store):
        store.insert(TOOLS, record("a", createdAt="2024-01-01T00:00:00+00:00"))
        updated = store.update(TOOLS, "a", {"id": "other", "name": "Renamed"})

        assert updated["id"] == "a"
        assert updated["name"] == "Renamed"
        assert updated["createdAt"] == "2024-01-01T00:00:00+00:00"

    def test_missing_record_operations(self, store):
        store.insert(TOOLS, record("a"))
        with pytest.raises(NotFoundError):
            store.get(TOOLS, "zzz")
        with pytest.raises(NotFoundError):
            store.update(TOOLS, "zzz", {"name": "x"})
        with pytest.raises(NotFoundError):
            store.delete(TOOLS, "zzz")
        with pytest.raises(NotFoundError):
            store.increment_vote(TOOLS, "zzz")
        assert store.list(TOOLS) == [record("a")]

    def test_increment_vote(self, store):
        store.insert(TOOLS, record("a", votes=2))
        assert store.increment_vote(TOOLS, "a") == 3
        assert store.get(TOOLS, "a")["votes"] == 3

    def test_move_between_collections(self, store):
        store.insert(SUBMISSIONS, record("s1"))

        moved = store.move(SUBMISSIONS, TOOLS, "s1", lambda r: {**r, "id": "t1"})

        assert moved["id"] == "t1"
        assert store.list(SUBMISSIONS) == []
        assert [r["id"] for r in store.list(TOOLS)] == ["t1"]

    def test_move_into_existing_id_changes_nothing(self, store):
        store.insert(TOOLS, record("t1"))
        store.insert(SUBMISSIONS, record("s1"))

        with pytest.raises(DuplicateKeyError):
            store.move(SUBMISSIONS, TOOLS, "s1", lambda r: {**r, "id": "t1"})

        assert [r["id"] for r in store.list(SUBMISSIONS)] == ["s1"]
        assert len(store.list(TOOLS)) == 1

    def test_corrupt_file_is_unavailable(self, catalog_file):
        catalog_file.write_text("{not json")
        with pytest.raises(UpstreamUnavailableError):
            LocalCatalogStore(catalog_file).list(TOOLS)

    def test_wrong_shape_is_unavailable(self, catalog_file):
        catalog_file.write_text(json.dumps({"tools": {"a": 1}}))
        with pytest.raises(UpstreamUnavailableError):
            LocalCatalogStore(catalog_file).list(TOOLS)


class TestMinioCatalogStore:
    """Tests for the MinIO backend with a mocked client."""

    @pytest.fixture
    def client(self):
        client = MagicMock()
        client.bucket_exists.return_value = True
        return client

    @pytest.fixture
    def minio_store(self, client):
        return MinioCatalogStore("minio:9000", "key", "secret", "catalog", client=client)

    def test_reads_catalog_object(self, minio_store, client):
        response = MagicMock()
        response.read.return_value = json.dumps({"tools": [record("a")]}).encode()
        client.get_object.return_value = response

        assert minio_store.list(TOOLS) == [record("a")]
        client.get_object.assert_called_once_with("catalog", "catalog.json")
        response.close.assert_called_once()
        response.release_conn.assert_called_once()

    def test_missing_object_is_an_empty_catalog(self, minio_store, client):
        client.get_object.side_effect = s3_error("NoSuchKey")
        assert minio_store.list(SUBMISSIONS) == []

    def test_creates_bucket_once(self, minio_store, client):
        client.bucket_exists.return_value = False
        client.get_object.side_effect = s3_error("NoSuchKey")

        minio_store.list(TOOLS)
        minio_store.list(TOOLS)

        client.make_bucket.assert_called_once_with("catalog")

    def test_insert_writes_whole_document(self, minio_store, client):
        client.get_object.side_effect = s3_error("NoSuchKey")

        minio_store.insert(TOOLS, record("a"))

        args, kwargs = client.put_object.call_args
        assert args == ("catalog", "catalog.json")
        assert json.loads(kwargs["data"].getvalue()) == {"tools": [record("a")], "submissions": []}
        assert kwargs["content_type"] == "application/json"

    def test_access_denied_is_unavailable(self, minio_store, client):
        client.get_object.side_effect = s3_error("AccessDenied")
        with pytest.raises(UpstreamUnavailableError):
            minio_store.list(TOOLS)
