import hashlib

import pytest

from app.apex.storage import (
    BucketBlobStore,
    DiskBlobStore,
    StorageError,
    attachment_key,
    storage_from_config,
    store_upload,
)


class TestStorageFromConfig:
    def test_local_backend_uses_storage_root(self, tmp_path):
        store = storage_from_config({"STORAGE_BACKEND": "local", "STORAGE_ROOT": str(tmp_path)})
        assert isinstance(store, DiskBlobStore)
        assert store.base_dir == tmp_path

    def test_s3_backend(self):
        store = storage_from_config({"STORAGE_BACKEND": "S3", "S3_BUCKET": " apex-files "})
        assert isinstance(store, BucketBlobStore)
        assert store.bucket == "apex-files"


class TestDiskBlobStore:
    def test_write_read_remove(self, tmp_path):
        store = DiskBlobStore(base_dir=tmp_path)
        store.write("pocs/1/abc/a.txt", b"data")
        assert store.has("pocs/1/abc/a.txt")
        with store.read_stream("pocs/1/abc/a.txt") as fh:
            assert fh.read() == b"data"
        store.remove("pocs/1/abc/a.txt")
        assert not store.has("pocs/1/abc/a.txt")
        store.remove("pocs/1/abc/a.txt")

    def test_missing_blob_raises(self, tmp_path):
        with pytest.raises(StorageError):
            DiskBlobStore(base_dir=tmp_path).read_stream("nope.bin")

    def test_key_cannot_escape_root(self, tmp_path):
        with pytest.raises(StorageError):
            DiskBlobStore(base_dir=tmp_path / "root").write("../outside.txt", b"x")


def test_attachment_key_shape():
    key = attachment_key("project", 7, "../Quarterly Report.pdf")
    kind, entity_id, token, name = key.split("/")
    assert (kind, entity_id) == ("projects", "7")
    assert len(token) == 32
    assert name == "Quarterly_Report.pdf"


def test_store_upload_reports_digest(tmp_path):
    stored = store_upload({"STORAGE_ROOT": str(tmp_path)}, "poc", 3, "notes.txt", b"hello", "text/plain")
    assert stored.key.startswith("pocs/3/")
    assert stored.size_bytes == 5
    assert stored.sha256 == hashlib.sha256(b"hello").hexdigest()
    assert (tmp_path / stored.key).read_bytes() == b"hello"
