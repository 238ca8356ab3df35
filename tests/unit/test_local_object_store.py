from pathlib import Path
from urllib.parse import parse_qs, urlparse

import pytest

from app.storage.exceptions import BlobNotFoundError, InvalidStoragePathError
from app.storage.local_adapter import LocalObjectStore


def _make_store(root: Path, now: float = 1_000_000.0) -> LocalObjectStore:
    return LocalObjectStore(
        root,
        presign_secret="test-secret",
        public_base_url="http://files.local/",
        clock=lambda: now,
    )


class TestPutGet:
    def test_round_trip(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        store.put("documents/c1/doc.pdf", b"%PDF-1.4 data", "application/pdf")

        assert store.get("documents/c1/doc.pdf") == b"%PDF-1.4 data"
        assert store.exists("documents/c1/doc.pdf")

    def test_put_replaces_existing(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        store.put("a.txt", b"one", "text/plain")
        store.put("a.txt", b"two", "text/plain")

        assert store.get("a.txt") == b"two"

    def test_put_leaves_no_temp_files(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        store.put("dir/a.txt", b"data", "text/plain")

        assert [p.name for p in (tmp_path / "dir").iterdir()] == ["a.txt"]

    def test_get_missing_raises_not_found(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        with pytest.raises(BlobNotFoundError):
            store.get("missing.pdf")


class TestDelete:
    def test_delete_removes_blob(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        store.put("a.txt", b"data", "text/plain")
        store.delete("a.txt")

        assert not store.exists("a.txt")

    def test_delete_missing_is_noop(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        store.delete("never-written.txt")


class TestPathSafety:
    def test_rejects_path_outside_root(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path / "root")
        with pytest.raises(InvalidStoragePathError):
            store.put("../escape.txt", b"x", "text/plain")


class TestPresign:
    def test_presigned_url_verifies_until_expiry(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path, now=1_000_000.0)
        url = store.presign("documents/c1/doc.pdf", ttl_seconds=60)

        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        expires = int(query["expires"][0])
        signature = query["signature"][0]

        assert parsed.path == "/documents/c1/doc.pdf"
        assert expires == 1_000_060
        assert store.verify_presigned("documents/c1/doc.pdf", expires, signature)

        later = _make_store(tmp_path, now=1_000_061.0)
        assert not later.verify_presigned("documents/c1/doc.pdf", expires, signature)

    def test_signature_is_bound_to_path(self, tmp_path: Path) -> None:
        store = _make_store(tmp_path)
        url = store.presign("a.pdf", ttl_seconds=60)
        query = parse_qs(urlparse(url).query)

        assert not store.verify_presigned(
            "b.pdf", int(query["expires"][0]), query["signature"][0]
        )
