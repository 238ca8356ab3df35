import hashlib
import hmac
import os
import tempfile
import time
from collections.abc import Callable
from pathlib import Path
from urllib.parse import quote

from app.config.settings import Settings
from app.storage.base import BaseObjectStore
from app.storage.exceptions import BlobNotFoundError, InvalidStoragePathError, StorageError


class LocalObjectStore(BaseObjectStore):
    """Stores blobs as files under a root directory.

    Writes go to a temporary file in the target directory and are moved into
    place with os.replace, so a reader never observes a partial blob.
    """

    def __init__(
        self,
        root: Path,
        *,
        presign_secret: str,
        public_base_url: str,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._root = root
        self._secret = presign_secret.encode("utf-8")
        self._base_url = public_base_url.rstrip("/")
        self._clock = clock

    def put(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Failed to store {path} ({content_type}): {exc}") from exc

    def get(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as exc:
            raise BlobNotFoundError(f"Blob not found: {path}") from exc
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}: {exc}") from exc

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def presign(self, path: str, ttl_seconds: int) -> str:
        expires = int(self._clock()) + ttl_seconds
        signature = self._sign(path, expires)
        return f"{self._base_url}/{quote(path)}?expires={expires}&signature={signature}"

    def verify_presigned(self, path: str, expires: int, signature: str) -> bool:
        """Check a presigned URL's signature and expiry."""
        if expires < int(self._clock()):
            return False
        return hmac.compare_digest(self._sign(path, expires), signature)

    def _sign(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def _resolve(self, path: str) -> Path:
        root = self._root.resolve()
        target = (root / path).resolve()
        if target != root and root not in target.parents:
            raise InvalidStoragePathError(f"Path escapes storage root: {path}")
        return target


def build_object_store(settings: Settings, root: Path | None = None) -> LocalObjectStore:
    return LocalObjectStore(
        root or Path(settings.storage_root),
        presign_secret=settings.storage_presign_secret,
        public_base_url=settings.storage_public_base_url,
    )
