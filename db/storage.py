import hashlib
import hmac
import logging
import time
from pathlib import Path
from urllib.parse import quote

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class BlobStorage:
    """Bucket-style file storage under a local directory.

    Objects are addressed by a relative path inside the bucket. Public URLs
    point at the server's /api/storage route; signed URLs carry an expiry and
    an HMAC token over the path.
    """

    def __init__(self, root: Path, bucket: str, base_url: str, secret: str):
        self.bucket = bucket
        self.bucket_dir = Path(root) / bucket
        self.bucket_dir.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")
        self._secret = secret.encode("utf-8")

    def _resolve(self, path: str) -> Path:
        try:
            full = (self.bucket_dir / path).resolve()
        except (OSError, ValueError) as e:
            raise StorageError(f"Invalid storage path: {path}") from e
        if not full.is_relative_to(self.bucket_dir.resolve()):
            raise StorageError(f"Invalid storage path: {path}")
        return full

    def upload(self, path: str, data: bytes, content_type: str | None = None, upsert: bool = False) -> str:
        target = self._resolve(path)
        if target.exists() and not upsert:
            raise StorageError(f"Object already exists: {path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Upload failed for {path}: {e}") from e
        logger.info("Stored %s (%d bytes, %s)", path, len(data), content_type or "unknown type")
        return path

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def read(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise StorageError(f"Object not found: {path}")
        return target.read_bytes()

    def file_path(self, path: str) -> Path:
        return self._resolve(path)

    def remove(self, paths: list[str]) -> list[str]:
        """Delete objects; missing ones are an error, like a bucket API."""
        removed = []
        missing = []
        for path in paths:
            target = self._resolve(path)
            if not target.is_file():
                missing.append(path)
                continue
            target.unlink()
            removed.append(path)
        if missing:
            raise StorageError(f"Objects not found: {', '.join(missing)}")
        return removed

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/api/storage/{quote(path)}"

    def _sign(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def create_signed_url(self, path: str, expires_in: int) -> str:
        if not self.exists(path):
            raise StorageError(f"Object not found: {path}")
        expires = int(time.time()) + expires_in
        return f"{self.get_public_url(path)}?expires={expires}&token={self._sign(path, expires)}"

    def verify_signature(self, path: str, expires: int, token: str) -> bool:
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self._sign(path, expires), token)
