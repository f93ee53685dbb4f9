# reimburse/services/blob_store.py

import logging
import os
from pathlib import Path
from typing import List, Protocol
from urllib.parse import quote

from reimburse.core.config import settings
from reimburse.core.exceptions import BlobStoreUnavailable

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def upload(self, path: str, data: bytes, content_type: str = None, upsert: bool = False) -> str:
        ...

    def list(self, prefix: str) -> List[str]:
        ...

    def remove(self, paths: List[str]) -> None:
        ...

    def public_url(self, path: str) -> str:
        ...


class LocalBlobStore:
    """Receipt storage on a local directory, served under a public base URL."""

    def __init__(self, root: str, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        root = self.root.resolve()
        if target != root and root not in target.parents:
            raise ValueError(f"Path escapes blob root: {path}")
        return target

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{quote(path)}"

    def upload(self, path: str, data: bytes, content_type: str = None, upsert: bool = False) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb" if upsert else "xb") as f:
                f.write(data)
        except OSError as e:
            logger.error("blob upload failed path=%s: %r", path, e)
            raise BlobStoreUnavailable(str(e)) from e
        return self.public_url(path)

    def list(self, prefix: str) -> List[str]:
        folder = self._resolve(prefix)
        if not folder.is_dir():
            return []
        try:
            return sorted(entry.name for entry in folder.iterdir() if entry.is_file())
        except OSError as e:
            raise BlobStoreUnavailable(str(e)) from e

    def remove(self, paths: List[str]) -> None:
        for path in paths:
            target = self._resolve(path)
            try:
                if target.exists():
                    os.remove(target)
            except OSError as e:
                logger.error("blob remove failed path=%s: %r", path, e)
                raise BlobStoreUnavailable(str(e)) from e


def get_blob_store() -> BlobStore:
    return LocalBlobStore(settings.UPLOAD_DIR, settings.BLOB_PUBLIC_BASE_URL)
