"""Object store adapter: upload-by-path, delete-by-path, public URL."""
from __future__ import annotations

import logging
import os

from tapinfi.core.config import get_settings

logger = logging.getLogger(__name__)

PUBLIC_PREFIX = "/static/uploads"


class ObjectStoreError(Exception):
    """Raised when an object cannot be written."""


class LocalObjectStore:
    """Stores uploaded images under a directory served by the static mount."""

    def __init__(self, root: str, public_prefix: str = PUBLIC_PREFIX) -> None:
        self.root = os.path.abspath(root)
        self.public_prefix = public_prefix.rstrip("/")

    def _full_path(self, path: str) -> str:
        rel = (path or "").replace("\\", "/").lstrip("/")
        if not rel or ".." in rel.split("/"):
            raise ObjectStoreError(f"Invalid object path: {path!r}")
        return os.path.join(self.root, rel)

    def upload(self, path: str, data: bytes) -> str:
        dest = self._full_path(path)
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            with open(dest, "wb") as fh:
                fh.write(data)
        except OSError as exc:
            raise ObjectStoreError(f"Could not store {path}: {exc}") from exc
        return path

    def remove(self, path: str) -> bool:
        """Delete an object; failures are logged and reported as False."""
        try:
            dest = self._full_path(path)
        except ObjectStoreError:
            return False
        try:
            os.remove(dest)
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Could not delete stored object %s: %s", path, exc)
            return False
        return True

    def exists(self, path: str) -> bool:
        try:
            return os.path.isfile(self._full_path(path))
        except ObjectStoreError:
            return False

    def public_url(self, path: str) -> str:
        return f"{self.public_prefix}/{path.lstrip('/')}"

    def path_from_url(self, url: str | None) -> str | None:
        """Reverse of public_url; None for URLs this store did not produce."""
        value = (url or "").split("?", 1)[0]
        prefix = self.public_prefix + "/"
        if not value.startswith(prefix):
            return None
        return value[len(prefix):] or None


def get_object_store() -> LocalObjectStore:
    return LocalObjectStore(get_settings().uploads_dir)
