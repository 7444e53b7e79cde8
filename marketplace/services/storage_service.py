"""
Storage Service - user file storage with public URLs.

Objects are keyed ``{user_id}/{category}/{timestamp}.{ext}`` (timestamp in
epoch milliseconds) under ``settings.storage_dir`` and served by the app
under ``settings.storage_public_url``.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from marketplace.core.config import get_settings
from marketplace.core.errors import ValidationError, WriteFailed
from marketplace.utils.timeutils import local_now

logger = logging.getLogger(__name__)

CATEGORIES = ("portfolios", "verification")


def build_object_path(user_id: int, category: str, extension: str, now: Optional[datetime] = None) -> str:
    """Storage key for a new upload."""
    if category not in CATEGORIES:
        raise ValidationError(f"Unknown upload category '{category}'")
    timestamp = int((now or local_now()).timestamp() * 1000)
    return f"{user_id}/{category}/{timestamp}.{extension.lstrip('.')}"


class StorageService:
    """Stores bytes on local disk and hands back their public URL."""

    def __init__(self, root: Optional[str] = None, public_url: Optional[str] = None):
        settings = get_settings()
        self.root = Path(root or settings.storage_dir)
        self.public_url = (public_url or settings.storage_public_url).rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise ValidationError("Invalid storage path")
        return target

    def upload(self, data: bytes, path: str) -> str:
        """Write ``data`` at ``path`` and return its public URL."""
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            logger.error("Upload to %s failed: %s", path, e)
            raise WriteFailed("Error uploading file") from e
        logger.info("Stored %s bytes at %s", len(data), path)
        return self.get_public_url(path)

    def get_public_url(self, path: str) -> str:
        return f"{self.public_url}/{path}"


def get_storage() -> StorageService:
    """Get storage service instance."""
    return StorageService()
