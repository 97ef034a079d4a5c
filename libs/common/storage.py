"""Supabase Storage wrapper for product images and store logos."""

import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from supabase import Client, create_client

from libs.common.config import get_settings
from libs.common.datetime_utils import parse_iso_datetime
from libs.common.logging import get_logger

logger = get_logger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
LIST_PAGE_SIZE = 1000


class StorageError(Exception):
    """Raised when an upload cannot be completed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        super().__init__(message)


@dataclass
class StoredObject:
    path: str
    created_at: Optional[datetime]


class StorageService:
    """Upload/delete/list objects in one Supabase Storage bucket."""

    def __init__(self, bucket: str, client: Optional[Client] = None):
        self.bucket = bucket
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            settings = get_settings()
            self._client = create_client(
                settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY
            )
        return self._client

    @staticmethod
    def build_path(owner_id: str, filename: str) -> str:
        """``<owner_id>/<epoch-ms>-<random>.<ext>``"""
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
        return f"{owner_id}/{int(time.time() * 1000)}-{secrets.token_hex(4)}.{ext}"

    def path_from_url(self, url: str) -> Optional[str]:
        """Extract the object path from a public URL of this bucket."""
        marker = f"/{self.bucket}/"
        if marker not in url:
            return None
        return url.split(marker, 1)[1].split("?", 1)[0] or None

    async def upload(
        self,
        owner_id: str,
        file_data: bytes,
        filename: str,
        content_type: str = "image/jpeg",
    ) -> str:
        """Upload bytes under the owner's folder and return the public URL."""
        if content_type not in ALLOWED_IMAGE_TYPES:
            raise StorageError(f"Unsupported content type: {content_type}")

        path = self.build_path(owner_id, filename)
        try:
            self.client.storage.from_(self.bucket).upload(
                path=path, file=file_data, file_options={"content-type": content_type}
            )
        except Exception as e:
            logger.error(f"Upload to {self.bucket}/{path} failed: {e}")
            raise StorageError("Upload failed", path=path) from e

        return self.client.storage.from_(self.bucket).get_public_url(path)

    async def delete_urls(self, urls: list[str]) -> int:
        """
        Best-effort removal of objects referenced by public URLs.

        URLs outside this bucket are ignored. Failures are logged and left for
        the orphan sweep. Returns the number of paths submitted for removal.
        """
        paths = [p for p in (self.path_from_url(u) for u in urls) if p]
        if not paths:
            return 0
        try:
            self.client.storage.from_(self.bucket).remove(paths)
        except Exception as e:
            logger.warning(
                f"Failed to remove {len(paths)} objects from {self.bucket}: {e}",
                extra={"extra_fields": {"paths": paths}},
            )
            return 0
        return len(paths)

    def _list_all(self, bucket, prefix: str) -> list[dict]:
        """Every entry under ``prefix``, paging by ``offset`` until a short page."""
        entries: list[dict] = []
        offset = 0
        while True:
            page = bucket.list(prefix, {"limit": LIST_PAGE_SIZE, "offset": offset})
            entries.extend(page)
            if len(page) < LIST_PAGE_SIZE:
                return entries
            offset += LIST_PAGE_SIZE

    async def list_objects(self) -> list[StoredObject]:
        """List every object in the bucket (one folder level per owner)."""
        bucket = self.client.storage.from_(self.bucket)
        objects: list[StoredObject] = []
        for folder in self._list_all(bucket, ""):
            # Folders come back without an id
            if folder.get("id"):
                objects.append(
                    StoredObject(folder["name"], parse_iso_datetime(folder.get("created_at")))
                )
                continue
            for entry in self._list_all(bucket, folder["name"]):
                if not entry.get("id"):
                    continue
                objects.append(
                    StoredObject(
                        f"{folder['name']}/{entry['name']}",
                        parse_iso_datetime(entry.get("created_at")),
                    )
                )
        return objects

    async def remove_paths(self, paths: list[str]) -> None:
        if paths:
            self.client.storage.from_(self.bucket).remove(paths)


_services: dict[str, StorageService] = {}


def get_storage_service(bucket: str) -> StorageService:
    if bucket not in _services:
        _services[bucket] = StorageService(bucket)
    return _services[bucket]


def get_products_storage() -> StorageService:
    """FastAPI dependency for the product image bucket."""
    return get_storage_service(get_settings().SUPABASE_PRODUCTS_BUCKET)


def get_logos_storage() -> StorageService:
    """FastAPI dependency for the store logo bucket."""
    return get_storage_service(get_settings().SUPABASE_LOGOS_BUCKET)
