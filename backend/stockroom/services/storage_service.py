"""
Product photo storage.

Photos live in a bucket on the hosted object-storage REST API; products
keep only the object paths (Product.photo_urls). Object paths are
    <organization_id>/<product_id>/<epoch millis>_<random>.<ext>
so one organization's objects never share a prefix with another's.
"""
from __future__ import annotations

import logging
import secrets
import string
import time
from urllib.parse import quote

import httpx
from flask import current_app

from ..extensions import db
from ..models import Product
from ..retry import retry
from ..validation import ValidationError
from .tenant_service import NotFoundError, get_owned_or_404

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 5 * 1024 * 1024
ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/webp", "image/avif"}
DEFAULT_SIGNED_URL_TTL = 3600
MAX_PHOTOS_PER_PRODUCT = 10

_EXTENSION_BY_MIME = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/avif": "avif",
}
_RANDOM_ALPHABET = string.ascii_lowercase + string.digits


class StorageError(Exception):
    """502: the storage service failed or rejected the request."""


def validate_image(content_type: str | None, size: int) -> None:
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError("File must be an image")
    if content_type not in ALLOWED_MIME_TYPES:
        raise ValidationError("Only JPEG, PNG, WebP, and AVIF images are allowed")
    if size > MAX_FILE_SIZE:
        raise ValidationError("File size must be less than 5MB")
    if size == 0:
        raise ValidationError("File is empty")


def build_object_path(org_id: str, product_id: str, filename: str | None, content_type: str) -> str:
    ext = ""
    if filename and "." in filename:
        ext = filename.rsplit(".", 1)[1].lower()
    if not ext.isalnum() or len(ext) > 5:
        ext = _EXTENSION_BY_MIME.get(content_type, "jpg")
    stamp = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_RANDOM_ALPHABET) for _ in range(6))
    return f"{org_id}/{product_id}/{stamp}_{suffix}.{ext}"


class StorageClient:
    """Thin client for the storage REST API. Every call is retried on transient failures."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        bucket: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        retry_delay: float = 1.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.retry_delay = retry_delay
        self._http = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Authorization": f"Bearer {api_key}", "apikey": api_key},
        )

    @classmethod
    def from_config(cls, config) -> "StorageClient":
        return cls(
            base_url=config["STORAGE_URL"],
            api_key=config["STORAGE_API_KEY"],
            bucket=config["STORAGE_BUCKET"],
            timeout=config.get("STORAGE_TIMEOUT", 10.0),
        )

    def _object_url(self, path: str) -> str:
        return f"/object/{self.bucket}/{quote(path)}"

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        def _call():
            response = self._http.request(method, url, **kwargs)
            response.raise_for_status()
            return response

        try:
            return retry(_call, initial_delay=self.retry_delay, max_delay=self.retry_delay * 10)
        except httpx.HTTPStatusError as e:
            raise StorageError(f"Storage request failed with status {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise StorageError(f"Storage request failed: {e}") from e

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        self._send(
            "POST",
            self._object_url(path),
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "false", "cache-control": "max-age=3600"},
        )
        return path

    def remove(self, paths: list[str]) -> None:
        self._send("DELETE", f"/object/{self.bucket}", json={"prefixes": list(paths)})

    def signed_url(self, path: str, expires_in: int = DEFAULT_SIGNED_URL_TTL) -> str:
        response = self._send("POST", f"/object/sign/{self.bucket}/{quote(path)}", json={"expiresIn": expires_in})
        signed = (response.json() or {}).get("signedURL")
        if not signed:
            raise StorageError("Storage did not return a signed URL")
        return f"{self.base_url}{signed}" if signed.startswith("/") else signed

    def list_objects(self, prefix: str, *, limit: int = 1000, offset: int = 0) -> list[dict]:
        """
        One level of the bucket under prefix.

        Entries are {"name", "is_folder"}; the storage API marks folders
        by returning them without an id.
        """
        response = self._send(
            "POST",
            f"/object/list/{self.bucket}",
            json={"prefix": prefix, "limit": limit, "offset": offset},
        )
        return [
            {"name": item["name"], "is_folder": item.get("id") is None}
            for item in response.json() or []
            if item.get("name")
        ]

    def walk(self, prefix: str) -> list[str]:
        """Every object path below prefix, descending into folders."""
        prefix = prefix.rstrip("/")
        paths = []
        for entry in self.list_objects(prefix):
            path = f"{prefix}/{entry['name']}"
            if entry["is_folder"]:
                paths.extend(self.walk(path))
            else:
                paths.append(path)
        return paths


def get_storage_client() -> StorageClient:
    """The app-wide client; tests install their own under app.extensions."""
    client = current_app.extensions.get("stockroom.storage")
    if client is None:
        client = StorageClient.from_config(current_app.config)
        current_app.extensions["stockroom.storage"] = client
    return client


def upload_product_photo(
    *,
    org_id: str,
    product_id: str,
    data: bytes,
    filename: str | None,
    content_type: str | None,
) -> dict:
    product = get_owned_or_404(Product, product_id, org_id, label="Product")
    validate_image(content_type, len(data))
    photos = list(product.photo_urls or [])
    if len(photos) >= MAX_PHOTOS_PER_PRODUCT:
        raise ValidationError(f"A product can have at most {MAX_PHOTOS_PER_PRODUCT} photos")

    path = build_object_path(org_id, product.id, filename, content_type)
    get_storage_client().upload(path, data, content_type)

    product.photo_urls = photos + [path]
    db.session.commit()
    return {"path": path, "photo_urls": list(product.photo_urls)}


def delete_product_photo(*, org_id: str, product_id: str, path: str) -> dict:
    product = get_owned_or_404(Product, product_id, org_id, label="Product")
    photos = list(product.photo_urls or [])
    if not path or path not in photos:
        raise NotFoundError("Photo not found")

    get_storage_client().remove([path])

    photos.remove(path)
    product.photo_urls = photos
    db.session.commit()
    return {"photo_urls": photos}


def list_product_photos(*, org_id: str, product_id: str, expires_in: int = DEFAULT_SIGNED_URL_TTL) -> list[dict]:
    """Signed URLs for a product's photos; paths that fail to sign are skipped."""
    product = get_owned_or_404(Product, product_id, org_id, label="Product")
    client = get_storage_client()
    out = []
    for path in product.photo_urls or []:
        try:
            out.append({"path": path, "url": client.signed_url(path, expires_in)})
        except StorageError as e:
            logger.warning("Failed to get signed URL for %s: %s", path, e)
    return out


def remove_product_objects(paths: list[str]) -> None:
    """
    Best-effort removal after a product row is gone.

    The row is already committed, so a storage failure is only logged;
    `flask catalog cleanup-images` finds whatever is left behind.
    """
    if not paths:
        return
    try:
        get_storage_client().remove(paths)
    except StorageError as e:
        logger.warning("Failed to remove %d photo(s) of a deleted product: %s", len(paths), e)


def cleanup_orphaned_images(org_id: str, *, dry_run: bool = False) -> list[str]:
    """
    Remove objects under the organization's folder that no product references.

    The whole <org_id>/ tree is walked, so objects left behind by deleted
    products are found too. Returns the orphaned paths (removed unless
    dry_run).
    """
    client = get_storage_client()
    referenced = set()
    for (photos,) in db.session.query(Product.photo_urls).filter(Product.organization_id == org_id):
        referenced.update(photos or [])

    orphaned = [path for path in client.walk(org_id) if path not in referenced]

    if orphaned and not dry_run:
        client.remove(orphaned)
    return orphaned
