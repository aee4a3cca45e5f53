"""Image upload storage in Azure Blob Storage or a local directory.

Uploaded images are validated, stored under a unique name and addressed by
a public URL that the admin router appends to the post body.
"""

import logging
import re
import secrets
import time
from pathlib import Path

from azure.identity import ManagedIdentityCredential
from azure.storage.blob import ContainerClient, ContentSettings
from fastapi import UploadFile

from quillpost.config import get_settings
from quillpost.services.errors import UploadRejected

logger = logging.getLogger(__name__)

UPLOADS_ROUTE = "/uploads"

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9_.-]")
_SAFE_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._-]*$")
_DOT_RUN_RE = re.compile(r"\.{2,}")

# Lazy singleton, lives for the process lifetime
_container_client: ContainerClient | None = None


def validate_blob_path_segment(segment: str) -> str:
    """Validate a stored-file name.

    Rejects names containing path traversal sequences (..), slashes,
    backslashes, or other unsafe characters. Returns the name unchanged
    if valid; raises ValueError otherwise.
    """
    if not segment or ".." in segment or not _SAFE_NAME_RE.match(segment):
        raise ValueError(f"Invalid upload name: {segment!r}")
    return segment


def unique_filename(original: str | None) -> str:
    """``<unix-ms>-<random>-<sanitised original name>``."""
    safe_base = _UNSAFE_CHARS_RE.sub("_", original or "image")
    safe_base = _DOT_RUN_RE.sub(".", safe_base).lstrip(".") or "image"
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}-{safe_base}"


def _get_container_client() -> ContainerClient:
    """Return a shared blob container client for uploads (lazy singleton)."""
    global _container_client
    if _container_client is None:
        settings = get_settings()
        _container_client = ContainerClient(
            account_url=f"https://{settings.azure_storage_account}.blob.core.windows.net",
            container_name=settings.azure_storage_container,
            credential=ManagedIdentityCredential(
                client_id=settings.managed_identity_client_id or None
            ),
        )
    return _container_client


def uses_blob_storage() -> bool:
    return bool(get_settings().azure_storage_account)


def upload_dir() -> Path:
    return Path(get_settings().upload_dir)


async def _read_validated(upload: UploadFile, max_bytes: int) -> bytes:
    content_type = upload.content_type or ""
    if not content_type.startswith("image/"):
        raise UploadRejected("Only image uploads are allowed")
    data = await upload.read()
    if len(data) > max_bytes:
        raise UploadRejected(
            f"Image {upload.filename!r} exceeds the {max_bytes // (1024 * 1024)} MB limit"
        )
    return data


def _store(name: str, data: bytes, content_type: str, base_url: str) -> str:
    validate_blob_path_segment(name)
    if uses_blob_storage():
        blob = _get_container_client().get_blob_client(name)
        blob.upload_blob(
            data,
            overwrite=True,
            content_settings=ContentSettings(content_type=content_type),
        )
        return blob.url

    directory = upload_dir()
    directory.mkdir(parents=True, exist_ok=True)
    (directory / name).write_bytes(data)
    return f"{base_url.rstrip('/')}{UPLOADS_ROUTE}/{name}"


async def save_images(files: list[UploadFile], base_url: str) -> list[str]:
    """Validate and store uploaded images, returning their public URLs.

    Empty file fields (no filename, no bytes) are ignored. All files are
    validated before any is stored, so a rejected batch stores nothing.
    """
    settings = get_settings()
    files = [f for f in files if f.filename]
    if len(files) > settings.upload_max_files:
        raise UploadRejected(f"At most {settings.upload_max_files} images per post")

    validated = []
    for upload in files:
        data = await _read_validated(upload, settings.upload_max_bytes)
        validated.append((unique_filename(upload.filename), data, upload.content_type))

    urls = [_store(name, data, ctype, base_url) for name, data, ctype in validated]
    if urls:
        logger.info("Stored %d uploaded images", len(urls))
    return urls


async def discard_images(urls: list[str]) -> int:
    """Delete uploads previously returned by ``save_images``.

    Used when the post they were meant for could not be saved. Returns the
    number removed.
    """
    removed = 0
    for url in urls:
        name = validate_blob_path_segment(url.rsplit("/", 1)[-1])
        if uses_blob_storage():
            _get_container_client().delete_blob(name)
            removed += 1
            continue
        path = upload_dir() / name
        if path.is_file():
            path.unlink()
            removed += 1
    if removed:
        logger.info("Discarded %d orphaned uploads", removed)
    return removed


async def clear_uploads() -> int:
    """Delete every stored upload. Returns the number removed."""
    removed = 0
    if uses_blob_storage():
        client = _get_container_client()
        for blob in client.list_blobs():
            client.delete_blob(blob.name)
            removed += 1
        return removed

    directory = upload_dir()
    if not directory.is_dir():
        return 0
    for path in directory.iterdir():
        if path.is_file():
            path.unlink()
            removed += 1
    return removed
