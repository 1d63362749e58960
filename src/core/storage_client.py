"""Attachment storage (avatars and task documents).

Two modes:
- remote: files are POSTed to ``STORAGE_BASE_URL`` and the returned URL is kept
- local: files are written below ``UPLOAD_DIR`` and served from ``/uploads``

An asset is addressed by its public id, the last URL path segment without the
file extension.
"""

import asyncio
import logging
import mimetypes
import uuid
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel, Field

from src.core.config import constants, settings
from src.core.errors import ValidationFailedError


logger = logging.getLogger(__name__)

LOCAL_URL_PREFIX = "/uploads"


class StorageError(RuntimeError):
    """Raised when the storage backend fails to store or remove an asset."""


class UploadedFile(BaseModel):
    """An uploaded file detached from the HTTP request."""

    filename: str = Field(..., description="Client-supplied file name")
    content_type: str = Field(..., description="Declared MIME type")
    data: bytes = Field(..., description="Raw file content")


def validate_upload(file: UploadedFile) -> None:
    """Reject files with a disallowed MIME type or above the size limit.

    Raises:
        ValidationFailedError: If the file is not acceptable
    """
    if file.content_type not in constants.ALLOWED_UPLOAD_CONTENT_TYPES:
        raise ValidationFailedError(
            "Invalid file type. Only images, PDFs, Word documents, Excel files, and text files are allowed."
        )
    if len(file.data) > constants.MAX_UPLOAD_SIZE_BYTES:
        raise ValidationFailedError("File too large. Maximum size is 10MB.")


def public_id_from_url(url: str) -> str:
    """Extract the public id (last path segment without extension) from an asset URL."""
    path = urlparse(url).path or url
    return PurePosixPath(path).stem


def _extension_for(file: UploadedFile) -> str:
    suffix = PurePosixPath(file.filename).suffix.lower()
    if suffix:
        return suffix
    return mimetypes.guess_extension(file.content_type) or ""


class StorageClient:
    """Stores uploaded files and removes them again by URL."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        api_key: str | None = None,
        upload_dir: str | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/") if base_url else None
        self._api_key = api_key
        self._upload_dir = Path(upload_dir or settings.upload_dir)

    @property
    def is_remote(self) -> bool:
        return self._base_url is not None

    @property
    def upload_dir(self) -> Path:
        return self._upload_dir

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    async def upload(self, file: UploadedFile, *, folder: str) -> str:
        """Validate and store a file, returning its durable URL.

        Args:
            file: The uploaded file
            folder: Logical folder (e.g., "avatars", "task-attachments")

        Returns:
            URL of the stored asset

        Raises:
            ValidationFailedError: If the file type or size is not allowed
            StorageError: If the backend fails
        """
        validate_upload(file)
        public_id = uuid.uuid4().hex

        if self.is_remote:
            url = await self._upload_remote(file, folder=folder, public_id=public_id)
        else:
            url = await self._upload_local(file, folder=folder, public_id=public_id)

        logger.info("Stored upload", extra={"folder": folder, "public_id": public_id, "size": len(file.data)})
        return url

    async def remove_by_url(self, url: str) -> None:
        """Remove a previously stored asset.

        Raises:
            StorageError: If the backend fails
        """
        public_id = public_id_from_url(url)
        if not public_id:
            return

        if self.is_remote:
            await self._remove_remote(public_id)
        else:
            await self._remove_local(public_id)
        logger.info("Removed upload", extra={"public_id": public_id})

    async def _upload_local(self, file: UploadedFile, *, folder: str, public_id: str) -> str:
        name = f"{public_id}{_extension_for(file)}"
        target = self._upload_dir / folder / name
        try:
            await asyncio.to_thread(target.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(target.write_bytes, file.data)
        except OSError as e:
            logger.error("local_upload_failed", extra={"path": str(target), "error": str(e)})
            msg = f"Failed to store file: {e}"
            raise StorageError(msg) from e
        return f"{LOCAL_URL_PREFIX}/{folder}/{name}"

    async def _remove_local(self, public_id: str) -> None:
        matches = await asyncio.to_thread(lambda: list(self._upload_dir.glob(f"*/{public_id}.*")))
        try:
            for path in matches:
                await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            msg = f"Failed to remove file {public_id}: {e}"
            raise StorageError(msg) from e

    async def _upload_remote(self, file: UploadedFile, *, folder: str, public_id: str) -> str:
        url = f"{self._base_url}/upload"
        try:
            async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
                response = await client.post(
                    url,
                    headers=self._headers(),
                    data={"folder": folder, "public_id": public_id},
                    files={"file": (file.filename, file.data, file.content_type)},
                )
                response.raise_for_status()
                stored_url = response.json().get("url")
        except httpx.HTTPError as e:
            logger.error("remote_upload_failed", extra={"folder": folder, "error": str(e)})
            msg = f"Failed to upload file: {e}"
            raise StorageError(msg) from e

        if not stored_url:
            msg = "Storage backend returned no URL"
            raise StorageError(msg)
        return str(stored_url)

    async def _remove_remote(self, public_id: str) -> None:
        url = f"{self._base_url}/destroy"
        try:
            async with httpx.AsyncClient(timeout=constants.API_TIMEOUT_SECONDS) as client:
                response = await client.post(url, headers=self._headers(), json={"public_id": public_id})
                response.raise_for_status()
        except httpx.HTTPError as e:
            msg = f"Failed to remove file {public_id}: {e}"
            raise StorageError(msg) from e


def create_storage_client() -> StorageClient:
    """Build the storage client selected by configuration."""
    if settings.storage_base_url:
        api_key = settings.require_credential("storage_api_key", "File storage")
        return StorageClient(base_url=settings.storage_base_url, api_key=api_key)
    return StorageClient(upload_dir=settings.upload_dir)


# Global storage client instance
storage_client = create_storage_client()
