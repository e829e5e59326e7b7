"""
Attachment Store

Validates uploaded files and stores them in Azure Blob Storage, one container per
storage area. Returns the blob's public URL as the stable attachment reference.
"""

import time
from typing import Optional
from uuid import UUID

from azure.core.exceptions import AzureError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient
from loguru import logger

from exam_api.exceptions import StorageFailure
from exam_api.exceptions import UnsupportedFileType
from exam_api.portal.enums import StorageArea
from exam_api.portal.models import FileUpload

ALLOWED_EXTENSIONS = frozenset({"pdf", "jpg", "jpeg", "png", "gif", "xls", "xlsx"})

CONTENT_TYPES = {
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

# Blob name prefix per area
NAME_PREFIXES = {
    StorageArea.REQUEST_ATTACHMENTS: "",
    StorageArea.REQUEST_RESPONSES: "response_",
    StorageArea.AVATARS: "avatar_",
}


def validate_attachment_name(filename: str) -> str:
    """
    Return the lower-cased extension of filename.

    Raises:
        UnsupportedFileType: extension missing or outside the allow-list
    """
    name = (filename or "").strip()
    if "." not in name:
        raise UnsupportedFileType()
    extension = name.rsplit(".", 1)[1].lower()
    if extension not in ALLOWED_EXTENSIONS:
        raise UnsupportedFileType()
    return extension


def build_blob_name(actor_id: UUID, extension: str, area: StorageArea) -> str:
    """Collision-resistant blob name: actor id + nanosecond timestamp + extension."""
    return f"{NAME_PREFIXES[area]}{actor_id}_{time.time_ns()}.{extension}"


class AttachmentStore:
    """Blob store for request, response and avatar attachments."""

    def __init__(
        self,
        connection_string: Optional[str] = None,
        account_url: Optional[str] = None,
    ):
        """
        Initialize the attachment store.

        Args:
            connection_string: Azure Storage connection string (preferred)
            account_url: Storage account URL, authenticated with DefaultAzureCredential
        """
        self.connection_string = connection_string
        self.account_url = account_url
        self._client: Optional[BlobServiceClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.connection_string or self.account_url)

    def _get_client(self) -> BlobServiceClient:
        if self._client is not None:
            return self._client

        if self.connection_string:
            self._client = BlobServiceClient.from_connection_string(self.connection_string)
        elif self.account_url:
            from azure.identity.aio import DefaultAzureCredential

            self._client = BlobServiceClient(account_url=self.account_url, credential=DefaultAzureCredential())
        else:
            raise StorageFailure("Attachment storage is not configured")

        return self._client

    async def store(self, upload: FileUpload, actor_id: UUID, area: StorageArea) -> str:
        """
        Validate and upload a file, returning its public URL.

        Raises:
            UnsupportedFileType: extension outside the allow-list (nothing uploaded)
            StorageFailure: upload failed
        """
        extension = validate_attachment_name(upload.filename)
        blob_name = build_blob_name(actor_id, extension, area)

        try:
            blob_client = self._get_client().get_blob_client(container=area.value, blob=blob_name)
            await blob_client.upload_blob(
                upload.content,
                overwrite=False,
                content_settings=ContentSettings(content_type=upload.content_type or CONTENT_TYPES[extension]),
            )
        except AzureError as e:
            logger.error(
                f"Attachment upload failed: {e}",
                storage_area=area.value,
                blob_name=blob_name,
                exc_info=True,
            )
            raise StorageFailure(f"Failed to upload attachment to {area.value}") from e

        logger.info(
            "Attachment stored",
            storage_area=area.value,
            blob_name=blob_name,
            size_bytes=len(upload.content),
        )
        return blob_client.url

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
