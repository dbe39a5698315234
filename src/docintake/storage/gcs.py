"""Google Cloud Storage backend."""

import asyncio
import logging
from typing import Dict, Optional

from google.api_core import retry
from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import storage

from docintake.core.config import settings
from docintake.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class GCSStorageBackend(StorageBackend):
    """Google Cloud Storage backend with retry logic."""

    def __init__(self, project_id: Optional[str] = None):
        self._project_id = project_id
        self._client: Optional[storage.Client] = None

        # Configure retry with exponential backoff
        self.retry_policy = retry.Retry(
            initial=1.0,
            maximum=10.0,
            multiplier=2.0,
            deadline=60.0,
            predicate=retry.if_exception_type(GoogleAPIError),
        )

    def _get_client(self) -> storage.Client:
        """Lazy-load and cache the storage client."""
        if self._client is None:
            self._client = storage.Client(project=self._project_id or settings.GCP_PROJECT_ID or None)
        return self._client

    async def read_bytes(self, bucket: str, name: str) -> bytes:
        """Download an object into memory.

        Raises:
            NotFound: If the object doesn't exist
            GoogleAPIError: If download fails after retries
        """
        blob = self._get_client().bucket(bucket).blob(name)
        try:
            # Run blocking operation in thread pool
            data = await asyncio.to_thread(blob.download_as_bytes, retry=self.retry_policy)
        except NotFound:
            logger.error(
                f"Object not found: {name}",
                extra={"object_name": name, "bucket": bucket},
            )
            raise
        except GoogleAPIError as e:
            logger.error(
                f"Failed to download {name}: {e}",
                extra={"object_name": name, "bucket": bucket, "error": str(e)},
            )
            raise

        logger.info(
            f"Downloaded gs://{bucket}/{name}",
            extra={"object_name": name, "bucket": bucket, "size_bytes": len(data)},
        )
        return data

    async def write_bytes(
        self,
        bucket: str,
        name: str,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Upload bytes as an object, tagging it with custom metadata.

        Raises:
            GoogleAPIError: If upload fails after retries
        """
        blob = self._get_client().bucket(bucket).blob(name)
        if metadata:
            blob.metadata = dict(metadata)
        try:
            await asyncio.to_thread(
                blob.upload_from_string,
                data,
                content_type=content_type,
                retry=self.retry_policy,
            )
        except GoogleAPIError as e:
            logger.error(
                f"Failed to upload {name}: {e}",
                extra={"object_name": name, "bucket": bucket, "error": str(e)},
            )
            raise

        logger.info(
            f"Uploaded gs://{bucket}/{name}",
            extra={"object_name": name, "bucket": bucket, "content_type": content_type},
        )
        return f"gs://{bucket}/{name}"

    async def delete(self, bucket: str, name: str) -> None:
        """Delete an object.

        Raises:
            NotFound: If the object doesn't exist
            GoogleAPIError: If deletion fails after retries
        """
        blob = self._get_client().bucket(bucket).blob(name)
        await asyncio.to_thread(blob.delete, retry=self.retry_policy)
        logger.info(
            f"Deleted gs://{bucket}/{name}",
            extra={"object_name": name, "bucket": bucket},
        )

    def get_backend_name(self) -> str:
        return "gcs"
