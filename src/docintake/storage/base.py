"""Abstract storage backend interface."""

from abc import ABC, abstractmethod
from typing import Dict, Optional


class StorageBackend(ABC):
    """Abstract base class for blob storage backends."""

    @abstractmethod
    async def read_bytes(self, bucket: str, name: str) -> bytes:
        """Read a whole object.

        Args:
            bucket: Bucket (container) name
            name: Object name

        Returns:
            Object content
        """
        pass

    @abstractmethod
    async def write_bytes(
        self,
        bucket: str,
        name: str,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Write an object, replacing any existing object with the same name.

        Args:
            bucket: Bucket (container) name
            name: Object name
            data: Object content
            content_type: MIME type
            metadata: Custom metadata tags

        Returns:
            URI of the stored object
        """
        pass

    @abstractmethod
    async def delete(self, bucket: str, name: str) -> None:
        """Delete an object."""
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
        pass
