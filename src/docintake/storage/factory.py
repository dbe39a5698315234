"""Storage backend selection."""

from functools import lru_cache

from docintake.core.config import settings
from docintake.storage.base import StorageBackend
from docintake.storage.gcs import GCSStorageBackend
from docintake.storage.local import LocalStorageBackend


@lru_cache(maxsize=1)
def get_storage_backend() -> StorageBackend:
    """Return the configured storage backend.

    Raises:
        ValueError: If STORAGE_BACKEND is not 'gcs' or 'local'
    """
    backend = settings.STORAGE_BACKEND.lower()
    if backend == "gcs":
        return GCSStorageBackend(project_id=settings.GCP_PROJECT_ID or None)
    if backend == "local":
        return LocalStorageBackend(settings.LOCAL_STORAGE_PATH)
    raise ValueError(f"Unsupported STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
