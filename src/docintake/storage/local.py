"""Local filesystem storage backend."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, Optional

from docintake.storage.base import StorageBackend

logger = logging.getLogger(__name__)

METADATA_SUFFIX = ".metadata.json"


class LocalStorageBackend(StorageBackend):
    """Filesystem backend: one directory per bucket, metadata in a sidecar file."""

    def __init__(self, base_path: str | Path = "data/buckets"):
        self.base_path = Path(base_path)

    def _object_path(self, bucket: str, name: str) -> Path:
        safe_parts = [part for part in name.replace("\\", "/").split("/") if part not in ("", ".", "..")]
        if not safe_parts:
            raise ValueError(f"Invalid object name: {name!r}")
        return self.base_path.joinpath(bucket, *safe_parts)

    async def read_bytes(self, bucket: str, name: str) -> bytes:
        path = self._object_path(bucket, name)
        return await asyncio.to_thread(path.read_bytes)

    async def write_bytes(
        self,
        bucket: str,
        name: str,
        data: bytes,
        content_type: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Write file and its metadata sidecar."""
        path = self._object_path(bucket, name)
        sidecar = path.with_name(path.name + METADATA_SUFFIX)

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            sidecar.write_text(
                json.dumps({"content_type": content_type, "metadata": metadata or {}}, ensure_ascii=False),
                encoding="utf-8",
            )

        await asyncio.to_thread(_write)
        logger.debug("Wrote local object", extra={"path": str(path), "size_bytes": len(data)})
        return str(path)

    async def delete(self, bucket: str, name: str) -> None:
        path = self._object_path(bucket, name)
        await asyncio.to_thread(path.unlink)
        sidecar = path.with_name(path.name + METADATA_SUFFIX)
        if sidecar.exists():
            sidecar.unlink()

    def read_metadata(self, bucket: str, name: str) -> Dict[str, object]:
        """Return the sidecar written alongside an object."""
        path = self._object_path(bucket, name)
        sidecar = path.with_name(path.name + METADATA_SUFFIX)
        return json.loads(sidecar.read_text(encoding="utf-8"))

    def get_backend_name(self) -> str:
        return "local"
