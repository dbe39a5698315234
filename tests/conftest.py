"""Pytest configuration and shared fixtures."""

import pytest

from docintake.intake.file_types import build_type_policy
from docintake.intake.models import BlobEvent
from docintake.storage.local import LocalStorageBackend

from samples import EVENT_TIME, INCOMING, PDF_BYTES


@pytest.fixture
def policy():
    """Default allow-lists (base table, no extended formats)."""
    return build_type_policy()


@pytest.fixture
def local_store(tmp_path):
    """Filesystem storage rooted in a temp directory."""
    return LocalStorageBackend(tmp_path)


@pytest.fixture
def make_event():
    """Factory for BlobEvent objects."""

    def _make(name: str, data: bytes = PDF_BYTES, content_type=None, bucket: str = INCOMING) -> BlobEvent:
        return BlobEvent(
            event_id="evt-1",
            bucket=bucket,
            name=name,
            data=data,
            content_type=content_type,
            time=EVENT_TIME,
        )

    return _make
