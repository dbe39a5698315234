"""Relocation of rejected (and processed) blobs."""

import logging
import re
from datetime import date
from typing import Dict, Optional

from docintake.intake.blob_name import UNKNOWN, base_name
from docintake.intake.exceptions import QuarantineWriteFailed, SourceDeleteFailed
from docintake.intake.models import BlobEvent, ParsedBlobName, QuarantineRecord, RejectionReason
from docintake.storage.base import StorageBackend

logger = logging.getLogger(__name__)

_DATE_PREFIX = re.compile(r"^(\d{4})-?(\d{2})-?(\d{2})")


def sanitize_segment(segment: str) -> str:
    """Remove path traversal and separators from one path segment."""
    safe = segment.replace("/", "_").replace("\\", "_")
    safe = re.sub(r"[\x00-\x1f]", "_", safe).strip()
    if safe in (".", ".."):
        safe = "_"
    return safe[:255] or UNKNOWN


def received_date(parsed: Optional[ParsedBlobName], event: BlobEvent) -> date:
    """
    Date folder for a blob: the parsed receive date, else the event date.

    Names that failed to parse always use the event date.
    """
    if parsed is not None and parsed.reason != RejectionReason.INVALID_FILENAME:
        match = _DATE_PREFIX.match(parsed.received_timestamp)
        if match:
            try:
                return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
            except ValueError:
                pass
    return event.time.date()


def build_quarantine_record(
    event: BlobEvent,
    parsed: Optional[ParsedBlobName],
    reason: RejectionReason,
    destination_bucket: str,
) -> QuarantineRecord:
    """
    Work out where a rejected blob goes and how it is tagged.

    The destination is {company}/{YYYY-MM-DD}/{original filename}; the same
    event always yields the same destination.
    """
    company = parsed.inbox_or_company if parsed is not None else UNKNOWN
    original = parsed.original_filename if parsed is not None else UNKNOWN
    if original == UNKNOWN:
        original = base_name(event.name)

    destination_path = "/".join(
        [
            sanitize_segment(company),
            received_date(parsed, event).isoformat(),
            sanitize_segment(original),
        ]
    )

    metadata: Dict[str, str] = {
        "sender_email": parsed.sender_email if parsed is not None else UNKNOWN,
        "original_location": event.location,
        "reason": reason.value,
        "received_timestamp": parsed.received_timestamp if parsed is not None else UNKNOWN,
        "company": company,
    }

    return QuarantineRecord(
        source_bucket=event.bucket,
        source_name=event.name,
        destination_bucket=destination_bucket,
        destination_path=destination_path,
        reason=reason,
        metadata=metadata,
    )


async def delete_source(store: StorageBackend, bucket: str, name: str) -> None:
    """
    Delete a source blob.

    Raises:
        SourceDeleteFailed: If the storage backend cannot delete it
    """
    try:
        await store.delete(bucket, name)
    except Exception as e:
        raise SourceDeleteFailed(f"Failed to delete {bucket}/{name}: {e}") from e


async def move_blob(
    store: StorageBackend,
    data: bytes,
    source_bucket: str,
    source_name: str,
    destination_bucket: str,
    destination_path: str,
    content_type: str,
    metadata: Optional[Dict[str, str]] = None,
) -> bool:
    """
    Copy bytes to the destination, then delete the source.

    Write errors propagate. A failed delete is logged and reported through the
    return value so the copy is never lost to a transient cleanup error.

    Returns:
        True if the source was deleted
    """
    await store.write_bytes(
        destination_bucket,
        destination_path,
        data,
        content_type,
        metadata,
    )

    try:
        await delete_source(store, source_bucket, source_name)
    except SourceDeleteFailed as e:
        logger.warning(
            f"Source blob left in place after move: {e}",
            extra={
                "source": f"{source_bucket}/{source_name}",
                "destination": f"{destination_bucket}/{destination_path}",
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
        return False

    logger.info(
        "Moved blob",
        extra={
            "source": f"{source_bucket}/{source_name}",
            "destination": f"{destination_bucket}/{destination_path}",
        },
    )
    return True


class Quarantine:
    """Places rejected files in the quarantine bucket."""

    def __init__(self, store: StorageBackend, bucket: str):
        self.store = store
        self.bucket = bucket

    def record_for(
        self, event: BlobEvent, parsed: Optional[ParsedBlobName], reason: RejectionReason
    ) -> QuarantineRecord:
        return build_quarantine_record(event, parsed, reason, self.bucket)

    async def place(self, record: QuarantineRecord, data: bytes, content_type: str) -> bool:
        """
        Write the file to quarantine and remove the source.

        Returns:
            True if the source blob was deleted

        Raises:
            QuarantineWriteFailed: If the quarantine write fails
        """
        try:
            deleted = await move_blob(
                self.store,
                data,
                record.source_bucket,
                record.source_name,
                record.destination_bucket,
                record.destination_path,
                content_type,
                record.metadata,
            )
        except Exception as e:
            logger.error(
                f"Quarantine write failed: {e}",
                extra={
                    "source": f"{record.source_bucket}/{record.source_name}",
                    "destination": f"{record.destination_bucket}/{record.destination_path}",
                    "reason": record.reason.value,
                    "error": str(e),
                },
                exc_info=True,
            )
            raise QuarantineWriteFailed(
                f"Failed to quarantine {record.source_bucket}/{record.source_name}: {e}"
            ) from e

        logger.info(
            "File quarantined",
            extra={
                "destination": f"{record.destination_bucket}/{record.destination_path}",
                "reason": record.reason.value,
                "source_deleted": deleted,
            },
        )
        return deleted
