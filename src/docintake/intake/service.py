"""
Intake service implementation.

Handles storage events: fetches the new blob, runs the admission gate and
archives files the classifier recognized.
"""

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from docintake.core.config import Settings, settings
from docintake.core.logging import log_context
from docintake.intake.classification import classification_handler_from_settings
from docintake.intake.exceptions import InvalidEvent
from docintake.intake.file_types import type_policy_from_settings
from docintake.intake.gate import AdmissionGate
from docintake.intake.models import (
    AdmissionState,
    BlobEvent,
    CloudEvent,
    DocumentClassification,
    GateOutcome,
    StorageObjectData,
)
from docintake.intake.quarantine import Quarantine, move_blob, sanitize_segment
from docintake.storage.base import StorageBackend
from docintake.storage.factory import get_storage_backend

logger = logging.getLogger(__name__)


def _convert_storage_notification_to_cloud_event(notification: Dict[str, Any]) -> CloudEvent:
    """
    Convert a raw storage notification to CloudEvent format.

    Args:
        notification: Raw object notification (kind == "storage#object")

    Returns:
        CloudEvent object

    Raises:
        ValueError: If required fields are missing
    """
    bucket = notification.get("bucket")
    name = notification.get("name")
    if not bucket or not name:
        raise ValueError("Missing required fields: bucket and name")

    now = datetime.now(timezone.utc).isoformat()
    time_created = notification.get("timeCreated") or now
    event_id = notification.get("id") or notification.get("generation") or "unknown"

    storage_data = StorageObjectData(
        bucket=bucket,
        name=name,
        contentType=notification.get("contentType"),
        size=str(notification.get("size", "0")),
        timeCreated=time_created,
        updated=notification.get("updated") or time_created,
        generation=notification.get("generation"),
    )

    return CloudEvent(
        specversion="1.0",
        type="google.cloud.storage.object.v1.finalized",
        source=f"//storage.googleapis.com/buckets/{bucket}",
        subject=f"objects/{name}",
        id=str(event_id),
        time=time_created,
        datacontenttype="application/json",
        data=storage_data,
    )


def parse_event(event_data: Dict[str, Any]) -> CloudEvent:
    """
    Accept either a CloudEvent or a raw storage notification.

    Raises:
        ValueError: If the payload is neither
    """
    if event_data.get("kind") == "storage#object":
        return _convert_storage_notification_to_cloud_event(event_data)
    return CloudEvent(**event_data)


def build_gate(store: StorageBackend, config: Settings = settings) -> AdmissionGate:
    """Assemble the admission gate from configuration."""
    return AdmissionGate(
        policy=type_policy_from_settings(config),
        quarantine=Quarantine(store, config.QUARANTINE_BUCKET),
        grammar=config.BLOB_NAME_GRAMMAR,
        handler=classification_handler_from_settings(config),
    )


async def archive_processed(
    store: StorageBackend,
    event: BlobEvent,
    outcome: GateOutcome,
    config: Settings = settings,
) -> Optional[str]:
    """
    Move a classified file to {processed bucket}/{company}/{original filename}.

    Returns:
        Destination path, or None when nothing was archived
    """
    document = outcome.document
    if document is None or outcome.parsed is None:
        return None

    destination_path = "/".join(
        [
            sanitize_segment(document.company),
            sanitize_segment(outcome.parsed.original_filename),
        ]
    )
    metadata = {
        "sender_email": document.sender_email,
        "original_location": event.location,
        "received_timestamp": document.received_timestamp,
        "company": document.company,
    }
    if isinstance(outcome.classification, DocumentClassification) and outcome.classification.doc_type:
        metadata["doc_type"] = outcome.classification.doc_type

    await move_blob(
        store,
        event.data,
        event.bucket,
        event.name,
        config.PROCESSED_BUCKET,
        destination_path,
        document.mime_type,
        metadata,
    )
    return destination_path


async def process_blob_event(
    event_data: Dict[str, Any],
    store: Optional[StorageBackend] = None,
    gate: Optional[AdmissionGate] = None,
    config: Settings = settings,
) -> Dict[str, Any]:
    """
    Process one storage event.

    Args:
        event_data: Raw CloudEvent data (or storage notification)
        store: Storage backend; defaults to the configured backend
        gate: Admission gate; defaults to one built from configuration
        config: Settings to use

    Returns:
        Response dictionary with status and details

    Raises:
        InvalidEvent: If event data is not a storage event
        QuarantineWriteFailed: If a rejected file cannot be quarantined
    """
    start_time = time.time()

    try:
        cloud_event = parse_event(event_data)
    except ValueError as e:
        logger.error(
            "Invalid CloudEvent data",
            extra={
                "error": str(e),
                "error_type": "validation_error",
                "event_data": json.dumps(event_data, default=str),
            },
        )
        raise InvalidEvent(f"Invalid event: {e}") from e

    bucket = cloud_event.data.bucket
    name = cloud_event.data.name

    if bucket != config.INCOMING_BUCKET:
        logger.info(
            "Skipping event outside the incoming bucket",
            extra={"event_id": cloud_event.id, "bucket": bucket, "object_name": name},
        )
        return {
            "status": "skipped",
            "event_id": cloud_event.id,
            "object_name": name,
            "message": f"Bucket {bucket} is not the incoming bucket",
        }

    with log_context(event_id=cloud_event.id, blob_uri=f"{bucket}/{name}"):
        try:
            logger.info(
                "Blob event received",
                extra={
                    "event_id": cloud_event.id,
                    "bucket": bucket,
                    "object_name": name,
                    "content_type": cloud_event.data.contentType,
                    "size_bytes": cloud_event.data.size,
                },
            )

            store = store or get_storage_backend()
            gate = gate or build_gate(store, config)

            data = await store.read_bytes(bucket, name)
            event = BlobEvent(
                event_id=cloud_event.id,
                bucket=bucket,
                name=name,
                data=data,
                content_type=cloud_event.data.contentType,
                time=cloud_event.time,
            )

            outcome = await gate.process(event)

            if outcome.state == AdmissionState.QUARANTINED:
                return {
                    "status": "quarantined",
                    "event_id": cloud_event.id,
                    "object_name": name,
                    "reason": outcome.reason.value if outcome.reason else None,
                    "destination": (
                        f"{outcome.quarantine.destination_bucket}/{outcome.quarantine.destination_path}"
                        if outcome.quarantine
                        else None
                    ),
                    "source_deleted": outcome.source_deleted,
                    "processing_time_ms": int((time.time() - start_time) * 1000),
                }

            response: Dict[str, Any] = {
                "status": "admitted",
                "event_id": cloud_event.id,
                "object_name": name,
                "file_name": outcome.document.file_name,
                "mime_type": outcome.document.mime_type,
                "decision_source": outcome.decision.source.value,
                "company": outcome.document.company,
            }

            if outcome.classification_error is not None:
                response["status"] = "classification_failed"
                response["error"] = outcome.classification_error
            elif isinstance(outcome.classification, DocumentClassification):
                response["doc_type"] = outcome.classification.doc_type
                response["confidence"] = outcome.classification.confidence
                if config.ARCHIVE_PROCESSED and outcome.classification.doc_type:
                    response["archived_to"] = await archive_processed(store, event, outcome, config)

            response["processing_time_ms"] = int((time.time() - start_time) * 1000)

            logger.info(
                "Event processed",
                extra={
                    "event_id": cloud_event.id,
                    "outcome": response["status"],
                    "processing_time_ms": response["processing_time_ms"],
                },
            )
            return response

        except Exception as e:
            logger.error(
                "Failed to process blob event",
                extra={
                    "event_id": cloud_event.id,
                    "bucket": bucket,
                    "object_name": name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "outcome": "failed",
                },
                exc_info=True,
            )
            raise
