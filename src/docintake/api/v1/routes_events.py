"""Storage event sink."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from docintake.intake.exceptions import InvalidEvent, QuarantineWriteFailed
from docintake.intake.service import process_blob_event

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/")
async def handle_storage_event(request: Request) -> dict:
    """
    Handle a CloudEvent (or raw storage notification) for a new blob.

    Returns:
        200: Event handled (admitted, quarantined or skipped)
        400: Malformed event; redelivery would not help
        500: Quarantine write or unexpected failure; the trigger may redeliver
    """
    try:
        event_data = await request.json()
    except ValueError as e:
        logger.warning(
            "Failed to parse event request body",
            extra={"error": str(e), "error_type": type(e).__name__},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid request: {e}",
        )

    if not isinstance(event_data, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid request: event body must be a JSON object",
        )

    try:
        return await process_blob_event(event_data)
    except InvalidEvent as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except QuarantineWriteFailed as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Event processing failed: {type(e).__name__}",
        )
