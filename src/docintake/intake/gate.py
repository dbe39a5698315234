"""
Admission gate.

Decides, per blob event, whether a file goes on to classification or into
quarantine:

    received -> type_checked -> admitted
        |             |
        +-------------+-------> quarantined

Name rejections skip type checking entirely. Every event is handled
independently; the gate holds no per-event state between calls.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

from docintake.intake.blob_name import parse_blob_name
from docintake.intake.exceptions import (
    ClassificationError,
    FormatRejected,
    NameRejected,
    RejectedFile,
)
from docintake.intake.file_types import TypePolicy, normalize_mime_type
from docintake.intake.models import (
    AdmissionState,
    AdmittedDocument,
    BlobEvent,
    BlobNameGrammar,
    GateOutcome,
    ParsedBlobName,
    RejectionReason,
    TypeDecision,
)
from docintake.intake.quarantine import Quarantine
from docintake.intake.resolver import decide
from docintake.intake.sniffer import sniff

logger = logging.getLogger(__name__)

AdmissionHandler = Callable[[AdmittedDocument], Awaitable[Any]]

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def canonical_file_name(original_filename: str, file_extension: str) -> str:
    """Original file stem with the canonical extension."""
    stem = original_filename
    if "." in original_filename:
        stem = original_filename[: original_filename.rfind(".")]
    return f"{stem or 'document'}{file_extension}"


class AdmissionGate:
    """Runs name parsing, sniffing and type resolution for each event."""

    def __init__(
        self,
        policy: TypePolicy,
        quarantine: Quarantine,
        grammar: BlobNameGrammar | str = BlobNameGrammar.PARENTHESIS,
        handler: Optional[AdmissionHandler] = None,
    ):
        self.policy = policy
        self.quarantine = quarantine
        self.grammar = BlobNameGrammar(grammar)
        self.handler = handler

    async def process(self, event: BlobEvent) -> GateOutcome:
        """
        Admit or quarantine one file.

        Args:
            event: Blob event with the object bytes

        Returns:
            GateOutcome in state ADMITTED or QUARANTINED

        Raises:
            QuarantineWriteFailed: If a rejected file cannot be written to quarantine
        """
        outcome = GateOutcome()

        parsed = parse_blob_name(event.name, self.grammar, self.policy.allowed_extensions)
        outcome.parsed = parsed

        if not parsed.is_valid:
            if parsed.reason == RejectionReason.INVALID_FILENAME:
                rejection: RejectedFile = NameRejected(f"Invalid blob name: {event.name}")
            else:
                rejection = FormatRejected(
                    f"Unsupported file type {parsed.extension or '(none)'}: {event.name}"
                )
            return await self._quarantine(event, outcome, rejection)

        sniffed = sniff(event.data, enable_extended_formats=self.policy.enable_extended_formats)
        decision = decide(
            sniffed,
            parsed.extension,
            event.content_type,
            self.policy.allowed_extensions,
            self.policy.allowed_mime_types,
        )
        outcome.decision = decision
        outcome.move_to(AdmissionState.TYPE_CHECKED)

        logger.info(
            "File type checked",
            extra={
                "event_id": event.event_id,
                "sniffed_mime": sniffed.mime,
                "sniff_confidence": sniffed.confidence.value,
                "extension": parsed.extension,
                "declared_content_type": event.content_type,
                "decision_source": decision.source.value,
                "mime_type": decision.mime_type,
            },
        )

        if decision.is_unknown:
            rejection = FormatRejected(f"Unsupported or unknown file type: {event.name}")
            return await self._quarantine(event, outcome, rejection)

        document = self._admitted_document(event, parsed, decision)
        outcome.document = document
        outcome.move_to(AdmissionState.ADMITTED)

        logger.info(
            "File admitted",
            extra={
                "event_id": event.event_id,
                "file_name": document.file_name,
                "mime_type": document.mime_type,
                "company": document.company,
            },
        )

        if self.handler is not None:
            try:
                outcome.classification = await self.handler(document)
            except ClassificationError as e:
                outcome.classification_error = str(e)
                logger.error(
                    "Classification failed for admitted file",
                    extra={
                        "event_id": event.event_id,
                        "file_name": document.file_name,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                    exc_info=True,
                )

        return outcome

    def _admitted_document(
        self, event: BlobEvent, parsed: ParsedBlobName, decision: TypeDecision
    ) -> AdmittedDocument:
        return AdmittedDocument(
            data=event.data,
            file_name=canonical_file_name(parsed.original_filename, decision.file_extension),
            file_extension=decision.file_extension,
            mime_type=decision.mime_type,
            sender_email=parsed.sender_email,
            company=parsed.inbox_or_company,
            received_timestamp=parsed.received_timestamp,
            source_bucket=event.bucket,
            source_name=event.name,
        )

    async def _quarantine(
        self, event: BlobEvent, outcome: GateOutcome, rejection: RejectedFile
    ) -> GateOutcome:
        record = self.quarantine.record_for(event, outcome.parsed, rejection.reason)

        logger.warning(
            f"Quarantining file: {rejection}",
            extra={
                "event_id": event.event_id,
                "reason": rejection.reason.value,
                "destination": f"{record.destination_bucket}/{record.destination_path}",
            },
        )

        if outcome.decision is not None and not outcome.decision.is_unknown:
            content_type = outcome.decision.mime_type
        else:
            content_type = normalize_mime_type(event.content_type) or DEFAULT_CONTENT_TYPE

        outcome.source_deleted = await self.quarantine.place(record, event.data, content_type)
        outcome.quarantine = record
        outcome.reason = rejection.reason
        outcome.move_to(AdmissionState.QUARANTINED)
        return outcome
