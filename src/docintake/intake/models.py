"""
Data models for the intake gate.

Event envelopes follow the CloudEvents 1.0 specification for Cloud Storage
object-finalized events. See: https://github.com/cloudevents/spec/blob/v1.0/spec.md
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from docintake.intake.file_types import extension_to_mime


class Confidence(str, Enum):
    """How much a sniffed format can be trusted."""

    HIGH = "high"
    LOW = "low"


class DecisionSource(str, Enum):
    """Which signal produced a type decision."""

    MAGIC = "magic"
    EXTENSION = "extension"
    CONTENT_TYPE = "content_type"
    UNKNOWN = "unknown"


class RejectionReason(str, Enum):
    """Reason codes attached to quarantined files."""

    INVALID_FILENAME = "invalid_filename"
    UNSUPPORTED_TYPE = "unsupported_or_unknown_type"


class BlobNameGrammar(str, Enum):
    """Naming conventions used by the mail-to-storage forwarder."""

    HYPHEN = "hyphen"  # sender-inbox-timestamp-filename
    PARENTHESIS = "parenthesis"  # timestamp(sender)filename


class AdmissionState(str, Enum):
    RECEIVED = "received"
    TYPE_CHECKED = "type_checked"
    ADMITTED = "admitted"
    QUARANTINED = "quarantined"


class SniffResult(BaseModel):
    """Best-guess format read from the leading bytes of a buffer."""

    model_config = ConfigDict(frozen=True)

    ext: str = Field("", description="Canonical extension with leading dot, or ''")
    mime: str = Field("", description="Canonical MIME type, or ''")
    confidence: Confidence = Field(Confidence.LOW, description="Signature confidence")


class TypeDecision(BaseModel):
    """Authoritative (extension, MIME type) pair for one file."""

    model_config = ConfigDict(frozen=True)

    file_extension: str = Field("", description="Canonical extension with leading dot")
    mime_type: str = Field("", description="Canonical MIME type")
    source: DecisionSource = Field(DecisionSource.UNKNOWN, description="Signal that won")

    @model_validator(mode="after")
    def _check_consistency(self) -> "TypeDecision":
        if self.source == DecisionSource.UNKNOWN:
            if self.file_extension or self.mime_type:
                raise ValueError("unknown decision must not carry an extension or MIME type")
        elif not (self.file_extension and self.mime_type):
            raise ValueError(f"{self.source.value} decision requires extension and MIME type")
        elif extension_to_mime(self.file_extension) != self.mime_type:
            raise ValueError(
                f"extension {self.file_extension} does not map to MIME type {self.mime_type}"
            )
        return self

    @classmethod
    def unknown(cls) -> "TypeDecision":
        return cls()

    @property
    def is_unknown(self) -> bool:
        return self.source == DecisionSource.UNKNOWN


class ParsedBlobName(BaseModel):
    """Identity fields decoded from an incoming blob name."""

    model_config = ConfigDict(frozen=True)

    sender_email: str = Field(..., description="Address the attachment was mailed from")
    inbox_or_company: str = Field(..., description="Inbox name or sender's company domain")
    received_timestamp: str = Field(..., description="Received time as written in the name")
    original_filename: str = Field(..., description="Attachment file name including extension")
    extension: str = Field("", description="Lower-cased extension with leading dot")
    grammar: BlobNameGrammar = Field(..., description="Grammar used to parse the name")
    is_valid: bool = Field(True, description="False when the name was rejected")
    reason: Optional[RejectionReason] = Field(None, description="Rejection reason code")


class QuarantineRecord(BaseModel):
    """Where a rejected file goes and how it is tagged."""

    model_config = ConfigDict(frozen=True)

    source_bucket: str
    source_name: str
    destination_bucket: str
    destination_path: str
    reason: RejectionReason
    metadata: Dict[str, str] = Field(default_factory=dict)


class BlobEvent(BaseModel):
    """A blob-creation event with the object bytes already fetched."""

    event_id: str = Field(..., description="Trigger event identifier for tracing")
    bucket: str = Field(..., description="Bucket the blob landed in")
    name: str = Field(..., description="Blob name")
    data: bytes = Field(b"", description="Blob content")
    content_type: Optional[str] = Field(None, description="Declared content type, if any")
    time: datetime = Field(..., description="Event timestamp")

    @property
    def location(self) -> str:
        return f"{self.bucket}/{self.name}"


class AdmittedDocument(BaseModel):
    """Everything the classification collaborator receives for an admitted file."""

    data: bytes
    file_name: str = Field(..., description="Original stem plus canonical extension")
    file_extension: str
    mime_type: str
    sender_email: str
    company: str
    received_timestamp: str
    source_bucket: str
    source_name: str


class DocumentClassification(BaseModel):
    """Result of the external document classifier."""

    doc_type: Optional[str] = Field(None, description="Classifier document type, None if undetected")
    confidence: Optional[float] = Field(None, description="Classifier confidence")
    mime_type: str
    file_extension: str
    raw: Dict[str, Any] = Field(default_factory=dict, description="Full analyze result")


class OperationHandle(BaseModel):
    """Reference to a long-running analyze operation."""

    operation_location: str


class OperationStatus(BaseModel):
    """One poll of a long-running analyze operation."""

    status: str
    result: Dict[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status.lower() == "succeeded"

    @property
    def failed(self) -> bool:
        return self.status.lower() in ("failed", "canceled")


class GateOutcome(BaseModel):
    """What the admission gate decided for one event."""

    state: AdmissionState = AdmissionState.RECEIVED
    transitions: List[AdmissionState] = Field(default_factory=lambda: [AdmissionState.RECEIVED])
    reason: Optional[RejectionReason] = None
    parsed: Optional[ParsedBlobName] = None
    decision: Optional[TypeDecision] = None
    quarantine: Optional[QuarantineRecord] = None
    source_deleted: Optional[bool] = None
    document: Optional[AdmittedDocument] = None
    classification: Optional[Any] = None
    classification_error: Optional[str] = None

    def move_to(self, state: AdmissionState) -> None:
        self.state = state
        self.transitions.append(state)


class StorageObjectData(BaseModel):
    """
    Cloud Storage object metadata from OBJECT_FINALIZE event.

    This contains the actual file information from the Cloud Storage event payload.
    """

    model_config = ConfigDict(populate_by_name=True)

    bucket: str = Field(..., description="Cloud Storage bucket name")
    name: str = Field(..., description="Object path (file name)")
    contentType: Optional[str] = Field(
        None, alias="contentType", description="MIME type of the file"
    )
    size: str = Field("0", description="File size in bytes (as string)")
    timeCreated: Optional[datetime] = Field(
        None, alias="timeCreated", description="Timestamp when file was created"
    )
    updated: Optional[datetime] = Field(
        None, description="Timestamp when file was last updated"
    )
    generation: Optional[str] = Field(
        None, description="Object generation number for versioning"
    )


class CloudEvent(BaseModel):
    """
    CloudEvents 1.0 envelope for Cloud Storage events.

    Eventarc delivers events in this format to Cloud Run services.
    See: https://cloud.google.com/eventarc/docs/cloudevents
    """

    specversion: str = Field(
        ..., description="CloudEvents specification version (always '1.0')"
    )
    type: str = Field(..., description="Event type (e.g., 'google.cloud.storage.object.v1.finalized')")
    source: str = Field(..., description="Event source (Cloud Storage bucket URI)")
    subject: Optional[str] = Field(None, description="Subject of the event (object path)")
    id: str = Field(..., description="Unique event identifier")
    time: datetime = Field(..., description="Timestamp when event occurred")
    datacontenttype: Optional[str] = Field(
        None, description="Content type of the data payload (always 'application/json')"
    )
    data: StorageObjectData = Field(..., description="Event payload with file metadata")
