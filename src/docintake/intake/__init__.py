"""
Intake gate

Receives blob-creation events for emailed attachments, decides from the blob
name and the file's magic bytes whether the file is a supported document,
and either hands it to the document classifier or moves it to quarantine.
"""

from docintake.intake.blob_name import parse_blob_name
from docintake.intake.file_types import TypePolicy, build_type_policy
from docintake.intake.gate import AdmissionGate
from docintake.intake.models import (
    AdmissionState,
    BlobEvent,
    BlobNameGrammar,
    DecisionSource,
    GateOutcome,
    ParsedBlobName,
    RejectionReason,
    SniffResult,
    TypeDecision,
)
from docintake.intake.resolver import decide
from docintake.intake.sniffer import sniff

__all__ = [
    "AdmissionGate",
    "AdmissionState",
    "BlobEvent",
    "BlobNameGrammar",
    "DecisionSource",
    "GateOutcome",
    "ParsedBlobName",
    "RejectionReason",
    "SniffResult",
    "TypeDecision",
    "TypePolicy",
    "build_type_policy",
    "decide",
    "parse_blob_name",
    "sniff",
]
