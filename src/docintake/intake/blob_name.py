"""
Blob name parsing.

The mail forwarder encodes the sender and receive time into the blob name.
Two conventions exist and the deployment picks one explicitly:

- hyphen:       {sender}-{inbox}-{timestamp}-{original filename}
                e.g. alice@co.com-acme-2024-05-01T00:00:00Z-invoice.pdf
- parenthesis:  {timestamp}({sender}){original filename}
                e.g. 20240501T000000Z(alice@co.com)invoice.pdf

Parsing never raises; malformed names come back with is_valid=False and a
reason code so the gate can quarantine them.
"""

import logging
import re
from datetime import datetime, timezone
from typing import AbstractSet, Optional

from docintake.intake.file_types import normalize_extension
from docintake.intake.models import BlobNameGrammar, ParsedBlobName, RejectionReason

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"

PARENTHESIS_PATTERN = re.compile(r"^(.+?)\((.+?)\)(.+)$", re.DOTALL)

# ISO date at the start of the remainder, optionally with a time and offset
ISO_TIMESTAMP_PREFIX = re.compile(
    r"^(\d{4}-\d{2}-\d{2}"
    r"(?:[T ]\d{2}(?::?\d{2}){1,2}(?:\.\d+)?(?:Z|[+-]\d{2}:?\d{2})?)?)"
    r"-(.+)$",
    re.DOTALL,
)


def base_name(name: str) -> str:
    """Strip any directory components from a blob name."""
    return name.replace("\\", "/").rsplit("/", 1)[-1]


def extension_of(file_name: str) -> str:
    """Lower-cased extension including the dot, or '' when there is none."""
    if "." not in file_name:
        return ""
    return normalize_extension(file_name[file_name.rfind("."):])


def company_from_sender(sender_email: str) -> str:
    """Derive a company identifier from the sender's email domain."""
    if "@" not in sender_email:
        return UNKNOWN
    domain = sender_email.split("@", 1)[1].strip()
    return domain or UNKNOWN


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_hyphen_name(name: str) -> ParsedBlobName:
    """Parse {sender}-{inbox}-{timestamp}-{original filename}."""
    file_name = base_name(name)
    parts = file_name.split("-")

    if len(parts) < 4:
        logger.warning(
            "Blob name does not match hyphen grammar",
            extra={"blob_name": name, "parts": len(parts)},
        )
        return ParsedBlobName(
            sender_email=UNKNOWN,
            inbox_or_company=UNKNOWN,
            received_timestamp=_utc_now_iso(),
            original_filename=UNKNOWN,
            extension="",
            grammar=BlobNameGrammar.HYPHEN,
            is_valid=False,
            reason=RejectionReason.INVALID_FILENAME,
        )

    sender, inbox = parts[0], parts[1]
    remainder = "-".join(parts[2:])

    match = ISO_TIMESTAMP_PREFIX.match(remainder)
    if match:
        timestamp, original = match.group(1), match.group(2)
    else:
        timestamp, original = parts[2], "-".join(parts[3:])

    return ParsedBlobName(
        sender_email=sender,
        inbox_or_company=inbox,
        received_timestamp=timestamp,
        original_filename=original,
        extension=extension_of(original),
        grammar=BlobNameGrammar.HYPHEN,
    )


def parse_parenthesis_name(
    name: str, allowed_extensions: Optional[AbstractSet[str]] = None
) -> ParsedBlobName:
    """
    Parse {timestamp}({sender}){original filename}.

    Args:
        name: Blob name
        allowed_extensions: Extensions accepted at this stage; None skips the check

    Returns:
        ParsedBlobName; invalid with INVALID_FILENAME when the pattern does not
        match, invalid with UNSUPPORTED_TYPE when the extension is not allowed
    """
    file_name = base_name(name)
    match = PARENTHESIS_PATTERN.match(file_name)

    if not match:
        logger.warning(
            "Blob name does not match parenthesis grammar",
            extra={"blob_name": name},
        )
        return ParsedBlobName(
            sender_email=UNKNOWN,
            inbox_or_company=UNKNOWN,
            received_timestamp=UNKNOWN,
            original_filename=file_name or UNKNOWN,
            extension=extension_of(file_name),
            grammar=BlobNameGrammar.PARENTHESIS,
            is_valid=False,
            reason=RejectionReason.INVALID_FILENAME,
        )

    timestamp, sender, original = match.group(1), match.group(2), match.group(3)
    extension = extension_of(original)
    company = company_from_sender(sender)

    if allowed_extensions is not None and extension not in allowed_extensions:
        logger.warning(
            "Unsupported file type in blob name",
            extra={"blob_name": name, "extension": extension},
        )
        return ParsedBlobName(
            sender_email=sender,
            inbox_or_company=company,
            received_timestamp=timestamp,
            original_filename=original,
            extension=extension,
            grammar=BlobNameGrammar.PARENTHESIS,
            is_valid=False,
            reason=RejectionReason.UNSUPPORTED_TYPE,
        )

    return ParsedBlobName(
        sender_email=sender,
        inbox_or_company=company,
        received_timestamp=timestamp,
        original_filename=original,
        extension=extension,
        grammar=BlobNameGrammar.PARENTHESIS,
    )


def parse_blob_name(
    name: str,
    grammar: BlobNameGrammar | str = BlobNameGrammar.PARENTHESIS,
    allowed_extensions: Optional[AbstractSet[str]] = None,
) -> ParsedBlobName:
    """Parse a blob name with the configured grammar."""
    grammar = BlobNameGrammar(grammar)
    if grammar == BlobNameGrammar.HYPHEN:
        return parse_hyphen_name(name or "")
    return parse_parenthesis_name(name or "", allowed_extensions)
