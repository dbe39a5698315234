"""Reconcile sniffed format, file extension and declared content type."""

import logging
from typing import AbstractSet, Optional

from docintake.intake.file_types import (
    extension_to_mime,
    mime_to_extension,
    normalize_extension,
    normalize_mime_type,
)
from docintake.intake.models import DecisionSource, SniffResult, TypeDecision

logger = logging.getLogger(__name__)


def decide(
    sniff_result: SniffResult,
    extension_from_name: Optional[str],
    declared_content_type: Optional[str],
    allowed_extensions: AbstractSet[str],
    allowed_mime_types: AbstractSet[str],
) -> TypeDecision:
    """
    Pick one authoritative (extension, MIME type) pair for a file.

    Precedence, highest first: sniffed MIME type, file name extension,
    declared content type. Each candidate must be in its allow-list.

    Args:
        sniff_result: Output of the magic-byte sniffer
        extension_from_name: Extension parsed from the blob name
        declared_content_type: Content type from the storage event, if any
        allowed_extensions: Normalized extension allow-list
        allowed_mime_types: Normalized MIME type allow-list

    Returns:
        TypeDecision; source UNKNOWN with empty fields when nothing is allowed
    """
    sniffed_mime = normalize_mime_type(sniff_result.mime)
    if sniffed_mime and sniffed_mime in allowed_mime_types:
        sniffed_ext = normalize_extension(sniff_result.ext)
        if extension_to_mime(sniffed_ext) != sniffed_mime:
            sniffed_ext = mime_to_extension(sniffed_mime)
        if sniffed_ext:
            return TypeDecision(
                file_extension=sniffed_ext,
                mime_type=sniffed_mime,
                source=DecisionSource.MAGIC,
            )

    ext = normalize_extension(extension_from_name)
    if ext and ext in allowed_extensions:
        mime = extension_to_mime(ext)
        if mime:
            return TypeDecision(
                file_extension=ext,
                mime_type=mime,
                source=DecisionSource.EXTENSION,
            )

    content_type = normalize_mime_type(declared_content_type)
    if content_type and content_type in allowed_mime_types:
        canonical_ext = mime_to_extension(content_type)
        if canonical_ext:
            return TypeDecision(
                file_extension=canonical_ext,
                mime_type=content_type,
                source=DecisionSource.CONTENT_TYPE,
            )

    logger.debug(
        "No allowed type for file",
        extra={
            "sniffed_mime": sniffed_mime,
            "extension": ext,
            "content_type": content_type,
        },
    )
    return TypeDecision.unknown()
