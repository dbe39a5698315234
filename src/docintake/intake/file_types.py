"""
Extension and MIME type tables for admitted documents.

The intake accepts scanned forms only:
- pdf: PDF documents
- jpg/jpeg, png, bmp, tiff: raster images from scanners and phone cameras
- heic/heif: extended image formats, enabled by a feature flag

A TypePolicy bundles the allow-lists and the sniffer's extended-format switch
so both are always derived from the same configuration.
"""

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional

logger = logging.getLogger(__name__)


# Base extension -> canonical MIME type
EXTENSION_MIME_MAP: Dict[str, str] = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
}

# Base MIME type -> canonical extension (.jpeg collapses to .jpg)
MIME_EXTENSION_MAP: Dict[str, str] = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
}

# Extended image formats (ENABLE_EXTENDED_IMAGE_FORMATS)
EXTENDED_EXTENSION_MIME_MAP: Dict[str, str] = {
    ".heic": "image/heic",
    ".heif": "image/heif",
}

EXTENDED_MIME_EXTENSION_MAP: Dict[str, str] = {
    "image/heic": ".heic",
    "image/heif": ".heif",
}


def normalize_extension(extension: Optional[str]) -> str:
    """Lower-case an extension and make sure it carries a leading dot."""
    if not extension:
        return ""
    ext = extension.strip().lower()
    if not ext:
        return ""
    return ext if ext.startswith(".") else f".{ext}"


def normalize_mime_type(mime_type: Optional[str]) -> str:
    """Lower-case a MIME type and drop any parameters (e.g. charset)."""
    if not mime_type:
        return ""
    return mime_type.lower().split(";")[0].strip()


def extension_to_mime(extension: str, include_extended: bool = True) -> str:
    """Return the canonical MIME type for an extension, or '' if unknown."""
    ext = normalize_extension(extension)
    if ext in EXTENSION_MIME_MAP:
        return EXTENSION_MIME_MAP[ext]
    if include_extended:
        return EXTENDED_EXTENSION_MIME_MAP.get(ext, "")
    return ""


def mime_to_extension(mime_type: str, include_extended: bool = True) -> str:
    """Return the canonical extension for a MIME type, or '' if unknown."""
    mime = normalize_mime_type(mime_type)
    if mime in MIME_EXTENSION_MAP:
        return MIME_EXTENSION_MAP[mime]
    if include_extended:
        return EXTENDED_MIME_EXTENSION_MAP.get(mime, "")
    return ""


@dataclass(frozen=True)
class TypePolicy:
    """Allow-lists plus the sniffer switch, built once at startup."""

    allowed_extensions: FrozenSet[str]
    allowed_mime_types: FrozenSet[str]
    enable_extended_formats: bool = False


def build_type_policy(
    extensions: Optional[Iterable[str]] = None,
    mime_types: Optional[Iterable[str]] = None,
    enable_extended_formats: bool = False,
) -> TypePolicy:
    """
    Build the admission allow-lists from the base table plus optional extensions.

    Args:
        extensions: Configured extensions, or None for the whole table
        mime_types: Configured MIME types, or None for the whole table
        enable_extended_formats: Add HEIC/HEIF to both lists and to the sniffer

    Returns:
        TypePolicy with normalized, table-consistent allow-lists

    Examples:
        >>> sorted(build_type_policy([".pdf", "PNG"]).allowed_extensions)
        ['.pdf', '.png']
    """
    known_extensions = dict(EXTENSION_MIME_MAP)
    known_mimes = dict(MIME_EXTENSION_MAP)
    if enable_extended_formats:
        known_extensions.update(EXTENDED_EXTENSION_MIME_MAP)
        known_mimes.update(EXTENDED_MIME_EXTENSION_MAP)

    if extensions is None:
        allowed_extensions = set(known_extensions)
    else:
        allowed_extensions = set()
        for raw in extensions:
            ext = normalize_extension(raw)
            if ext in known_extensions:
                allowed_extensions.add(ext)
            elif ext:
                logger.warning(
                    "Ignoring unsupported extension in allow-list",
                    extra={"extension": ext},
                )
        if enable_extended_formats:
            allowed_extensions.update(EXTENDED_EXTENSION_MIME_MAP)

    if mime_types is None:
        allowed_mimes = set(known_mimes)
    else:
        allowed_mimes = set()
        for raw in mime_types:
            mime = normalize_mime_type(raw)
            if mime in known_mimes:
                allowed_mimes.add(mime)
            elif mime:
                logger.warning(
                    "Ignoring unsupported MIME type in allow-list",
                    extra={"mime_type": mime},
                )
        if enable_extended_formats:
            allowed_mimes.update(EXTENDED_MIME_EXTENSION_MAP)

    return TypePolicy(
        allowed_extensions=frozenset(allowed_extensions),
        allowed_mime_types=frozenset(allowed_mimes),
        enable_extended_formats=enable_extended_formats,
    )


def type_policy_from_settings(config) -> TypePolicy:
    """Build a TypePolicy from a Settings instance."""
    return build_type_policy(
        extensions=config.allowed_extensions,
        mime_types=config.allowed_mime_types,
        enable_extended_formats=config.ENABLE_EXTENDED_IMAGE_FORMATS,
    )
