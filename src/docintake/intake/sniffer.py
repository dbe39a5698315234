"""
Magic-byte sniffer.

Identifies the format of a buffer from its first bytes, independent of the
file name. Signatures are checked in table order and the first match wins.
"""

from typing import List, Tuple

from docintake.intake.models import Confidence, SniffResult

HEADER_SIZE = 12

# (prefix, extension, MIME type), checked in order
SIGNATURES: List[Tuple[bytes, str, str]] = [
    (b"%PDF-", ".pdf", "application/pdf"),
    (b"\xff\xd8", ".jpg", "image/jpeg"),
    (b"\x89PNG", ".png", "image/png"),
    (b"II*\x00", ".tiff", "image/tiff"),  # little-endian TIFF
    (b"MM\x00*", ".tiff", "image/tiff"),  # big-endian TIFF
    (b"BM", ".bmp", "image/bmp"),
]

# ISO-BMFF brands identifying HEIC/HEIF containers
HEIF_BRANDS = ("ftypheic", "ftypheif", "ftypmif1", "ftypheix")


def sniff(buffer: bytes, enable_extended_formats: bool = False) -> SniffResult:
    """
    Guess the format of a buffer from its leading bytes.

    Args:
        buffer: Raw file content (may be empty)
        enable_extended_formats: Also look for HEIC/HEIF brand strings

    Returns:
        SniffResult; empty ext/mime with low confidence when nothing matched

    Examples:
        >>> sniff(b"%PDF-1.7\\n%\\xe2\\xe3\\xcf\\xd3\\n").mime
        'application/pdf'
        >>> sniff(b"").confidence
        <Confidence.LOW: 'low'>
    """
    if not buffer or len(buffer) < HEADER_SIZE:
        return SniffResult()

    header = bytes(buffer[:HEADER_SIZE])

    for prefix, ext, mime in SIGNATURES:
        if header.startswith(prefix):
            return SniffResult(ext=ext, mime=mime, confidence=Confidence.HIGH)

    if enable_extended_formats:
        ascii_header = header.decode("latin-1")
        if any(brand in ascii_header for brand in HEIF_BRANDS):
            return SniffResult(ext=".heic", mime="image/heic", confidence=Confidence.LOW)

    return SniffResult()
