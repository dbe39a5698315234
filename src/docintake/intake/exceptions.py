"""Custom exceptions for the intake gate."""

from docintake.intake.models import RejectionReason


class IntakeError(Exception):
    """Base exception for the intake gate."""
    pass


class RejectedFile(IntakeError):
    """A file the gate refuses to admit. Carries the quarantine reason code."""

    reason: RejectionReason = RejectionReason.UNSUPPORTED_TYPE

    def __init__(self, message: str = "", reason: RejectionReason | None = None):
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class NameRejected(RejectedFile):
    """Blob name does not match the configured naming grammar."""

    reason = RejectionReason.INVALID_FILENAME


class FormatRejected(RejectedFile):
    """Sniffing, extension and content type agree on no allowed type."""

    reason = RejectionReason.UNSUPPORTED_TYPE


class InvalidEvent(IntakeError):
    """The trigger payload is not a usable storage event."""
    pass


class QuarantineWriteFailed(IntakeError):
    """Writing a rejected file to the quarantine bucket failed."""
    pass


class SourceDeleteFailed(IntakeError):
    """Deleting the source blob after a successful move failed."""
    pass


class ClassificationError(IntakeError):
    """Exception raised when the document classifier fails."""
    pass


class ClassificationTimeout(ClassificationError):
    """The classifier did not finish within the polling budget."""
    pass
