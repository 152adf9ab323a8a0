"""
Error taxonomy for the assistant.

Validation errors are raised to the caller before any record exists.
External service errors are raised by collaborator implementations and are
caught by the message store, which degrades the feature and logs.
"""


class AssistantError(Exception):
    """Base class for all assistant errors."""


class InputValidationError(AssistantError):
    reason = "invalid"

    def __init__(self, message: str = ""):
        super().__init__(message or self.reason)


class TooLongError(InputValidationError):
    reason = "too_long"


class InvalidUrlError(InputValidationError):
    reason = "invalid_url"


class EmptyContentError(InputValidationError):
    reason = "empty_content"


class ExternalServiceError(AssistantError):
    """A notification, calendar or metadata collaborator failed."""


class NotificationError(ExternalServiceError):
    pass


class CalendarError(ExternalServiceError):
    pass


class LinkPreviewError(ExternalServiceError):
    pass


class EncryptionError(AssistantError):
    """Encrypting or decrypting message text failed (bad key, corrupted data)."""
