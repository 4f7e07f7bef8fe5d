"""Error taxonomy shared by the form, capture and delivery services.

Every error is recoverable: the form stays editable and the user can retry.
"""

from enum import Enum

from fastapi import status


class ErrorKind(str, Enum):
    """Machine-readable error categories returned to the browser."""

    VALIDATION_ERROR = "validation_error"
    IMAGE_TOO_LARGE = "image_too_large"
    IMAGE_DECODE_FAILED = "image_decode_failed"
    CAPTURE_FAILED = "capture_failed"
    DELIVERY_FAILED = "delivery_failed"
    EXPORT_IN_PROGRESS = "export_in_progress"
    SESSION_NOT_FOUND = "session_not_found"
    SAVE_FAILED = "save_failed"


class WineCardError(Exception):
    """Base class for user-facing, non-fatal errors."""

    kind: ErrorKind
    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Something went wrong."

    def __init__(self, message: str | None = None, field: str | None = None) -> None:
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)

    def to_dict(self) -> dict[str, str | None]:
        """Serialize for a JSON error response."""
        return {"kind": self.kind.value, "message": self.message, "field": self.field}


class FieldValidationError(WineCardError):
    """A field value falls outside its declared domain."""

    kind = ErrorKind.VALIDATION_ERROR
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT
    default_message = "Invalid value."


class ImageTooLarge(WineCardError):
    """Uploaded photo exceeds the upload size limit."""

    kind = ErrorKind.IMAGE_TOO_LARGE
    status_code = status.HTTP_413_CONTENT_TOO_LARGE
    default_message = "The photo is too large."


class ImageDecodeFailed(WineCardError):
    """Uploaded photo is not a decodable raster image."""

    kind = ErrorKind.IMAGE_DECODE_FAILED
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "The photo could not be read. Please choose a JPEG, PNG, GIF or WebP image."


class CaptureFailed(WineCardError):
    """Rasterizing the card preview failed."""

    kind = ErrorKind.CAPTURE_FAILED
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Could not create the card image. Please try again."


class DeliveryFailed(WineCardError):
    """The captured image could not be handed to the user."""

    kind = ErrorKind.DELIVERY_FAILED
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Could not save the card image. Please try again."


class ExportInProgress(WineCardError):
    """An export is already running for this form session."""

    kind = ErrorKind.EXPORT_IN_PROGRESS
    status_code = status.HTTP_409_CONFLICT
    default_message = "The card image is still being created."


class SessionNotFound(WineCardError):
    """The form session does not exist or has been closed."""

    kind = ErrorKind.SESSION_NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "This form session has expired. Please reload the page."


class SaveFailed(WineCardError):
    """The card store rejected the draft."""

    kind = ErrorKind.SAVE_FAILED
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Could not save your wine card. Please try again."
