from typing import Any

MSG_NO_FILE = "no file selected"
MSG_INVALID_TYPE = "invalid file type"
MSG_TOO_LARGE = "file too large"
MSG_MISSING_FIELDS = "Image and prompt are required"
MSG_INVALID_IMAGE = "Image must be a base64 data URL"


class InputValidationError(ValueError):
    """Rejected before any outbound call is made."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportError(RuntimeError):
    """The external API call failed: network error, timeout or non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details
