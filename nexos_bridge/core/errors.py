"""Error taxonomy

Every failure a request can end in is one of these. The API layer renders them as
``{"error": {"message", "type", "details"?}}`` with ``status_code``.
"""

from typing import Any, Optional

from ..models.openai import ErrorDetail, ErrorResponse


class BridgeError(Exception):
    """Base class for errors reported to the caller"""

    status_code = 500
    error_type = "api_error"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_type: Optional[str] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_type is not None:
            self.error_type = error_type
        self.details = details

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=ErrorDetail(
                message=self.message,
                type=self.error_type,
                details=self.details,
            )
        )


class ConfigurationError(BridgeError):
    """Required configuration (e.g. the upstream cookie) is missing"""

    status_code = 500
    error_type = "configuration_error"


class InvalidRequestError(BridgeError):
    """The caller sent something we cannot act on"""

    status_code = 400
    error_type = "invalid_request_error"


class UpstreamError(BridgeError):
    """The upstream answered with a non-success status"""

    error_type = "nexos_api_error"

    def __init__(self, message: str, status_code: int, **kwargs):
        super().__init__(message, status_code=status_code, **kwargs)


class UpstreamTransportError(BridgeError):
    """No response at all was received from the upstream"""

    status_code = 500
    error_type = "api_error"


class StorageError(BridgeError):
    """The current-chat pointer could not be persisted"""

    status_code = 500
    error_type = "storage_error"
