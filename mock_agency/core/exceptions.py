"""
Custom Exception Hierarchy

Every error raised on the request path is an AppException and is rendered
with the same envelope as successful responses: ``{"success": false, ...}``.
"""
from typing import Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    # General errors (1xxx)
    INTERNAL_ERROR = "ERR_1000"
    VALIDATION_ERROR = "ERR_1001"
    NOT_FOUND = "ERR_1002"

    # Parcel errors (2xxx)
    PARCEL_NOT_FOUND = "ERR_2001"
    INVALID_STATUS = "ERR_2002"
    INVALID_STATE_TRANSITION = "ERR_2003"
    SIMULATION_CONFLICT = "ERR_2004"

    # External service errors (5xxx)
    WEBHOOK_DELIVERY_FAILED = "ERR_5001"
    WEBHOOK_TIMEOUT = "ERR_5002"


class AppException(Exception):
    """Base exception for all application errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        status_code: int = 500,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to the API response envelope"""
        return {
            "success": False,
            "message": self.message,
            "error": {
                "code": self.error_code.value,
                "details": self.details
            }
        }


class ValidationException(AppException):
    """Raised when input validation fails"""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )
        if field:
            self.details["field"] = field


class NotFoundException(AppException):
    """Raised when a requested resource is not found"""

    def __init__(
        self,
        resource: str,
        identifier: Any,
        error_code: ErrorCode = ErrorCode.NOT_FOUND,
        message: str | None = None
    ):
        super().__init__(
            message=message or f"{resource} not found: {identifier}",
            error_code=error_code,
            status_code=404,
            details={"resource": resource, "identifier": str(identifier)}
        )


class ParcelNotFoundError(NotFoundException):
    """Raised when a tracking number is unknown"""

    def __init__(self, tracking_number: str):
        super().__init__(
            resource="parcel",
            identifier=tracking_number,
            error_code=ErrorCode.PARCEL_NOT_FOUND,
            message="Parcel not found"
        )


class ParcelException(AppException):
    """Base exception for parcel lifecycle errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        tracking_number: str | None = None,
        status_code: int = 400,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status_code,
            details=details
        )
        if tracking_number:
            self.details["tracking_number"] = tracking_number


class InvalidStatusError(ParcelException):
    """Raised when a status value is not part of the parcel status taxonomy"""

    def __init__(self, status: Any, tracking_number: str | None = None):
        super().__init__(
            message="Invalid status",
            error_code=ErrorCode.INVALID_STATUS,
            tracking_number=tracking_number,
            details={"status": status}
        )


class InvalidStateTransitionError(ParcelException):
    """Raised when strict transitions are enabled and the move is not allowed"""

    def __init__(self, current_status: str, target_status: str, tracking_number: str | None = None):
        super().__init__(
            message=f"Invalid transition from '{current_status}' to '{target_status}'",
            error_code=ErrorCode.INVALID_STATE_TRANSITION,
            tracking_number=tracking_number,
            details={
                "current_status": current_status,
                "target_status": target_status,
            }
        )


class SimulationConflictError(ParcelException):
    """Raised when a simulation is already running and overlap is rejected"""

    def __init__(self, tracking_number: str, active_run_ids: list[str]):
        super().__init__(
            message=f"A simulation is already running for {tracking_number}",
            error_code=ErrorCode.SIMULATION_CONFLICT,
            tracking_number=tracking_number,
            status_code=409,
            details={"active_runs": active_run_ids}
        )


class WebhookDeliveryError(AppException):
    """
    Raised inside the webhook notifier when a delivery attempt fails.

    Never leaves the notifier: it is caught, logged and counted there.
    """

    def __init__(
        self,
        url: str,
        message: str,
        error_code: ErrorCode = ErrorCode.WEBHOOK_DELIVERY_FAILED,
        details: dict[str, Any] | None = None
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=502,
            details=details
        )
        self.details["url"] = url

    @classmethod
    def from_response(
        cls,
        url: str,
        response: Any,
        *,
        max_response_chars: int = 500
    ) -> "WebhookDeliveryError":
        """Build an error from a non-2xx httpx response"""
        status_code = getattr(response, "status_code", None)
        response_text = getattr(response, "text", "") or ""
        return cls(
            url=url,
            message=f"Webhook endpoint returned status {status_code}",
            details={
                "status_code": status_code,
                "response_text": response_text[:max_response_chars],
            },
        )


class WebhookTimeoutError(WebhookDeliveryError):
    """Raised when the webhook endpoint does not answer in time"""

    def __init__(self, url: str, timeout_seconds: float):
        super().__init__(
            url=url,
            message=f"Webhook request timed out after {timeout_seconds}s",
            error_code=ErrorCode.WEBHOOK_TIMEOUT,
            details={"timeout_seconds": timeout_seconds}
        )
