"""Global error handling middleware for consistent error responses."""

import logging
import traceback
import uuid
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from postgrest.exceptions import APIError as PostgrestAPIError

from src.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Postgres SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


class APIError(Exception):
    """Base exception for API errors.

    Use this class to raise application-specific errors that should
    be returned to the client with a specific status code and message.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_type: str = "api_error",
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        """Initialize API error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code to return.
            error_type: Error category/type for client handling.
            details: Optional additional error details.
        """
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        super().__init__(message)


class NotFoundError(APIError):
    """Resource not found error."""

    def __init__(self, message: str = "Resource not found", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_type="not_found",
            details=details,
        )


class ValidationError(APIError):
    """Request validation error."""

    def __init__(self, message: str = "Validation error", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_type="validation_error",
            details=details,
        )


class AuthenticationError(APIError):
    """Authentication failure error."""

    def __init__(self, message: str = "Authentication required", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_type="authentication_error",
            details=details,
        )


class AuthorizationError(APIError):
    """Authorization failure error."""

    def __init__(self, message: str = "Access denied", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_type="authorization_error",
            details=details,
        )


class ConflictError(APIError):
    """Resource already exists or conflicts with current state."""

    def __init__(self, message: str = "Resource conflict", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_type="conflict",
            details=details,
        )


class BusinessRuleError(APIError):
    """A request is well-formed but violates a business rule."""

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type="business_rule_violation",
            details=details,
        )


def _order_reference(order_id: str | None) -> list[dict[str, Any]] | None:
    if not order_id:
        return None
    return [{"loc": ["order_id"], "msg": str(order_id), "type": "order_reference"}]


class PaymentError(APIError):
    """Payment provider declined or failed to process a payment."""

    def __init__(
        self,
        message: str = "Payment failed",
        order_id: str | None = None,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            error_type="payment_failed",
            details=details if details is not None else _order_reference(order_id),
        )
        self.order_id = order_id


class ServiceUnavailableError(APIError):
    """A required external provider is not configured or unreachable."""

    def __init__(self, message: str = "Service unavailable", details: list[dict[str, Any]] | None = None) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_type="service_unavailable",
            details=details,
        )


class RateLimitError(APIError):
    """Rate limit exceeded error."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int = 60,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            error_type="rate_limit_exceeded",
            details=details,
        )
        self.retry_after = retry_after


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    details: list[dict[str, Any]] | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    """Create a standardized JSON error response.

    Args:
        error_type: Error category for client handling.
        message: Human-readable error description.
        status_code: HTTP status code.
        details: Optional error details.
        request_id: Optional request ID for tracing.

    Returns:
        JSONResponse: Formatted error response.
    """
    error_response = ErrorResponse.from_exception(
        error_type=error_type,
        message=message,
        details=details,
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Middleware to catch and format all exceptions.

    Every response carries an ``X-Request-ID`` (taken from the request or
    generated) so storefront error reports can be matched to log lines.
    Database errors that escape the services are mapped here: unique
    violations become 409, anything else 503.

    Args:
        request: The incoming request.
        call_next: Next middleware or route handler.

    Returns:
        Response: Either the successful response or formatted error response.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    log_extra = {"request_id": request_id, "path": request.url.path}

    try:
        response = await call_next(request)

    except RateLimitError as e:
        logger.warning("Rate limit exceeded: %s", e.message, extra={**log_extra, "retry_after": e.retry_after})
        response = create_error_response(
            error_type=e.error_type,
            message=e.message,
            status_code=e.status_code,
            details=e.details,
            request_id=request_id,
        )
        response.headers["Retry-After"] = str(e.retry_after)

    except APIError as e:
        if isinstance(e, PaymentError):
            logger.info("Payment failed for order %s: %s", e.order_id, e.message, extra=log_extra)
        else:
            logger.warning("API error: %s - %s", e.error_type, e.message, extra=log_extra)
        response = create_error_response(
            error_type=e.error_type,
            message=e.message,
            status_code=e.status_code,
            details=e.details,
            request_id=request_id,
        )

    except HTTPException as e:
        logger.warning("HTTP exception: %s - %s", e.status_code, e.detail, extra=log_extra)
        response = create_error_response(
            error_type="http_error",
            message=str(e.detail),
            status_code=e.status_code,
            request_id=request_id,
        )

    except PostgrestAPIError as e:
        if e.code == UNIQUE_VIOLATION:
            logger.warning("Unique constraint violation: %s", e.message, extra=log_extra)
            response = create_error_response(
                error_type="conflict",
                message="Resource already exists",
                status_code=status.HTTP_409_CONFLICT,
                request_id=request_id,
            )
        else:
            logger.error("Database error %s: %s", e.code, e.message, extra=log_extra)
            response = create_error_response(
                error_type="database_error",
                message="The store database is temporarily unavailable",
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                request_id=request_id,
            )

    except Exception as e:
        logger.error(
            "Unhandled exception: %s\n%s",
            str(e),
            traceback.format_exc(),
            extra=log_extra,
        )
        response = create_error_response(
            error_type="internal_error",
            message="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )

    response.headers[REQUEST_ID_HEADER] = request_id
    return response
