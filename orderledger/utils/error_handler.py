"""
Domain error taxonomy and the handler that turns it into API responses
"""

import uuid
import logging
from typing import Optional, Dict, Any
from datetime import datetime
from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ErrorContext:
    """Context object for tracking error information across the request lifecycle"""

    def __init__(self, request: Request):
        self.request_id = str(uuid.uuid4())
        self.request = request
        self.endpoint = str(request.url.path)
        self.method = request.method
        self.client_ip = self._get_client_ip()
        self.user_agent = request.headers.get("user-agent")
        self.timestamp = datetime.utcnow()

    def _get_client_ip(self) -> Optional[str]:
        """Extract client IP from request headers"""
        if "x-forwarded-for" in self.request.headers:
            return self.request.headers["x-forwarded-for"].split(",")[0].strip()
        elif "x-real-ip" in self.request.headers:
            return self.request.headers["x-real-ip"]
        elif self.request.client:
            return self.request.client.host
        return None


class DomainError(Exception):
    """Base class for every ledger and order lifecycle error"""
    error_code = "DOMAIN_ERROR"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(self.message)


class NotFoundError(DomainError):
    error_code = "NOT_FOUND"
    status_code = 404


class ValidationFailedError(DomainError):
    error_code = "VALIDATION_FAILED"
    status_code = 400


class AccessDeniedError(DomainError):
    error_code = "ACCESS_DENIED"
    status_code = 403


class ConcurrentUpdateError(DomainError):
    """A conditional write kept losing to concurrent writers"""
    error_code = "CONCURRENT_UPDATE"
    status_code = 409


class LedgerError(DomainError):
    """Gift card ledger errors"""
    error_code = "LEDGER_ERROR"
    status_code = 409


class NotActiveError(LedgerError):
    error_code = "GIFT_CARD_NOT_ACTIVE"


class InsufficientBalanceError(LedgerError):
    error_code = "INSUFFICIENT_BALANCE"


class CodeSpaceExhaustedError(LedgerError):
    """Raised when no unused code could be found; an alerting signal, not a user retry"""
    error_code = "CODE_SPACE_EXHAUSTED"
    status_code = 503


class OrderLifecycleError(DomainError):
    """Nursing home order guard violations"""
    error_code = "ORDER_LIFECYCLE_ERROR"
    status_code = 409


class EditWindowClosedError(OrderLifecycleError):
    error_code = "EDIT_WINDOW_CLOSED"
    status_code = 403


class OrderLockedError(OrderLifecycleError):
    error_code = "ORDER_LOCKED"


class DeadlinePassedError(OrderLifecycleError):
    error_code = "DEADLINE_PASSED"
    status_code = 403


class AlreadySubmittedError(OrderLifecycleError):
    error_code = "ALREADY_SUBMITTED"
    status_code = 400


class ErrorHandler:
    """Centralized error response rendering"""

    @staticmethod
    def create_error_response(error_context: ErrorContext, error: DomainError) -> JSONResponse:
        """Create a standardized error response"""
        error_data: Dict[str, Any] = {
            "error": {
                "code": error.error_code,
                "message": error.message,
                "request_id": error_context.request_id,
                "timestamp": error_context.timestamp.isoformat(),
                "endpoint": error_context.endpoint,
                "method": error_context.method
            }
        }

        ErrorHandler._log_error(error_context, error)

        return JSONResponse(status_code=error.status_code, content=error_data)

    @staticmethod
    def _log_error(error_context: ErrorContext, error: DomainError):
        """Log domain errors; server-side failures at ERROR, client-side ones at WARNING"""
        level = logging.ERROR if error.status_code >= 500 else logging.WARNING
        logger.log(
            level,
            f"Request {error_context.request_id} rejected: {error.error_code} in {error_context.method} {error_context.endpoint}",
            extra={
                "request_id": error_context.request_id,
                "endpoint": error_context.endpoint,
                "method": error_context.method,
                "status_code": error.status_code,
                "client_ip": error_context.client_ip,
                "error_type": type(error).__name__,
                "error_message": error.message,
                "error_context": error.context
            }
        )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """FastAPI exception handler for DomainError"""
    return ErrorHandler.create_error_response(ErrorContext(request), exc)
