import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)
security_logger = logging.getLogger("mindfulai.security")


class PaymentAppError(Exception):
    """Base for every error the payment core signals to its caller."""

    status_code = 500
    public_message = "Internal server error"
    log_level = logging.ERROR

    def __init__(self, message: Optional[str] = None, *, public_message: Optional[str] = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message
        if public_message is not None:
            self.public_message = public_message


class ValidationError(PaymentAppError):
    status_code = 400
    log_level = logging.WARNING

    def __init__(self, message: str):
        # Validation messages are safe to show to the caller as they are
        super().__init__(message, public_message=message)


class ConfigurationError(PaymentAppError):
    status_code = 500
    public_message = "Payment configuration missing"


class SignatureInvalid(PaymentAppError):
    status_code = 400
    public_message = "Invalid payment signature"
    log_level = logging.WARNING


class UserNotFoundError(PaymentAppError):
    status_code = 404
    public_message = "User not found"
    log_level = logging.WARNING


class SubscriptionNotFoundError(PaymentAppError):
    status_code = 404
    public_message = "User subscription not found"
    log_level = logging.WARNING


class GatewayError(PaymentAppError):
    """Non-2xx answer (or no answer) from the payment provider."""

    status_code = 500
    public_message = "Payment provider request failed"

    def __init__(
        self,
        message: str,
        *,
        provider_status: Optional[int] = None,
        body: Any = None,
        public_message: Optional[str] = None,
    ):
        super().__init__(message, public_message=public_message)
        self.provider_status = provider_status
        self.body = body


class GatewayTimeout(GatewayError):
    pass


class PersistenceError(PaymentAppError):
    status_code = 500


class PersistenceInconsistency(PersistenceError):
    """The subscription write and the transaction ledger append diverged."""

    log_level = logging.CRITICAL


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(PaymentAppError)
    async def payment_error_handler(request: Request, exc: PaymentAppError):
        if isinstance(exc, SignatureInvalid):
            security_logger.warning(f"Rejected payment signature on {request.url.path}: {exc.message}")
        elif isinstance(exc, GatewayError):
            logger.log(
                exc.log_level,
                f"Gateway failure on {request.url.path}: {exc.message} "
                f"(provider status={exc.provider_status}, body={exc.body!r})",
            )
        else:
            logger.log(exc.log_level, f"{type(exc).__name__} on {request.url.path}: {exc.message}")
        return _error_response(exc.status_code, exc.public_message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Malformed request on {request.url.path}: {exc.errors()}")
        return _error_response(400, "Invalid request")

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url}: {str(exc)}", exc_info=True)
        return _error_response(500, "Internal server error")
