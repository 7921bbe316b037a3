"""Error taxonomy for the storefront workflows.

Services raise these instead of HTTPException so they stay usable outside a
request. Each class carries the status code the API answers with; the handler
registered in ``main`` does the translation.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class StorefrontError(Exception):
    """Base class for all workflow errors."""

    http_status = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


# --- 400 ---
class InvalidArgument(StorefrontError):
    """Missing or malformed input (non-positive quantity, unknown status, empty cart)."""

    http_status = 400


# --- 404 ---
class NotFound(StorefrontError):
    http_status = 404


class ProductNotFound(NotFound):
    pass


class OrderNotFound(NotFound):
    pass


class PaymentNotFound(NotFound):
    pass


# --- 409 ---
class Conflict(StorefrontError):
    http_status = 409


class InvalidStatusTransition(Conflict):
    """Requested status change is not in the lifecycle table."""


class ConcurrentModification(Conflict):
    """Another request updated the order first."""


# --- 500 ---
class InvariantViolation(StorefrontError):
    """Order and payment disagree, or one of the pair could not be written."""


class OrderPaymentMismatch(InvariantViolation):
    pass


class StorageFailure(StorefrontError):
    """The database rejected or lost a write."""


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if exc.http_status >= 500:
        # Full detail stays in the server log only
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.http_status, content={"detail": "Server error"})
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.message})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, storefront_error_handler)
