"""Translate domain errors into the ``{success: false, message}`` envelope."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from ordering.exceptions import CheckoutError, OutOfStock

logger = structlog.get_logger(__name__)


def first_message(messages) -> str:
    """Flatten Protean's ``{field: [messages]}`` into one readable line."""
    if isinstance(messages, dict):
        for value in messages.values():
            if isinstance(value, list | tuple) and value:
                return str(value[0])
            if value:
                return str(value)
    if isinstance(messages, list | tuple) and messages:
        return str(messages[0])
    return str(messages) if messages else "Invalid request"


def failure(status_code: int, message: str, **extra) -> JSONResponse:
    content = {"success": False, "message": message}
    content.update({k: v for k, v in extra.items() if v is not None})
    return JSONResponse(status_code=status_code, content=content)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return failure(400, first_message(exc.messages), errors=exc.messages)


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    # ObjectNotFoundError carries its detail in args, not in ``messages``
    return failure(404, first_message(exc.args[0] if exc.args else str(exc)))


async def checkout_error_handler(request: Request, exc: CheckoutError) -> JSONResponse:
    logger.info(
        "Request failed",
        path=request.url.path,
        error=type(exc).__name__,
        status_code=exc.status_code,
        **exc.context,
    )
    items = exc.items if isinstance(exc, OutOfStock) else None
    return failure(exc.status_code, exc.message, data={"items": items} if items else None)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        message = f"{location}: {errors[0].get('msg')}" if location else errors[0].get("msg", message)
    return failure(400, message)


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path, error=type(exc).__name__)
    return failure(500, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(CheckoutError, checkout_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
