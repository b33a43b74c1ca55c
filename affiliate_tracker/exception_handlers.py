"""
Exception handlers for the affiliate API.

Register these on a FastAPI app instance via `register_exception_handlers(app)`.
"""
import logging
import traceback

from fastapi import Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .core.env import is_local_env
from .core.errors import AffiliateError

logger = logging.getLogger("affiliate_tracker")


async def affiliate_error_handler(request: Request, exc: AffiliateError):
    """Domain errors carry their own status code and context."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.code}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path}: {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are reported like any other invalid input."""
    return JSONResponse(
        status_code=400,
        content={
            "error": "invalid_input",
            "message": "Invalid request data",
            "context": {"errors": jsonable_encoder(exc.errors())},
        },
    )


async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""
    if isinstance(exc, HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    error_traceback = traceback.format_exc()
    logger.error(f"Unhandled exception: {exc}\n{error_traceback}", exc_info=True)

    # Details stay in the logs outside local/dev
    if is_local_env():
        error_response = {"detail": f"Internal server error: {exc}"}
    else:
        error_response = {"detail": "Internal server error"}

    return JSONResponse(status_code=500, content=error_response)


def register_exception_handlers(app):
    """Register all exception handlers on the given FastAPI app."""
    app.add_exception_handler(AffiliateError, affiliate_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, global_exception_handler)
