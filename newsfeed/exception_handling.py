# newsfeed/exception_handling.py
from __future__ import annotations

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from .errors import DataUnavailableError, InvalidRequestError, NotFoundError
from .logging_setup import get_logger

# Keep a separate logger namespace for exceptions
logger = get_logger("newsfeed.exceptions")


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(
        "HTTP_EXCEPTION",
        extra={"handled": True, "path": str(request.url.path), "status_code": exc.status_code},
    )
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


async def invalid_request_handler(request: Request, exc: InvalidRequestError):
    logger.info(
        "INVALID_REQUEST",
        extra={"handled": True, "path": str(request.url.path), "field": exc.field},
    )
    body = {"detail": str(exc)}
    if exc.field:
        body["field"] = exc.field
    return JSONResponse(body, status_code=400)


async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse({"detail": str(exc)}, status_code=404)


async def data_unavailable_handler(request: Request, exc: DataUnavailableError):
    # Collaborator failure: surface it, the client owns retry
    logger.exception(
        "DATA_UNAVAILABLE",
        extra={"handled": True, "path": str(request.url.path)},
    )
    return JSONResponse({"detail": str(exc) or "Data source unavailable"}, status_code=503)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "UNHANDLED_EXCEPTION",
        extra={"handled": False, "path": str(request.url.path)},
    )
    return JSONResponse({"detail": "Internal Server Error"}, status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers in one place.
    Call from newsfeed/main.py after creating the FastAPI app.
    """
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(InvalidRequestError, invalid_request_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(DataUnavailableError, data_unavailable_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
