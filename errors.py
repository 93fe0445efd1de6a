"""
Error taxonomy and FastAPI exception handlers.

Services raise one of the ApiError subclasses; the handlers below turn them
(and anything else that escapes a route) into the
{"success": false, "message": ...} envelope.
"""
import logging

from bson.errors import InvalidId
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ApiError):
    status_code = 400


class ForbiddenError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class StoreError(ApiError):
    status_code = 500


def error_response(status_code: int, message: str, **extra) -> JSONResponse:
    body = {"success": False, "message": message}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message,
                     exc_info=exc.__cause__ or exc)
    else:
        logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return error_response(exc.status_code, exc.message)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("%s %s -> 400: %s", request.method, request.url.path, exc.errors())
    return error_response(400, "Invalid request body")


async def store_error_handler(request: Request, exc: Exception):
    logger.error("%s %s store failure", request.method, request.url.path, exc_info=exc)
    return error_response(500, "Database operation failed")


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("%s %s unhandled error", request.method, request.url.path, exc_info=exc)
    return error_response(500, "Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PyMongoError, store_error_handler)
    app.add_exception_handler(InvalidId, store_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
