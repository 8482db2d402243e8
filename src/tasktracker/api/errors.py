"""HTTP boundary for service errors.

Learn: Services return Result values tagged with an ErrorKind. Route
handlers call result.unwrap(); on failure it raises ResultError, and the
handlers registered here render every failure as

    {"message": "...", "errors": [...]}   # errors only for validation

Anything that escapes as a plain exception becomes a bare 500 with no
internal detail; the traceback goes to the log instead.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from tasktracker.errors import ErrorKind, ResultError

logger = structlog.get_logger()

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.SERVER_CONFIG: 500,
    ErrorKind.SERVER: 500,
}


async def result_error_handler(request: Request, exc: ResultError) -> JSONResponse:
    error = exc.error
    if error.kind == ErrorKind.SERVER_CONFIG:
        logger.error("app.server_config_error", path=request.url.path, error=error.message)
        return JSONResponse(status_code=500, content={"message": "Server config error"})
    if error.kind == ErrorKind.SERVER:
        return JSONResponse(status_code=500, content={"message": "Server Error"})

    body: dict = {"message": error.message}
    if error.details:
        body["errors"] = error.details
    headers = {"WWW-Authenticate": "Bearer"} if error.kind == ErrorKind.UNAUTHORIZED else None
    return JSONResponse(status_code=STATUS_BY_KIND[error.kind], content=body, headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request-shape failures → 400 with one entry per offending field."""
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": errors})


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Not Found" if exc.status_code == 404 else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": message},
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("app.unhandled_error", path=request.url.path, method=request.method)
    return JSONResponse(status_code=500, content={"message": "Server Error"})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ResultError, result_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
