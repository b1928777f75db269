"""
Warp error taxonomy.

Every failure raised by the request pipeline is a WarpError carrying one of
the codes below. The app-level exception handler turns it into the error
envelope, so route handlers never build error responses themselves.
"""

import logging
from enum import IntEnum

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class WarpError(Exception):
    """Error with a stable numeric code and a client-safe message."""

    class Code(IntEnum):
        InternalServerError = 100
        MissingConfiguration = 101
        InvalidAPIKey = 102
        ForbiddenOperation = 103
        ModelNotFound = 104
        FunctionNotFound = 105
        QueueNotFound = 106
        InvalidSessionToken = 107
        InvalidCredentials = 108
        UsernameTaken = 109
        EmailTaken = 110
        ObjectNotFound = 111
        InvalidQuery = 112
        TooManyRequests = 113
        FileError = 114
        FunctionError = 115

    def __init__(self, code: "WarpError.Code", message: str):
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.code, 400)

    def to_dict(self) -> dict:
        return {"status": self.status_code, "code": int(self.code), "message": self.message}

    def __repr__(self) -> str:
        return f"WarpError({self.code.name}, {self.message!r})"


HTTP_STATUS = {
    WarpError.Code.InternalServerError: 500,
    WarpError.Code.MissingConfiguration: 500,
    WarpError.Code.InvalidAPIKey: 401,
    WarpError.Code.ForbiddenOperation: 403,
    WarpError.Code.ModelNotFound: 404,
    WarpError.Code.FunctionNotFound: 404,
    WarpError.Code.QueueNotFound: 404,
    WarpError.Code.InvalidSessionToken: 401,
    WarpError.Code.InvalidCredentials: 401,
    WarpError.Code.UsernameTaken: 409,
    WarpError.Code.EmailTaken: 409,
    WarpError.Code.ObjectNotFound: 404,
    WarpError.Code.InvalidQuery: 400,
    WarpError.Code.TooManyRequests: 429,
    WarpError.Code.FileError: 500,
    WarpError.Code.FunctionError: 400,
}


# Framework errors raised before a handler runs (unknown route, wrong method)
HTTP_ERROR_CODES = {
    401: WarpError.Code.InvalidAPIKey,
    403: WarpError.Code.ForbiddenOperation,
    404: WarpError.Code.ObjectNotFound,
    405: WarpError.Code.ForbiddenOperation,
    429: WarpError.Code.TooManyRequests,
}


def _envelope(status: int, code: WarpError.Code, message: str, headers=None) -> JSONResponse:
    content = {"status": status, "code": int(code), "message": message}
    return JSONResponse(status_code=status, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as {status, code, message}."""

    @app.exception_handler(WarpError)
    async def warp_error_handler(request: Request, exc: WarpError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()))
            message = f"Invalid request: {location} {errors[0].get('msg', '')}".strip()
        else:
            message = "Invalid request"
        return _envelope(400, WarpError.Code.InvalidQuery, message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = HTTP_ERROR_CODES.get(
            exc.status_code,
            WarpError.Code.InternalServerError if exc.status_code >= 500 else WarpError.Code.InvalidQuery,
        )
        return _envelope(exc.status_code, code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _envelope(500, WarpError.Code.InternalServerError, "Internal server error")
