# recipe_lab/core/errors.py
# 공통 에러 응답 형태: {"message": ...} (레시피/드래프트) 또는 {"error": ...} (그 외)

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

log = logging.getLogger(__name__)

# 이 prefix 아래 라우트는 "message" 키를 쓴다
MESSAGE_KEY_PREFIXES = ("/api/recipes", "/api/drafts")


class ApiError(Exception):
    """Error carrying an HTTP status and the body key the route family uses."""

    def __init__(
        self,
        status_code: int,
        message: str,
        *,
        key: str = "message",
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.key = key
        self.details = details


def _key_for(path: str) -> str:
    return "message" if path.startswith(MESSAGE_KEY_PREFIXES) else "error"


def error_body(key: str, message: str, details: Optional[Any] = None) -> dict:
    body: dict = {key: message}
    if details is not None:
        body["details"] = details
    return body


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.key, exc.message, exc.details),
    )


async def _http_exc_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(_key_for(request.url.path), str(exc.detail)),
    )


async def _validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = [
        {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg", "")}
        for e in exc.errors()
    ]
    log.warning("validation failed path=%s errors=%s", request.url.path, problems)
    return JSONResponse(
        status_code=400,
        content=error_body(_key_for(request.url.path), "Invalid request payload.", problems),
    )


async def _unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error path=%s", request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_body(_key_for(request.url.path), "Internal server error"),
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(HTTPException, _http_exc_handler)
    app.add_exception_handler(RequestValidationError, _validation_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
