"""
FastAPI application entry point for running the API as a long-lived service.
"""

from __future__ import annotations

from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from firebase_functions import https_fn

from backend.config import get_settings
from backend.routes import router
from backend.schemas import ErrorDetail, ErrorResponse

# HTTP statuses used by the callable protocol for each error code.
ERROR_HTTP_STATUS = {
    https_fn.FunctionsErrorCode.OK: HTTPStatus.OK,
    https_fn.FunctionsErrorCode.CANCELLED: 499,
    https_fn.FunctionsErrorCode.UNKNOWN: HTTPStatus.INTERNAL_SERVER_ERROR,
    https_fn.FunctionsErrorCode.INVALID_ARGUMENT: HTTPStatus.BAD_REQUEST,
    https_fn.FunctionsErrorCode.DEADLINE_EXCEEDED: HTTPStatus.GATEWAY_TIMEOUT,
    https_fn.FunctionsErrorCode.NOT_FOUND: HTTPStatus.NOT_FOUND,
    https_fn.FunctionsErrorCode.ALREADY_EXISTS: HTTPStatus.CONFLICT,
    https_fn.FunctionsErrorCode.PERMISSION_DENIED: HTTPStatus.FORBIDDEN,
    https_fn.FunctionsErrorCode.UNAUTHENTICATED: HTTPStatus.UNAUTHORIZED,
    https_fn.FunctionsErrorCode.RESOURCE_EXHAUSTED: HTTPStatus.TOO_MANY_REQUESTS,
    https_fn.FunctionsErrorCode.FAILED_PRECONDITION: HTTPStatus.BAD_REQUEST,
    https_fn.FunctionsErrorCode.ABORTED: HTTPStatus.CONFLICT,
    https_fn.FunctionsErrorCode.OUT_OF_RANGE: HTTPStatus.BAD_REQUEST,
    https_fn.FunctionsErrorCode.UNIMPLEMENTED: HTTPStatus.NOT_IMPLEMENTED,
    https_fn.FunctionsErrorCode.INTERNAL: HTTPStatus.INTERNAL_SERVER_ERROR,
    https_fn.FunctionsErrorCode.UNAVAILABLE: HTTPStatus.SERVICE_UNAVAILABLE,
    https_fn.FunctionsErrorCode.DATA_LOSS: HTTPStatus.INTERNAL_SERVER_ERROR,
}


async def handle_https_error(request: Request, exc: https_fn.HttpsError) -> JSONResponse:
    code = https_fn.FunctionsErrorCode(exc.code)
    body = ErrorResponse(
        error=ErrorDetail(
            code=code.value,
            status=code.name,
            message=exc.message,
            details=exc.details,
        )
    )
    return JSONResponse(
        status_code=int(ERROR_HTTP_STATUS.get(code, HTTPStatus.INTERNAL_SERVER_ERROR)),
        content=body.model_dump(exclude_none=True),
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="BiciRegistro API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o for o in settings.allowed_origins if not o.startswith("^")],
        allow_origin_regex="|".join(
            o for o in settings.allowed_origins if o.startswith("^")
        )
        or None,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type"],
    )
    app.add_exception_handler(https_fn.HttpsError, handle_https_error)
    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
