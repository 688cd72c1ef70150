from __future__ import annotations

import logging
from typing import Dict, Mapping

from fastapi import FastAPI, HTTPException, status

from .engine import GeneratedFunction
from .errors import (
    BackendError,
    EmptyResult,
    InternalInvocationError,
    InvalidArgument,
    MalformedResponse,
    TransientBackendError,
    UnclassifiedRemoteError,
)
from .output_parser import to_jsonable
from .schemas import ErrorDetail, ErrorResponse, FunctionList, InvokeRequest, InvokeResponse

logger = logging.getLogger(__name__)


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status_code,
        detail=ErrorResponse(error=ErrorDetail(code=code, message=message)).model_dump(),
    )


def _to_http_error(func: GeneratedFunction, exc: Exception) -> HTTPException:
    if isinstance(exc, InvalidArgument):
        return _error(status.HTTP_400_BAD_REQUEST, "invalid_argument", str(exc))
    if isinstance(exc, UnclassifiedRemoteError):
        return _error(status.HTTP_400_BAD_REQUEST, "unclassified_remote_error", exc.remote_message)
    if isinstance(exc, TransientBackendError):
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "backend_unavailable", str(exc))
    if isinstance(exc, BackendError):
        return _error(status.HTTP_502_BAD_GATEWAY, "backend_error", str(exc))
    if isinstance(exc, MalformedResponse):
        return _error(status.HTTP_502_BAD_GATEWAY, "malformed_response", str(exc))
    if isinstance(exc, EmptyResult):
        return _error(status.HTTP_502_BAD_GATEWAY, "empty_result", str(exc))
    if isinstance(exc, InternalInvocationError):
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", str(exc))
    if any(exc is c.failure for c in func.generator.error_conditions):
        return _error(status.HTTP_400_BAD_REQUEST, "function_error", str(exc))
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", str(exc))


def create_app(functions: Mapping[str, GeneratedFunction]) -> FastAPI:
    """
    Expose generated functions over HTTP. Each function is reachable at
    POST /api/functions/{name} with a body of {"input": ...}.
    """
    registry: Dict[str, GeneratedFunction] = dict(functions)

    app = FastAPI(
        title="funcgen API",
        description="Invoke backend-generated functions over HTTP.",
        version="0.1.0",
    )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.get("/api/functions", response_model=FunctionList)
    async def list_functions():
        return FunctionList(functions=sorted(registry))

    @app.post(
        "/api/functions/{name}",
        response_model=InvokeResponse,
        responses={
            status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
            status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
            status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
            status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
        },
    )
    async def invoke_function(name: str, request: InvokeRequest):
        func = registry.get(name)
        if func is None:
            raise _error(status.HTTP_404_NOT_FOUND, "not_found", f"Unknown function '{name}'")
        try:
            output = await func(request.input)
        except Exception as exc:
            logger.warning("Function %s failed: %s: %s", name, type(exc).__name__, exc)
            raise _to_http_error(func, exc) from exc
        return InvokeResponse(name=name, output=to_jsonable(output))

    return app
