from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from ..core.errors import DashboardError

logger = logging.getLogger(__name__)


def envelope_error(error: str, message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "message": message},
    )


def error_response(label: str, exc: Exception) -> JSONResponse:
    """Failure envelope for an exception raised by a service accessor."""
    status_code = getattr(exc, "status_code", 500)
    if not isinstance(status_code, int):
        status_code = 500
    if status_code >= 500:
        logger.error("%s: %s", label, exc)
    else:
        logger.info("%s: %s", label, exc)
    return envelope_error(label, str(exc) or exc.__class__.__name__, status_code)


async def _dashboard_error(request: Request, exc: DashboardError) -> JSONResponse:
    return error_response(exc.__class__.__name__, exc)


async def _http_exception(request: Request, exc: HTTPException) -> JSONResponse:
    return envelope_error("HTTPException", str(exc.detail), exc.status_code)


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    detail = "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
    )
    return envelope_error("Invalid request", detail, 400)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DashboardError, _dashboard_error)
    app.add_exception_handler(HTTPException, _http_exception)
    app.add_exception_handler(RequestValidationError, _validation_error)
