"""
Error envelope and exception handlers.

Every failure leaves the API as {"success": false, "error": ..., "message"?: ...}.
Stack traces are logged, never returned.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vidah.config import get_settings
from vidah.schemas.conversion import LeadValidationError

logger = logging.getLogger(__name__)

VALIDATION_ERROR = "Dados inválidos"
NOT_FOUND_ERROR = "Rota não encontrada"
INTERNAL_ERROR = "Erro interno do servidor"
PAYLOAD_TOO_LARGE_ERROR = "Requisição muito grande"


def error_body(error: str, message: Optional[str] = None, **extra: Any) -> dict:
    body: dict = {"success": False, "error": error}
    if message:
        body["message"] = message
    body.update(extra)
    return body


def success_body(data: Any) -> dict:
    return {"success": True, "data": data}


async def lead_validation_handler(request: Request, exc: LeadValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=error_body(
            VALIDATION_ERROR,
            exc.summary,
            errors=[e.as_dict() for e in exc.errors],
        ),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path", "header")]
        errors.append({"field": ".".join(loc) or "request", "message": err.get("msg", "")})
    summary = ", ".join(f"{e['field']}: {e['message']}" for e in errors)
    return JSONResponse(status_code=400, content=error_body(VALIDATION_ERROR, summary, errors=errors))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        error = NOT_FOUND_ERROR
    else:
        error = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(error),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error: %s", str(exc),
        exc_info=exc,
        extra={
            "method": request.method,
            "path": request.url.path,
            "status_code": 500,
            "error": str(exc) or type(exc).__name__,
        },
    )
    if get_settings().is_production:
        return JSONResponse(status_code=500, content=error_body(INTERNAL_ERROR))
    return JSONResponse(status_code=500, content=error_body(INTERNAL_ERROR, str(exc) or type(exc).__name__))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(LeadValidationError, lead_validation_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
