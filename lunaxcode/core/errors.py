"""
HTTP-facing errors and their exception handlers.

Endpoints answer failures with `{"error": message, "code": CODE, ...}`
rather than FastAPI's `{"detail": ...}` envelope.
"""
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from lunaxcode.llm.errors import AIProviderError

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Error carrying an HTTP status, a machine-readable code and extra body fields."""

    def __init__(self, status_code: int, code: str, message: str, **extra: Any):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, **self.extra}


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def provider_error_handler(request: Request, exc: AIProviderError) -> JSONResponse:
    logger.warning(f"AI provider error on {request.url.path}: {exc.code} ({exc.status_code})")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(AIProviderError, provider_error_handler)
