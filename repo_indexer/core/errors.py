# repo_indexer/core/errors.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """An error rendered to API callers as ``{"error": ..., "message": ...}``."""

    def __init__(self, status_code: int, error: str, message: str | None = None):
        super().__init__(message or error)
        self.status_code = status_code
        self.error = error
        self.message = message

    def to_dict(self) -> dict:
        body = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        return body


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg", "invalid"))
        return JSONResponse(status_code=400, content={"error": "Invalid request", "message": message})

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Database error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": "Database error", "message": str(exc)})
