from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from models.hal import HAL_JSON

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Error taxonomy
# -----------------------------------------------------------------------------
class HttpError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    title: str = "Internal Server Error"

    def __init__(self, detail: Optional[str] = None, violations: Optional[list[dict[str, Any]]] = None) -> None:
        super().__init__(detail or self.title)
        self.detail = detail or self.title
        self.violations = violations


class BadRequestError(HttpError):
    status_code = status.HTTP_400_BAD_REQUEST
    title = "Bad Request"


class UnauthorizedError(HttpError):
    status_code = status.HTTP_401_UNAUTHORIZED
    title = "Unauthorized"


class ForbiddenError(HttpError):
    status_code = status.HTTP_403_FORBIDDEN
    title = "Forbidden"


class NotFoundError(HttpError):
    status_code = status.HTTP_404_NOT_FOUND
    title = "Not Found"


class ConflictError(HttpError):
    status_code = status.HTTP_409_CONFLICT
    title = "Conflict"


class InternalServerError(HttpError):
    pass


# -----------------------------------------------------------------------------
# Problem documents
# -----------------------------------------------------------------------------
def problem_document(
    request: Request,
    status_code: int,
    title: str,
    detail: str,
    violations: Optional[list[dict[str, Any]]] = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {
        "status": status_code,
        "title": title,
        "detail": detail,
        "instance": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "_links": {"self": {"href": request.url.path}},
    }
    if violations:
        body["violations"] = violations
    return body


def problem_response(request: Request, status_code: int, title: str, detail: str, violations=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=problem_document(request, status_code, title, detail, violations),
        media_type=HAL_JSON,
    )


def _violations(exc: RequestValidationError) -> list[dict[str, Any]]:
    violations = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        violations.append({"field": ".".join(loc), "message": error.get("msg", "Invalid value")})
    return violations


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(HttpError)
    async def handle_http_error(request: Request, exc: HttpError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return problem_response(request, exc.status_code, exc.title, exc.detail, exc.violations)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        return problem_response(
            request,
            status.HTTP_400_BAD_REQUEST,
            BadRequestError.title,
            "Request validation failed",
            _violations(exc),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_starlette_error(request: Request, exc: StarletteHTTPException):
        title = "Not Found" if exc.status_code == 404 else "Error"
        return problem_response(request, exc.status_code, title, str(exc.detail))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return problem_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            InternalServerError.title,
            "An unexpected error occurred",
        )
