"""Error kinds shared by the services and their HTTP mapping.

Handlers never build error bodies: every ``ServiceError`` is logged with
the request context and answered with a bare status code.
"""

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError

log = structlog.get_logger(__name__)


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message


class BadRequest(ServiceError):
    """Malformed id or body, or a cardinality rule was broken."""

    status_code = 400


class NotFound(ServiceError):
    """Entity absent locally or on a downstream service."""

    status_code = 404


class Conflict(ServiceError):
    """Entity or sub-item with that id already exists."""

    status_code = 409


class InternalError(ServiceError):
    """Storage failure, failed propagation or broken internal invariant."""

    status_code = 500


class StoreError(InternalError):
    pass


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> Response:
        log.warning(
            "request_failed",
            method=request.method,
            path=request.url.path,
            status=exc.status_code,
            error=type(exc).__name__,
            reason=exc.message,
        )
        return Response(status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        request: Request, exc: RequestValidationError
    ) -> Response:
        log.warning(
            "request_rejected",
            method=request.method,
            path=request.url.path,
            problems=len(exc.errors()),
        )
        return Response(status_code=400)
