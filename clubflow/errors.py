"""Workflow error kinds and their HTTP rendering.

Services raise these; only the kind tag and the message ever reach a client.
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class WorkflowError(Exception):
    kind = "workflow_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WorkflowError):
    kind = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(WorkflowError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(WorkflowError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class AuthorizationError(WorkflowError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class AuthenticationError(AuthorizationError):
    """No usable identity on the request."""

    kind = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class StorageError(WorkflowError):
    kind = "storage_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = "Storage is unavailable, please retry later"):
        super().__init__(message)


def _render(exc: WorkflowError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.message},
    )


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(WorkflowError)
    async def workflow_error_handler(request: Request, exc: WorkflowError):
        return _render(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=ValidationError.status_code,
            content={
                "error": ValidationError.kind,
                "detail": "Request body or parameters are invalid",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception("Storage failure on %s %s", request.method, request.url.path)
        return _render(StorageError())
