from __future__ import annotations

from fastapi import HTTPException, status


class PipelineError(Exception):
    """Base class for errors raised by the repurposing services.

    Services raise these before mutating anything; routers translate them
    into HTTP responses via :func:`to_http_exception`.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(PipelineError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFound(PipelineError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidTransition(PipelineError):
    status_code = status.HTTP_400_BAD_REQUEST


class AlreadyApproved(InvalidTransition):
    status_code = status.HTTP_400_BAD_REQUEST


class PortalClosed(PipelineError):
    status_code = status.HTTP_403_FORBIDDEN


class AuthenticationError(PipelineError):
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionDenied(PipelineError):
    status_code = status.HTTP_403_FORBIDDEN


class Conflict(PipelineError):
    status_code = status.HTTP_409_CONFLICT


class StalledJob(PipelineError):
    """Failure reason recorded on jobs reaped after exceeding the processing deadline."""

    def __init__(self, job_id: object, elapsed_seconds: float, limit_seconds: int) -> None:
        super().__init__(
            f"StalledJob: job {job_id} was processing for {int(elapsed_seconds)}s "
            f"(limit {limit_seconds}s) without reporting completion"
        )


def to_http_exception(exc: PipelineError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)
