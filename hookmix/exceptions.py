"""Custom exceptions for the hookmix service.

API-facing exceptions carry a machine-readable code and HTTP status so the
exception handlers in ``hookmix.main`` can render them uniformly. Processing
exceptions (``ProcessFailure``, ``CombineFailure``) share the same base so
they can be logged and persisted the same way.
"""

from hookmix.constants.error_codes import get_error_spec
from hookmix.schemas.envelope import ErrorInfo


class HookmixError(Exception):
    """Base exception for all hookmix application errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        suggested_fix: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.suggested_fix = suggested_fix
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        spec = get_error_spec(self.code)
        return ErrorInfo(
            code=self.code,
            message=self.message,
            retryable=spec.get("retryable", False),
            suggested_fix=self.suggested_fix or spec.get("suggested_fix"),
        )


# =============================================================================
# Client errors
# =============================================================================


class ClientInputError(HookmixError):
    """The submission is unusable (missing or too many hooks/bodies)."""

    code = "INVALID_SUBMISSION"
    status_code = 400
    message = "Send at least 1 hook and 1 body video."


class UploadStorageError(HookmixError):
    """Uploaded files could not be written to the uploads namespace."""

    code = "UPLOAD_FAILED"
    status_code = 500
    message = "Failed to store uploaded files"


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class ResourceNotFoundError(HookmixError):
    """Base class for resource not found errors."""

    code = "NOT_FOUND"
    status_code = 404


class TaskNotFoundError(ResourceNotFoundError):
    """Task not found."""

    code = "TASK_NOT_FOUND"
    message = "Task not found"

    def __init__(self, task_id: str | None = None):
        message = f"Task not found: {task_id}" if task_id else self.message
        super().__init__(message)
        self.task_id = task_id


class ResultNotFoundError(ResourceNotFoundError):
    """Result archive or file not (yet) available."""

    code = "RESULT_NOT_FOUND"
    message = "Result not found"


# =============================================================================
# Processing errors
# =============================================================================


class BatchFatalError(HookmixError):
    """A step outside per-job handling failed; the whole task is marked error."""

    code = "BATCH_FAILED"
    message = "Batch processing failed"


class ProcessFailure(HookmixError):
    """An external command exited non-zero, could not be spawned, or timed out."""

    code = "PROCESS_FAILED"
    message = "External process failed"

    def __init__(
        self,
        exit_reason: str,
        captured_output: str = "",
        *,
        returncode: int | None = None,
        command: list[str] | None = None,
    ):
        self.exit_reason = exit_reason
        self.captured_output = captured_output
        self.returncode = returncode
        self.command = command or []
        program = self.command[0] if self.command else "process"
        super().__init__(f"{program} failed: {exit_reason}")

    @property
    def timed_out(self) -> bool:
        return self.exit_reason.startswith("timeout")


class CombineFailure(HookmixError):
    """Combining two sources failed; no destination file was produced."""

    code = "COMBINE_FAILED"
    message = "Combine failed"

    def __init__(self, message: str, *, phase: str):
        self.phase = phase
        super().__init__(f"[{phase}] {message}")
