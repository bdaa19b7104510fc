"""Error codes dictionary.

Single source of truth for the error codes the API returns, whether a
client may retry them, and a human-readable fix. Used by the exception
handlers to build machine-readable error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Submission errors
    # ==========================================================================
    "INVALID_SUBMISSION": {
        "retryable": False,
        "suggested_fix": "Send between 1 and the allowed maximum of files in both 'hooks' and 'bodies'.",
    },
    "UPLOAD_FAILED": {
        "retryable": True,
        "suggested_fix": "Retry the upload; the server could not store the files.",
    },
    # ==========================================================================
    # Lookup errors
    # ==========================================================================
    "TASK_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Use the task_id returned by POST /upload.",
    },
    "RESULT_NOT_FOUND": {
        "retryable": True,
        "suggested_fix": "Poll GET /status/{task_id} until status is 'done', then download.",
    },
    # ==========================================================================
    # Processing errors
    # ==========================================================================
    "BATCH_FAILED": {
        "retryable": True,
    },
    "PROCESS_FAILED": {
        "retryable": True,
    },
    "COMBINE_FAILED": {
        "retryable": False,
    },
    # ==========================================================================
    # Request errors
    # ==========================================================================
    "BAD_REQUEST": {
        "retryable": False,
    },
    "VALIDATION_ERROR": {
        "retryable": False,
    },
    "NOT_FOUND": {
        "retryable": False,
    },
    "INTERNAL_ERROR": {
        "retryable": True,
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: The error code

    Returns:
        ErrorCodeSpec with retryable flag and suggested fix
    """
    return ERROR_CODES.get(code, {"retryable": False})
