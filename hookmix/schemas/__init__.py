from hookmix.schemas.batch import BatchResult, CombinationJob, JobOutcome, SourceFile, SourceRole
from hookmix.schemas.envelope import ErrorInfo, ErrorResponse
from hookmix.schemas.task import SubmitResponse, TaskRecord, TaskStatus

__all__ = [
    "BatchResult",
    "CombinationJob",
    "JobOutcome",
    "SourceFile",
    "SourceRole",
    "ErrorInfo",
    "ErrorResponse",
    "SubmitResponse",
    "TaskRecord",
    "TaskStatus",
]
