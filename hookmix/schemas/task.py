from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.PROCESSING


class TaskRecord(BaseModel):
    """Persisted status of one batch submission."""

    task_id: str
    status: TaskStatus
    download_url: str | None = None
    message: str | None = None
    success: int | None = Field(default=None, ge=0)
    total: int | None = Field(default=None, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @classmethod
    def processing(cls, task_id: str) -> "TaskRecord":
        return cls(task_id=task_id, status=TaskStatus.PROCESSING)

    def finish_done(self, download_url: str, success: int, total: int) -> "TaskRecord":
        return self.model_copy(
            update={
                "status": TaskStatus.DONE,
                "download_url": download_url,
                "success": success,
                "total": total,
                "message": None,
                "updated_at": _utcnow(),
            }
        )

    def finish_error(self, message: str) -> "TaskRecord":
        return self.model_copy(
            update={
                "status": TaskStatus.ERROR,
                "download_url": None,
                "message": message,
                "updated_at": _utcnow(),
            }
        )


class SubmitResponse(BaseModel):
    message: str = "Upload received"
    task_id: str
    status_url: str
