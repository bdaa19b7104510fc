"""In-memory types for one batch: uploaded sources, jobs and the batch result."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class SourceRole(str, Enum):
    HOOK = "hook"
    BODY = "body"


@dataclass(frozen=True)
class SourceFile:
    """An uploaded clip, read-shared by every job that references it."""

    path: Path
    original_name: str
    role: SourceRole

    @property
    def stem(self) -> str:
        return Path(self.original_name).stem or self.path.stem


class JobOutcome(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class CombinationJob:
    """One hook x body pairing within a task."""

    hook_index: int
    body_index: int
    hook: SourceFile
    body: SourceFile
    output_path: Path
    outcome: JobOutcome = JobOutcome.PENDING
    error: str | None = None

    @property
    def name(self) -> str:
        return self.output_path.name


@dataclass
class BatchResult:
    success_count: int
    total_count: int
    jobs: list[CombinationJob] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return self.total_count - self.success_count

    @property
    def failed_jobs(self) -> list[CombinationJob]:
        return [job for job in self.jobs if job.outcome is JobOutcome.FAILED]
