"""Durable task status records, one JSON file per task id."""

import asyncio
import logging
import os
import tempfile
import uuid
from pathlib import Path

from pydantic import ValidationError

from hookmix.exceptions import TaskNotFoundError
from hookmix.schemas.task import TaskRecord

logger = logging.getLogger(__name__)


def is_valid_task_id(task_id: str) -> bool:
    """Task ids are canonical UUID strings; anything else can't be ours."""
    try:
        return str(uuid.UUID(task_id)) == task_id
    except (ValueError, AttributeError, TypeError):
        return False


class TaskStore:
    """Keyed-by-task-id status store that survives process restarts.

    Records are written to a temporary file and renamed over the previous
    version, so a reader sees either the old or the new record, never a torn
    write. Each task owns its own file; concurrent tasks never contend.
    """

    def __init__(self, tasks_dir: Path):
        self.tasks_dir = Path(tasks_dir)

    def _path(self, task_id: str) -> Path:
        return self.tasks_dir / f"{task_id}.json"

    def _write(self, record: TaskRecord) -> None:
        self.tasks_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{record.task_id}.", suffix=".tmp", dir=self.tasks_dir
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(record.model_dump_json())
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path(record.task_id))
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def _read(self, task_id: str) -> TaskRecord | None:
        path = self._path(task_id)
        try:
            raw = path.read_bytes()
        except (FileNotFoundError, IsADirectoryError):
            return None
        try:
            return TaskRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Failed to read status record %s: %s", path, e)
            return None

    async def save(self, record: TaskRecord) -> None:
        """Upsert the record for ``record.task_id``. Safe to repeat."""
        if not is_valid_task_id(record.task_id):
            raise ValueError(f"Invalid task id: {record.task_id!r}")
        await asyncio.to_thread(self._write, record)
        logger.info("[%s] Status saved: %s", record.task_id, record.status.value)

    async def get(self, task_id: str) -> TaskRecord:
        """Return the record for ``task_id``.

        Raises:
            TaskNotFoundError: If no readable record exists for the id
        """
        if not is_valid_task_id(task_id):
            raise TaskNotFoundError(task_id)
        record = await asyncio.to_thread(self._read, task_id)
        if record is None:
            raise TaskNotFoundError(task_id)
        return record

    async def list_records(self) -> list[TaskRecord]:
        """Every readable record in the store."""

        def _scan() -> list[TaskRecord]:
            if not self.tasks_dir.exists():
                return []
            records = []
            for path in sorted(self.tasks_dir.glob("*.json")):
                if not is_valid_task_id(path.stem):
                    continue
                record = self._read(path.stem)
                if record is not None:
                    records.append(record)
            return records

        return await asyncio.to_thread(_scan)
