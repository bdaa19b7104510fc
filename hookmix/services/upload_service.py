"""Stores multipart uploads in the per-task uploads namespace."""

import asyncio
import logging
import shutil
from pathlib import Path

from fastapi import UploadFile

from hookmix.exceptions import UploadStorageError
from hookmix.schemas.batch import SourceFile, SourceRole
from hookmix.services.job_scheduler import safe_stem

logger = logging.getLogger(__name__)


def safe_filename(filename: str | None, fallback: str = "clip") -> str:
    """Strip client path components and unsafe characters from a filename."""
    name = Path((filename or "").replace("\\", "/")).name
    stem, dot, ext = name.rpartition(".")
    if not dot:
        stem, ext = ext, ""
    ext = safe_stem(ext, max_length=10) if ext else ""
    stem = safe_stem(stem or fallback, max_length=80)
    return f"{stem}.{ext}" if ext else stem


class UploadService:
    """Copies uploaded hooks/bodies into ``<uploads_dir>/<task_id>/``."""

    def __init__(self, uploads_dir: Path, chunk_size: int = 1024 * 1024):
        self.uploads_dir = Path(uploads_dir)
        self.chunk_size = chunk_size

    def task_dir(self, task_id: str) -> Path:
        return self.uploads_dir / task_id

    def _copy(self, upload: UploadFile, destination: Path) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        upload.file.seek(0)
        with destination.open("wb") as out:
            shutil.copyfileobj(upload.file, out, self.chunk_size)

    async def save(
        self,
        task_id: str,
        role: SourceRole,
        index: int,
        upload: UploadFile,
    ) -> SourceFile:
        original_name = upload.filename or f"{role.value}_{index + 1}"
        destination = self.task_dir(task_id) / (
            f"{role.value}_{index + 1:02d}_{safe_filename(original_name)}"
        )
        await asyncio.to_thread(self._copy, upload, destination)
        return SourceFile(path=destination, original_name=original_name, role=role)

    async def save_all(
        self,
        task_id: str,
        hooks: list[UploadFile],
        bodies: list[UploadFile],
    ) -> tuple[list[SourceFile], list[SourceFile]]:
        """Store every upload; on failure nothing is left behind.

        Raises:
            UploadStorageError: If any file can't be written
        """
        try:
            saved_hooks = [
                await self.save(task_id, SourceRole.HOOK, i, f) for i, f in enumerate(hooks)
            ]
            saved_bodies = [
                await self.save(task_id, SourceRole.BODY, i, f) for i, f in enumerate(bodies)
            ]
        except OSError as e:
            logger.error("[%s] Failed to store uploads: %s", task_id, e)
            await self.discard(task_id)
            raise UploadStorageError() from e
        return saved_hooks, saved_bodies

    async def discard(self, task_id: str) -> None:
        await asyncio.to_thread(shutil.rmtree, self.task_dir(task_id), True)
