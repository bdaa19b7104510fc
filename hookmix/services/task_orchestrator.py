"""Top-level lifecycle of one batch submission.

processing -> done   once every job settled and the archive exists
processing -> error  when setup, packaging, or the batch runner itself fails

Uploaded sources are released exactly once, after the terminal record is
written, whatever the outcome.
"""

import asyncio
import logging
import uuid
from pathlib import Path

from hookmix.config import Settings, get_settings
from hookmix.exceptions import BatchFatalError, ClientInputError
from hookmix.schemas.batch import SourceFile
from hookmix.schemas.task import TaskRecord, TaskStatus
from hookmix.services.job_scheduler import JobScheduler
from hookmix.services.media_combiner import MediaCombiner
from hookmix.services.packager import Packager
from hookmix.services.process_runner import ProcessRunner
from hookmix.services.task_store import TaskStore
from hookmix.tasks.background import BackgroundTaskRunner

logger = logging.getLogger(__name__)

INTERRUPTED_MESSAGE = "Task interrupted by server restart"


def new_task_id() -> str:
    return str(uuid.uuid4())


class TaskOrchestrator:
    """Creates tasks, runs them detached, and finalizes their records."""

    def __init__(
        self,
        store: TaskStore,
        scheduler: JobScheduler,
        packager: Packager,
        settings: Settings | None = None,
        background: BackgroundTaskRunner | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store
        self.scheduler = scheduler
        self.packager = packager
        self.background = background or BackgroundTaskRunner()

    @property
    def results_dir(self) -> Path:
        return Path(self.settings.results_dir)

    def download_url(self, task_id: str) -> str:
        return f"{self.settings.results_url_prefix.rstrip('/')}/{task_id}.zip"

    def validate_submission(self, hooks: list, bodies: list) -> None:
        limit = self.settings.max_files_per_role
        if not hooks or not bodies:
            raise ClientInputError()
        if len(hooks) > limit or len(bodies) > limit:
            raise ClientInputError(f"At most {limit} hooks and {limit} bodies per submission.")

    async def submit(
        self,
        hooks: list[SourceFile],
        bodies: list[SourceFile],
        task_id: str | None = None,
    ) -> str:
        """Accept a batch and start it in the background.

        Returns as soon as the ``processing`` record is persisted.

        Raises:
            ClientInputError: If either list is empty or too long
        """
        self.validate_submission(hooks, bodies)
        task_id = task_id or new_task_id()
        record = TaskRecord.processing(task_id)
        await self.store.save(record)
        logger.info("[%s] New task: %d hooks x %d bodies", task_id, len(hooks), len(bodies))

        async def _on_error(exc: BaseException) -> None:
            await self.store.save(record.finish_error(str(exc) or exc.__class__.__name__))

        self.background.spawn(
            self.process(record, hooks, bodies),
            name=f"task-{task_id}",
            on_error=_on_error,
        )
        return task_id

    async def process(
        self,
        record: TaskRecord,
        hooks: list[SourceFile],
        bodies: list[SourceFile],
    ) -> TaskRecord:
        """Run the batch, package it, and persist the terminal record."""
        task_id = record.task_id
        task_dir = self.results_dir / task_id
        logger.info("[%s] Starting video processing...", task_id)

        try:
            try:
                try:
                    await asyncio.to_thread(task_dir.mkdir, parents=True, exist_ok=True)
                except OSError as e:
                    raise BatchFatalError(f"Failed to create output directory: {e}") from e

                result = await self.scheduler.run_batch(hooks, bodies, task_dir, task_id=task_id)
                await self.packager.finalize(
                    task_dir,
                    result.success_count,
                    result.total_count,
                    [job.name for job in result.failed_jobs],
                )
                final = record.finish_done(
                    self.download_url(task_id), result.success_count, result.total_count
                )
            except Exception as e:
                logger.exception("[%s] Fatal error", task_id)
                final = record.finish_error(str(e) or e.__class__.__name__)

            await self.store.save(final)
            logger.info("[%s] Status updated to %s.", task_id, final.status.value)
            return final
        finally:
            await self.release_sources(task_id, [*hooks, *bodies])

    async def release_sources(self, task_id: str, sources: list[SourceFile]) -> None:
        """Delete uploaded files and their now-empty task upload directory."""
        logger.info("[%s] Cleaning up temp files.", task_id)

        def _remove() -> None:
            parents = set()
            for source in sources:
                parents.add(source.path.parent)
                try:
                    source.path.unlink(missing_ok=True)
                except OSError as e:
                    logger.warning("[%s] Failed to remove %s: %s", task_id, source.path, e)
            for parent in parents:
                if parent.name != task_id:
                    continue
                try:
                    parent.rmdir()
                except OSError as e:
                    logger.warning("[%s] Failed to remove %s: %s", task_id, parent, e)

        await asyncio.to_thread(_remove)

    async def recover_interrupted(self) -> int:
        """Mark records left ``processing`` by a previous process as ``error``.

        Only valid when a single process owns the store: at startup nothing
        can still be working on such a task.
        """
        recovered = 0
        for record in await self.store.list_records():
            if record.status is TaskStatus.PROCESSING:
                await self.store.save(record.finish_error(INTERRUPTED_MESSAGE))
                logger.warning("[%s] %s", record.task_id, INTERRUPTED_MESSAGE)
                recovered += 1
        return recovered

    async def shutdown(self) -> None:
        grace = self.settings.shutdown_grace_s
        if self.background.pending:
            logger.info("Waiting up to %ss for %d running tasks", grace, self.background.pending)
        if not await self.background.drain(timeout=grace):
            logger.warning("%d tasks still running at shutdown", self.background.pending)


def build_orchestrator(settings: Settings | None = None) -> TaskOrchestrator:
    """Wire the production collaborators from settings."""
    settings = settings or get_settings()
    combiner = MediaCombiner(runner=ProcessRunner(), settings=settings)
    return TaskOrchestrator(
        store=TaskStore(settings.tasks_dir),
        scheduler=JobScheduler(combiner, max_concurrency=settings.max_concurrent_jobs),
        packager=Packager(compress_level=settings.archive_compress_level),
        settings=settings,
    )
