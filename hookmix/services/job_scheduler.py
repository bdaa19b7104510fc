"""Fan a task's hooks x bodies out into combination jobs.

Every pairing becomes one job; at most ``max_concurrency`` combiner calls run
at once. A failing job is logged and counted but never cancels its siblings,
and ``run_batch`` returns only once every job has settled.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Protocol

from hookmix.exceptions import CombineFailure
from hookmix.schemas.batch import BatchResult, CombinationJob, JobOutcome, SourceFile

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class Combiner(Protocol):
    async def combine(self, source_a: Path, source_b: Path, destination: Path) -> None: ...


def safe_stem(name: str, max_length: int = 40) -> str:
    """Reduce a client-supplied name to a filesystem-safe stem."""
    stem = _UNSAFE_CHARS.sub("_", name).strip("._-")
    return stem[:max_length] or "clip"


def output_name(hook_index: int, hook: SourceFile, body_index: int, body: SourceFile) -> str:
    # Indices keep names unique when clients upload files with equal names.
    return (
        f"comb_{hook_index + 1:02d}_{safe_stem(hook.stem)}"
        f"__{body_index + 1:02d}_{safe_stem(body.stem)}.mp4"
    )


class JobScheduler:
    """Bounded-concurrency executor for one task's combination jobs."""

    def __init__(self, combiner: Combiner, max_concurrency: int = 2):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be a positive integer")
        self.combiner = combiner
        self.max_concurrency = max_concurrency

    def plan(
        self,
        hooks: list[SourceFile],
        bodies: list[SourceFile],
        output_dir: Path,
    ) -> list[CombinationJob]:
        """Enumerate the full cartesian product, hook-major."""
        return [
            CombinationJob(
                hook_index=hi,
                body_index=bi,
                hook=hook,
                body=body,
                output_path=output_dir / output_name(hi, hook, bi, body),
            )
            for hi, hook in enumerate(hooks)
            for bi, body in enumerate(bodies)
        ]

    async def _run_job(
        self,
        job: CombinationJob,
        semaphore: asyncio.Semaphore,
        log_prefix: str,
    ) -> None:
        async with semaphore:
            logger.info("%s Processing combination: %s", log_prefix, job.name)
            try:
                await self.combiner.combine(job.hook.path, job.body.path, job.output_path)
            except CombineFailure as e:
                job.outcome = JobOutcome.FAILED
                job.error = str(e)
                logger.error("%s Error combining %s: %s", log_prefix, job.name, e)
                return
            except Exception as e:
                job.outcome = JobOutcome.FAILED
                job.error = str(e) or e.__class__.__name__
                logger.exception("%s Unexpected error combining %s", log_prefix, job.name)
                return

            job.outcome = JobOutcome.SUCCEEDED
            logger.info("%s Finished: %s", log_prefix, job.name)

    async def run_batch(
        self,
        hooks: list[SourceFile],
        bodies: list[SourceFile],
        output_dir: Path,
        *,
        task_id: str | None = None,
    ) -> BatchResult:
        """Run every hook x body job and report how many succeeded."""
        jobs = self.plan(hooks, bodies, output_dir)
        log_prefix = f"[{task_id or output_dir.name}]"
        logger.info(
            "%s Scheduling %d combinations (%d hooks x %d bodies, concurrency %d)",
            log_prefix,
            len(jobs),
            len(hooks),
            len(bodies),
            self.max_concurrency,
        )

        semaphore = asyncio.Semaphore(self.max_concurrency)
        await asyncio.gather(*(self._run_job(job, semaphore, log_prefix) for job in jobs))

        success_count = sum(1 for job in jobs if job.outcome is JobOutcome.SUCCEEDED)
        logger.info("%s Batch settled: %d/%d succeeded", log_prefix, success_count, len(jobs))
        return BatchResult(success_count=success_count, total_count=len(jobs), jobs=jobs)
