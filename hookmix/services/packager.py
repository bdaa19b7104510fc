"""Report writing and archive creation for a finished task."""

import asyncio
import logging
import os
import zipfile
from datetime import datetime, timezone
from pathlib import Path

from hookmix.exceptions import BatchFatalError

logger = logging.getLogger(__name__)

REPORT_FILENAME = "report.txt"


def build_report(
    task_id: str,
    success_count: int,
    total_count: int,
    failed_names: list[str] | None = None,
    now: datetime | None = None,
) -> str:
    now = now or datetime.now(timezone.utc)
    lines = [
        f"Task: {task_id}",
        f"Date: {now.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        f"Combinations: {total_count}",
        f"Successes: {success_count}",
        f"Failures: {total_count - success_count}",
    ]
    if failed_names:
        lines.append("")
        lines.append("Failed combinations:")
        lines.extend(f"- {name}" for name in failed_names)
    return "\n".join(lines) + "\n"


def _iter_archive_entries(source_dir: Path):
    """Yield (path, arcname) for regular files under ``source_dir``.

    Symlinks and dot-prefixed entries (combiner working directories,
    temporary files) are never archived.
    """
    for root, dirs, files in os.walk(source_dir):
        dirs[:] = sorted(d for d in dirs if not d.startswith(".") and not os.path.islink(os.path.join(root, d)))
        for name in sorted(files):
            if name.startswith("."):
                continue
            path = Path(root) / name
            if path.is_symlink() or not path.is_file():
                continue
            yield path, path.relative_to(source_dir).as_posix()


def zip_directory(source_dir: Path, archive_path: Path, compress_level: int = 9) -> int:
    """Zip ``source_dir`` recursively into ``archive_path``.

    The archive is written next to its final name and renamed into place.

    Returns:
        Number of files archived
    """
    partial = archive_path.with_name(archive_path.name + ".part")
    count = 0
    try:
        with zipfile.ZipFile(
            partial, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=compress_level
        ) as zf:
            for path, arcname in _iter_archive_entries(source_dir):
                zf.write(path, arcname=arcname)
                count += 1
        os.replace(partial, archive_path)
    except BaseException:
        partial.unlink(missing_ok=True)
        raise
    return count


class Packager:
    """Seals a task output directory into a sibling zip archive."""

    def __init__(self, compress_level: int = 9):
        self.compress_level = compress_level

    def archive_path_for(self, task_dir: Path) -> Path:
        # Sibling of the task directory, so the archive never contains itself.
        return task_dir.parent / f"{task_dir.name}.zip"

    async def finalize(
        self,
        task_dir: Path,
        success_count: int,
        total_count: int,
        failed_names: list[str] | None = None,
    ) -> Path:
        """Write the report into ``task_dir`` and archive the directory.

        Returns:
            Path of the archive

        Raises:
            BatchFatalError: If the report or the archive can't be written
        """
        task_id = task_dir.name
        report = build_report(task_id, success_count, total_count, failed_names)
        try:
            await asyncio.to_thread((task_dir / REPORT_FILENAME).write_text, report, "utf-8")
        except OSError as e:
            raise BatchFatalError(f"Failed to write report: {e}") from e
        logger.info("[%s] Report created.", task_id)

        archive_path = self.archive_path_for(task_dir)
        try:
            count = await asyncio.to_thread(
                zip_directory, task_dir, archive_path, self.compress_level
            )
        except (OSError, zipfile.BadZipFile) as e:
            raise BatchFatalError(f"Failed to create archive: {e}") from e
        logger.info("[%s] Zip file created with %d entries: %s", task_id, count, archive_path)
        return archive_path
