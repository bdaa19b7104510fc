"""Download endpoints for finished task archives and their files."""

from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import FileResponse

from hookmix.api.deps import AppSettings
from hookmix.exceptions import ResultNotFoundError
from hookmix.services.task_store import is_valid_task_id

router = APIRouter()

MEDIA_TYPES = {
    ".zip": "application/zip",
    ".mp4": "video/mp4",
    ".txt": "text/plain",
}


def _file_response(path: Path) -> FileResponse:
    return FileResponse(
        path=str(path),
        media_type=MEDIA_TYPES.get(path.suffix.lower(), "application/octet-stream"),
        filename=path.name,
    )


@router.get("/{archive_name}")
async def download_archive(archive_name: str, settings: AppSettings) -> FileResponse:
    """Serve ``<task_id>.zip`` once the task is packaged."""
    task_id, dot, ext = archive_name.rpartition(".")
    if not dot or ext != "zip" or not is_valid_task_id(task_id):
        raise ResultNotFoundError(f"Result not found: {archive_name}")

    archive_path = Path(settings.results_dir) / archive_name
    if not archive_path.is_file():
        raise ResultNotFoundError(f"Result not ready: {archive_name}")
    return _file_response(archive_path)


@router.get("/{task_id}/{filename}")
async def download_task_file(task_id: str, filename: str, settings: AppSettings) -> FileResponse:
    """Serve one combined clip or the report of a task."""
    if not is_valid_task_id(task_id) or filename.startswith(".") or "/" in filename or "\\" in filename:
        raise ResultNotFoundError(f"Result not found: {task_id}/{filename}")

    task_dir = (Path(settings.results_dir) / task_id).resolve()
    file_path = (task_dir / filename).resolve()
    if file_path.parent != task_dir or not file_path.is_file():
        raise ResultNotFoundError(f"Result not found: {task_id}/{filename}")
    return _file_response(file_path)
