"""Batch submission and status endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, File, UploadFile, status

from hookmix.api.deps import Orchestrator, Store, Uploads
from hookmix.schemas.task import SubmitResponse, TaskRecord
from hookmix.services.task_orchestrator import new_task_id

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/upload",
    response_model=SubmitResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def upload_batch(
    orchestrator: Orchestrator,
    uploads: Uploads,
    hooks: Annotated[list[UploadFile] | None, File()] = None,
    bodies: Annotated[list[UploadFile] | None, File()] = None,
) -> SubmitResponse:
    """
    Accept hook and body clips and start combining every pair.

    Responds immediately with the task id; progress is read from
    GET /status/{task_id}.
    """
    hooks = hooks or []
    bodies = bodies or []
    orchestrator.validate_submission(hooks, bodies)

    task_id = new_task_id()
    saved_hooks, saved_bodies = await uploads.save_all(task_id, hooks, bodies)
    logger.info("[%s] Stored %d uploads", task_id, len(saved_hooks) + len(saved_bodies))
    try:
        await orchestrator.submit(saved_hooks, saved_bodies, task_id=task_id)
    except Exception:
        await uploads.discard(task_id)
        raise

    return SubmitResponse(task_id=task_id, status_url=f"/status/{task_id}")


@router.get("/status/{task_id}", response_model=TaskRecord, response_model_exclude_none=True)
async def get_task_status(task_id: str, store: Store) -> TaskRecord:
    """Get the persisted status record of a task."""
    return await store.get(task_id)
