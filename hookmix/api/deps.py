from typing import Annotated

from fastapi import Depends, Request

from hookmix.config import Settings
from hookmix.services.task_orchestrator import TaskOrchestrator
from hookmix.services.task_store import TaskStore
from hookmix.services.upload_service import UploadService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_orchestrator(request: Request) -> TaskOrchestrator:
    return request.app.state.orchestrator


def get_task_store(request: Request) -> TaskStore:
    return request.app.state.orchestrator.store


def get_upload_service(request: Request) -> UploadService:
    return request.app.state.uploads


AppSettings = Annotated[Settings, Depends(get_app_settings)]
Orchestrator = Annotated[TaskOrchestrator, Depends(get_orchestrator)]
Store = Annotated[TaskStore, Depends(get_task_store)]
Uploads = Annotated[UploadService, Depends(get_upload_service)]
