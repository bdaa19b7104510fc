"""API tests for /upload, /status and /results."""

import asyncio
import io
import time
import uuid
import zipfile

import pytest
from fastapi.testclient import TestClient

from hookmix.main import create_app
from hookmix.schemas.task import TaskRecord
from hookmix.services.job_scheduler import JobScheduler
from hookmix.services.packager import Packager
from hookmix.services.task_orchestrator import INTERRUPTED_MESSAGE, TaskOrchestrator
from hookmix.services.task_store import TaskStore
from tests.conftest import FakeCombiner


@pytest.fixture
def orchestrator(settings):
    return TaskOrchestrator(
        store=TaskStore(settings.tasks_dir),
        scheduler=JobScheduler(FakeCombiner(), max_concurrency=settings.max_concurrent_jobs),
        packager=Packager(),
        settings=settings,
    )


@pytest.fixture
def client(settings, orchestrator):
    app = create_app(settings, orchestrator)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


def clip(name: str) -> tuple[str, bytes, str]:
    return f"{name}.mp4", f"{name} frames".encode(), "video/mp4"


def upload(client: TestClient, hooks: int, bodies: int):
    files = [("hooks", clip(f"hook{i}")) for i in range(hooks)]
    files += [("bodies", clip(f"body{i}")) for i in range(bodies)]
    return client.post("/upload", files=files)


def wait_for_status(client: TestClient, task_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/status/{task_id}").json()
        if body["status"] != "processing":
            return body
        time.sleep(0.02)
    pytest.fail(f"task {task_id} still processing after {timeout}s")


class TestUpload:
    def test_batch_runs_to_done(self, client, settings):
        response = upload(client, hooks=2, bodies=3)

        assert response.status_code == 202
        data = response.json()
        task_id = data["task_id"]
        assert data["message"] == "Upload received"
        assert data["status_url"] == f"/status/{task_id}"
        uuid.UUID(task_id)

        status = wait_for_status(client, task_id)
        assert status["status"] == "done"
        assert status["total"] == 6
        assert status["success"] == 6
        assert status["download_url"] == f"/results/{task_id}.zip"

        archive = client.get(status["download_url"])
        assert archive.status_code == 200
        assert archive.headers["content-type"] == "application/zip"
        with zipfile.ZipFile(io.BytesIO(archive.content)) as zf:
            names = zf.namelist()
            assert len([n for n in names if n.endswith(".mp4")]) == 6
            assert "Combinations: 6" in zf.read("report.txt").decode()
            assert zf.read("comb_01_hook0__01_body0.mp4") == b"hook0 frames|body0 frames"

    def test_single_combined_file_is_downloadable(self, client):
        task_id = upload(client, hooks=1, bodies=1).json()["task_id"]
        wait_for_status(client, task_id)

        response = client.get(f"/results/{task_id}/comb_01_hook0__01_body0.mp4")

        assert response.status_code == 200
        assert response.headers["content-type"] == "video/mp4"
        assert response.content == b"hook0 frames|body0 frames"

    def test_uploads_are_removed_after_completion(self, client, settings):
        task_id = upload(client, hooks=1, bodies=2).json()["task_id"]
        wait_for_status(client, task_id)

        upload_dir = settings.uploads_dir / task_id
        deadline = time.monotonic() + 5
        while upload_dir.exists() and time.monotonic() < deadline:
            time.sleep(0.02)
        assert not upload_dir.exists()

    def test_status_while_processing_has_no_download_url(self, client, orchestrator):
        task_id = str(uuid.uuid4())
        asyncio.run(orchestrator.store.save(TaskRecord.processing(task_id)))

        body = client.get(f"/status/{task_id}").json()

        assert body["status"] == "processing"
        assert "download_url" not in body

    @pytest.mark.parametrize("hooks,bodies", [(0, 2), (2, 0), (0, 0)])
    def test_missing_role_is_rejected(self, client, settings, hooks, bodies):
        response = upload(client, hooks=hooks, bodies=bodies)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == "INVALID_SUBMISSION"
        assert error["retryable"] is False
        assert not settings.tasks_dir.exists() or not list(settings.tasks_dir.glob("*.json"))

    def test_too_many_files_is_rejected(self, client, settings):
        response = upload(client, hooks=settings.max_files_per_role + 1, bodies=1)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_SUBMISSION"


class TestStatus:
    def test_unknown_task_is_404(self, client):
        response = client.get(f"/status/{uuid.uuid4()}")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TASK_NOT_FOUND"

    def test_malformed_task_id_is_404(self, client):
        response = client.get("/status/not-a-task")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TASK_NOT_FOUND"


class TestResults:
    def test_missing_archive_is_404(self, client):
        response = client.get(f"/results/{uuid.uuid4()}.zip")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "RESULT_NOT_FOUND"

    def test_non_archive_name_is_404(self, client):
        assert client.get("/results/report.txt").status_code == 404

    def test_hidden_file_is_not_served(self, client, settings):
        task_id = str(uuid.uuid4())
        task_dir = settings.results_dir / task_id
        task_dir.mkdir(parents=True)
        (task_dir / ".combine-tmp").write_bytes(b"partial")

        assert client.get(f"/results/{task_id}/.combine-tmp").status_code == 404


class TestLifespan:
    def test_health(self, client, settings):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "version": settings.app_version}

    def test_startup_marks_interrupted_tasks(self, settings, orchestrator):
        task_id = str(uuid.uuid4())
        asyncio.run(orchestrator.store.save(TaskRecord.processing(task_id)))

        with TestClient(create_app(settings, orchestrator)) as client:
            body = client.get(f"/status/{task_id}").json()

        assert body["status"] == "error"
        assert body["message"] == INTERRUPTED_MESSAGE

    def test_startup_creates_directories(self, client, settings):
        assert settings.uploads_dir.is_dir()
        assert settings.results_dir.is_dir()
        assert settings.tasks_dir.is_dir()

    def test_startup_survives_corrupt_record(self, settings, orchestrator):
        corrupt_id, stale_id = str(uuid.uuid4()), str(uuid.uuid4())
        settings.tasks_dir.mkdir(parents=True)
        (settings.tasks_dir / f"{corrupt_id}.json").write_bytes(b"\xff\xfe{garbage")
        asyncio.run(orchestrator.store.save(TaskRecord.processing(stale_id)))

        with TestClient(create_app(settings, orchestrator), raise_server_exceptions=False) as client:
            corrupt = client.get(f"/status/{corrupt_id}")
            stale = client.get(f"/status/{stale_id}").json()

        assert corrupt.status_code == 404
        assert corrupt.json()["error"]["code"] == "TASK_NOT_FOUND"
        assert stale["status"] == "error"

    @pytest.mark.parametrize("debug", [True, False])
    def test_debug_setting_reaches_app(self, settings, orchestrator, debug):
        app = create_app(settings.model_copy(update={"debug": debug}), orchestrator)

        assert app.debug is debug

    def test_startup_log_names_environment(self, settings, orchestrator, caplog):
        settings = settings.model_copy(update={"environment": "staging"})

        with caplog.at_level("INFO", logger="hookmix.main"):
            with TestClient(create_app(settings, orchestrator)):
                pass

        assert any("ready (staging)" in r.getMessage() for r in caplog.records)
