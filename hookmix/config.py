import json
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Hookmix API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 3000

    # Filesystem namespaces (partitioned by task id)
    uploads_dir: Path = Path("/tmp/uploads")
    results_dir: Path = Path("/tmp/results")
    tasks_dir: Path = Path("/tmp/hookmix-tasks")

    # Download locators are built as f"{results_url_prefix}/{task_id}.zip"
    results_url_prefix: str = "/results"

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "*"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from pipe/comma-separated string or JSON array."""
        v = self.cors_origins_raw
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        sep = "|" if "|" in v else ","
        return [origin.strip() for origin in v.split(sep) if origin.strip()]

    # File Upload
    max_files_per_role: int = Field(default=10, ge=1)
    upload_chunk_size: int = 1024 * 1024

    # FFmpeg
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    ffmpeg_timeout_s: float = Field(default=300.0, gt=0)
    ffprobe_timeout_s: float = Field(default=30.0, gt=0)

    # Batch scheduling
    # Each combine is a full ffmpeg encode; keep this small.
    max_concurrent_jobs: int = Field(default=2, ge=1)

    # Render settings (target format every combination is normalized to)
    render_output_width: int = 1920
    render_output_height: int = 1080
    render_fps: int = 30
    render_video_preset: str = "fast"
    render_video_crf: int = 23
    render_audio_bitrate: str = "128k"
    render_audio_sample_rate: int = 44100
    render_audio_channel_layout: str = "stereo"

    # Packaging
    archive_compress_level: int = Field(default=9, ge=0, le=9)

    # Lifecycle
    recover_interrupted_tasks: bool = True
    shutdown_grace_s: float = 30.0

    def ensure_directories(self) -> None:
        for path in (self.uploads_dir, self.results_dir, self.tasks_dir):
            path.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    return Settings()
