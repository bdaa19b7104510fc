import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hookmix.api import results, tasks
from hookmix.config import Settings, get_settings
from hookmix.constants.error_codes import get_error_spec
from hookmix.exceptions import HookmixError
from hookmix.schemas.envelope import ErrorInfo, ErrorResponse
from hookmix.services.task_orchestrator import TaskOrchestrator, build_orchestrator
from hookmix.services.upload_service import UploadService

logger = logging.getLogger(__name__)


def _http_error_code(status_code: int) -> str:
    mapping = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_ERROR",
    }
    return mapping.get(status_code, "HTTP_ERROR")


def _error_response(status_code: int, error: ErrorInfo) -> JSONResponse:
    body = ErrorResponse(error=error)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body.model_dump(exclude_none=True)),
    )


def _error_info(code: str, message: str) -> ErrorInfo:
    spec = get_error_spec(code)
    return ErrorInfo(
        code=code,
        message=message,
        retryable=spec.get("retryable", False),
        suggested_fix=spec.get("suggested_fix"),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    settings: Settings = app.state.settings
    settings.ensure_directories()
    orchestrator: TaskOrchestrator = app.state.orchestrator
    if settings.recover_interrupted_tasks:
        recovered = await orchestrator.recover_interrupted()
        if recovered:
            logger.warning("Marked %d interrupted tasks as error", recovered)
    logger.info("%s %s ready (%s)", settings.app_name, settings.app_version, settings.environment)
    yield
    # Shutdown
    await orchestrator.shutdown()


def create_app(
    settings: Settings | None = None,
    orchestrator: TaskOrchestrator | None = None,
) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.orchestrator = orchestrator or build_orchestrator(settings)
    app.state.uploads = UploadService(settings.uploads_dir, chunk_size=settings.upload_chunk_size)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HookmixError)
    async def hookmix_exception_handler(request: Request, exc: HookmixError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request %s %s failed: %s", request.method, request.url.path, exc)
        return _error_response(exc.status_code, exc.to_error_info())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Render request validation errors (422) in the common error shape."""
        errors = exc.errors()
        if errors:
            first_error = errors[0]
            loc = " -> ".join(str(x) for x in first_error.get("loc", []))
            msg = first_error.get("msg", "Validation error")
            message = f"{loc}: {msg}" if loc else msg
        else:
            message = "Request validation failed"
        return _error_response(422, _error_info("VALIDATION_ERROR", message))

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        code = _http_error_code(exc.status_code)
        return _error_response(exc.status_code, _error_info(code, str(exc.detail)))

    # Global exception handler to ensure errors return proper JSON
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unhandled exception: {exc}")
        return _error_response(500, _error_info("INTERNAL_ERROR", "Internal server error"))

    # Routers
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(results.router, prefix=settings.results_url_prefix, tags=["results"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "version": settings.app_version}

    return app


app = create_app()


def run() -> None:
    """Console entry point: configure logging and serve with uvicorn."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
