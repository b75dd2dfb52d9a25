"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from clipspark import __version__
from clipspark.api.routes import router
from clipspark.config import Settings, settings as default_settings
from clipspark.errors import InvalidInput
from clipspark.services.packaging import ZipPackager
from clipspark.services.transcripts import OpenAITranscriber, YouTubeTranscriptProvider
from clipspark.utils.ffmpeg import FFmpegEngine
from clipspark.utils.ytdlp import YtdlpProvider
from clipspark.workers.job_runner import JobRunner
from clipspark.workers.orchestrator import JobOrchestrator
from clipspark.workers.registry import JobRegistry, Reaper

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=logging.INFO if not settings.debug else logging.DEBUG,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def build_orchestrator(settings: Settings) -> JobOrchestrator:
    """Wire the default external collaborators."""
    return JobOrchestrator(
        settings=settings,
        content=YtdlpProvider(settings),
        transcripts=YouTubeTranscriptProvider(),
        speech=OpenAITranscriber(settings),
        engine=FFmpegEngine(settings),
        packager=ZipPackager(),
    )


def create_app(
    settings: Settings = default_settings,
    orchestrator: Optional[JobOrchestrator] = None,
) -> FastAPI:
    """Build the application with its own registry, runner and reaper."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(f"Starting {settings.app_name}...")

        registry = JobRegistry()
        pipeline = orchestrator or build_orchestrator(settings)
        runner = JobRunner(pipeline.run, max_concurrent=settings.max_concurrent_jobs)
        reaper = Reaper(
            registry,
            ttl_seconds=settings.job_ttl_seconds,
            interval_seconds=settings.reap_interval_seconds,
            is_active=runner.is_job_running,
        )

        app.state.settings = settings
        app.state.registry = registry
        app.state.runner = runner
        app.state.reaper = reaper

        reaper.start()
        logger.info(f"Reaper started (ttl={settings.job_ttl_seconds}s, every {settings.reap_interval_seconds}s)")

        yield

        logger.info(f"Shutting down {settings.app_name}...")
        await reaper.stop()
        await runner.shutdown()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        description="Turn long videos into captioned vertical highlight clips",
        version=__version__,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            settings.frontend_url,
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidInput)
    async def invalid_input_handler(request: Request, exc: InvalidInput):
        return JSONResponse(status_code=400, content={"error": exc.hint})

    app.include_router(router, prefix="/api")

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "app": settings.app_name,
            "version": __version__,
            "api": "/api",
            "docs": "/docs"
        }

    return app


configure_logging(default_settings)
app = create_app()


def run():
    """Console entry point."""
    import uvicorn
    uvicorn.run(
        "clipspark.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug
    )


if __name__ == "__main__":
    run()
