"""FastAPI application entry point."""

import logging
import os
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from n5lab.api.routes import router
from n5lab.clock import SystemClock
from n5lab.config import Settings, get_settings, load_curriculum
from n5lab.progression.engine import ProgressionEngine
from n5lab.srs.scheduler import Scheduler
from n5lab.storage.kv import JsonFileStore
from n5lab.study.orchestrator import StudyOrchestrator

# Configure structlog based on environment
is_production = os.getenv("ENV", "development").lower() == "production"

if is_production:
    # Production: JSON format for machine parsing
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
else:
    # Development: console format for human readability
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

logger = structlog.get_logger()


def build_orchestrator(settings: Settings) -> StudyOrchestrator:
    """Wire the engines to file storage and the learner's clock."""
    store = JsonFileStore(settings.store_dir)
    clock = SystemClock(settings.timezone)
    curriculum = load_curriculum(settings.curriculum_file)

    progression = ProgressionEngine(store, clock, curriculum, settings)
    progression.load()
    scheduler = Scheduler(store, clock, key=settings.srs_key, session_size=settings.session_size)
    logger.info(
        "engines_ready",
        store_dir=str(settings.store_dir),
        modules=len(curriculum.modules),
        level=progression.level,
    )
    return StudyOrchestrator(scheduler, progression, settings)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.orchestrator = build_orchestrator(settings)
        yield

    app = FastAPI(title="N5Lab", version=settings.app_version, lifespan=lifespan)
    _allowed_origins_env = os.getenv(
        "ALLOWED_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in _allowed_origins_env.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


def main() -> None:
    """Run the application."""
    settings = get_settings()
    uvicorn.run(
        "n5lab.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":
    main()
