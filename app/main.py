"""FastAPI application entrypoint."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import get_settings
from app.api.v1.router import api_router
from app.core.exceptions import AuthenticationRequired, not_authenticated_exception
from app.services.project_store import ProjectStore
from app.services.save_scheduler import PersistenceScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle. Pending autosaves are flushed before exit."""
    settings = get_settings()
    logger.info("Starting %s (env=%s)", settings.app_name, settings.environment)
    if app.state.project_store is None:
        app.state.project_store = ProjectStore.from_settings(settings)
    app.state.save_scheduler = PersistenceScheduler(
        app.state.project_store.save_project_data,
        delay=settings.save_debounce_seconds,
    )
    yield
    pending = app.state.save_scheduler.pending_projects
    if pending:
        logger.info("Flushing %d pending saves", len(pending))
    await app.state.save_scheduler.flush_all()
    logger.info("Shutting down %s", settings.app_name)


def create_app(project_store: Optional[ProjectStore] = None) -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        description="Project document persistence with durable media and blob garbage collection",
        version="0.1.0",
        openapi_url=f"{settings.api_v1_prefix}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.project_store = project_store
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix=settings.api_v1_prefix)

    @app.exception_handler(AuthenticationRequired)
    async def auth_required_handler(request: Request, exc: AuthenticationRequired):
        err = not_authenticated_exception(str(exc) or None)
        return JSONResponse(status_code=err.status_code, content={"detail": err.detail}, headers=err.headers)

    return app


app = create_app()
