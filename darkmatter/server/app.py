from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from darkmatter import __version__
from darkmatter.config.persistence import PersistenceSettings
from darkmatter.core.notifier import Notifier
from darkmatter.core.settings_manager import SettingsManager
from darkmatter.editor.asset_store import VirtualFileSystem
from darkmatter.editor.scene import register_core_types
from darkmatter.editor.workspace import EditorWorkspace
from darkmatter.logging_config import init_logging
from darkmatter.persistence.registry import TypeRegistry
from darkmatter.persistence.service import PersistenceService
from darkmatter.server.errors import register_exception_handlers
from darkmatter.server.routes.project import router as project_router

LOGGER = logging.getLogger(__name__)


def build_service(
    settings: Optional[PersistenceSettings] = None,
    *,
    settings_manager: Optional[SettingsManager] = None,
) -> PersistenceService:
    """Wire a service around a fresh workspace with the core types registered."""

    registry = register_core_types(TypeRegistry())
    editor = EditorWorkspace()
    editor.create_default_scene()
    return PersistenceService(
        editor,
        VirtualFileSystem(),
        registry,
        Notifier(),
        settings_manager=settings_manager or SettingsManager(),
        settings=settings or PersistenceSettings.from_env(),
    )


def _configure_logging() -> tuple[str, str]:
    level = os.getenv("DARKMATTER_LOG_LEVEL", "INFO")
    log_path = init_logging(level=level)
    return str(log_path), level


def create_app(
    service: Optional[PersistenceService] = None,
    *,
    auto_open_last: Optional[bool] = None,
) -> FastAPI:
    """Application factory used by both CLI launches and ASGI servers."""

    log_path, log_level = _configure_logging()
    if auto_open_last is None:
        auto_open_last = os.getenv("DARKMATTER_AUTO_OPEN_LAST", "1").lower() in {
            "1",
            "true",
            "yes",
            "on",
        }

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        persistence: PersistenceService = app.state.persistence
        persistence.start()
        if auto_open_last and await persistence.try_auto_open_last_project():
            LOGGER.info("Reopened last project on startup")
        try:
            yield
        finally:
            await persistence.shutdown()

    app = FastAPI(title="Dark Matter Studio", version=__version__, lifespan=lifespan)
    app.state.version = __version__
    app.state.log_path = log_path
    app.state.log_level = log_level
    app.state.persistence = service or build_service()

    register_exception_handlers(app)
    app.include_router(project_router)

    @app.get("/health")
    async def health() -> dict:
        return {"ok": True, "version": __version__}

    LOGGER.info("Application ready", extra={"log_path": log_path})
    return app
