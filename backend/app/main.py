"""FastAPI application.

Services are built once per application in the lifespan and stored on
``app.state``; routes reach them through the dependencies in api.deps.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from backend.app.api.routes.documents import router as documents_router
from backend.app.api.routes.health import router as health_router
from backend.app.api.routes.metrics import router as metrics_router
from backend.app.config import Settings, get_settings
from backend.app.db.engine import create_async_engine_from_settings, create_schema, create_session_factory
from backend.app.db.inmemory import InMemoryVersionStore
from backend.app.db.repositories import VersionStore
from backend.app.db.sql_repositories import SqlVersionStore
from backend.app.editing.processor import DocumentEditProcessor
from backend.app.utils.logging import StructuredEditLogger, configure_logging
from backend.app.utils.metrics import PrometheusEditMetrics
from backend.app.versions.manager import VersionLifecycleManager

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use (default: cached environment settings)
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings)

        engine = None
        store: VersionStore
        if settings.database_url:
            engine = create_async_engine_from_settings(settings)
            if settings.create_schema:
                await create_schema(engine)
            store = SqlVersionStore(create_session_factory(engine))
        else:
            logger.warning("DATABASE_URL not set, using in-memory version store")
            store = InMemoryVersionStore()

        metrics = PrometheusEditMetrics()
        structured_logger = StructuredEditLogger()
        manager = VersionLifecycleManager(
            store, metrics=metrics, transition_logger=structured_logger
        )

        app.state.store = store
        app.state.manager = manager
        app.state.processor = DocumentEditProcessor(
            manager, metrics=metrics, edit_logger=structured_logger
        )

        try:
            yield
        finally:
            if engine is not None:
                await engine.dispose()

    app = FastAPI(title="InnerFlame Document API", version="0.1.0", lifespan=lifespan)

    # Register routes
    app.include_router(health_router, tags=["health"])
    app.include_router(metrics_router, tags=["metrics"])
    app.include_router(documents_router, tags=["documents"])

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint."""
        return {"message": "InnerFlame Document API", "version": "0.1.0"}

    return app


app = create_app()
