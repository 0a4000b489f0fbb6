"""FastAPI dependencies resolving the services built at startup."""

from fastapi import Request

from backend.app.db.repositories import VersionStore
from backend.app.editing.processor import DocumentEditProcessor
from backend.app.versions.manager import VersionLifecycleManager


def get_store(request: Request) -> VersionStore:
    """Version store owned by the application."""
    store: VersionStore = request.app.state.store
    return store


def get_manager(request: Request) -> VersionLifecycleManager:
    """Lifecycle manager owned by the application."""
    manager: VersionLifecycleManager = request.app.state.manager
    return manager


def get_processor(request: Request) -> DocumentEditProcessor:
    """Edit processor owned by the application."""
    processor: DocumentEditProcessor = request.app.state.processor
    return processor
