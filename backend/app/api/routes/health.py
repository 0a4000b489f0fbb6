"""Health check endpoints.

- /health: process is up
- /healthz: version store reachable, with component details
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from backend.app.api.deps import get_store
from backend.app.db.repositories import VersionStore

router = APIRouter()


async def check_store(store: VersionStore) -> tuple[bool, str]:
    """Check version store connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        await store.ping()
        return (True, "ok")
    except Exception as e:
        return (False, f"error: {type(e).__name__}")


@router.get("/health")
async def health() -> dict[str, str]:
    """Simple health check for Docker/k8s.

    Returns:
        200 OK always (application is running)
    """
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(
    store: Annotated[VersionStore, Depends(get_store)],
) -> dict[str, Any] | JSONResponse:
    """Health check endpoint.

    Returns:
        200 with component status if the store is reachable
        503 otherwise
    """
    store_ok, store_status = await check_store(store)

    response_body = {
        "status": "ok" if store_ok else "degraded",
        "components": {"store": store_status},
    }

    if not store_ok:
        return JSONResponse(content=response_body, status_code=503)

    return response_body
