"""Diagnostics endpoints.

GET /v1/diagnostics/connections -> connection reuse report for Redis/Postgres.
"""

from fastapi import APIRouter, HTTPException, Request

from chatstore.schemas import ConnectionStats
from chatstore.stores.composite import CompositeStore

router = APIRouter()


def _get_storage(request: Request) -> CompositeStore:
    storage: CompositeStore | None = getattr(request.app.state, "storage", None)
    if storage is None:
        raise HTTPException(
            status_code=503,
            detail={
                "error": {
                    "code": "STORAGE_UNAVAILABLE",
                    "message": "Storage is not initialized",
                    "detail": None,
                }
            },
        )
    return storage


@router.get("/connections", response_model=ConnectionStats, response_model_by_alias=True)
async def connection_stats(request: Request) -> ConnectionStats:
    """Report how often pooled connections have been reused.

    Raises:
        HTTPException 503: If Redis could not be initialized at startup.
    """
    storage = _get_storage(request)
    try:
        reused_times = await storage.get_reused_times()
    finally:
        await storage.set_keepalive()
    return ConnectionStats(
        reused_times=reused_times,
        postgres_enabled=storage.postgres_storage is not None,
    )
