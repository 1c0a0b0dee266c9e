"""Statistics and metrics endpoints for monitoring."""
from fastapi import APIRouter, Depends
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from context_engine.api.dependencies import get_chunk_store, get_response_cache
from context_engine.api.schemas import CacheStatsResponse, StatsResponse, StoreStatsResponse
from context_engine.services.chunk_store import ChunkStore
from context_engine.services.response_cache import ResponseCache


router = APIRouter()


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    store: ChunkStore = Depends(get_chunk_store),
    cache: ResponseCache = Depends(get_response_cache),
):
    """
    Get store and cache statistics.

    Returns:
        Document and chunk counts plus cache occupancy
    """
    return StatsResponse(
        store=StoreStatsResponse(**store.stats()),
        cache=CacheStatsResponse(**cache.stats()),
    )


@router.get("/metrics")
async def get_metrics():
    """
    Get Prometheus-compatible metrics.

    Returns:
        Prometheus metrics in text format
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
