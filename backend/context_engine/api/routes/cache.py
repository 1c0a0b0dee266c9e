"""Response cache endpoints."""
from fastapi import APIRouter, Depends, Query

from context_engine.api.dependencies import get_response_cache
from context_engine.api.schemas import (
    CacheGetResponse,
    CacheSetRequest,
    CacheSetResponse,
    CacheStatsResponse,
)
from context_engine.services.response_cache import ResponseCache


router = APIRouter()


@router.get("/cache", response_model=CacheGetResponse)
async def get_cached_response(
    query: str = Query(...),
    model: str = Query(...),
    provider: str = Query(...),
    cache: ResponseCache = Depends(get_response_cache),
):
    """Look up a cached response; expired and malformed entries are misses."""
    payload = cache.get(query, model, provider)
    return CacheGetResponse(hit=payload is not None, payload=payload)


@router.put("/cache", response_model=CacheSetResponse)
async def set_cached_response(
    request: CacheSetRequest,
    cache: ResponseCache = Depends(get_response_cache),
):
    """Store a response. Short payloads and error payloads are not stored."""
    stored = cache.set(request.query, request.model, request.provider, request.payload)
    return CacheSetResponse(stored=stored)


@router.get("/cache/stats", response_model=CacheStatsResponse)
async def get_cache_stats(cache: ResponseCache = Depends(get_response_cache)):
    return CacheStatsResponse(**cache.stats())
