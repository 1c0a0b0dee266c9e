"""Prometheus metrics for ingestion, retrieval and caching."""
from prometheus_client import Counter, Histogram


DOCUMENTS_INGESTED = Counter(
    "context_engine_documents_ingested_total",
    "Documents ingested into the chunk store",
)
CHUNKS_CREATED = Counter(
    "context_engine_chunks_created_total",
    "Chunks created by ingestion",
)
EXTRACTION_FALLBACKS = Counter(
    "context_engine_extraction_fallbacks_total",
    "Uploads whose extraction failed and fell back to plain text",
)
SEARCHES = Counter(
    "context_engine_searches_total",
    "Searches executed",
    ["strategy"],
)
SEARCH_LATENCY = Histogram(
    "context_engine_search_seconds",
    "Search latency in seconds",
)
CACHE_HITS = Counter(
    "context_engine_cache_hits_total",
    "Response cache hits",
)
CACHE_MISSES = Counter(
    "context_engine_cache_misses_total",
    "Response cache misses",
)
CACHE_EVICTIONS = Counter(
    "context_engine_cache_evictions_total",
    "Response cache entries removed by capacity or TTL",
    ["reason"],
)
