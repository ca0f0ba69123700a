"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY


def _counter(name, documentation, labelnames=()):
    # Module reloads (tests, uvicorn --reload) re-register the same names
    try:
        return Counter(name, documentation, labelnames)
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


fetch_requests_counter = _counter(
    'trendvault_fetch_requests',
    'Total number of /video/fetch requests by outcome',
    ['outcome']
)

duplicate_matches_counter = _counter(
    'trendvault_duplicate_matches',
    'Restricted submissions resolved to an existing stored video',
    ['match_kind']
)

videos_stored_counter = _counter(
    'trendvault_videos_stored',
    'Videos written to durable storage for the first time'
)

storage_failures_counter = _counter(
    'trendvault_storage_failures',
    'Failures while storing a new video',
    ['stage']
)

trending_cache_counter = _counter(
    'trendvault_trending_cache',
    'Trending snapshot cache lookups',
    ['result']
)
