"""
Caching utilities for the dashboard aggregates.

Cache failures are never fatal: callers fall back to a fresh query.
"""
import logging

from django.core.cache import cache

from .utils import get_ledger_setting

logger = logging.getLogger(__name__)

DASHBOARD_METRICS_CACHE_KEY = 'dashboard_metrics:v1'


def get_cached_dashboard_metrics():
    """Return the cached dashboard metrics dict, or None on a miss"""
    try:
        data = cache.get(DASHBOARD_METRICS_CACHE_KEY)
    except Exception as e:
        logger.warning(f"Cache unavailable, computing dashboard metrics directly: {e}")
        return None
    if data is not None:
        logger.debug("Cache HIT for dashboard metrics")
    return data


def cache_dashboard_metrics(data, ttl=None):
    """Cache dashboard metrics data"""
    if ttl is None:
        ttl = get_ledger_setting('DASHBOARD_CACHE_TTL')
    try:
        cache.set(DASHBOARD_METRICS_CACHE_KEY, data, ttl)
        logger.debug(f"Cached dashboard metrics for {ttl}s")
    except Exception as e:
        logger.warning(f"Could not cache dashboard metrics: {e}")


def invalidate_dashboard_cache():
    """Invalidate dashboard metrics cache"""
    try:
        cache.delete(DASHBOARD_METRICS_CACHE_KEY)
        logger.info("Invalidated dashboard cache")
    except Exception as e:
        logger.warning(f"Error invalidating dashboard cache: {e}")
