"""Caching utilities for the application"""
import os
from flask_caching import Cache
import logging

logger = logging.getLogger(__name__)

cache = Cache()

CAFE_LIST_CACHE_KEY = 'api:cafes:list'
CAFE_LIST_TIMEOUT = 300  # 5 minutes

def init_cache(app):
    """Initialize caching with appropriate backend"""
    redis_url = os.environ.get('REDIS_URL')

    if redis_url:
        # Use Redis if available
        cache_config = {
            'CACHE_TYPE': 'RedisCache',
            'CACHE_REDIS_URL': redis_url,
            'CACHE_DEFAULT_TIMEOUT': CAFE_LIST_TIMEOUT
        }
        logger.info("Using Redis for caching")
    else:
        # Fall back to simple in-memory cache
        cache_config = {
            'CACHE_TYPE': 'SimpleCache',
            'CACHE_DEFAULT_TIMEOUT': CAFE_LIST_TIMEOUT
        }
        logger.info("Using in-memory caching (Redis not configured)")

    app.config.update(cache_config)
    cache.init_app(app)
    return cache

def get_cached_cafe_list(loader):
    """Return the cached cafe listing, building it with loader() on a miss"""
    cached_value = cache.get(CAFE_LIST_CACHE_KEY)
    if cached_value is not None:
        logger.debug(f"Cache hit for {CAFE_LIST_CACHE_KEY}")
        return cached_value

    result = loader()
    cache.set(CAFE_LIST_CACHE_KEY, result, timeout=CAFE_LIST_TIMEOUT)
    logger.debug(f"Cached result for {CAFE_LIST_CACHE_KEY}")
    return result

def invalidate_cafe_list():
    """Drop the cached listing after reviews or new cafes change it"""
    try:
        cache.delete(CAFE_LIST_CACHE_KEY)
    except Exception as e:
        # A cache outage must not fail a committed write
        logger.warning(f"Failed to invalidate cafe list cache: {e}")
