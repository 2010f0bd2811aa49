"""
Cache utilities for the Lucka betting application
Caches read-only projections (leaderboard, global statistics) between polls
"""

import functools

from flask import current_app

from app import cache


def cached_query(model_name, timeout=None):
    """
    Decorator for caching query results

    Args:
        model_name: Name of the projection for cache key generation
        timeout: Cache timeout in seconds (None uses CACHE_DEFAULT_TIMEOUT)
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            # Generate cache key from function name and arguments
            args_str = "_".join(str(arg) for arg in args)
            kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
            cache_key = f"query_{model_name}_{f.__name__}_{args_str}_{kwargs_str}"

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Query cache hit: {cache_key}")
                return result

            result = f(*args, **kwargs)
            cache.set(cache_key, result, timeout=timeout)
            current_app.logger.debug(f"Query cache set: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate cache keys matching a pattern

    Args:
        pattern: Pattern to match cache keys
    """
    try:
        # SimpleCache cannot match keys, so clear everything
        cache.clear()
        current_app.logger.info(f"Cache cleared for pattern: {pattern}")
    except Exception as e:
        # A stale projection is acceptable, a failed settlement response is not
        current_app.logger.error(f"Failed to clear cache: {e}")


def invalidate_stats_cache():
    """Drop cached leaderboard and statistics after points change"""
    invalidate_cache_pattern("query_*")
