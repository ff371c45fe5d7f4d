"""
Response caching for the read API

Recap, standings and profile responses only change when a scoring run commits,
so they are cached until the next run clears them.
"""

import functools

from flask import current_app, request

from fantasy_corps import cache


def make_cache_key(key_prefix):
    """Cache key for the current request: prefix plus path and query string"""
    path = request.full_path if request.query_string else request.path
    return f"{key_prefix}:{path.strip('/').replace('/', ':')}"


def cached_route(timeout=300, key_prefix="view"):
    """
    Cache a view's response

    Args:
        timeout: Seconds to keep the response (default 5 minutes)
        key_prefix: Namespace for the view's keys
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            cache_key = make_cache_key(key_prefix)

            response = cache.get(cache_key)
            if response is not None:
                current_app.logger.debug(f"Cache hit: {cache_key}")
                return response

            response = f(*args, **kwargs)
            cache.set(cache_key, response, timeout=timeout)
            return response

        return wrapped

    return decorator


def invalidate_scoring_cache(reason="scoring run"):
    """
    Drop cached API responses after new results are written

    SimpleCache and NullCache cannot delete by pattern, so the whole cache is cleared.
    """
    try:
        cache.clear()
        current_app.logger.info(f"API cache cleared after {reason}")
    except Exception as e:
        # Scoring results are already committed; stale reads expire on their own
        current_app.logger.error(f"Failed to clear API cache after {reason}: {e}")


def get_cache_stats():
    return {
        "type": current_app.config.get("CACHE_TYPE", "Unknown"),
        "default_timeout": current_app.config.get("CACHE_DEFAULT_TIMEOUT", 300),
    }
