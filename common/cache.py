from django.conf import settings
from django.core.cache import cache

GENERATION_KEY = "reports:generation"


def report_generation():
    generation = cache.get(GENERATION_KEY)
    if generation is None:
        cache.add(GENERATION_KEY, 1, None)
        generation = cache.get(GENERATION_KEY, 1)
    return generation


def invalidate_reports():
    """Make every cached report stale; call after a committed write."""
    try:
        cache.incr(GENERATION_KEY)
    except ValueError:
        cache.set(GENERATION_KEY, 1, None)


def cached_report(request, key, callback):
    timeout = settings.REPORT_CACHE_SECONDS
    if timeout <= 0:
        return callback()
    cache_key = f"reports:{report_generation()}:{key}:{request.get_full_path()}"
    payload = cache.get(cache_key)
    if payload is None:
        payload = callback()
        cache.set(cache_key, payload, timeout)
    return payload
