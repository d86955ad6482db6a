import threading
import time

# In-process response cache: key -> (timestamp, data)
_api_cache = {}
_lock = threading.Lock()
API_CACHE_TTL = 86400  # image metadata barely ever changes
MAX_ENTRIES = 1000


def cached_response(key, ttl=API_CACHE_TTL):
    """Return the cached value for key if it is younger than ttl seconds."""
    with _lock:
        entry = _api_cache.get(key)
    if entry is None:
        return None
    ts, data = entry
    if time.time() - ts < ttl:
        return data
    return None


def cache_response(key, data, ttl=API_CACHE_TTL):
    """Store data under key, keeping at most MAX_ENTRIES entries.

    Stale entries go first, then the oldest inserts.
    """
    now = time.time()
    with _lock:
        _api_cache.pop(key, None)
        _api_cache[key] = (now, data)
        if len(_api_cache) > MAX_ENTRIES:
            cutoff = now - ttl
            for k in [k for k, (ts, _) in _api_cache.items() if ts < cutoff]:
                del _api_cache[k]
        while len(_api_cache) > MAX_ENTRIES:
            del _api_cache[next(iter(_api_cache))]
    return data


def clear_cache():
    with _lock:
        _api_cache.clear()
