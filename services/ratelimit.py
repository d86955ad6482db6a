"""
Fixed-window request limiter, in process memory.

Counts are per client key (first X-Forwarded-For address). Windows that
have expired are swept at most once per window length. Running several
worker processes multiplies the effective limit; move the counters to a
shared store with key expiry if that matters.
"""

import math
import threading
import time
from functools import wraps

from flask import request, jsonify


class FixedWindowLimiter:
    def __init__(self, limit, window_seconds, clock=time.time):
        self.limit = limit
        self.window = window_seconds
        self._clock = clock
        self._buckets = {}  # key -> (window_start, count)
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def hit(self, key):
        """Count one request. Returns (allowed, retry_after_seconds)."""
        now = self._clock()
        with self._lock:
            self._sweep(now)
            start, count = self._buckets.get(key, (now, 0))
            if now - start >= self.window:
                start, count = now, 0
            count += 1
            self._buckets[key] = (start, count)
            if count > self.limit:
                return False, max(1, math.ceil(start + self.window - now))
            return True, 0

    def _sweep(self, now):
        if now - self._last_sweep < self.window:
            return
        stale = [k for k, (start, _) in self._buckets.items() if now - start >= self.window]
        for k in stale:
            del self._buckets[k]
        self._last_sweep = now

    def reset(self):
        with self._lock:
            self._buckets.clear()

    def __len__(self):
        return len(self._buckets)


def client_key():
    remote = request.headers.get('X-Forwarded-For', request.remote_addr or '0.0.0.0')
    return remote.split(',')[0].strip()


def rate_limited(limiter):
    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            allowed, retry_after = limiter.hit(client_key())
            if not allowed:
                return jsonify({'error': 'Too many requests'}), 429, {'Retry-After': str(retry_after)}
            return view(*args, **kwargs)
        return wrapped
    return decorator
