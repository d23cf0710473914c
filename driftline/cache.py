import time
from threading import Lock


CACHE_TTL = {
    'weather': 3600,
    'weather_miss': 300,
    'snapshot': 3600,
}


class TTLCache:
    """Thread-safe key/value cache with a per-namespace time-to-live.

    Owned by whoever creates it and passed in explicitly; there is no
    process-wide instance.
    """

    def __init__(self, ttl=None, clock=time.time):
        self._ttl = dict(CACHE_TTL)
        if ttl:
            self._ttl.update(ttl)
        self._clock = clock
        self._cache = {}
        self._lock = Lock()

    def _get_cache_key(self, namespace, key):
        return f"{namespace}:{key}"

    def get_cached(self, namespace, key):
        cache_key = self._get_cache_key(namespace, key)
        with self._lock:
            if cache_key in self._cache:
                entry = self._cache[cache_key]
                ttl = self._ttl.get(namespace, 60)
                if self._clock() - entry['timestamp'] < ttl:
                    return entry['data']
                del self._cache[cache_key]
        return None

    def set_cached(self, namespace, key, data):
        cache_key = self._get_cache_key(namespace, key)
        with self._lock:
            self._cache[cache_key] = {
                'data': data,
                'timestamp': self._clock()
            }

    def invalidate(self, namespace=None, key=None):
        with self._lock:
            if namespace and key is not None:
                self._cache.pop(self._get_cache_key(namespace, key), None)
            elif namespace:
                keys_to_delete = [k for k in self._cache if k.startswith(f"{namespace}:")]
                for k in keys_to_delete:
                    del self._cache[k]
            else:
                self._cache.clear()

    def get_or_fetch(self, namespace, key, fetch_func):
        cached = self.get_cached(namespace, key)
        if cached is not None:
            return cached
        data = fetch_func()
        if data is not None:
            self.set_cached(namespace, key, data)
        return data

    def __len__(self):
        with self._lock:
            return len(self._cache)


class RateLimiter:
    """Spaces call starts at least ``min_interval`` seconds apart."""

    def __init__(self, min_interval, clock=time.monotonic, sleep=time.sleep):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._next_slot = 0.0
        self._lock = Lock()

    def wait(self):
        with self._lock:
            now = self._clock()
            slot = max(now, self._next_slot)
            self._next_slot = slot + self.min_interval
        delay = slot - now
        if delay > 0:
            self._sleep(delay)
        return delay
