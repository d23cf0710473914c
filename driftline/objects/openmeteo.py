"""
Open-Meteo pressure-level wind lookups.

Answers "what wind did the model have at this place, altitude and hour" for
drift comparison. Any failure is a miss (None), never an exception. Lookups
are deduplicated through an injected TTLCache and spaced by a RateLimiter.
Misses are remembered for a shorter time in the `weather_miss` namespace.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple

import requests

from .. import config
from ..cache import RateLimiter, TTLCache
from ..intelligence.motion import pressure_level

logger = logging.getLogger(__name__)

Query = Tuple[float, float, float, int]


@dataclass(frozen=True)
class WindObservation:
    speed_kmh: float
    bearing_deg: float
    pressure_level: str


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OpenMeteoClient:
    MAX_WORKERS = 4

    def __init__(self, session=None, cache: Optional[TTLCache] = None,
                 rate_limiter: Optional[RateLimiter] = None, clock=_utc_now,
                 base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.session = session or requests.Session()
        self.cache = cache if cache is not None else TTLCache(ttl={
            'weather': config.WEATHER_CACHE_TTL_SEC,
            'weather_miss': config.WEATHER_MISS_TTL_SEC,
        })
        self.rate_limiter = rate_limiter or RateLimiter(config.WEATHER_RATE_LIMIT_SEC)
        self.clock = clock
        self.base_url = base_url or config.WEATHER_API_BASE
        self.timeout = timeout or config.FETCH_TIMEOUT_SEC

    @staticmethod
    def is_covered(lat: float, lon: float) -> bool:
        return config.WEATHER_MIN_LAT <= lat <= config.WEATHER_MAX_LAT and -180 <= lon <= 180

    @staticmethod
    def cache_key(lat: float, lon: float, level: int, hour_offset: int) -> str:
        return f"{lat:.2f}:{lon:.2f}:{level}:{hour_offset}"

    def __call__(self, lat: float, lon: float, altitude_m: float, hour_offset: int) -> Optional[WindObservation]:
        return self.lookup(lat, lon, altitude_m, hour_offset)

    def lookup(self, lat: float, lon: float, altitude_m: float, hour_offset: int) -> Optional[WindObservation]:
        if not self.is_covered(lat, lon):
            logger.debug("Skipping weather lookup outside model coverage: %.2f, %.2f", lat, lon)
            return None

        level = pressure_level(altitude_m)
        key = self.cache_key(lat, lon, level, hour_offset)
        cached = self.cache.get_cached('weather', key)
        if cached is not None:
            return cached
        if self.cache.get_cached('weather_miss', key):
            return None

        by_offset = self._fetch(lat, lon, level)
        for offset in range(config.HOURS_TO_FETCH + 1):
            if offset in by_offset:
                self.cache.set_cached('weather', self.cache_key(lat, lon, level, offset), by_offset[offset])
            else:
                self.cache.set_cached('weather_miss', self.cache_key(lat, lon, level, offset), True)

        observation = by_offset.get(hour_offset)
        if observation is None:
            self.cache.set_cached('weather_miss', key, True)
        return observation

    def lookup_many(self, queries: Iterable[Query]) -> Dict[Query, Optional[WindObservation]]:
        """Resolve many lookups, one worker per distinct location and pressure level.

        Queries sharing a location run in the same worker, so the first one's
        request fills the cache for the rest.
        """
        by_location: Dict[str, List[Query]] = {}
        for query in queries:
            lat, lon, altitude_m, _ = query
            location = f"{lat:.2f}:{lon:.2f}:{pressure_level(altitude_m)}"
            by_location.setdefault(location, []).append(query)

        def resolve(group: List[Query]):
            return [(query, self.lookup(*query)) for query in group]

        results: Dict[Query, Optional[WindObservation]] = {}
        with ThreadPoolExecutor(max_workers=self.MAX_WORKERS) as executor:
            futures = [executor.submit(resolve, group) for group in by_location.values()]
            for future in as_completed(futures):
                results.update(future.result())

        return results

    def _fetch(self, lat: float, lon: float, level: int) -> Dict[int, WindObservation]:
        params = {
            'latitude': f"{lat:.4f}",
            'longitude': f"{lon:.4f}",
            'hourly': f"windspeed_{level}hPa,winddirection_{level}hPa",
            'past_days': 2,
            'forecast_days': 1,
            'timezone': 'GMT',
        }

        self.rate_limiter.wait()
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.warning("Weather API fetch failed for %.2f, %.2f: %s", lat, lon, e)
            return {}
        except ValueError as e:
            logger.warning("Weather API returned invalid JSON for %.2f, %.2f: %s", lat, lon, e)
            return {}

        return self._parse_hourly(data, level)

    def _parse_hourly(self, data, level: int) -> Dict[int, WindObservation]:
        hourly = data.get('hourly') if isinstance(data, dict) else None
        if not hourly:
            logger.warning("No weather data in response for %shPa", level)
            return {}

        times = hourly.get('time') or []
        speeds = hourly.get(f"windspeed_{level}hPa") or []
        directions = hourly.get(f"winddirection_{level}hPa") or []
        now = self.clock().replace(minute=0, second=0, microsecond=0)
        label = f"{level}hPa"

        observations = {}
        for stamp, speed, direction in zip(times, speeds, directions):
            if speed is None or direction is None:
                continue
            try:
                at = datetime.strptime(stamp, '%Y-%m-%dT%H:%M').replace(tzinfo=timezone.utc)
            except (TypeError, ValueError):
                continue

            offset = round((now - at) / timedelta(hours=1))
            if 0 <= offset <= config.HOURS_TO_FETCH:
                # model direction is where the wind blows from, drift bearing is where it goes
                observations[offset] = WindObservation(
                    speed_kmh=float(speed),
                    bearing_deg=(float(direction) + 180) % 360,
                    pressure_level=label
                )

        return observations
