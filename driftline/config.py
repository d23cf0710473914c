import os


def _env_float(name, default):
    value = os.environ.get(name)
    return float(value) if value else default


def _env_int(name, default):
    value = os.environ.get(name)
    return int(value) if value else default


WINDBORNE_API_BASE = os.environ.get("WINDBORNE_API_BASE", "https://a.windbornesystems.com/treasure")
WEATHER_API_BASE = os.environ.get("WEATHER_API_BASE", "https://api.open-meteo.com/v1/forecast")

# Offsets 0..HOURS_TO_FETCH inclusive, 0 = now
HOURS_TO_FETCH = _env_int("HOURS_TO_FETCH", 24)
REFRESH_INTERVAL_SEC = _env_int("REFRESH_INTERVAL_SEC", 3600)
FETCH_TIMEOUT_SEC = _env_float("FETCH_TIMEOUT_SEC", 10)
MAX_FETCH_WORKERS = _env_int("MAX_FETCH_WORKERS", 8)

WEATHER_CACHE_TTL_SEC = _env_int("WEATHER_CACHE_TTL_SEC", 3600)
WEATHER_MISS_TTL_SEC = _env_int("WEATHER_MISS_TTL_SEC", 300)
WEATHER_RATE_LIMIT_SEC = _env_float("WEATHER_RATE_LIMIT_SEC", 1.0)
WEATHER_MIN_LAT = -60
WEATHER_MAX_LAT = 75

CLUSTER_EPS_KM = _env_float("CLUSTER_EPS_KM", 1000)
CLUSTER_MIN_PTS = _env_int("CLUSTER_MIN_PTS", 15)
CLUSTER_ALTITUDE_WEIGHT = _env_float("CLUSTER_ALTITUDE_WEIGHT", 0.75)
DENSITY_CELL_SIZE_DEG = _env_float("DENSITY_CELL_SIZE_DEG", 10)
HOTSPOT_THRESHOLD = _env_int("HOTSPOT_THRESHOLD", 20)

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
PORT = _env_int("PORT", 5000)
FLASK_SECRET_KEY = os.environ.get("FLASK_SECRET_KEY")
