"""Central configuration for the Route Intelligence Engine.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Secrets are read from environment variables (optionally
via a local `.env`).
"""

from __future__ import annotations

import importlib
import os


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except Exception:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# Routing providers
# ---------------------------------------------------------------------------
# Stadia Maps hosted Valhalla (purpose-built bicycle costing).
STADIA_ROUTE_URL = os.getenv("STADIA_ROUTE_URL", "https://api.stadiamaps.com/route/v1")
STADIA_API_KEY = os.getenv("STADIA_API_KEY", "")
# Allows disabling Stadia without removing the key.
STADIA_ENABLED = _env_bool("STADIA_ENABLED", True)

# BRouter public instance (free, dedicated gravel/MTB profiles).
BROUTER_BASE_URL = os.getenv("BROUTER_BASE_URL", "https://brouter.de/brouter")

# Mapbox Directions (general-purpose provider).
MAPBOX_DIRECTIONS_URL = os.getenv(
    "MAPBOX_DIRECTIONS_URL", "https://api.mapbox.com/directions/v5/mapbox"
)
MAPBOX_ACCESS_TOKEN = os.getenv("MAPBOX_ACCESS_TOKEN", "")


# ---------------------------------------------------------------------------
# Elevation sources
# ---------------------------------------------------------------------------
OPENTOPODATA_URL = os.getenv(
    "OPENTOPODATA_URL", "https://api.opentopodata.org/v1/srtm30m"
)
OPEN_ELEVATION_URL = os.getenv(
    "OPEN_ELEVATION_URL", "https://api.open-elevation.com/api/v1/lookup"
)

# OpenTopoData accepts at most 100 locations per request.
OPENTOPODATA_BATCH_SIZE = _env_int("OPENTOPODATA_BATCH_SIZE", 100)
# Open-Elevation works best with smaller batches and a pause between them.
OPEN_ELEVATION_BATCH_SIZE = _env_int("OPEN_ELEVATION_BATCH_SIZE", 50)
OPEN_ELEVATION_PACING_SECONDS = _env_float("OPEN_ELEVATION_PACING_SECONDS", 0.1)

# Routes longer than this are downsampled before any elevation lookup.
ELEVATION_MAX_SAMPLE_POINTS = _env_int("ELEVATION_MAX_SAMPLE_POINTS", 200)

# Successful lookups are memoised per source for this long.
ELEVATION_CACHE_SIZE = _env_int("ELEVATION_CACHE_SIZE", 256)
ELEVATION_CACHE_TTL_SECONDS = _env_int("ELEVATION_CACHE_TTL_SECONDS", 6 * 3600)

# Terrain estimator used when every network source fails. Defaults describe
# the Colorado Front Range (Denver ~1,609 m, foothills up to ~2,600 m).
TERRAIN_BASE_ELEVATION_M = _env_float("TERRAIN_BASE_ELEVATION_M", 1609.0)
TERRAIN_REFERENCE_LAT = _env_float("TERRAIN_REFERENCE_LAT", 39.7)
TERRAIN_REFERENCE_LON = _env_float("TERRAIN_REFERENCE_LON", -105.0)
TERRAIN_LON_GRADIENT_M_PER_DEG = _env_float("TERRAIN_LON_GRADIENT_M_PER_DEG", -800.0)
TERRAIN_MIN_ELEVATION_M = _env_float("TERRAIN_MIN_ELEVATION_M", 1500.0)
TERRAIN_MAX_ELEVATION_M = _env_float("TERRAIN_MAX_ELEVATION_M", 2600.0)

# Elevation changes smaller than this are ignored when accumulating gain/loss.
ELEVATION_SMOOTHING_THRESHOLD_M = _env_float("ELEVATION_SMOOTHING_THRESHOLD_M", 3.0)


# ---------------------------------------------------------------------------
# HTTP behaviour
# ---------------------------------------------------------------------------
# Per-attempt timeout for every provider call (seconds). Clamped to the
# remaining pipeline budget.
PROVIDER_TIMEOUT_SECONDS = _env_float("PROVIDER_TIMEOUT_SECONDS", 10.0)

# Attempts per provider call (network failures, 429, 5xx, bad payloads).
PROVIDER_MAX_RETRIES = _env_int("PROVIDER_MAX_RETRIES", 2)
# Caps the exponential backoff per attempt.
PROVIDER_BACKOFF_MAX_SECONDS = _env_float("PROVIDER_BACKOFF_MAX_SECONDS", 2.0)

# HTTP session pool sizes for concurrent requests.
HTTP_POOL_CONNECTIONS = 10
HTTP_POOL_MAXSIZE = 10

# Rate limiter settings.
# RATE_LIMIT_MAX_CONCURRENT caps in-flight requests per provider.
RATE_LIMIT_MAX_CONCURRENT = _env_int("RATE_LIMIT_MAX_CONCURRENT", 4)
# RATE_LIMIT_JITTER_RANGE adds random delay (seconds) to smooth bursts.
RATE_LIMIT_JITTER_RANGE = (0.0, 0.05)
# RATE_LIMIT_THROTTLE_SECONDS is the pause applied after a 429.
RATE_LIMIT_THROTTLE_SECONDS = _env_float("RATE_LIMIT_THROTTLE_SECONDS", 5.0)
# Start throttling when a provider reports this few remaining requests.
RATE_LIMIT_NEAR_LIMIT_BUFFER = 2


# ---------------------------------------------------------------------------
# Waypoint router
# ---------------------------------------------------------------------------
# Provider results with fewer geometry points are treated as failures.
ROUTER_MIN_ROUTE_POINTS = _env_int("ROUTER_MIN_ROUTE_POINTS", 10)
# Confidence subtracted from fallback-provider results (0.1 - 0.15).
ROUTER_FALLBACK_PENALTY = min(
    max(_env_float("ROUTER_FALLBACK_PENALTY", 0.1), 0.1), 0.15
)
# Route distances inside this window earn the "reasonable distance" bonus.
ROUTER_REASONABLE_MIN_M = 1_000.0
ROUTER_REASONABLE_MAX_M = 200_000.0


# ---------------------------------------------------------------------------
# Interval mapping
# ---------------------------------------------------------------------------
# Deepest nesting of repeat blocks accepted from the workout library.
WORKOUT_MAX_REPEAT_DEPTH = _env_int("WORKOUT_MAX_REPEAT_DEPTH", 6)
# Hard cap on emitted cues per mapping call.
INTERVAL_MAX_CUES = _env_int("INTERVAL_MAX_CUES", 1000)
# Remaining route shorter than this does not get a filler cue (unless the
# cue list would otherwise be empty).
INTERVAL_FILLER_MIN_M = _env_float("INTERVAL_FILLER_MIN_M", 1.0)


# ---------------------------------------------------------------------------
# Privacy
# ---------------------------------------------------------------------------
PRIVACY_MATCH_RADIUS_M = _env_float("PRIVACY_MATCH_RADIUS_M", 100.0)
PRIVACY_MIN_MATCHES = _env_int("PRIVACY_MIN_MATCHES", 3)
PRIVACY_ZONE_RADIUS_M = _env_float("PRIVACY_ZONE_RADIUS_M", 500.0)
PRIVACY_CLIP_DISTANCE_M = _env_float("PRIVACY_CLIP_DISTANCE_M", 500.0)
PRIVACY_MIN_CLIP_ROUTE_M = _env_float("PRIVACY_MIN_CLIP_ROUTE_M", 1_000.0)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------
# Wall-clock budget for one user-facing route build (seconds).
PIPELINE_BUDGET_SECONDS = _env_float("PIPELINE_BUDGET_SECONDS", 30.0)
# Parallel route builds when generating multiple suggestions.
SUGGESTION_MAX_PARALLELISM = _env_int("SUGGESTION_MAX_PARALLELISM", 3)
