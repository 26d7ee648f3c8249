"""HTTP adapters for third-party routing and elevation services."""

from .client import ProviderClient
from .elevation import (
    ElevationSource,
    OpenElevationSource,
    OpenTopoDataSource,
    TerrainEstimator,
)
from .rate_limiter import RateLimiter
from .routing import (
    BRouterProvider,
    MapboxProvider,
    RoutingProvider,
    StadiaMapsProvider,
    default_providers,
)
from .session import create_default_session, get_default_session

__all__ = [
    "ProviderClient",
    "RateLimiter",
    "create_default_session",
    "get_default_session",
    "RoutingProvider",
    "StadiaMapsProvider",
    "BRouterProvider",
    "MapboxProvider",
    "default_providers",
    "ElevationSource",
    "OpenTopoDataSource",
    "OpenElevationSource",
    "TerrainEstimator",
]
