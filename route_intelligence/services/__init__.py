"""Service layer package.

Exports the routing, elevation, interval, privacy and pipeline services.
"""

from .elevation_service import ElevationService, ElevationServiceConfig, elevation_stats
from .interval_mapper import (
    IntervalMapper,
    IntervalMapperConfig,
    build_colored_segments,
    map_intervals,
)
from .pipeline import RouteBuildRequest, RoutePipeline, RoutePipelineConfig, setup_logging
from .privacy_service import (
    PrivacyService,
    PrivacyServiceConfig,
    RouteHistorySource,
    sanitize,
    sanitize_for_rider,
)
from .router_service import (
    RouterService,
    RouterServiceConfig,
    describe_routing_strategy,
    provider_label,
)

__all__ = [
    "ElevationService",
    "ElevationServiceConfig",
    "elevation_stats",
    "IntervalMapper",
    "IntervalMapperConfig",
    "build_colored_segments",
    "map_intervals",
    "RouteBuildRequest",
    "RoutePipeline",
    "RoutePipelineConfig",
    "setup_logging",
    "PrivacyService",
    "PrivacyServiceConfig",
    "RouteHistorySource",
    "sanitize",
    "sanitize_for_rider",
    "RouterService",
    "RouterServiceConfig",
    "describe_routing_strategy",
    "provider_label",
]
