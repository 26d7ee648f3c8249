"""Route Intelligence Engine package."""

from .context import RequestContext
from .errors import (
    GeometryValidationError,
    NoRouteFoundError,
    ProviderError,
    RouteEngineError,
    RouteValidationError,
    WorkoutValidationError,
)
from .models import (
    Coordinate,
    ElevationPoint,
    ElevationProfile,
    IntervalCue,
    PrivacyZone,
    RouteArtifact,
    RoutedResult,
    RouteEndpoints,
    RoutePreferences,
    RoutingFailure,
    SanitizedRoute,
    SanitizeOptions,
)
from .services import (
    ElevationService,
    IntervalMapper,
    PrivacyService,
    RouteBuildRequest,
    RoutePipeline,
    RouterService,
    map_intervals,
    sanitize,
    setup_logging,
)
from .workouts import RepeatBlock, Segment, WorkoutStructure, parse_workout_structure
from .zones import zone_color, zone_name

__all__ = [
    "RequestContext",
    "GeometryValidationError",
    "NoRouteFoundError",
    "ProviderError",
    "RouteEngineError",
    "RouteValidationError",
    "WorkoutValidationError",
    "Coordinate",
    "ElevationPoint",
    "ElevationProfile",
    "IntervalCue",
    "PrivacyZone",
    "RouteArtifact",
    "RoutedResult",
    "RouteEndpoints",
    "RoutePreferences",
    "RoutingFailure",
    "SanitizedRoute",
    "SanitizeOptions",
    "ElevationService",
    "IntervalMapper",
    "PrivacyService",
    "RouteBuildRequest",
    "RoutePipeline",
    "RouterService",
    "map_intervals",
    "sanitize",
    "setup_logging",
    "RepeatBlock",
    "Segment",
    "WorkoutStructure",
    "parse_workout_structure",
    "zone_color",
    "zone_name",
]
