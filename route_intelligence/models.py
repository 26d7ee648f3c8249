"""Dataclasses shared by the routing, elevation, interval and privacy layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A (longitude, latitude) position in degrees with optional elevation."""

    lon: float
    lat: float
    elevation: Optional[float] = None

    def as_lonlat(self) -> Tuple[float, float]:
        return (self.lon, self.lat)


Geometry = Sequence[Coordinate]


@dataclass(frozen=True, slots=True)
class RoutePreferences:
    """Rider preferences that influence provider choice and scoring."""

    traffic_tolerance: Optional[str] = None  # low | medium | high
    bike_infrastructure: Optional[str] = None  # required | strongly_preferred | ...
    avoid_hills: bool = False
    cycling_speed_kmh: Optional[float] = None

    @property
    def wants_low_traffic(self) -> bool:
        return self.traffic_tolerance == "low"

    @property
    def wants_bike_infrastructure(self) -> bool:
        return self.bike_infrastructure in {"required", "strongly_preferred"}


@dataclass(frozen=True, slots=True)
class RouteRequest:
    """Normalised routing request handed to every provider adapter."""

    waypoints: Tuple[Coordinate, ...]
    profile: str = "road"
    preferences: RoutePreferences = field(default_factory=RoutePreferences)
    training_goal: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ProviderRoute:
    """Provider response parsed into the stable internal shape."""

    provider: str
    geometry: Tuple[Coordinate, ...]
    distance_m: float
    duration_s: float
    elevation_gain_m: float = 0.0
    elevation_loss_m: float = 0.0
    self_reported_confidence: float = 0.0
    provider_profile: Optional[str] = None


@dataclass(frozen=True, slots=True)
class RoutedResult:
    """The single route chosen for a request, tagged with its provenance."""

    geometry: Tuple[Coordinate, ...]
    distance_m: float
    duration_s: float
    elevation_gain_m: float
    elevation_loss_m: float
    confidence: float
    provider: str
    warnings: Tuple[str, ...] = ()
    profile: str = "road"
    is_fallback: bool = False
    provider_confidence: float = 0.0


@dataclass(frozen=True, slots=True)
class AttemptRecord:
    """Outcome of one provider attempt inside a routing request."""

    provider: str
    outcome: str  # accepted | failed | too_short | skipped | aborted
    detail: str = ""


@dataclass(frozen=True, slots=True)
class RoutingFailure:
    """Terminal routing failure: no provider produced a usable route."""

    profile: str
    attempts: Tuple[AttemptRecord, ...]
    reason: str = "all providers failed"
    aborted: bool = False
    message: str = (
        "No suitable route found, try a different area or relax preferences"
    )


@dataclass(frozen=True, slots=True)
class ElevationPoint:
    """Resolved elevation for one route coordinate."""

    coordinate: Coordinate
    elevation_m: float


@dataclass(slots=True)
class ElevationProfile:
    """Per-point elevation for a route plus provenance of the values."""

    points: List[ElevationPoint]
    source: str
    warnings: List[str] = field(default_factory=list)
    sampled_count: int = 0

    @property
    def elevations(self) -> List[float]:
        return [point.elevation_m for point in self.points]


@dataclass(frozen=True, slots=True)
class ElevationStats:
    gain_m: float
    loss_m: float
    min_m: float
    max_m: float
    avg_grade_pct: float
    max_grade_pct: float


@dataclass(frozen=True, slots=True)
class IntervalCue:
    """A distance-indexed instruction binding a training zone to the route."""

    type: str
    zone: float
    start_distance_m: float
    end_distance_m: float
    coordinate: Coordinate
    instruction: str
    color: str
    duration_minutes: Optional[float] = None
    power_percent_ftp: Optional[float] = None
    cadence_target: Optional[int] = None

    @property
    def distance_m(self) -> float:
        return self.end_distance_m - self.start_distance_m


@dataclass(frozen=True, slots=True)
class RouteEndpoints:
    """Start/end coordinates of one historical route."""

    start: Coordinate
    end: Coordinate


@dataclass(frozen=True, slots=True)
class PrivacyZone:
    """Circular region whose points are removed before sharing."""

    center: Coordinate
    radius_m: float
    reason: str


@dataclass(frozen=True, slots=True)
class SanitizeOptions:
    obscure_start_end: bool = True
    clip_distance_m: Optional[float] = None
    custom_zones: Tuple[PrivacyZone, ...] = ()


@dataclass(frozen=True, slots=True)
class SanitizedRoute:
    """Best-effort redacted geometry plus the zones that shaped it."""

    geometry: Tuple[Coordinate, ...]
    zones: Tuple[PrivacyZone, ...]
    applied_zones: Tuple[PrivacyZone, ...]
    clipped: bool
    removed_points: int
    fragmented: bool


@dataclass(slots=True)
class RouteArtifact:
    """Everything the persistence and export layers need for one route."""

    routed: RoutedResult
    elevation: ElevationProfile
    elevation_stats: ElevationStats
    cues: List[IntervalCue] = field(default_factory=list)
    colored_segments: Optional[Dict[str, Any]] = None
