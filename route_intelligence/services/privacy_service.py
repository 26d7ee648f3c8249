"""Strip likely home/work locations from a route before it is shared.

This is a best-effort privacy measure, not an anonymity guarantee. It clips
the ends of the route and removes points near start/end locations the
rider uses often, but a determined observer may still infer those places
from the remaining geometry, timing or repeated shares.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Protocol, Sequence, Tuple

from ..config import (
    PRIVACY_CLIP_DISTANCE_M,
    PRIVACY_MATCH_RADIUS_M,
    PRIVACY_MIN_CLIP_ROUTE_M,
    PRIVACY_MIN_MATCHES,
    PRIVACY_ZONE_RADIUS_M,
)
from ..geometry import distance, slice_geometry, total_distance, validate_geometry
from ..models import (
    Coordinate,
    PrivacyZone,
    RouteEndpoints,
    SanitizedRoute,
    SanitizeOptions,
)

__all__ = [
    "RouteHistorySource",
    "PrivacyServiceConfig",
    "PrivacyService",
    "count_nearby_endpoints",
    "detect_privacy_zones",
    "sanitize",
    "sanitize_for_rider",
]


class RouteHistorySource(Protocol):
    def list_route_endpoints(self, rider_id: str) -> Sequence[RouteEndpoints]:
        """Return start/end coordinates of the rider's historical routes."""


def count_nearby_endpoints(
    point: Coordinate,
    history: Sequence[RouteEndpoints],
    radius_m: float = PRIVACY_MATCH_RADIUS_M,
) -> int:
    """Count historical routes that start or end within ``radius_m`` of ``point``."""

    count = 0
    for route in history:
        if distance(point, route.start) < radius_m or distance(point, route.end) < radius_m:
            count += 1
    return count


def _covers(zone: PrivacyZone, point: Coordinate) -> bool:
    return distance(point, zone.center) <= zone.radius_m


@dataclass(slots=True)
class PrivacyServiceConfig:
    match_radius_m: float = PRIVACY_MATCH_RADIUS_M
    min_matches: int = PRIVACY_MIN_MATCHES
    zone_radius_m: float = PRIVACY_ZONE_RADIUS_M
    clip_distance_m: float = PRIVACY_CLIP_DISTANCE_M
    min_clip_route_m: float = PRIVACY_MIN_CLIP_ROUTE_M
    logger: logging.Logger | None = None


class PrivacyService:
    def __init__(self, config: PrivacyServiceConfig | None = None):
        self.config = config or PrivacyServiceConfig()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)

    def detect_zones(
        self, geometry: Sequence[Coordinate], history: Sequence[RouteEndpoints]
    ) -> List[PrivacyZone]:
        validate_geometry(geometry)
        zones: List[PrivacyZone] = []
        checks = (
            (geometry[0], "frequent_start_location"),
            (geometry[-1], "frequent_end_location"),
        )
        for point, reason in checks:
            matches = count_nearby_endpoints(point, history, self.config.match_radius_m)
            if matches >= self.config.min_matches:
                self._log.debug("%s: %d historical matches", reason, matches)
                zones.append(
                    PrivacyZone(center=point, radius_m=self.config.zone_radius_m, reason=reason)
                )
        return zones

    def sanitize(
        self,
        geometry: Sequence[Coordinate],
        history: Sequence[RouteEndpoints] = (),
        options: SanitizeOptions | None = None,
    ) -> SanitizedRoute:
        """Return ``geometry`` with clipped ends and privacy zones removed.

        Only ever removes points: order is preserved and nothing is added.
        Zones that overlap mid-route may split the line; the result reports
        this as ``fragmented`` rather than failing.

        Raises:
            GeometryValidationError: For fewer than two coordinates.
        """

        opts = options or SanitizeOptions()
        zones = tuple(self.detect_zones(geometry, history)) + tuple(opts.custom_zones)

        working: Tuple[Coordinate, ...] = tuple(geometry)
        clipped = False
        clip_m = opts.clip_distance_m
        if clip_m is None:
            clip_m = self.config.clip_distance_m
        if opts.obscure_start_end:
            length = total_distance(working)
            if length > self.config.min_clip_route_m:
                start_m = min(max(clip_m, 0.0), length / 2.0)
                working = slice_geometry(working, start_m, max(length - clip_m, start_m))
                clipped = True

        kept_indices = [
            index
            for index, point in enumerate(working)
            if not any(_covers(zone, point) for zone in zones)
        ]
        # A zone counts as applied when it covers part of the input route,
        # whether the end clip or the zone filter removed those points.
        applied = [zone for zone in zones if any(_covers(zone, p) for p in geometry)]

        fragmented = any(b - a > 1 for a, b in zip(kept_indices, kept_indices[1:]))
        result = tuple(working[i] for i in kept_indices)
        removed = len(geometry) - len(result)
        if zones:
            self._log.info(
                "Sanitized route: %d zones detected, %d applied, %d points removed",
                len(zones),
                len(applied),
                removed,
            )
        if fragmented:
            self._log.warning("Privacy zones split the shared route into fragments")
        return SanitizedRoute(
            geometry=result,
            zones=zones,
            applied_zones=tuple(applied),
            clipped=clipped,
            removed_points=removed,
            fragmented=fragmented,
        )

    def sanitize_for_rider(
        self,
        geometry: Sequence[Coordinate],
        rider_id: str,
        history_source: RouteHistorySource,
        options: SanitizeOptions | None = None,
    ) -> SanitizedRoute:
        history = history_source.list_route_endpoints(rider_id)
        return self.sanitize(geometry, history, options)


def detect_privacy_zones(
    geometry: Sequence[Coordinate], history: Sequence[RouteEndpoints]
) -> List[PrivacyZone]:
    return PrivacyService().detect_zones(geometry, history)


def sanitize(
    geometry: Sequence[Coordinate],
    history: Sequence[RouteEndpoints] = (),
    options: SanitizeOptions | None = None,
) -> SanitizedRoute:
    return PrivacyService().sanitize(geometry, history, options)


def sanitize_for_rider(
    geometry: Sequence[Coordinate],
    rider_id: str,
    history_source: RouteHistorySource,
    options: SanitizeOptions | None = None,
) -> SanitizedRoute:
    return PrivacyService().sanitize_for_rider(geometry, rider_id, history_source, options)
