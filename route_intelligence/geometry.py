"""Great-circle distance, cumulative indexing and slicing for route geometry.

Every function here is pure and deterministic. Any function that needs a
path rejects geometries with fewer than two coordinates by raising
:class:`~route_intelligence.errors.GeometryValidationError`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

from .config import ELEVATION_SMOOTHING_THRESHOLD_M
from .errors import GeometryValidationError
from .models import Coordinate

EARTH_RADIUS_M = 6_371_000.0

MetricArray = NDArray[np.float64]


@dataclass(frozen=True, slots=True)
class CoordinateAtDistance:
    coordinate: Coordinate
    index: int


def distance(a: Coordinate, b: Coordinate) -> float:
    """Return the haversine distance between two coordinates in metres."""

    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    delta_lat = lat2 - lat1
    delta_lon = math.radians(b.lon - a.lon)
    h = (
        math.sin(delta_lat / 2.0) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lon / 2.0) ** 2
    )
    return 2.0 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))


def validate_geometry(geometry: Sequence[Coordinate], *, what: str = "geometry") -> None:
    if geometry is None or len(geometry) < 2:
        count = 0 if geometry is None else len(geometry)
        raise GeometryValidationError(
            f"{what} requires at least 2 coordinates (got {count})"
        )
    for index, point in enumerate(geometry):
        if not isinstance(point, Coordinate):
            raise GeometryValidationError(
                f"{what}[{index}] is {type(point).__name__}, expected Coordinate"
            )
        if not (math.isfinite(point.lat) and math.isfinite(point.lon)):
            raise GeometryValidationError(f"{what}[{index}] has non-finite lat/lon")


def _segment_lengths(geometry: Sequence[Coordinate]) -> MetricArray:
    lats = np.radians(np.fromiter((p.lat for p in geometry), dtype=float))
    lons = np.radians(np.fromiter((p.lon for p in geometry), dtype=float))
    dlat = np.diff(lats)
    dlon = np.diff(lons)
    h = (
        np.sin(dlat / 2.0) ** 2
        + np.cos(lats[:-1]) * np.cos(lats[1:]) * np.sin(dlon / 2.0) ** 2
    )
    h = np.clip(h, 0.0, 1.0)
    return 2.0 * EARTH_RADIUS_M * np.arctan2(np.sqrt(h), np.sqrt(1.0 - h))


def _cumulative_array(geometry: Sequence[Coordinate]) -> MetricArray:
    validate_geometry(geometry)
    cumulative = np.zeros(len(geometry), dtype=float)
    np.cumsum(_segment_lengths(geometry), out=cumulative[1:])
    return cumulative


def cumulative_distances(geometry: Sequence[Coordinate]) -> List[float]:
    """Return running distance (metres) at each vertex, starting at 0."""

    return _cumulative_array(geometry).tolist()


def total_distance(geometry: Sequence[Coordinate]) -> float:
    return float(_cumulative_array(geometry)[-1])


def coordinate_at_distance(
    geometry: Sequence[Coordinate],
    target_m: float,
    cumulative: Sequence[float] | None = None,
) -> CoordinateAtDistance:
    """Return the first vertex whose cumulative distance reaches ``target_m``.

    Targets at or below zero give the first vertex and targets at or beyond
    the route length give the last one. No interpolation is performed.
    Callers looking up many targets on one route may pass ``cumulative``
    from :func:`cumulative_distances` to skip recomputing it.
    """

    if cumulative is None:
        cumulative = _cumulative_array(geometry)
    if target_m <= 0:
        index = 0
    elif target_m >= cumulative[-1]:
        index = len(geometry) - 1
    else:
        index = int(np.searchsorted(cumulative, target_m, side="left"))
        index = min(index, len(geometry) - 1)
    return CoordinateAtDistance(coordinate=geometry[index], index=index)


def slice_geometry(
    geometry: Sequence[Coordinate], start_m: float, end_m: float
) -> Tuple[Coordinate, ...]:
    """Return the existing vertices lying within ``[start_m, end_m]``.

    Order is preserved and bounds trim inward to the nearest enclosing
    vertices, so the result may hold fewer than two points when the window
    is narrower than the spacing between vertices.
    """

    if start_m > end_m:
        raise GeometryValidationError(
            f"slice start ({start_m:.1f} m) is beyond slice end ({end_m:.1f} m)"
        )
    cumulative = _cumulative_array(geometry)
    mask = (cumulative >= start_m) & (cumulative <= end_m)
    return tuple(geometry[int(i)] for i in np.flatnonzero(mask))


def elevation_gain_loss(
    elevations: Iterable[float], threshold_m: float = ELEVATION_SMOOTHING_THRESHOLD_M
) -> Tuple[float, float]:
    """Accumulate gain and loss, ignoring changes smaller than ``threshold_m``.

    Changes are measured from the last elevation that moved the totals, so a
    slow drift of sub-threshold steps still counts once it adds up.
    """

    gain = 0.0
    loss = 0.0
    anchor: float | None = None
    for value in elevations:
        if anchor is None:
            anchor = value
            continue
        delta = value - anchor
        if abs(delta) >= threshold_m:
            if delta > 0:
                gain += delta
            else:
                loss -= delta
            anchor = value
    return gain, loss


def to_lonlat_pairs(geometry: Sequence[Coordinate]) -> List[Tuple[float, float]]:
    return [point.as_lonlat() for point in geometry]


def from_lonlat_pairs(pairs: Iterable[Sequence[float]]) -> Tuple[Coordinate, ...]:
    """Build coordinates from ``[lon, lat]`` or ``[lon, lat, ele]`` sequences."""

    points: List[Coordinate] = []
    for pair in pairs:
        if len(pair) < 2:
            raise GeometryValidationError("Expected [lon, lat] pair")
        elevation = float(pair[2]) if len(pair) > 2 and pair[2] is not None else None
        points.append(Coordinate(lon=float(pair[0]), lat=float(pair[1]), elevation=elevation))
    return tuple(points)


__all__ = [
    "EARTH_RADIUS_M",
    "CoordinateAtDistance",
    "distance",
    "validate_geometry",
    "cumulative_distances",
    "total_distance",
    "coordinate_at_distance",
    "slice_geometry",
    "elevation_gain_loss",
    "to_lonlat_pairs",
    "from_lonlat_pairs",
]
