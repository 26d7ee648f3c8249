"""Per-point elevation for route geometry.

Long routes are downsampled before lookup so provider load stays bounded,
then the full resolution is restored by linear interpolation. Sources are
consulted in priority order and each one either answers for the whole
sampled set or is skipped. The terrain estimator always answers, so
:meth:`ElevationService.resolve` never raises for a valid geometry.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import RLock
from typing import Hashable, List, Optional, Sequence, Tuple

import numpy as np
from cachetools import TTLCache

from ..config import (
    ELEVATION_CACHE_SIZE,
    ELEVATION_CACHE_TTL_SECONDS,
    ELEVATION_MAX_SAMPLE_POINTS,
    ELEVATION_SMOOTHING_THRESHOLD_M,
)
from ..context import RequestContext
from ..errors import GeometryValidationError, ProviderError, RequestAbortedError
from ..geometry import cumulative_distances, elevation_gain_loss, validate_geometry
from ..models import Coordinate, ElevationPoint, ElevationProfile, ElevationStats
from ..providers.elevation import (
    ElevationSource,
    OpenElevationSource,
    OpenTopoDataSource,
    TerrainEstimator,
)

__all__ = [
    "ElevationServiceConfig",
    "ElevationService",
    "sample_indices",
    "elevation_stats",
    "clear_elevation_cache",
]

MIN_GRADE_STEP_M = 10.0
MAX_GRADE_PCT = 25.0

_CacheKey = Tuple[Hashable, ...]

# Shared across services; keyed by source name and rounded sample points.
_elevation_cache: TTLCache[_CacheKey, List[float]] = TTLCache(
    maxsize=max(1, ELEVATION_CACHE_SIZE), ttl=max(1, ELEVATION_CACHE_TTL_SECONDS)
)
_elevation_cache_lock = RLock()


def clear_elevation_cache() -> None:
    with _elevation_cache_lock:
        _elevation_cache.clear()


def _cache_key(source: str, points: Sequence[Coordinate]) -> _CacheKey:
    return (source,) + tuple((round(p.lat, 5), round(p.lon, 5)) for p in points)


def sample_indices(count: int, max_points: int = ELEVATION_MAX_SAMPLE_POINTS) -> np.ndarray:
    """Return sorted unique indices, uniform on index, keeping first and last."""

    if count <= 0:
        return np.empty(0, dtype=int)
    if count <= max_points or max_points < 2:
        return np.arange(count)
    indices = np.linspace(0, count - 1, max_points).round().astype(int)
    return np.unique(indices)


def _default_sources() -> Tuple[ElevationSource, ...]:
    return (OpenTopoDataSource(), OpenElevationSource())


@dataclass(slots=True)
class ElevationServiceConfig:
    sources: Sequence[ElevationSource] | None = None
    estimator: TerrainEstimator | None = None
    max_sample_points: int = ELEVATION_MAX_SAMPLE_POINTS
    use_cache: bool = True
    logger: logging.Logger | None = None


class ElevationService:
    def __init__(self, config: ElevationServiceConfig | None = None):
        self.config = config or ElevationServiceConfig()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)
        sources = self.config.sources
        self._sources: Tuple[ElevationSource, ...] = (
            tuple(sources) if sources is not None else _default_sources()
        )
        self._estimator = self.config.estimator or TerrainEstimator()

    def resolve(
        self, geometry: Sequence[Coordinate], context: RequestContext | None = None
    ) -> ElevationProfile:
        """Return one elevation per coordinate of ``geometry``.

        Source failures, deadline expiry and cancellation become warnings on
        the profile and the estimator fills in.

        Raises:
            GeometryValidationError: For fewer than two coordinates.
        """

        validate_geometry(geometry)
        ctx = context or RequestContext()
        count = len(geometry)
        indices = sample_indices(count, self.config.max_sample_points)
        sampled = [geometry[int(i)] for i in indices]
        if len(sampled) < count:
            self._log.debug("Downsampled %d points to %d for elevation lookup", count, len(sampled))

        warnings: List[str] = []
        values: Optional[List[float]] = None
        source_name = self._estimator.name
        for source in self._sources:
            try:
                ctx.check(f"elevation lookup ({source.name})")
                values = self._lookup(source, sampled, ctx)
            except RequestAbortedError as exc:
                message = f"Elevation lookup stopped before {source.name}: {exc}"
                self._log.warning(message)
                warnings.append(message)
                break
            except ProviderError as exc:
                message = f"Elevation source {source.name} failed: {exc}"
                self._log.warning(message)
                warnings.append(message)
                continue
            source_name = source.name
            break

        if values is None:
            self._log.warning(
                "All elevation sources failed; using %s for %d points",
                self._estimator.name,
                len(sampled),
            )
            warnings.append("Elevation estimated from terrain model")
            values = self._estimator.lookup(sampled)

        if len(sampled) < count:
            full = np.interp(np.arange(count), indices, np.asarray(values, dtype=float))
        else:
            full = np.asarray(values, dtype=float)

        points = [
            ElevationPoint(coordinate=coordinate, elevation_m=float(elevation))
            for coordinate, elevation in zip(geometry, full)
        ]
        self._log.info(
            "Resolved elevation for %d points via %s", count, source_name
        )
        return ElevationProfile(
            points=points,
            source=source_name,
            warnings=warnings,
            sampled_count=len(sampled),
        )

    def _lookup(
        self,
        source: ElevationSource,
        sampled: Sequence[Coordinate],
        context: RequestContext,
    ) -> List[float]:
        if not self.config.use_cache:
            return source.lookup(sampled, context)
        key = _cache_key(source.name, sampled)
        with _elevation_cache_lock:
            cached = _elevation_cache.get(key)
        if cached is not None:
            self._log.debug("Elevation cache hit for %s (%d points)", source.name, len(sampled))
            return list(cached)
        values = source.lookup(sampled, context)
        with _elevation_cache_lock:
            _elevation_cache[key] = list(values)
        return values


def elevation_stats(
    profile: ElevationProfile,
    geometry: Sequence[Coordinate] | None = None,
    *,
    threshold_m: float = ELEVATION_SMOOTHING_THRESHOLD_M,
) -> ElevationStats:
    """Summarise gain, loss, range and grades of an elevation profile.

    Grades are only taken over steps longer than 10 m and are capped at
    +/-25 %; ``avg_grade_pct`` is the signed mean of those step grades.
    """

    elevations = profile.elevations
    if len(elevations) < 2:
        raise GeometryValidationError("elevation stats need at least 2 points")
    coords = geometry if geometry is not None else [p.coordinate for p in profile.points]
    if len(coords) != len(elevations):
        raise GeometryValidationError(
            f"geometry has {len(coords)} points but profile has {len(elevations)}"
        )
    gain, loss = elevation_gain_loss(elevations, threshold_m)
    heights = np.asarray(elevations, dtype=float)
    steps = np.diff(np.asarray(cumulative_distances(coords), dtype=float))
    rises = np.diff(heights)
    usable = steps > MIN_GRADE_STEP_M
    if usable.any():
        grades = np.clip(rises[usable] / steps[usable] * 100.0, -MAX_GRADE_PCT, MAX_GRADE_PCT)
        avg_grade = float(grades.mean())
        max_grade = float(np.abs(grades).max())
    else:
        avg_grade = max_grade = 0.0
    return ElevationStats(
        gain_m=gain,
        loss_m=loss,
        min_m=float(heights.min()),
        max_m=float(heights.max()),
        avg_grade_pct=avg_grade,
        max_grade_pct=max_grade,
    )
