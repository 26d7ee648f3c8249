"""Elevation sources: two public lookup APIs and a deterministic estimator."""

from __future__ import annotations

import logging
import math
from typing import Any, List, Mapping, Sequence

from ..config import (
    OPEN_ELEVATION_BATCH_SIZE,
    OPEN_ELEVATION_PACING_SECONDS,
    OPEN_ELEVATION_URL,
    OPENTOPODATA_BATCH_SIZE,
    OPENTOPODATA_URL,
    TERRAIN_BASE_ELEVATION_M,
    TERRAIN_LON_GRADIENT_M_PER_DEG,
    TERRAIN_MAX_ELEVATION_M,
    TERRAIN_MIN_ELEVATION_M,
    TERRAIN_REFERENCE_LAT,
    TERRAIN_REFERENCE_LON,
)
from ..context import RequestContext
from ..errors import ProviderResponseError
from ..models import Coordinate
from .client import ProviderClient

LOGGER = logging.getLogger(__name__)

__all__ = [
    "ElevationSource",
    "OpenTopoDataSource",
    "OpenElevationSource",
    "TerrainEstimator",
]


def _chunks(points: Sequence[Coordinate], size: int) -> List[Sequence[Coordinate]]:
    size = max(1, size)
    return [points[i : i + size] for i in range(0, len(points), size)]


class ElevationSource:
    """A network elevation lookup that succeeds or fails for the whole set."""

    name = "elevation"
    batch_size = 100
    pacing_seconds = 0.0

    def __init__(self, client: ProviderClient | None = None) -> None:
        self._client = client or ProviderClient(self.name)

    def lookup(
        self, points: Sequence[Coordinate], context: RequestContext | None = None
    ) -> List[float]:
        ctx = context or RequestContext()
        batches = _chunks(points, self.batch_size)
        elevations: List[float] = []
        for index, batch in enumerate(batches):
            if index > 0 and self.pacing_seconds > 0:
                ctx.wait(self.pacing_seconds)
            ctx.check(f"{self.name} batch {index + 1}")
            values = self._fetch_batch(batch, ctx)
            if len(values) != len(batch):
                raise ProviderResponseError(
                    f"{self.name} returned {len(values)} elevations for {len(batch)} points",
                    provider=self.name,
                )
            elevations.extend(values)
            LOGGER.debug(
                "%s batch %d/%d resolved %d points",
                self.name,
                index + 1,
                len(batches),
                len(batch),
            )
        return elevations

    def _fetch_batch(
        self, batch: Sequence[Coordinate], context: RequestContext
    ) -> List[float]:  # pragma: no cover - abstract
        raise NotImplementedError

    def _coerce(self, raw: Any, position: int) -> float:
        if raw is None or isinstance(raw, bool):
            raise ProviderResponseError(
                f"{self.name} has no elevation for point {position}", provider=self.name
            )
        try:
            value = float(raw)
        except (TypeError, ValueError) as exc:
            raise ProviderResponseError(
                f"{self.name} returned non-numeric elevation {raw!r}", provider=self.name
            ) from exc
        if not math.isfinite(value):
            raise ProviderResponseError(
                f"{self.name} returned non-finite elevation", provider=self.name
            )
        return value


class OpenTopoDataSource(ElevationSource):
    """OpenTopoData SRTM 30 m dataset (``GET``, up to 100 points per call)."""

    name = "opentopodata"

    def __init__(
        self,
        client: ProviderClient | None = None,
        *,
        url: str = OPENTOPODATA_URL,
        batch_size: int = OPENTOPODATA_BATCH_SIZE,
    ) -> None:
        super().__init__(client)
        self._url = url
        self.batch_size = batch_size

    def _fetch_batch(self, batch, context):
        locations = "|".join(f"{p.lat},{p.lon}" for p in batch)
        payload = self._client.get_json(
            self._url,
            {"locations": locations},
            "OpenTopoData lookup",
            request_context=context,
        )
        if not isinstance(payload, Mapping) or payload.get("status") != "OK":
            status = payload.get("status") if isinstance(payload, Mapping) else None
            raise ProviderResponseError(
                f"{self.name} status {status!r}", provider=self.name
            )
        results = payload.get("results")
        if not isinstance(results, list):
            raise ProviderResponseError(f"{self.name} has no results", provider=self.name)
        return [
            self._coerce(item.get("elevation") if isinstance(item, Mapping) else None, i)
            for i, item in enumerate(results)
        ]


class OpenElevationSource(ElevationSource):
    """Open-Elevation (``POST``), smaller batches paced between calls."""

    name = "open_elevation"

    def __init__(
        self,
        client: ProviderClient | None = None,
        *,
        url: str = OPEN_ELEVATION_URL,
        batch_size: int = OPEN_ELEVATION_BATCH_SIZE,
        pacing_seconds: float = OPEN_ELEVATION_PACING_SECONDS,
    ) -> None:
        super().__init__(client)
        self._url = url
        self.batch_size = batch_size
        self.pacing_seconds = pacing_seconds

    def _fetch_batch(self, batch, context):
        body = {"locations": [{"latitude": p.lat, "longitude": p.lon} for p in batch]}
        payload = self._client.post_json(
            self._url, body, "Open-Elevation lookup", request_context=context
        )
        results = payload.get("results") if isinstance(payload, Mapping) else None
        if not isinstance(results, list):
            raise ProviderResponseError(f"{self.name} has no results", provider=self.name)
        return [
            self._coerce(item.get("elevation") if isinstance(item, Mapping) else None, i)
            for i, item in enumerate(results)
        ]


# Northern half of the default region sits slightly higher.
_NORTH_STEP_LAT_OFFSET = 0.3
_NORTH_STEP_M = 50.0
_NORTH_SOUTH_AMPLITUDE_M = 30.0
_ROLLING_AMPLITUDE_M = 15.0


class TerrainEstimator:
    """Smooth deterministic elevation model bounded to a deployment region.

    Used only when every network source has failed. The defaults describe
    the Colorado Front Range: a base height at the reference point, rising
    westward toward the foothills, with gentle north/south and rolling
    variation, clamped to the region's realistic range.
    """

    name = "terrain_estimator"

    def __init__(
        self,
        *,
        base_m: float = TERRAIN_BASE_ELEVATION_M,
        reference_lat: float = TERRAIN_REFERENCE_LAT,
        reference_lon: float = TERRAIN_REFERENCE_LON,
        lon_gradient_m_per_deg: float = TERRAIN_LON_GRADIENT_M_PER_DEG,
        min_m: float = TERRAIN_MIN_ELEVATION_M,
        max_m: float = TERRAIN_MAX_ELEVATION_M,
    ) -> None:
        self.base_m = base_m
        self.reference_lat = reference_lat
        self.reference_lon = reference_lon
        self.lon_gradient_m_per_deg = lon_gradient_m_per_deg
        self.min_m = min_m
        self.max_m = max_m

    def estimate_point(self, point: Coordinate) -> float:
        lat, lon = point.lat, point.lon
        value = self.base_m + (lon - self.reference_lon) * self.lon_gradient_m_per_deg
        if lat > self.reference_lat + _NORTH_STEP_LAT_OFFSET:
            value += _NORTH_STEP_M
        value += math.sin((lat - self.reference_lat) * 10.0) * _NORTH_SOUTH_AMPLITUDE_M
        value += math.sin(lat * 200.0) * math.cos(lon * 200.0) * _ROLLING_AMPLITUDE_M
        return max(self.min_m, min(self.max_m, value))

    def lookup(
        self, points: Sequence[Coordinate], context: RequestContext | None = None
    ) -> List[float]:
        return [self.estimate_point(point) for point in points]
