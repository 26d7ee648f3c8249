"""Routing provider adapters.

Each adapter turns a :class:`~route_intelligence.models.RouteRequest` into
its provider's request shape and parses the loosely-shaped JSON reply into a
:class:`~route_intelligence.models.ProviderRoute`. The router only reads the
class-level traits declared here, never provider payload fields.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from polyline import decode as polyline_decode

from ..config import (
    BROUTER_BASE_URL,
    MAPBOX_ACCESS_TOKEN,
    MAPBOX_DIRECTIONS_URL,
    STADIA_API_KEY,
    STADIA_ENABLED,
    STADIA_ROUTE_URL,
)
from ..context import RequestContext
from ..errors import ProviderResponseError, ProviderUnavailableError
from ..geometry import elevation_gain_loss, from_lonlat_pairs
from ..models import Coordinate, ProviderRoute, RouteRequest
from .client import ProviderClient

LOGGER = logging.getLogger(__name__)

__all__ = [
    "RoutingProvider",
    "StadiaMapsProvider",
    "BRouterProvider",
    "MapboxProvider",
    "STADIA_PROFILE_COSTING",
    "default_providers",
]


class RoutingProvider:
    """Base adapter: traits plus the request/parse template."""

    name = "provider"
    # Cycling specialisation bonus added to the confidence score (<= 0.25).
    specialization_bonus = 0.0
    self_reported_confidence = 0.0
    honors_low_traffic = False
    honors_bike_infrastructure = False
    gravel_specialist = False

    def __init__(self, client: ProviderClient | None = None) -> None:
        self._client = client or ProviderClient(self.name)

    def is_available(self) -> bool:
        return True

    def fetch_route(
        self,
        request: RouteRequest,
        *,
        provider_profile: Optional[str] = None,
        context: RequestContext | None = None,
    ) -> ProviderRoute:
        if not self.is_available():
            raise ProviderUnavailableError(
                f"{self.name} is not configured", provider=self.name
            )
        payload = self._call(request, provider_profile, context)
        try:
            route = self.parse(payload, provider_profile=provider_profile)
        except (ValueError, TypeError, KeyError, IndexError, AttributeError) as exc:
            raise self._malformed(str(exc) or exc.__class__.__name__) from exc
        LOGGER.debug(
            "%s returned %d points, %.0f m", self.name, len(route.geometry), route.distance_m
        )
        return route

    def _call(
        self,
        request: RouteRequest,
        provider_profile: Optional[str],
        context: RequestContext | None,
    ) -> Any:  # pragma: no cover - abstract
        raise NotImplementedError

    def parse(
        self, payload: Any, *, provider_profile: Optional[str] = None
    ) -> ProviderRoute:  # pragma: no cover - abstract
        raise NotImplementedError

    def _malformed(self, detail: str) -> ProviderResponseError:
        return ProviderResponseError(
            f"{self.name} response malformed: {detail}", provider=self.name
        )


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


# Valhalla bicycle costing per route profile.
STADIA_PROFILE_COSTING: Mapping[str, Mapping[str, Any]] = {
    "road": {
        "bicycle_type": "road",
        "use_roads": 0.3,
        "use_hills": 0.5,
        "cycling_speed": 25,
        "avoid_bad_surfaces": 0.8,
    },
    "gravel": {
        "bicycle_type": "cross",
        "use_roads": 0.1,
        "use_hills": 0.6,
        "cycling_speed": 20,
        "avoid_bad_surfaces": 0.2,
    },
    "mountain": {
        "bicycle_type": "mountain",
        "use_roads": 0.1,
        "use_hills": 0.8,
        "cycling_speed": 16,
        "avoid_bad_surfaces": 0,
    },
    "commuting": {
        "bicycle_type": "hybrid",
        "use_roads": 0,
        "use_hills": 0.3,
        "cycling_speed": 18,
        "avoid_bad_surfaces": 0.6,
        "use_living_streets": 0.8,
    },
}


class StadiaMapsProvider(RoutingProvider):
    """Stadia Maps hosted Valhalla with bicycle costing."""

    name = "stadia_maps"
    specialization_bonus = 0.25
    self_reported_confidence = 1.0
    honors_low_traffic = True
    honors_bike_infrastructure = True

    def __init__(
        self,
        client: ProviderClient | None = None,
        *,
        api_key: str | None = None,
        url: str = STADIA_ROUTE_URL,
        enabled: bool = STADIA_ENABLED,
    ) -> None:
        super().__init__(client)
        self._api_key = STADIA_API_KEY if api_key is None else api_key
        self._url = url
        self._enabled = enabled

    def is_available(self) -> bool:
        return self._enabled and bool(self._api_key)

    def build_costing(self, request: RouteRequest) -> Dict[str, Any]:
        profile = request.profile if request.profile in STADIA_PROFILE_COSTING else "road"
        bicycle = dict(STADIA_PROFILE_COSTING[profile])
        prefs = request.preferences
        if prefs.cycling_speed_kmh and prefs.cycling_speed_kmh > 0:
            bicycle["cycling_speed"] = prefs.cycling_speed_kmh
        if prefs.traffic_tolerance == "low":
            bicycle["use_roads"] = 0
        elif prefs.traffic_tolerance == "medium":
            bicycle["use_roads"] = 0.2
        if prefs.avoid_hills:
            bicycle["use_hills"] = 0.1
        if request.training_goal == "recovery":
            bicycle["use_hills"] = min(bicycle["use_hills"], 0.2)
            bicycle["use_roads"] = 0
        return bicycle

    def _call(self, request, provider_profile, context):
        body = {
            "locations": [
                {"lat": point.lat, "lon": point.lon, "type": "break"}
                for point in request.waypoints
            ],
            "costing": "bicycle",
            "costing_options": {"bicycle": self.build_costing(request)},
            "units": "kilometers",
        }
        return self._client.post_json(
            self._url,
            body,
            "Valhalla route",
            params={"api_key": self._api_key},
            request_context=context,
        )

    def parse(self, payload, *, provider_profile=None):
        if not isinstance(payload, Mapping):
            raise self._malformed("expected an object")
        trip = payload.get("trip")
        legs = trip.get("legs") if isinstance(trip, Mapping) else None
        if not legs:
            raise self._malformed("no trip legs")
        points: List[Coordinate] = []
        distance_m = 0.0
        duration_s = 0.0
        for index, leg in enumerate(legs):
            shape = leg.get("shape") if isinstance(leg, Mapping) else None
            if not isinstance(shape, str):
                raise self._malformed(f"leg {index} has no shape")
            decoded = polyline_decode(shape, 6)
            # Consecutive legs share their joining point.
            if index > 0:
                decoded = decoded[1:]
            points.extend(Coordinate(lon=float(lon), lat=float(lat)) for lat, lon in decoded)
            summary = leg.get("summary") or {}
            distance_m += _as_float(summary.get("length")) * 1000.0
            duration_s += _as_float(summary.get("time"))
        return ProviderRoute(
            provider=self.name,
            geometry=tuple(points),
            distance_m=distance_m,
            duration_s=duration_s,
            self_reported_confidence=self.self_reported_confidence,
            provider_profile=provider_profile,
        )


class BRouterProvider(RoutingProvider):
    """BRouter public instance, optimised for unpaved surfaces."""

    name = "brouter"
    specialization_bonus = 0.20
    self_reported_confidence = 0.9
    gravel_specialist = True

    def __init__(
        self, client: ProviderClient | None = None, *, base_url: str = BROUTER_BASE_URL
    ) -> None:
        super().__init__(client)
        self._base_url = base_url

    def _call(self, request, provider_profile, context):
        lonlats = "|".join(f"{p.lon},{p.lat}" for p in request.waypoints)
        params = {
            "lonlats": lonlats,
            "profile": provider_profile or "trekking",
            "alternativeidx": 0,
            "format": "geojson",
        }
        return self._client.get_json(
            self._base_url, params, "BRouter route", request_context=context
        )

    def parse(self, payload, *, provider_profile=None):
        if not isinstance(payload, Mapping):
            raise self._malformed("expected a GeoJSON object")
        features = payload.get("features")
        if not features or not isinstance(features[0], Mapping):
            raise self._malformed("no features")
        feature = features[0]
        coords = (feature.get("geometry") or {}).get("coordinates")
        if not isinstance(coords, Sequence) or not coords:
            raise self._malformed("feature has no coordinates")
        points = from_lonlat_pairs(coords)
        props = feature.get("properties") or {}
        elevations = [p.elevation for p in points if p.elevation is not None]
        ascend = props.get("filtered ascend")
        gain = _as_float(ascend)
        loss = 0.0
        if len(elevations) > 1:
            if ascend is None:
                gain, loss = elevation_gain_loss(elevations)
            else:
                # Descent over the same filtered profile: ascent minus net climb.
                loss = max(0.0, gain - (elevations[-1] - elevations[0]))
        return ProviderRoute(
            provider=self.name,
            geometry=points,
            distance_m=_as_float(props.get("track-length")),
            duration_s=_as_float(props.get("total-time")),
            elevation_gain_m=gain,
            elevation_loss_m=loss,
            self_reported_confidence=self.self_reported_confidence,
            provider_profile=provider_profile,
        )


class MapboxProvider(RoutingProvider):
    """Mapbox Directions, the general-purpose fallback."""

    name = "mapbox"
    self_reported_confidence = 0.8

    def __init__(
        self,
        client: ProviderClient | None = None,
        *,
        access_token: str | None = None,
        url: str = MAPBOX_DIRECTIONS_URL,
    ) -> None:
        super().__init__(client)
        self._token = MAPBOX_ACCESS_TOKEN if access_token is None else access_token
        self._url = url.rstrip("/")

    def is_available(self) -> bool:
        return bool(self._token)

    def _call(self, request, provider_profile, context):
        path = ";".join(f"{p.lon},{p.lat}" for p in request.waypoints)
        url = f"{self._url}/{provider_profile or 'cycling'}/{path}"
        params = {
            "geometries": "geojson",
            "overview": "full",
            "access_token": self._token,
        }
        return self._client.get_json(
            url, params, "Mapbox directions", request_context=context
        )

    def parse(self, payload, *, provider_profile=None):
        if not isinstance(payload, Mapping):
            raise self._malformed("expected an object")
        code = payload.get("code")
        if code is not None and code != "Ok":
            raise self._malformed(f"code {code}")
        routes = payload.get("routes")
        if not routes or not isinstance(routes[0], Mapping):
            raise self._malformed("no routes")
        best = routes[0]
        coords = (best.get("geometry") or {}).get("coordinates")
        if not isinstance(coords, Sequence) or not coords:
            raise self._malformed("route has no coordinates")
        return ProviderRoute(
            provider=self.name,
            geometry=from_lonlat_pairs(coords),
            distance_m=_as_float(best.get("distance")),
            duration_s=_as_float(best.get("duration")),
            self_reported_confidence=self.self_reported_confidence,
            provider_profile=provider_profile,
        )


def default_providers() -> Tuple[RoutingProvider, ...]:
    return (StadiaMapsProvider(), BRouterProvider(), MapboxProvider())
