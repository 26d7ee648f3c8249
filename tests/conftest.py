"""Global pytest fixtures & helpers.

Adds project root to path and provides geometry factories plus fake HTTP
and provider doubles shared across test modules.
"""
from __future__ import annotations

import json
import math
import os
import sys
from types import SimpleNamespace

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from route_intelligence.models import Coordinate, ProviderRoute
from route_intelligence.providers.elevation import ElevationSource
from route_intelligence.providers.routing import RoutingProvider
from route_intelligence.services.elevation_service import clear_elevation_cache

# On the equator one degree of longitude is exactly R * pi / 180 metres.
METERS_PER_DEG_EQUATOR = 6_371_000.0 * math.pi / 180.0


# --- Factory helpers -------------------------------------------------
def equator_line(count, spacing_m, start_lon=0.0):
    """Points heading due east along the equator, ``spacing_m`` apart."""
    step = spacing_m / METERS_PER_DEG_EQUATOR
    return [Coordinate(lon=start_lon + i * step, lat=0.0) for i in range(count)]


def offset_north(point, meters):
    return Coordinate(lon=point.lon, lat=point.lat + meters / METERS_PER_DEG_EQUATOR)


def make_provider_route(provider="stub", count=12, spacing_m=500.0, confidence=0.8):
    geometry = tuple(equator_line(count, spacing_m))
    return ProviderRoute(
        provider=provider,
        geometry=geometry,
        distance_m=spacing_m * (count - 1),
        duration_s=spacing_m * (count - 1) / 6.0,
        self_reported_confidence=confidence,
    )


class FakeResp:
    """Minimal fake response matching needed parts of requests.Response."""

    def __init__(self, status_code=200, data=None, headers=None, invalid_json=False):
        self.status_code = status_code
        self._data = data if data is not None else {}
        self.headers = headers or {}
        self._invalid_json = invalid_json
        self.url = "https://provider.test"

    def json(self):
        if self._invalid_json:
            raise ValueError("not json")
        return self._data

    @property
    def text(self):
        if self._invalid_json:
            return "<html>gateway</html>"
        return json.dumps(self._data)


class FakeSession:
    """Returns queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []

    def _next(self, method, url, **kwargs):
        self.calls.append(SimpleNamespace(method=method, url=url, **kwargs))
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get(self, url, params=None, timeout=None):
        return self._next("GET", url, params=params, timeout=timeout)

    def post(self, url, params=None, json=None, timeout=None):
        return self._next("POST", url, params=params, json=json, timeout=timeout)


class NoopLimiter:
    def before_request(self, context=None):
        return

    def after_response(self, headers, status_code):
        return False, ""


class FakeClient:
    """Stands in for ProviderClient inside adapter tests."""

    def __init__(self, *payloads):
        self._payloads = list(payloads)
        self.calls = []

    def _next(self):
        item = self._payloads.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def get_json(self, url, params, context, *, request_context=None):
        self.calls.append(SimpleNamespace(method="GET", url=url, params=params, payload=None))
        return self._next()

    def post_json(self, url, payload, context, *, params=None, request_context=None):
        self.calls.append(SimpleNamespace(method="POST", url=url, params=params, payload=payload))
        return self._next()


class StubRoutingProvider(RoutingProvider):
    """Routing provider double that copies the traits of a real adapter."""

    def __init__(self, like, *, route=None, error=None, available=True):
        super().__init__(client=FakeClient())
        for trait in (
            "name",
            "specialization_bonus",
            "self_reported_confidence",
            "honors_low_traffic",
            "honors_bike_infrastructure",
            "gravel_specialist",
        ):
            setattr(self, trait, getattr(like, trait))
        self._route = route
        self._error = error
        self._available = available
        self.calls = []

    def is_available(self):
        return self._available

    def fetch_route(self, request, *, provider_profile=None, context=None):
        self.calls.append(SimpleNamespace(request=request, provider_profile=provider_profile))
        if self._error is not None:
            raise self._error
        return self._route


class StubSource(ElevationSource):
    """Answers with ``fn(point)`` or raises ``error`` for every batch."""

    def __init__(self, name, fn=None, error=None, batch_size=100):
        super().__init__(client=FakeClient())
        self.name = name
        self.batch_size = batch_size
        self._fn = fn
        self._error = error
        self.batches = []

    def _fetch_batch(self, batch, context):
        self.batches.append(list(batch))
        if self._error is not None:
            raise self._error
        return [self._fn(p) for p in batch]


# --- Fixtures --------------------------------------------------------
@pytest.fixture(autouse=True)
def fresh_elevation_cache():
    clear_elevation_cache()
    yield
    clear_elevation_cache()


@pytest.fixture
def line_2km():
    # 41 points, 50 m apart: exactly 2,000 m long.
    return equator_line(41, 50.0)
