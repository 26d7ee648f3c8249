import math

import pytest

from conftest import METERS_PER_DEG_EQUATOR, FakeClient, StubSource, equator_line
from route_intelligence.context import RequestContext
from route_intelligence.errors import GeometryValidationError, ProviderError, ProviderResponseError
from route_intelligence.models import Coordinate, ElevationPoint, ElevationProfile
from route_intelligence.providers.elevation import (
    OpenElevationSource,
    OpenTopoDataSource,
    TerrainEstimator,
)
from route_intelligence.services.elevation_service import (
    ElevationService,
    ElevationServiceConfig,
    elevation_stats,
    sample_indices,
)


def _front_range_route(count):
    return [Coordinate(lon=-105.2 + i * 0.001, lat=39.6 + i * 0.0005) for i in range(count)]


def _service(*sources, **config):
    return ElevationService(ElevationServiceConfig(sources=list(sources), **config))


def test_all_sources_failing_uses_bounded_estimate(caplog):
    route = _front_range_route(60)
    service = _service(
        StubSource("primary", error=ProviderError("down")),
        StubSource("secondary", error=ProviderError("down")),
    )
    with caplog.at_level("WARNING"):
        profile = service.resolve(route)

    assert profile.source == "terrain_estimator"
    assert len(profile.points) == len(route)
    for value in profile.elevations:
        assert math.isfinite(value)
        assert 1500.0 <= value <= 2600.0
    assert "Elevation estimated from terrain model" in profile.warnings
    assert any("All elevation sources failed" in r.getMessage() for r in caplog.records)


def test_long_routes_are_downsampled_and_interpolated():
    route = equator_line(450, 20.0)
    # Elevation is linear in longitude so interpolation is exact.
    source = StubSource("linear", fn=lambda p: 100.0 + p.lon * 10_000.0, batch_size=500)
    profile = _service(source).resolve(route)

    sampled = source.batches[0]
    assert len(sampled) == 200
    assert sampled[0] == route[0]
    assert sampled[-1] == route[-1]
    assert profile.sampled_count == 200
    assert profile.source == "linear"
    for point in profile.points:
        assert point.elevation_m == pytest.approx(100.0 + point.coordinate.lon * 10_000.0, abs=1e-6)


def test_sample_indices_keeps_ends_and_is_sorted():
    indices = list(sample_indices(1000, 7))
    assert indices[0] == 0
    assert indices[-1] == 999
    assert indices == sorted(set(indices))
    assert list(sample_indices(5, 200)) == [0, 1, 2, 3, 4]


def test_secondary_source_used_when_primary_fails():
    route = equator_line(10, 100.0)
    primary = StubSource("primary", error=ProviderError("timeout"))
    secondary = StubSource("secondary", fn=lambda p: 42.0)
    profile = _service(primary, secondary).resolve(route)
    assert profile.source == "secondary"
    assert profile.elevations == [42.0] * 10
    assert any("primary" in w for w in profile.warnings)


def test_cancelled_context_skips_network_sources():
    route = _front_range_route(12)
    source = StubSource("primary", fn=lambda p: 1.0)
    context = RequestContext()
    context.cancel()
    profile = _service(source).resolve(route, context)
    assert source.batches == []
    assert profile.source == "terrain_estimator"
    assert len(profile.elevations) == 12


def test_successful_lookup_is_cached():
    route = equator_line(10, 100.0)
    source = StubSource("primary", fn=lambda p: 7.0)
    service = _service(source)
    service.resolve(route)
    service.resolve(route)
    assert len(source.batches) == 1

    uncached = _service(source, use_cache=False)
    uncached.resolve(route)
    assert len(source.batches) == 2


def test_invalid_geometry_is_rejected():
    with pytest.raises(GeometryValidationError):
        _service().resolve([Coordinate(0.0, 0.0)])


def test_opentopodata_batches_and_formats_locations():
    points = equator_line(250, 10.0)
    payloads = [
        {"status": "OK", "results": [{"elevation": 5.0}] * size}
        for size in (100, 100, 50)
    ]
    client = FakeClient(*payloads)
    values = OpenTopoDataSource(client, url="https://topo.test").lookup(points)

    assert len(client.calls) == 3
    assert len(values) == 250
    first = client.calls[0].params["locations"].split("|")
    assert len(first) == 100
    assert first[0] == f"{points[0].lat},{points[0].lon}"


def test_opentopodata_null_elevation_fails_the_source():
    client = FakeClient({"status": "OK", "results": [{"elevation": 5.0}, {"elevation": None}]})
    with pytest.raises(ProviderResponseError):
        OpenTopoDataSource(client).lookup(equator_line(2, 10.0))


def test_opentopodata_wrong_count_fails_the_source():
    client = FakeClient({"status": "OK", "results": [{"elevation": 5.0}]})
    with pytest.raises(ProviderResponseError):
        OpenTopoDataSource(client).lookup(equator_line(2, 10.0))


def test_open_elevation_posts_latitude_longitude_objects():
    points = [Coordinate(lon=-105.0, lat=39.7), Coordinate(lon=-105.1, lat=39.8)]
    client = FakeClient({"results": [{"elevation": 1609}, {"elevation": 1700.5}]})
    source = OpenElevationSource(client, url="https://oe.test", pacing_seconds=0.0)
    assert source.lookup(points) == [1609.0, 1700.5]
    call = client.calls[0]
    assert call.method == "POST"
    assert call.payload == {
        "locations": [
            {"latitude": 39.7, "longitude": -105.0},
            {"latitude": 39.8, "longitude": -105.1},
        ]
    }


def test_terrain_estimator_is_deterministic_and_clamped():
    estimator = TerrainEstimator()
    west = Coordinate(lon=-110.0, lat=39.7)
    east = Coordinate(lon=-100.0, lat=39.7)
    assert estimator.estimate_point(west) == 2600.0
    assert estimator.estimate_point(east) == 1500.0
    foothills = Coordinate(lon=-105.3, lat=39.75)
    plains = Coordinate(lon=-104.8, lat=39.75)
    assert estimator.estimate_point(foothills) > estimator.estimate_point(plains)
    assert estimator.lookup([foothills]) == [estimator.estimate_point(foothills)]


def test_elevation_stats_gain_loss_and_grades():
    route = equator_line(4, 100.0)
    profile = ElevationProfile(
        points=[
            ElevationPoint(coordinate=c, elevation_m=e)
            for c, e in zip(route, [100.0, 110.0, 110.0, 105.0])
        ],
        source="test",
    )
    stats = elevation_stats(profile)
    assert stats.gain_m == pytest.approx(10.0)
    assert stats.loss_m == pytest.approx(5.0)
    assert stats.min_m == 100.0
    assert stats.max_m == 110.0
    assert stats.avg_grade_pct == pytest.approx(5.0 / 3.0)
    assert stats.max_grade_pct == pytest.approx(10.0)


def test_elevation_stats_caps_grade_and_skips_short_steps():
    route = equator_line(3, 5.0)
    route.append(Coordinate(lon=route[2].lon + 100.0 / METERS_PER_DEG_EQUATOR, lat=0.0))
    profile = ElevationProfile(
        points=[
            ElevationPoint(coordinate=c, elevation_m=e)
            for c, e in zip(route, [0.0, 2.0, 4.0, 104.0])
        ],
        source="test",
    )
    stats = elevation_stats(profile)
    # Only the 100 m step counts and its 100 % grade is capped.
    assert stats.max_grade_pct == pytest.approx(25.0)
    assert stats.avg_grade_pct == pytest.approx(25.0)
