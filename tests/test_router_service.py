import pytest

from conftest import StubRoutingProvider, equator_line, make_provider_route
from route_intelligence.context import RequestContext
from route_intelligence.errors import (
    DeadlineExceededError,
    ProviderError,
    ProviderHTTPError,
    RouteValidationError,
)
from route_intelligence.models import RoutedResult, RoutePreferences, RoutingFailure
from route_intelligence.providers.routing import (
    BRouterProvider,
    MapboxProvider,
    StadiaMapsProvider,
)
from route_intelligence.services.router_service import (
    RURAL_FALLBACK_WARNING,
    AttemptSpec,
    RouterService,
    RouterServiceConfig,
    describe_routing_strategy,
    provider_label,
    select_brouter_profile,
)

WAYPOINTS = equator_line(3, 2500.0)


def _service(stadia=None, brouter=None, mapbox=None, **config):
    providers = [
        stadia or StubRoutingProvider(StadiaMapsProvider, route=make_provider_route("stadia_maps", confidence=1.0)),
        brouter or StubRoutingProvider(BRouterProvider, route=make_provider_route("brouter", confidence=0.9)),
        mapbox or StubRoutingProvider(MapboxProvider, route=make_provider_route("mapbox", confidence=0.8)),
    ]
    return RouterService(RouterServiceConfig(providers=providers, **config)), providers


def test_road_uses_stadia_first():
    service, (stadia, _, mapbox) = _service()
    result = service.route(WAYPOINTS, "road")
    assert isinstance(result, RoutedResult)
    assert result.provider == "stadia_maps"
    assert result.is_fallback is False
    assert result.confidence == pytest.approx(1.0)
    assert result.provider_confidence == 1.0
    assert len(stadia.calls) == 1
    assert mapbox.calls == []


def test_fallback_confidence_is_below_standalone():
    failing = StubRoutingProvider(StadiaMapsProvider, error=ProviderHTTPError("boom", status=500))
    no_brouter = StubRoutingProvider(BRouterProvider, error=ProviderError("down"))
    service, (_, _, mapbox) = _service(stadia=failing, brouter=no_brouter)
    result = service.route(WAYPOINTS, "road")
    assert result.provider == "mapbox_optimized"
    assert result.is_fallback is True
    assert result.geometry == mapbox._route.geometry
    assert result.confidence == pytest.approx(0.6)

    standalone_plan = {"default": (AttemptSpec("mapbox", "mapbox_optimized", provider_profile="cycling"),)}
    standalone, _ = _service(plans=standalone_plan)
    alone = standalone.route(WAYPOINTS, "road")
    assert alone.confidence == pytest.approx(0.7)
    assert result.confidence < alone.confidence


def test_too_short_primary_result_falls_through():
    short = StubRoutingProvider(StadiaMapsProvider, route=make_provider_route("stadia_maps", count=5))
    service, _ = _service(stadia=short)
    result = service.route(WAYPOINTS, "commuting")
    assert result.provider == "brouter"


def test_all_providers_failing_returns_terminal_failure(caplog):
    service, _ = _service(
        stadia=StubRoutingProvider(StadiaMapsProvider, error=ProviderError("down")),
        brouter=StubRoutingProvider(BRouterProvider, error=ProviderError("down")),
        mapbox=StubRoutingProvider(MapboxProvider, error=ProviderError("down")),
    )
    with caplog.at_level("WARNING"):
        result = service.route(WAYPOINTS, "road")
    assert isinstance(result, RoutingFailure)
    assert [a.outcome for a in result.attempts] == ["failed", "failed", "failed"]
    assert result.aborted is False
    assert "try a different area" in result.message
    assert any("All routing providers failed" in r.getMessage() for r in caplog.records)


def test_gravel_falls_back_to_mapbox_with_rural_warning():
    brouter = StubRoutingProvider(BRouterProvider, error=ProviderError("no coverage"))
    service, (stadia, _, mapbox) = _service(brouter=brouter)
    result = service.route(WAYPOINTS, "gravel")

    assert len(brouter.calls) == 1
    assert brouter.calls[0].provider_profile == "gravel"
    assert stadia.calls == []
    assert mapbox.calls[0].provider_profile == "cycling"
    assert result.provider == "mapbox_gravel_fallback"
    assert RURAL_FALLBACK_WARNING in result.warnings
    assert result.is_fallback is True
    assert describe_routing_strategy(result) == "Using available roads in rural area"


def test_gravel_specialist_scores_full_confidence():
    service, (stadia, _, _) = _service()
    result = service.route(WAYPOINTS, "gravel")
    assert result.provider == "brouter_gravel"
    assert result.confidence == pytest.approx(1.0)
    assert stadia.calls == []


def test_preferences_only_reward_providers_that_honor_them():
    prefs = RoutePreferences(traffic_tolerance="low", bike_infrastructure="required")
    plan = {"default": (AttemptSpec("mapbox", "mapbox_optimized", provider_profile="cycling"),)}
    service, _ = _service(plans=plan)
    assert service.route(WAYPOINTS, "road", prefs).confidence == pytest.approx(0.7)


def test_unconfigured_provider_is_skipped():
    service, (stadia, _, _) = _service(
        stadia=StubRoutingProvider(StadiaMapsProvider, available=False)
    )
    result = service.route(WAYPOINTS, "road")
    assert result.provider == "brouter"
    assert stadia.calls == []


def test_abort_stops_the_plan():
    aborting = StubRoutingProvider(StadiaMapsProvider, error=DeadlineExceededError("budget"))
    service, (_, brouter, mapbox) = _service(stadia=aborting)
    result = service.route(WAYPOINTS, "road")
    assert isinstance(result, RoutingFailure)
    assert result.aborted is True
    assert brouter.calls == []
    assert mapbox.calls == []


def test_cancelled_context_never_calls_providers():
    service, (stadia, _, mapbox) = _service()
    context = RequestContext()
    context.cancel()
    result = service.route(WAYPOINTS, "road", context=context)
    assert isinstance(result, RoutingFailure)
    assert result.aborted is True
    assert stadia.calls == [] and mapbox.calls == []


def test_invalid_input_is_rejected():
    service, _ = _service()
    with pytest.raises(RouteValidationError):
        service.route(WAYPOINTS, "hovercraft")
    with pytest.raises(RouteValidationError):
        service.route(WAYPOINTS[:1], "road")


def test_provider_labels_and_strategy_text():
    assert provider_label("stadia_maps") == "Stadia Maps (Valhalla)"
    assert provider_label("mapbox_gravel_fallback") == "Mapbox"
    assert provider_label("custom") == "custom"
    assert describe_routing_strategy(None) == "No route available"


@pytest.mark.parametrize(
    "goal, expected",
    [
        ("recovery", "safety"),
        ("intervals", "fastbike"),
        ("tempo", "fastbike"),
        ("endurance", "trekking"),
        (None, "trekking"),
    ],
)
def test_brouter_backs_up_stadia_with_goal_profile(goal, expected):
    failing = StubRoutingProvider(StadiaMapsProvider, error=ProviderError("down"))
    service, (_, brouter, mapbox) = _service(stadia=failing)
    result = service.route(WAYPOINTS, "road", training_goal=goal)

    assert select_brouter_profile(goal) == expected
    assert brouter.calls[0].provider_profile == expected
    assert result.provider == "brouter"
    assert result.is_fallback is True
    assert result.confidence == pytest.approx(0.9)
    assert mapbox.calls == []


def test_mountain_routes_lead_with_brouter_mtb():
    service, (stadia, brouter, _) = _service()
    result = service.route(WAYPOINTS, "mountain")
    assert brouter.calls[0].provider_profile == "mtb"
    assert stadia.calls == []
    assert result.provider == "brouter_mtb"
    assert result.is_fallback is False
    assert provider_label("brouter_mtb") == "BRouter"


def test_mountain_falls_back_to_stadia_then_mapbox():
    brouter = StubRoutingProvider(BRouterProvider, error=ProviderError("no coverage"))
    service, (stadia, _, mapbox) = _service(brouter=brouter)
    result = service.route(WAYPOINTS, "mountain")
    assert result.provider == "stadia_maps"
    assert result.is_fallback is True
    assert stadia.calls[0].provider_profile is None
    assert mapbox.calls == []
