"""Waypoint routing across several providers with ordered fallback.

Provider priority lives in :data:`ROUTING_PLANS` as plain data. One fallback
runner walks the plan for the requested profile, accepts the first result
with enough geometry and scores it. Scores are informational: a low score
never triggers another attempt, only a hard failure does.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from ..config import (
    ROUTER_FALLBACK_PENALTY,
    ROUTER_MIN_ROUTE_POINTS,
    ROUTER_REASONABLE_MAX_M,
    ROUTER_REASONABLE_MIN_M,
)
from ..context import RequestContext
from ..errors import ProviderError, RequestAbortedError, RouteValidationError
from ..geometry import total_distance, validate_geometry
from ..models import (
    AttemptRecord,
    Coordinate,
    ProviderRoute,
    RoutedResult,
    RoutePreferences,
    RouteRequest,
    RoutingFailure,
)
from ..providers.routing import RoutingProvider, default_providers

PROFILES = ("road", "gravel", "mountain", "commuting")

RURAL_FALLBACK_WARNING = "Rural area, no dedicated path: routed on available roads"
GRAVEL_COVERAGE_WARNING = "Gravel routing coverage unavailable for this area"

__all__ = [
    "PROFILES",
    "RURAL_FALLBACK_WARNING",
    "AttemptSpec",
    "BROUTER_GOAL_PROFILES",
    "select_brouter_profile",
    "ROUTING_PLANS",
    "RouterServiceConfig",
    "RouterService",
    "score_route",
    "describe_routing_strategy",
    "provider_label",
]


# BRouter profile per training goal when it backs up the paved-road provider.
BROUTER_GOAL_PROFILES: Mapping[str, str] = {
    "recovery": "safety",
    "intervals": "fastbike",
    "tempo": "fastbike",
    "endurance": "trekking",
}


def select_brouter_profile(training_goal: str | None) -> str:
    """Quietest roads for recovery, fast smooth roads for hard efforts."""

    return BROUTER_GOAL_PROFILES.get(training_goal or "", "trekking")


@dataclass(frozen=True, slots=True)
class AttemptSpec:
    """One step of a routing plan.

    ``profile_for`` picks the provider profile from the training goal and
    takes precedence over the fixed ``provider_profile``.
    """

    provider: str
    tag: str
    provider_profile: Optional[str] = None
    fallback: bool = False
    warnings: Tuple[str, ...] = ()
    profile_for: Optional[Callable[[Optional[str]], str]] = None

    def resolve_profile(self, training_goal: str | None) -> Optional[str]:
        if self.profile_for is not None:
            return self.profile_for(training_goal)
        return self.provider_profile


ROUTING_PLANS: Mapping[str, Tuple[AttemptSpec, ...]] = {
    "gravel": (
        AttemptSpec("brouter", "brouter_gravel", provider_profile="gravel"),
        AttemptSpec(
            "mapbox",
            "mapbox_gravel_fallback",
            provider_profile="cycling",
            fallback=True,
            warnings=(GRAVEL_COVERAGE_WARNING, RURAL_FALLBACK_WARNING),
        ),
    ),
    "mountain": (
        AttemptSpec("brouter", "brouter_mtb", provider_profile="mtb"),
        AttemptSpec("stadia_maps", "stadia_maps", fallback=True),
        AttemptSpec(
            "mapbox", "mapbox_optimized", provider_profile="cycling", fallback=True
        ),
    ),
    "default": (
        AttemptSpec("stadia_maps", "stadia_maps"),
        AttemptSpec(
            "brouter", "brouter", profile_for=select_brouter_profile, fallback=True
        ),
        AttemptSpec(
            "mapbox", "mapbox_optimized", provider_profile="cycling", fallback=True
        ),
    ),
}

_STRATEGY_DESCRIPTIONS = {
    "stadia_maps": "Powered by Valhalla routing engine, optimized for bike paths and cycling infrastructure",
    "brouter": "BRouter cycling profile matched to the training goal",
    "brouter_gravel": "Optimized for gravel riding with unpaved surface preference",
    "brouter_mtb": "Mountain bike profile favouring trails and singletrack",
    "mapbox_optimized": "Enhanced routing with traffic filtering",
    "mapbox_gravel_fallback": "Using available roads in rural area",
}

_PROVIDER_LABELS = {
    "stadia_maps": "Stadia Maps (Valhalla)",
    "brouter": "BRouter",
    "brouter_gravel": "BRouter",
    "brouter_mtb": "BRouter",
    "mapbox": "Mapbox",
    "mapbox_optimized": "Mapbox",
    "mapbox_gravel_fallback": "Mapbox",
}


def describe_routing_strategy(result: RoutedResult | RoutingFailure | None) -> str:
    """Human-readable summary of how a route was produced."""

    if result is None or isinstance(result, RoutingFailure):
        return "No route available"
    if result.profile == "gravel" and not result.is_fallback:
        return "Prioritized dirt roads, trails, and unpaved surfaces"
    return _STRATEGY_DESCRIPTIONS.get(result.provider, "Standard routing")


def provider_label(tag: str) -> str:
    return _PROVIDER_LABELS.get(tag, tag)


def score_route(
    route: ProviderRoute,
    provider: RoutingProvider,
    profile: str,
    preferences: RoutePreferences,
) -> float:
    """Return the standalone confidence for ``route``, clamped to [0, 1]."""

    score = 0.5
    if ROUTER_REASONABLE_MIN_M < route.distance_m < ROUTER_REASONABLE_MAX_M:
        score += 0.2
    if route.self_reported_confidence > 0.8:
        score += 0.1
    score += min(max(provider.specialization_bonus, 0.0), 0.25)
    if preferences.wants_low_traffic and provider.honors_low_traffic:
        score += 0.15
    if preferences.wants_bike_infrastructure and provider.honors_bike_infrastructure:
        score += 0.20
    if profile == "gravel" and provider.gravel_specialist:
        score += 0.25
    return min(max(score, 0.0), 1.0)


@dataclass(slots=True)
class RouterServiceConfig:
    providers: Sequence[RoutingProvider] | None = None
    plans: Mapping[str, Tuple[AttemptSpec, ...]] = field(
        default_factory=lambda: dict(ROUTING_PLANS)
    )
    fallback_penalty: float = ROUTER_FALLBACK_PENALTY
    min_route_points: int = ROUTER_MIN_ROUTE_POINTS
    logger: logging.Logger | None = None


class RouterService:
    def __init__(self, config: RouterServiceConfig | None = None):
        self.config = config or RouterServiceConfig()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)
        providers = self.config.providers
        if providers is None:
            providers = default_providers()
        self._providers: Dict[str, RoutingProvider] = {p.name: p for p in providers}

    def plan_for(self, profile: str) -> Tuple[AttemptSpec, ...]:
        plans = self.config.plans
        return plans.get(profile) or plans["default"]

    def route(
        self,
        waypoints: Sequence[Coordinate],
        profile: str = "road",
        preferences: RoutePreferences | None = None,
        *,
        training_goal: str | None = None,
        context: RequestContext | None = None,
    ) -> RoutedResult | RoutingFailure:
        """Route ``waypoints`` and return one result or an explicit failure.

        Raises:
            RouteValidationError: For an unknown profile or fewer than two
                waypoints.
        """

        if profile not in PROFILES:
            raise RouteValidationError(
                f"unknown route profile {profile!r}; expected one of {', '.join(PROFILES)}"
            )
        validate_geometry(waypoints, what="waypoints")
        request = RouteRequest(
            waypoints=tuple(waypoints),
            profile=profile,
            preferences=preferences or RoutePreferences(),
            training_goal=training_goal,
        )
        ctx = context or RequestContext()
        attempts: List[AttemptRecord] = []

        for spec in self.plan_for(profile):
            provider = self._providers.get(spec.provider)
            if provider is None or not provider.is_available():
                self._log.info("Skipping %s: provider not configured", spec.tag)
                attempts.append(AttemptRecord(spec.tag, "skipped", "not configured"))
                continue
            if spec.fallback:
                self._log.warning(
                    "Falling back to %s for %s route", spec.tag, profile
                )
            try:
                ctx.check(f"routing via {spec.tag}")
                candidate = provider.fetch_route(
                    request,
                    provider_profile=spec.resolve_profile(training_goal),
                    context=ctx,
                )
            except RequestAbortedError as exc:
                self._log.warning("Routing stopped during %s: %s", spec.tag, exc)
                attempts.append(AttemptRecord(spec.tag, "aborted", str(exc)))
                return RoutingFailure(
                    profile=profile,
                    attempts=tuple(attempts),
                    reason=str(exc),
                    aborted=True,
                )
            except ProviderError as exc:
                self._log.warning("Provider %s failed: %s", spec.tag, exc)
                attempts.append(AttemptRecord(spec.tag, "failed", str(exc)))
                continue

            point_count = len(candidate.geometry)
            if point_count < self.config.min_route_points:
                self._log.warning(
                    "Provider %s returned only %d points; trying next provider",
                    spec.tag,
                    point_count,
                )
                attempts.append(
                    AttemptRecord(spec.tag, "too_short", f"{point_count} points")
                )
                continue

            attempts.append(AttemptRecord(spec.tag, "accepted"))
            result = self._build_result(candidate, provider, spec, request)
            self._log.info(
                "Routed %s via %s: %.1f km, confidence %.2f",
                profile,
                spec.tag,
                result.distance_m / 1000.0,
                result.confidence,
            )
            return result

        self._log.warning(
            "All routing providers failed for %s (%s)",
            profile,
            ", ".join(f"{a.provider}={a.outcome}" for a in attempts) or "no providers",
        )
        return RoutingFailure(profile=profile, attempts=tuple(attempts))

    def _build_result(
        self,
        candidate: ProviderRoute,
        provider: RoutingProvider,
        spec: AttemptSpec,
        request: RouteRequest,
    ) -> RoutedResult:
        distance_m = candidate.distance_m
        if distance_m <= 0:
            distance_m = total_distance(candidate.geometry)
            candidate = replace(candidate, distance_m=distance_m)
        confidence = score_route(candidate, provider, request.profile, request.preferences)
        if spec.fallback:
            confidence = max(confidence - self.config.fallback_penalty, 0.0)
        return RoutedResult(
            geometry=candidate.geometry,
            distance_m=distance_m,
            duration_s=candidate.duration_s,
            elevation_gain_m=candidate.elevation_gain_m,
            elevation_loss_m=candidate.elevation_loss_m,
            confidence=confidence,
            provider=spec.tag,
            warnings=spec.warnings,
            profile=request.profile,
            is_fallback=spec.fallback,
            provider_confidence=candidate.self_reported_confidence,
        )
