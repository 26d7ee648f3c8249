"""End-to-end route build: route, attach elevation, place workout cues.

The pipeline owns the request budget. One :class:`RequestContext` is created
per build (or shared by a batch of suggestions) and passed down so every
provider call respects the same deadline and cancel flag.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any, List, Mapping, Optional, Sequence

from ..config import PIPELINE_BUDGET_SECONDS, SUGGESTION_MAX_PARALLELISM
from ..context import RequestContext
from ..errors import NoRouteFoundError
from ..models import (
    Coordinate,
    RouteArtifact,
    RoutedResult,
    RoutePreferences,
    RoutingFailure,
    SanitizedRoute,
    SanitizeOptions,
)
from ..workouts import WorkoutStructure
from .elevation_service import ElevationService, elevation_stats
from .interval_mapper import IntervalMapper, build_colored_segments
from .privacy_service import PrivacyService, RouteHistorySource
from .router_service import RouterService

__all__ = [
    "RouteBuildRequest",
    "RoutePipelineConfig",
    "RoutePipeline",
    "setup_logging",
]


def setup_logging(level: int = logging.INFO) -> None:
    """Install a basic root handler when the embedding app has none."""

    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=level,
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


@dataclass(frozen=True, slots=True)
class RouteBuildRequest:
    waypoints: Sequence[Coordinate]
    profile: str = "road"
    preferences: RoutePreferences = field(default_factory=RoutePreferences)
    training_goal: Optional[str] = None
    workout: WorkoutStructure | Mapping[str, Any] | None = None
    speed_overrides: Mapping[float, float] | None = None


@dataclass(slots=True)
class RoutePipelineConfig:
    router: RouterService | None = None
    elevation: ElevationService | None = None
    mapper: IntervalMapper | None = None
    privacy: PrivacyService | None = None
    budget_seconds: float | None = PIPELINE_BUDGET_SECONDS
    max_parallelism: int = SUGGESTION_MAX_PARALLELISM
    logger: logging.Logger | None = None


class RoutePipeline:
    def __init__(self, config: RoutePipelineConfig | None = None):
        self.config = config or RoutePipelineConfig()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)
        self.router = self.config.router or RouterService()
        self.elevation = self.config.elevation or ElevationService()
        self.mapper = self.config.mapper or IntervalMapper()
        self.privacy = self.config.privacy or PrivacyService()

    def new_context(self) -> RequestContext:
        return RequestContext.with_budget(self.config.budget_seconds)

    def build_route(
        self, request: RouteBuildRequest, *, context: RequestContext | None = None
    ) -> RouteArtifact:
        """Build one route artifact.

        Raises:
            NoRouteFoundError: When every routing provider failed or the
                request was cancelled or ran out of budget while routing.
            RouteValidationError: For invalid waypoints, profile or workout.
        """

        ctx = context or self.new_context()
        outcome = self.router.route(
            request.waypoints,
            request.profile,
            request.preferences,
            training_goal=request.training_goal,
            context=ctx,
        )
        if isinstance(outcome, RoutingFailure):
            raise NoRouteFoundError(outcome)
        routed: RoutedResult = outcome

        profile = self.elevation.resolve(routed.geometry, ctx)
        stats = elevation_stats(profile, routed.geometry)
        if routed.elevation_gain_m <= 0 and routed.elevation_loss_m <= 0:
            routed = replace(
                routed, elevation_gain_m=stats.gain_m, elevation_loss_m=stats.loss_m
            )

        cues = []
        colored = None
        if request.workout is not None:
            cues = self.mapper.map(
                routed.geometry, request.workout, speed_overrides=request.speed_overrides
            )
            colored = build_colored_segments(routed.geometry, cues)

        if routed.is_fallback or profile.warnings:
            self._log.info(
                "Built degraded route via %s (confidence %.2f, elevation %s)",
                routed.provider,
                routed.confidence,
                profile.source,
            )
        return RouteArtifact(
            routed=routed,
            elevation=profile,
            elevation_stats=stats,
            cues=cues,
            colored_segments=colored,
        )

    def suggest_routes(
        self,
        requests: Sequence[RouteBuildRequest],
        *,
        context: RequestContext | None = None,
    ) -> List[RouteArtifact | RoutingFailure]:
        """Build several independent suggestions concurrently.

        Results come back in input order. A suggestion with no route yields
        its :class:`RoutingFailure` instead of failing the whole batch.
        """

        if not requests:
            return []
        ctx = context or self.new_context()

        def build(request: RouteBuildRequest) -> RouteArtifact | RoutingFailure:
            try:
                return self.build_route(request, context=ctx)
            except NoRouteFoundError as exc:
                self._log.warning(
                    "Suggestion (%s) produced no route: %s", request.profile, exc.failure.reason
                )
                return exc.failure

        workers = max(1, min(self.config.max_parallelism, len(requests)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(build, request) for request in requests]
            results = [future.result() for future in futures]
        self._log.info(
            "Built %d/%d route suggestions",
            sum(1 for r in results if isinstance(r, RouteArtifact)),
            len(results),
        )
        return results

    def share_route(
        self,
        geometry: Sequence[Coordinate],
        rider_id: str,
        history_source: RouteHistorySource,
        options: SanitizeOptions | None = None,
    ) -> SanitizedRoute:
        return self.privacy.sanitize_for_rider(geometry, rider_id, history_source, options)
