"""Place time-based workouts onto route distance.

Each segment's duration is converted to a distance using an assumed speed
for its training zone, and a running cursor advances along the route. The
speeds are fixed assumptions (optionally overridden per rider), so cue
placement is approximate: cues drift on hilly terrain or for a rider slower
than the table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from ..config import INTERVAL_FILLER_MIN_M, INTERVAL_MAX_CUES, WORKOUT_MAX_REPEAT_DEPTH
from ..errors import WorkoutValidationError
from ..geometry import coordinate_at_distance, cumulative_distances, validate_geometry
from ..models import Coordinate, IntervalCue
from ..workouts import RepeatBlock, Segment, WorkoutItem, WorkoutStructure, parse_workout_structure
from ..zones import FILLER_ZONE, zone_color, zone_name, zone_speed_kmh

LOGGER = logging.getLogger(__name__)

__all__ = [
    "IntervalMapperConfig",
    "IntervalMapper",
    "map_intervals",
    "segment_distance_m",
    "build_colored_segments",
]


def segment_distance_m(
    segment: Segment, speed_overrides: Mapping[float, float] | None = None
) -> float:
    """Distance covered by ``segment`` at its zone's assumed speed."""

    speed_kmh = zone_speed_kmh(segment.zone, speed_overrides)
    return speed_kmh * 1000.0 / 60.0 * segment.duration_minutes


def _format_number(value: float) -> str:
    return f"{value:g}"


def _instruction(segment: Segment, cue_type: str, distance_m: float) -> str:
    label = segment.description or cue_type
    text = (
        f"{label}: Zone {_format_number(segment.zone)} for "
        f"{_format_number(segment.duration_minutes)}min ({distance_m / 1000.0:.1f}km)"
    )
    if segment.power_percent_ftp:
        text += f" @ {_format_number(segment.power_percent_ftp)}% FTP"
    if segment.cadence_target:
        text += f" | {segment.cadence_target} rpm"
    return text


class _RouteExhausted(Exception):
    """Internal signal: the next segment does not fit on the route."""


@dataclass(slots=True)
class IntervalMapperConfig:
    speed_overrides: Mapping[float, float] | None = None
    max_depth: int = WORKOUT_MAX_REPEAT_DEPTH
    max_cues: int = INTERVAL_MAX_CUES
    filler_min_m: float = INTERVAL_FILLER_MIN_M
    logger: logging.Logger | None = None


@dataclass
class _Cursor:
    geometry: Sequence[Coordinate]
    cumulative: np.ndarray
    total_m: float
    speed_overrides: Mapping[float, float] | None
    max_cues: int
    position_m: float = 0.0
    cues: List[IntervalCue] = field(default_factory=list)


class IntervalMapper:
    def __init__(self, config: IntervalMapperConfig | None = None):
        self.config = config or IntervalMapperConfig()
        self._log = self.config.logger or logging.getLogger(self.__class__.__name__)

    def map(
        self,
        geometry: Sequence[Coordinate],
        workout: WorkoutStructure | Mapping[str, Any],
        *,
        speed_overrides: Mapping[float, float] | None = None,
    ) -> List[IntervalCue]:
        """Return distance-ordered cues for ``workout`` along ``geometry``.

        Cues are emitted warmup, main, cooldown. A segment that would run past
        the end of the route is dropped and nothing after it is placed. Any
        distance left over is covered by a zone 2 ``steady`` cue.

        Raises:
            GeometryValidationError: For fewer than two coordinates.
            WorkoutValidationError: For an empty or malformed workout.
        """

        validate_geometry(geometry)
        structure = parse_workout_structure(workout)
        cumulative = np.asarray(cumulative_distances(geometry), dtype=float)
        total_m = float(cumulative[-1])
        overrides = speed_overrides
        if overrides is None:
            overrides = self.config.speed_overrides
        cursor = _Cursor(
            geometry=geometry,
            cumulative=cumulative,
            total_m=total_m,
            speed_overrides=overrides,
            max_cues=self.config.max_cues,
        )
        try:
            if structure.warmup is not None:
                self._emit(cursor, structure.warmup, "warmup")
            for item in structure.main:
                if isinstance(item, RepeatBlock):
                    self._expand_repeat(cursor, item, depth=1)
                else:
                    self._emit(cursor, item, "main")
            if structure.cooldown is not None:
                self._emit(cursor, structure.cooldown, "cooldown")
        except _RouteExhausted:
            self._log.debug(
                "Workout truncated at %.0f m of %.0f m route", cursor.position_m, total_m
            )

        remaining = total_m - cursor.position_m
        if remaining >= self.config.filler_min_m or (not cursor.cues and total_m > 0):
            self._append_filler(cursor)
        self._log.debug("Mapped %d cues over %.0f m", len(cursor.cues), total_m)
        return cursor.cues

    def _expand_repeat(self, cursor: _Cursor, block: RepeatBlock, depth: int) -> None:
        if depth > self.config.max_depth:
            raise WorkoutValidationError(
                f"repeat blocks nested deeper than {self.config.max_depth} levels"
            )
        for set_number in range(1, block.sets + 1):
            for item in block.work:
                self._expand_item(cursor, item, depth)
            if block.rest is not None and set_number < block.sets:
                self._emit(cursor, block.rest, "interval-recovery")

    def _expand_item(self, cursor: _Cursor, item: WorkoutItem, depth: int) -> None:
        if isinstance(item, RepeatBlock):
            self._expand_repeat(cursor, item, depth + 1)
        else:
            self._emit(cursor, item, "interval-hard")

    def _emit(self, cursor: _Cursor, segment: Segment, cue_type: str) -> None:
        length = segment_distance_m(segment, cursor.speed_overrides)
        end = cursor.position_m + length
        if end > cursor.total_m:
            raise _RouteExhausted()
        if len(cursor.cues) >= cursor.max_cues:
            self._log.warning("Cue cap of %d reached; truncating workout", cursor.max_cues)
            raise _RouteExhausted()
        cursor.cues.append(
            IntervalCue(
                type=cue_type,
                zone=segment.zone,
                start_distance_m=cursor.position_m,
                end_distance_m=end,
                coordinate=coordinate_at_distance(
                    cursor.geometry, end, cursor.cumulative
                ).coordinate,
                instruction=_instruction(segment, cue_type, length),
                color=zone_color(segment.zone),
                duration_minutes=segment.duration_minutes,
                power_percent_ftp=segment.power_percent_ftp,
                cadence_target=segment.cadence_target,
            )
        )
        cursor.position_m = end

    def _append_filler(self, cursor: _Cursor) -> None:
        remaining = cursor.total_m - cursor.position_m
        cursor.cues.append(
            IntervalCue(
                type="steady",
                zone=FILLER_ZONE,
                start_distance_m=cursor.position_m,
                end_distance_m=cursor.total_m,
                coordinate=cursor.geometry[-1],
                instruction=f"Steady Zone {FILLER_ZONE} for {remaining / 1000.0:.1f}km",
                color=zone_color(FILLER_ZONE),
            )
        )
        cursor.position_m = cursor.total_m


def map_intervals(
    geometry: Sequence[Coordinate],
    workout: WorkoutStructure | Mapping[str, Any],
    *,
    speed_overrides: Mapping[float, float] | None = None,
) -> List[IntervalCue]:
    """Module-level convenience around :meth:`IntervalMapper.map`."""

    return IntervalMapper().map(geometry, workout, speed_overrides=speed_overrides)


def build_colored_segments(
    geometry: Sequence[Coordinate], cues: Sequence[IntervalCue]
) -> Optional[Dict[str, Any]]:
    """Return a GeoJSON FeatureCollection with one zone-colored line per cue.

    Each line runs from the vertex before the cue's start to the vertex
    before its end; cues too short to span two vertices are skipped.
    Returns ``None`` when there is nothing to draw.
    """

    if len(geometry) < 2 or not cues:
        return None
    cumulative = np.asarray(cumulative_distances(geometry), dtype=float)
    last = len(geometry) - 1

    def index_at(target: float) -> int:
        return min(int(np.searchsorted(cumulative[1:], target, side="left")), last)

    features: List[Dict[str, Any]] = []
    for cue in cues:
        start_idx = index_at(cue.start_distance_m)
        end_idx = index_at(cue.end_distance_m)
        coords = [list(point.as_lonlat()) for point in geometry[start_idx : end_idx + 1]]
        if len(coords) < 2:
            continue
        features.append(
            {
                "type": "Feature",
                "properties": {
                    "zone": cue.zone,
                    "zone_name": zone_name(cue.zone),
                    "color": zone_color(cue.zone),
                    "type": cue.type,
                    "instruction": cue.instruction,
                },
                "geometry": {"type": "LineString", "coordinates": coords},
            }
        )
    if not features:
        return None
    return {"type": "FeatureCollection", "features": features}
