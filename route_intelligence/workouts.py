"""Workout structure types and parsing of workout-library payloads.

A workout is a warmup segment, a ``main`` list and a cooldown segment. Each
``main`` entry is either a :class:`Segment` or a :class:`RepeatBlock`, whose
``work`` list may itself contain further repeat blocks.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Union

from .config import WORKOUT_MAX_REPEAT_DEPTH
from .errors import WorkoutValidationError
from .zones import normalize_zone

__all__ = [
    "Segment",
    "RepeatBlock",
    "WorkoutItem",
    "WorkoutStructure",
    "parse_workout_structure",
    "parse_segment",
]


@dataclass(frozen=True, slots=True)
class Segment:
    duration_minutes: float
    zone: float
    power_percent_ftp: Optional[float] = None
    cadence_target: Optional[int] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.duration_minutes, bool) or not isinstance(
            self.duration_minutes, (int, float)
        ):
            raise WorkoutValidationError("segment duration must be a number")
        if not math.isfinite(self.duration_minutes) or self.duration_minutes <= 0:
            raise WorkoutValidationError(
                f"segment duration must be > 0 minutes (got {self.duration_minutes})"
            )
        zone = None
        if isinstance(self.zone, (int, float)):
            zone = normalize_zone(self.zone)
        if zone is None:
            raise WorkoutValidationError(f"invalid training zone {self.zone!r}")
        object.__setattr__(self, "zone", zone)


@dataclass(frozen=True, slots=True)
class RepeatBlock:
    sets: int
    work: List["WorkoutItem"]
    rest: Optional[Segment] = None

    def __post_init__(self) -> None:
        if isinstance(self.sets, bool) or not isinstance(self.sets, int) or self.sets < 1:
            raise WorkoutValidationError(f"repeat sets must be an integer >= 1 (got {self.sets!r})")
        if not self.work:
            raise WorkoutValidationError("repeat block needs at least one work segment")


WorkoutItem = Union[Segment, RepeatBlock]


@dataclass(frozen=True, slots=True)
class WorkoutStructure:
    warmup: Optional[Segment] = None
    main: List[WorkoutItem] = field(default_factory=list)
    cooldown: Optional[Segment] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.warmup is None and not self.main and self.cooldown is None:
            raise WorkoutValidationError("workout structure is empty")

    def estimated_minutes(self) -> float:
        total = 0.0
        for segment in (self.warmup, self.cooldown):
            if segment is not None:
                total += segment.duration_minutes
        for item in self.main:
            total += _item_minutes(item)
        return total


def _item_minutes(item: WorkoutItem) -> float:
    if isinstance(item, Segment):
        return item.duration_minutes
    per_set = sum(_item_minutes(child) for child in item.work)
    rest = item.rest.duration_minutes if item.rest is not None else 0.0
    return per_set * item.sets + rest * (item.sets - 1)


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def _optional_number(value: Any, label: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise WorkoutValidationError(f"{label} must be numeric")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise WorkoutValidationError(f"{label} must be numeric (got {value!r})") from exc


def parse_segment(payload: Any) -> Segment:
    """Build a :class:`Segment` from a library dict or return it unchanged."""

    if isinstance(payload, Segment):
        return payload
    if not isinstance(payload, Mapping):
        raise WorkoutValidationError(
            f"segment must be a mapping (got {type(payload).__name__})"
        )
    duration = _optional_number(
        _first(payload, "duration_minutes", "durationMinutes", "duration"), "duration"
    )
    if duration is None:
        raise WorkoutValidationError("segment is missing a duration")
    zone = normalize_zone(payload.get("zone"))
    if zone is None:
        raise WorkoutValidationError(f"invalid training zone {payload.get('zone')!r}")
    power = _optional_number(
        _first(payload, "power_percent_ftp", "powerPctFTP", "powerPercentFTP"),
        "power",
    )
    cadence = _optional_number(
        _first(payload, "cadence_target", "cadenceTarget", "cadence"), "cadence"
    )
    description = payload.get("description")
    return Segment(
        duration_minutes=duration,
        zone=zone,
        power_percent_ftp=power,
        cadence_target=int(cadence) if cadence is not None else None,
        description=str(description) if description else None,
    )


def _parse_item(payload: Any, depth: int) -> WorkoutItem:
    if isinstance(payload, (Segment, RepeatBlock)):
        return payload
    if isinstance(payload, Mapping) and (
        payload.get("type") == "repeat" or "sets" in payload
    ):
        return _parse_repeat(payload, depth + 1)
    return parse_segment(payload)


def _parse_repeat(payload: Mapping[str, Any], depth: int) -> RepeatBlock:
    if depth > WORKOUT_MAX_REPEAT_DEPTH:
        raise WorkoutValidationError(
            f"repeat blocks nested deeper than {WORKOUT_MAX_REPEAT_DEPTH} levels"
        )
    sets = payload.get("sets")
    if isinstance(sets, float) and sets.is_integer():
        sets = int(sets)
    work_payload = payload.get("work")
    if isinstance(work_payload, Mapping):
        work_payload = [work_payload]
    if not isinstance(work_payload, Sequence) or isinstance(work_payload, str):
        raise WorkoutValidationError("repeat block work must be a list of segments")
    work = [_parse_item(child, depth) for child in work_payload]
    rest_payload = payload.get("rest")
    rest = parse_segment(rest_payload) if rest_payload else None
    return RepeatBlock(sets=sets, work=work, rest=rest)  # type: ignore[arg-type]


def parse_workout_structure(payload: Any) -> WorkoutStructure:
    """Validate a workout-library payload into a :class:`WorkoutStructure`.

    Accepts either the structure dict itself or a workout record carrying it
    under ``structure``. Both snake_case and the library's camelCase keys
    (``duration``, ``powerPctFTP``, ``cadence``) are understood; repeat blocks
    are recognised by ``type: "repeat"`` or a ``sets`` key.

    Raises:
        WorkoutValidationError: When the payload is empty, a zone is not one
            of 1, 2, 3, 3.5, 4, 5, a duration is not positive, or repeat
            blocks nest too deeply.
    """

    if isinstance(payload, WorkoutStructure):
        return payload
    if not isinstance(payload, Mapping):
        raise WorkoutValidationError(
            f"workout must be a mapping (got {type(payload).__name__})"
        )
    name = payload.get("name")
    if isinstance(payload.get("structure"), Mapping):
        payload = payload["structure"]
    warmup_payload = payload.get("warmup")
    cooldown_payload = payload.get("cooldown")
    main_payload = payload.get("main") or []
    if isinstance(main_payload, Mapping):
        main_payload = [main_payload]
    if not isinstance(main_payload, Sequence) or isinstance(main_payload, str):
        raise WorkoutValidationError("workout main must be a list")
    return WorkoutStructure(
        warmup=parse_segment(warmup_payload) if warmup_payload else None,
        main=[_parse_item(item, 0) for item in main_payload],
        cooldown=parse_segment(cooldown_payload) if cooldown_payload else None,
        name=str(name) if name else None,
    )
