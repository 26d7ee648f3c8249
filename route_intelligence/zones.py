"""Training zone lookup tables: assumed speed, display color and name."""

from __future__ import annotations

from typing import Mapping

__all__ = [
    "VALID_ZONES",
    "ZONE_SPEEDS_KMH",
    "FILLER_ZONE",
    "zone_speed_kmh",
    "zone_color",
    "zone_name",
    "normalize_zone",
]

# Assumed riding speed per zone. Cue placement is only as accurate as these
# figures are for the rider; pass per-rider overrides where known.
ZONE_SPEEDS_KMH: Mapping[float, float] = {
    1: 22.0,
    2: 25.0,
    3: 27.0,
    3.5: 27.5,
    4: 28.0,
    5: 30.0,
}

VALID_ZONES = frozenset(ZONE_SPEEDS_KMH)

FILLER_ZONE = 2

_ZONE_COLORS: Mapping[float, str] = {
    1: "#4ade80",
    2: "#60a5fa",
    3: "#facc15",
    3.5: "#fb923c",
    4: "#fb923c",
    5: "#ef4444",
}
_DEFAULT_COLOR = "#9ca3af"

_ZONE_NAMES: Mapping[float, str] = {
    1: "Recovery",
    2: "Endurance",
    3: "Tempo",
    3.5: "Sweet Spot",
    4: "Threshold",
    5: "VO2 Max",
}


def normalize_zone(value: object) -> float | None:
    """Return ``value`` as a known zone number, or ``None`` when it is not one."""

    if isinstance(value, bool):
        return None
    try:
        zone = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if zone not in VALID_ZONES:
        return None
    return int(zone) if zone.is_integer() else zone


def zone_speed_kmh(
    zone: float, overrides: Mapping[float, float] | None = None
) -> float:
    if overrides:
        override = overrides.get(zone)
        if override is not None and override > 0:
            return float(override)
    return ZONE_SPEEDS_KMH.get(zone, ZONE_SPEEDS_KMH[FILLER_ZONE])


def zone_color(zone: float | None) -> str:
    if zone is None:
        return _DEFAULT_COLOR
    return _ZONE_COLORS.get(zone, _DEFAULT_COLOR)


def zone_name(zone: float | None) -> str:
    if zone is None:
        return "Unknown"
    return _ZONE_NAMES.get(zone, "Unknown")
