import pytest

from conftest import equator_line
from route_intelligence import geometry
from route_intelligence.errors import GeometryValidationError, WorkoutValidationError
from route_intelligence.geometry import coordinate_at_distance
from route_intelligence.services.interval_mapper import (
    IntervalMapper,
    IntervalMapperConfig,
    build_colored_segments,
    map_intervals,
    segment_distance_m,
)
from route_intelligence.workouts import RepeatBlock, Segment, WorkoutStructure

VO2_WORKOUT = {
    "warmup": {"duration": 10, "zone": 2},
    "main": [
        {
            "type": "repeat",
            "sets": 3,
            "work": [{"duration": 4, "zone": 5}],
            "rest": {"duration": 3, "zone": 1},
        }
    ],
    "cooldown": {"duration": 10, "zone": 1},
}


@pytest.fixture
def line_30km():
    return equator_line(61, 500.0)


def test_segment_distance_uses_zone_speed():
    assert segment_distance_m(Segment(5, 1)) == pytest.approx(1833.333, rel=1e-6)
    assert segment_distance_m(Segment(5, 2)) == pytest.approx(2083.333, rel=1e-6)
    assert segment_distance_m(Segment(4, 2), {2: 30.0}) == pytest.approx(2000.0)


def test_segment_longer_than_route_leaves_single_steady_cue(line_2km):
    cues = map_intervals(line_2km, {"main": [{"duration": 5, "zone": 2}]})
    assert len(cues) == 1
    steady = cues[0]
    assert steady.type == "steady"
    assert steady.zone == 2
    assert steady.start_distance_m == 0.0
    assert steady.end_distance_m == pytest.approx(2000.0)
    assert steady.coordinate == line_2km[-1]
    assert steady.instruction == "Steady Zone 2 for 2.0km"


def test_workout_longer_than_short_route_still_maps(line_2km):
    workout = WorkoutStructure(
        warmup=Segment(5, 2),
        main=[Segment(10, 4)],
        cooldown=Segment(5, 1),
    )
    cues = map_intervals(line_2km, workout)
    assert len(cues) >= 1
    assert [c.type for c in cues] == ["steady"]
    assert cues[-1].end_distance_m <= 2000.0 + 1e-3


def test_short_segment_fits_before_steady_remainder(line_2km):
    cues = map_intervals(line_2km, {"main": [{"duration": 5, "zone": 1}]})
    assert [c.type for c in cues] == ["main", "steady"]
    assert cues[0].end_distance_m == pytest.approx(1833.333, rel=1e-6)
    assert cues[1].start_distance_m == cues[0].end_distance_m


def test_full_workout_is_expanded_in_order(line_30km):
    cues = map_intervals(line_30km, VO2_WORKOUT)
    assert [c.type for c in cues] == [
        "warmup",
        "interval-hard",
        "interval-recovery",
        "interval-hard",
        "interval-recovery",
        "interval-hard",
        "cooldown",
        "steady",
    ]
    assert [c.zone for c in cues] == [2, 5, 1, 5, 1, 5, 1, 2]
    assert cues[0].start_distance_m == 0.0
    for previous, current in zip(cues, cues[1:]):
        assert current.start_distance_m == pytest.approx(previous.end_distance_m)
        assert current.start_distance_m < current.end_distance_m
    assert cues[-1].end_distance_m == pytest.approx(30_000.0)
    assert cues[1].distance_m == pytest.approx(2000.0)


def test_cue_coordinates_sit_at_segment_end(line_30km):
    cues = map_intervals(line_30km, VO2_WORKOUT)
    for cue in cues[:-1]:
        expected = coordinate_at_distance(line_30km, cue.end_distance_m).coordinate
        assert cue.coordinate == expected


def test_route_distances_are_computed_once_per_mapping(line_30km, monkeypatch):
    calls = []
    original = geometry._cumulative_array

    def counting(points):
        calls.append(len(points))
        return original(points)

    monkeypatch.setattr(geometry, "_cumulative_array", counting)
    cues = map_intervals(line_30km, VO2_WORKOUT)
    assert len(cues) == 8
    assert calls == [len(line_30km)]


def test_workout_is_truncated_when_route_runs_out():
    route = equator_line(11, 500.0)  # 5 km
    cues = map_intervals(route, VO2_WORKOUT)
    assert [c.type for c in cues] == ["warmup", "steady"]
    assert cues[1].distance_m == pytest.approx(5000.0 - 4166.667, rel=1e-5)


def test_nested_repeats_expand_depth_first(line_30km):
    workout = {
        "main": [
            {
                "sets": 2,
                "work": [
                    {"duration": 1, "zone": 4},
                    {
                        "sets": 2,
                        "work": [{"duration": 1, "zone": 5}],
                        "rest": {"duration": 1, "zone": 1},
                    },
                ],
                "rest": {"duration": 1, "zone": 2},
            }
        ]
    }
    cues = map_intervals(line_30km, workout)[:-1]
    assert [c.zone for c in cues] == [4, 5, 1, 5, 2, 4, 5, 1, 5]
    assert [c.type for c in cues] == [
        "interval-hard",
        "interval-hard",
        "interval-recovery",
        "interval-hard",
        "interval-recovery",
        "interval-hard",
        "interval-hard",
        "interval-recovery",
        "interval-hard",
    ]


def test_instruction_includes_power_and_cadence(line_30km):
    workout = {
        "main": [
            {
                "duration": 5,
                "zone": 3.5,
                "powerPctFTP": 90,
                "cadence": 95,
                "description": "Sweet spot",
            }
        ]
    }
    cue = map_intervals(line_30km, workout)[0]
    assert cue.instruction == "Sweet spot: Zone 3.5 for 5min (2.3km) @ 90% FTP | 95 rpm"
    assert cue.color == "#fb923c"
    assert cue.power_percent_ftp == 90.0
    assert cue.cadence_target == 95


def test_speed_overrides_move_cues(line_30km):
    mapper = IntervalMapper(IntervalMapperConfig(speed_overrides={2: 30.0}))
    cues = mapper.map(line_30km, {"warmup": {"duration": 4, "zone": 2}})
    assert cues[0].end_distance_m == pytest.approx(2000.0)
    per_call = mapper.map(
        line_30km, {"warmup": {"duration": 4, "zone": 2}}, speed_overrides={2: 15.0}
    )
    assert per_call[0].end_distance_m == pytest.approx(1000.0)


def test_cue_cap_truncates_long_workouts(line_30km, caplog):
    mapper = IntervalMapper(IntervalMapperConfig(max_cues=3))
    workout = {"main": [{"sets": 10, "work": [{"duration": 0.5, "zone": 5}]}]}
    with caplog.at_level("WARNING"):
        cues = mapper.map(line_30km, workout)
    assert [c.type for c in cues] == ["interval-hard"] * 3 + ["steady"]
    assert any("Cue cap" in r.getMessage() for r in caplog.records)


def test_mapper_depth_limit_applies_to_built_structures(line_30km):
    inner = RepeatBlock(sets=1, work=[Segment(1, 3)])
    outer = RepeatBlock(sets=1, work=[inner])
    mapper = IntervalMapper(IntervalMapperConfig(max_depth=1))
    with pytest.raises(WorkoutValidationError):
        mapper.map(line_30km, WorkoutStructure(main=[outer]))


def test_invalid_inputs_rejected(line_2km):
    with pytest.raises(WorkoutValidationError):
        map_intervals(line_2km, {})
    with pytest.raises(GeometryValidationError):
        map_intervals(line_2km[:1], VO2_WORKOUT)
    with pytest.raises(WorkoutValidationError):
        map_intervals(line_2km, WorkoutStructure(main=[Segment(10, "4")]))


def test_colored_segments_follow_cues(line_30km):
    cues = map_intervals(line_30km, VO2_WORKOUT)
    collection = build_colored_segments(line_30km, cues)
    assert collection["type"] == "FeatureCollection"
    features = collection["features"]
    assert len(features) == len(cues)
    first = features[0]
    assert first["properties"]["zone_name"] == "Endurance"
    assert first["properties"]["color"] == "#60a5fa"
    assert first["properties"]["type"] == "warmup"
    assert first["geometry"]["type"] == "LineString"
    assert first["geometry"]["coordinates"][0] == [line_30km[0].lon, line_30km[0].lat]
    assert len(first["geometry"]["coordinates"]) >= 2


def test_colored_segments_empty_cases(line_2km):
    assert build_colored_segments(line_2km, []) is None
    tiny = map_intervals(line_2km, {"main": [{"duration": 0.01, "zone": 1}]})
    only_tiny = [c for c in tiny if c.type == "main"]
    assert build_colored_segments(line_2km, only_tiny) is None
