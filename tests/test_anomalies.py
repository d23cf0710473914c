import math

import pytest

from conftest import make_track
from driftline.intelligence.anomalies import (detect_eddy, detect_shear_layers, detect_turbulence,
                                              estimate_convergence, nearest_neighbor_relationships)


def _hexagon_loop():
    return [(math.sin(math.radians(k * 60)), math.cos(math.radians(k * 60)), 15000) for k in range(7)]


def _straight(n=8, alt=15000):
    return [(0, i * 0.5, alt) for i in range(n)]


def test_looping_track_is_an_eddy():
    result = detect_eddy(make_track(_hexagon_loop()))
    assert result.is_eddy
    assert result.sharp_turn_ratio == 1.0
    assert result.cumulative_turn_deg == pytest.approx(300, abs=1)


def test_straight_track_is_not_an_eddy():
    result = detect_eddy(make_track(_straight()))
    assert not result.is_eddy
    assert result.cumulative_turn_deg == pytest.approx(0, abs=1e-6)


def test_short_track_is_never_an_eddy():
    assert not detect_eddy(make_track(_hexagon_loop()[:5])).is_eddy


def test_stationary_track_is_not_an_eddy():
    assert not detect_eddy(make_track([(10, 10, 15000)] * 8)).is_eddy


def test_vertical_oscillation_is_turbulent():
    coords = [(0, i * 0.1, 10000 + (i % 2) * 500) for i in range(6)]
    result = detect_turbulence(make_track(coords))
    assert result.reversals == 4
    assert result.mean_altitude_change_m == 500
    assert result.is_turbulent


def test_large_altitude_changes_are_turbulent():
    coords = [(0, i * 0.1, 5000 + i * 1500) for i in range(6)]
    result = detect_turbulence(make_track(coords))
    assert result.reversals == 0
    assert result.is_turbulent


def test_level_flight_is_calm():
    result = detect_turbulence(make_track(_straight()))
    assert not result.is_turbulent
    assert result.mean_altitude_change_m == 0


def test_short_track_is_never_turbulent():
    coords = [(0, 0, 1000 + (i % 2) * 5000) for i in range(5)]
    assert not detect_turbulence(make_track(coords)).is_turbulent


def _located(*coords):
    return [make_track([c], balloon_id=f"balloon-{i}", index=i) for i, c in enumerate(coords)]


def test_convergence_states():
    crowd = [(0, i * 0.5, 15000) for i in range(6)]
    pair = [(40, 100, 15000), (40, 103.5, 15000)]
    lone = [(-50, -150, 15000)]
    estimates = {e.balloon_id: e for e in estimate_convergence(_located(*crowd, *pair, *lone))}

    assert estimates['balloon-0'].state == 'converging'
    assert estimates['balloon-0'].neighbor_count == 5
    assert estimates['balloon-6'].state == 'neutral'
    assert estimates['balloon-6'].neighbor_count == 1
    assert estimates['balloon-8'].state == 'diverging'
    assert estimates['balloon-8'].mean_spacing_km == 0.0


def test_opposite_headings_at_different_altitudes_are_shear():
    low = make_track([(0, 0.0, 5000), (0, 0.1, 5000)], balloon_id='balloon-0', index=0)
    high = make_track([(0, 0.2, 15000), (0, 0.15, 15000)], balloon_id='balloon-1', index=1)

    layers = detect_shear_layers([low, high])
    assert len(layers) == 1
    assert layers[0].balloon_a == 'balloon-0'
    assert layers[0].balloon_b == 'balloon-1'
    assert layers[0].altitude_gap_m == 10000
    assert layers[0].bearing_gap_deg == pytest.approx(180)


def test_same_heading_is_not_shear():
    low = make_track([(0, 0.0, 5000), (0, 0.1, 5000)], balloon_id='balloon-0', index=0)
    high = make_track([(0, 0.05, 15000), (0, 0.15, 15000)], balloon_id='balloon-1', index=1)
    assert detect_shear_layers([low, high]) == []


def test_far_apart_or_same_altitude_is_not_shear():
    low = make_track([(0, 0.0, 5000), (0, 0.1, 5000)], balloon_id='balloon-0', index=0)
    far = make_track([(0, 2.2, 15000), (0, 2.1, 15000)], balloon_id='balloon-1', index=1)
    level = make_track([(0, 0.2, 6000), (0, 0.15, 6000)], balloon_id='balloon-2', index=2)
    assert detect_shear_layers([low, far, level]) == []


def test_single_point_tracks_have_no_heading():
    a = make_track([(0, 0, 5000)], balloon_id='balloon-0', index=0)
    b = make_track([(0, 0.01, 15000)], balloon_id='balloon-1', index=1)
    assert detect_shear_layers([a, b]) == []


def test_nearest_neighbor_relationships():
    relationships = {r.balloon_id: r for r in nearest_neighbor_relationships(
        _located((0, 0, 0), (0, 0.05, 0), (0, 0.5, 0))
    )}
    first = relationships['balloon-0']
    assert first.nearest_km == pytest.approx(5.56, abs=0.01)
    assert first.within_10km == 1
    assert first.within_100km == 2


def test_lonely_balloon_relationship():
    [only] = nearest_neighbor_relationships(_located((0, 0, 0)))
    assert only.nearest_km == 0.0
    assert only.within_100km == 0
