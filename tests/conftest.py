import math
from datetime import datetime, timedelta, timezone

import pytest

from driftline.intelligence.snapshot import validate_snapshot
from driftline.intelligence.trajectory import BalloonTrack, TrackPoint, build_tracks

FETCHED_AT = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
KM_PER_DEG = 6371 * math.pi / 180


def make_snapshots(payloads, fetched_at=FETCHED_AT):
    """payloads: {hour_offset: raw list of [lat, lon, altitude_km]}"""
    return [validate_snapshot(payload, hour, fetched_at=fetched_at)
            for hour, payload in sorted(payloads.items(), key=lambda item: -item[0])]


def make_track(coords, balloon_id='balloon-0', index=0, start_offset=None):
    """Track from [(lat, lon, altitude_m), ...] ordered oldest first."""
    if start_offset is None:
        start_offset = len(coords) - 1
    points = []
    for i, (lat, lon, alt) in enumerate(coords):
        offset = start_offset - i
        points.append(TrackPoint(lat=lat, lon=lon, altitude_m=alt, hour_offset=offset,
                                 timestamp=FETCHED_AT - timedelta(hours=offset)))
    return BalloonTrack(balloon_id=balloon_id, index=index, points=points)


def eastward_payloads(start_lons, hours=25, lat=0.0, speed_kmh=50.0, altitude_km=15.0):
    """Balloons on the equator drifting east at a constant speed."""
    step = speed_kmh / KM_PER_DEG
    return {
        hour: [[lat, lon + (hours - 1 - hour) * step, altitude_km] for lon in start_lons]
        for hour in range(hours)
    }


@pytest.fixture
def fetched_at():
    return FETCHED_AT


@pytest.fixture
def sample_tracks():
    payloads = {
        2: [[40.0, -100.0, 10.0], [10.0, 90.0, 20.0], [-30.0, 170.0, 5.0]],
        1: [[40.5, -99.0, 10.5], [10.5, 91.0, 20.5], [-30.0, 171.0, 5.5]],
        0: [[41.0, -98.0, 11.0], [11.0, 92.0, 21.0], [-30.0, 172.0, 6.0]],
    }
    return build_tracks(make_snapshots(payloads))
