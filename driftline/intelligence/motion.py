"""
Balloon Motion Analytics
Segment speed, drift vectors, drift error against a weather model,
whole-track statistics and time-window filtering.
"""

from dataclasses import asdict, dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .geo import bearing_deg, distance_km
from .trajectory import BalloonTrack, TrackPoint


SPEED_TIERS = [
    (30, 'very_slow'),
    (60, 'slow'),
    (90, 'medium'),
    (120, 'fast'),
]
TOP_SPEED_TIER = 'jet_stream'

# (upper bound in meters, exclusive) -> nominal pressure level in hPa
PRESSURE_LEVELS = [
    (1000, 1000),
    (5000, 700),
    (9000, 500),
    (14000, 200),
    (20000, 100),
]
TOP_PRESSURE_LEVEL = 50


@dataclass(frozen=True)
class DriftVector:
    speed_kmh: float
    bearing_deg: float


@dataclass(frozen=True)
class DriftError:
    speed_error_kmh: float
    bearing_error_deg: float
    magnitude: float


@dataclass(frozen=True)
class SegmentSpeed:
    hour_offset: int
    speed_kmh: float


@dataclass(frozen=True)
class TrackStatistics:
    total_distance_km: float = 0.0
    average_speed_kmh: float = 0.0
    min_speed_kmh: float = 0.0
    max_speed_kmh: float = 0.0
    min_altitude_m: float = 0.0
    max_altitude_m: float = 0.0
    point_count: int = 0
    duration_hours: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DriftComparison:
    hour_offset: int
    actual: DriftVector
    model: Optional[object]
    error: Optional[DriftError]

    def to_dict(self) -> dict:
        model = None
        if self.model is not None:
            model = {
                'speed_kmh': self.model.speed_kmh,
                'bearing_deg': self.model.bearing_deg,
                'pressure_level': getattr(self.model, 'pressure_level', None)
            }
        return {
            'hour_offset': self.hour_offset,
            'actual': asdict(self.actual),
            'model': model,
            'error': asdict(self.error) if self.error else None
        }


def _real_points(track) -> List[TrackPoint]:
    if track is None:
        return []
    if isinstance(track, BalloonTrack):
        return track.real_points
    return [p for p in track if not getattr(p, 'synthetic', False)]


def segment_speed_kmh(a: TrackPoint, b: TrackPoint) -> float:
    # Same-hour duplicates count as one hour apart
    hours = max(1, abs(a.hour_offset - b.hour_offset))
    return distance_km(a, b) / hours


def drift_vector(a: TrackPoint, b: TrackPoint) -> DriftVector:
    return DriftVector(speed_kmh=segment_speed_kmh(a, b), bearing_deg=bearing_deg(a, b))


def drift_error(actual: DriftVector, model) -> Optional[DriftError]:
    """Rough combined error between observed drift and modelled wind.

    ``magnitude`` mixes km/h and degrees in one number; it ranks segments,
    it is not a physical quantity. Returns None when there is no model value.
    """
    if model is None:
        return None

    speed_error = actual.speed_kmh - model.speed_kmh
    bearing_error = abs(actual.bearing_deg - model.bearing_deg)

    return DriftError(
        speed_error_kmh=speed_error,
        bearing_error_deg=bearing_error,
        magnitude=(speed_error ** 2 + bearing_error ** 2) ** 0.5
    )


def track_speeds(track) -> List[SegmentSpeed]:
    points = _real_points(track)
    return [
        SegmentSpeed(hour_offset=points[i].hour_offset, speed_kmh=segment_speed_kmh(points[i - 1], points[i]))
        for i in range(1, len(points))
    ]


def total_distance_km(track) -> float:
    points = _real_points(track)
    return sum(distance_km(points[i - 1], points[i]) for i in range(1, len(points)))


def track_statistics(track) -> TrackStatistics:
    points = _real_points(track)
    if not points:
        return TrackStatistics()

    speeds = [s.speed_kmh for s in track_speeds(points)]
    altitudes = [p.altitude_m for p in points]
    offsets = [p.hour_offset for p in points]

    return TrackStatistics(
        total_distance_km=total_distance_km(points),
        average_speed_kmh=sum(speeds) / len(speeds) if speeds else 0.0,
        min_speed_kmh=min(speeds) if speeds else 0.0,
        max_speed_kmh=max(speeds) if speeds else 0.0,
        min_altitude_m=min(altitudes),
        max_altitude_m=max(altitudes),
        point_count=len(points),
        duration_hours=max(offsets) - min(offsets)
    )


def filter_by_time_window(tracks: Dict[str, BalloonTrack],
                          start_offset: int, end_offset: int) -> Dict[str, BalloonTrack]:
    if start_offset > end_offset:
        raise ValueError(f"start_offset {start_offset} is after end_offset {end_offset}")

    filtered = {}
    for balloon_id, track in tracks.items():
        points = [p for p in track.points if start_offset <= p.hour_offset <= end_offset]
        if points:
            filtered[balloon_id] = BalloonTrack(balloon_id=balloon_id, index=track.index, points=points)
    return filtered


def speed_tier(speed_kmh: float) -> str:
    for upper, tier in SPEED_TIERS:
        if speed_kmh < upper:
            return tier
    return TOP_SPEED_TIER


def pressure_level(altitude_m: float) -> int:
    for upper, level in PRESSURE_LEVELS:
        if altitude_m < upper:
            return level
    return TOP_PRESSURE_LEVEL


def pressure_level_label(altitude_m: float) -> str:
    return f"{pressure_level(altitude_m)}hPa"


def compare_with_model(track, lookup: Callable[[float, float, float, int], Optional[object]],
                       batch_lookup: Optional[Callable[[List[tuple]], Dict[tuple, Optional[object]]]] = None
                       ) -> List[DriftComparison]:
    """Compare every real segment of a track with the modelled wind at its end point.

    ``lookup(lat, lon, altitude_m, hour_offset)`` returns an object with
    ``speed_kmh`` and ``bearing_deg`` or None when no model data is available.
    When ``batch_lookup`` is given, all end points are resolved in one call to it
    instead, as a list of ``(lat, lon, altitude_m, hour_offset)`` queries mapped
    to their results.
    """
    points: Sequence[TrackPoint] = _real_points(track)
    segments = [(points[i - 1], points[i]) for i in range(1, len(points))]
    queries = [(end.lat, end.lon, end.altitude_m, end.hour_offset) for _, end in segments]

    if batch_lookup is not None:
        resolved = batch_lookup(queries) if queries else {}
        models = [resolved.get(query) for query in queries]
    else:
        models = [lookup(*query) for query in queries]

    comparisons = []
    for (start, end), model in zip(segments, models):
        actual = drift_vector(start, end)
        comparisons.append(DriftComparison(
            hour_offset=end.hour_offset,
            actual=actual,
            model=model,
            error=drift_error(actual, model)
        ))

    return comparisons
