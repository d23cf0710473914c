"""
Balloon Anomaly Detectors
Eddies (rotating paths), turbulence (vertical oscillation), a coarse
convergence proxy from neighbor density, and wind-shear layers between
nearby balloons flying at clearly different altitudes.
"""

from dataclasses import asdict, dataclass
from typing import Iterable, List, Optional, Sequence

from .geo import bearing_deg, bearing_difference, distance_km, haversine_km
from .trajectory import BalloonTrack, TrackPoint


MIN_POINTS_FOR_PATTERN = 6

EDDY_FULL_ROTATION_DEG = 360
EDDY_SHARP_TURN_DEG = 45
EDDY_SHARP_TURN_RATIO = 0.6

TURBULENCE_MAX_REVERSALS = 3
TURBULENCE_MEAN_CHANGE_M = 1000

CONVERGENCE_NEIGHBORS = 5
CONVERGENCE_RADIUS_KM = 500
CONVERGENCE_TIGHT_SPACING_KM = 250

SHEAR_MAX_DISTANCE_KM = 50
SHEAR_MIN_ALTITUDE_GAP_M = 2000
SHEAR_MIN_BEARING_GAP_DEG = 90

KM_PER_DEG_LAT = 111.0
MIN_SEGMENT_KM = 1e-6


@dataclass(frozen=True)
class EddyResult:
    is_eddy: bool
    cumulative_turn_deg: float = 0.0
    sharp_turn_ratio: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TurbulenceResult:
    is_turbulent: bool
    reversals: int = 0
    mean_altitude_change_m: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ConvergenceEstimate:
    balloon_id: str
    neighbor_count: int
    mean_spacing_km: float
    state: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ShearLayer:
    balloon_a: str
    balloon_b: str
    distance_km: float
    altitude_gap_m: float
    bearing_gap_deg: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class NeighborRelationship:
    balloon_id: str
    nearest_km: float
    mean_km: float
    within_10km: int
    within_100km: int

    def to_dict(self) -> dict:
        return asdict(self)


def _real_points(track) -> List[TrackPoint]:
    if isinstance(track, BalloonTrack):
        return track.real_points
    return [p for p in track if not getattr(p, 'synthetic', False)]


def _segment_bearings(points: Sequence[TrackPoint]) -> List[float]:
    bearings = []
    for a, b in zip(points, points[1:]):
        # a stationary step has no direction
        if distance_km(a, b) > MIN_SEGMENT_KM:
            bearings.append(bearing_deg(a, b))
    return bearings


def detect_eddy(track) -> EddyResult:
    points = _real_points(track)
    if len(points) < MIN_POINTS_FOR_PATTERN:
        return EddyResult(is_eddy=False)

    bearings = _segment_bearings(points)
    changes = [bearing_difference(b1, b2) for b1, b2 in zip(bearings, bearings[1:])]
    if not changes:
        return EddyResult(is_eddy=False)

    cumulative = sum(changes)
    sharp_ratio = len([c for c in changes if c > EDDY_SHARP_TURN_DEG]) / len(changes)

    return EddyResult(
        is_eddy=cumulative > EDDY_FULL_ROTATION_DEG or sharp_ratio > EDDY_SHARP_TURN_RATIO,
        cumulative_turn_deg=cumulative,
        sharp_turn_ratio=sharp_ratio
    )


def detect_turbulence(track) -> TurbulenceResult:
    points = _real_points(track)
    if len(points) < MIN_POINTS_FOR_PATTERN:
        return TurbulenceResult(is_turbulent=False)

    deltas = [b.altitude_m - a.altitude_m for a, b in zip(points, points[1:])]
    mean_change = sum(abs(d) for d in deltas) / len(deltas)

    moving = [d for d in deltas if d != 0]
    reversals = len([1 for d1, d2 in zip(moving, moving[1:]) if (d1 > 0) != (d2 > 0)])

    return TurbulenceResult(
        is_turbulent=reversals > TURBULENCE_MAX_REVERSALS or mean_change > TURBULENCE_MEAN_CHANGE_M,
        reversals=reversals,
        mean_altitude_change_m=mean_change
    )


def _located(balloons: Iterable[BalloonTrack]) -> List[BalloonTrack]:
    return [b for b in balloons if b.current_position is not None]


def estimate_convergence(balloons: Iterable[BalloonTrack],
                         neighbors: int = CONVERGENCE_NEIGHBORS,
                         radius_km: float = CONVERGENCE_RADIUS_KM,
                         tight_spacing_km: float = CONVERGENCE_TIGHT_SPACING_KM) -> List[ConvergenceEstimate]:
    """Coarse density proxy, not a temporal convergence computation.

    A balloon is ``converging`` when all of its nearest-neighbor slots within
    ``radius_km`` are filled and their mean spacing is tight, ``diverging``
    when nothing is within the radius, and ``neutral`` otherwise.
    """
    located = _located(balloons)
    estimates = []

    for balloon in located:
        origin = balloon.current_position
        distances = sorted(
            distance_km(origin, other.current_position)
            for other in located if other is not balloon
        )
        nearest = [d for d in distances[:neighbors] if d <= radius_km]
        mean_spacing = sum(nearest) / len(nearest) if nearest else 0.0

        if len(nearest) == neighbors and mean_spacing <= tight_spacing_km:
            state = 'converging'
        elif not nearest:
            state = 'diverging'
        else:
            state = 'neutral'

        estimates.append(ConvergenceEstimate(
            balloon_id=balloon.balloon_id,
            neighbor_count=len(nearest),
            mean_spacing_km=mean_spacing,
            state=state
        ))

    return estimates


def _heading(track: BalloonTrack) -> Optional[float]:
    points = track.real_points
    if len(points) < 2:
        return None

    current = points[-1]
    previous = track.point_at(current.hour_offset + 1) or points[-2]
    if distance_km(previous, current) <= MIN_SEGMENT_KM:
        return None
    return bearing_deg(previous, current)


def detect_shear_layers(balloons: Iterable[BalloonTrack],
                        max_distance_km: float = SHEAR_MAX_DISTANCE_KM,
                        min_altitude_gap_m: float = SHEAR_MIN_ALTITUDE_GAP_M,
                        min_bearing_gap_deg: float = SHEAR_MIN_BEARING_GAP_DEG) -> List[ShearLayer]:
    located = _located(balloons)
    headings = [_heading(b) for b in located]
    max_lat_gap = max_distance_km / KM_PER_DEG_LAT
    layers = []

    for i, a in enumerate(located):
        if headings[i] is None:
            continue
        pa = a.current_position

        for j in range(i + 1, len(located)):
            if headings[j] is None:
                continue
            pb = located[j].current_position

            if abs(pa.lat - pb.lat) > max_lat_gap:
                continue

            altitude_gap = abs(pa.altitude_m - pb.altitude_m)
            if altitude_gap <= min_altitude_gap_m:
                continue

            distance = haversine_km(pa.lat, pa.lon, pb.lat, pb.lon)
            if distance > max_distance_km:
                continue

            bearing_gap = bearing_difference(headings[i], headings[j])
            if bearing_gap > min_bearing_gap_deg:
                layers.append(ShearLayer(
                    balloon_a=a.balloon_id,
                    balloon_b=located[j].balloon_id,
                    distance_km=distance,
                    altitude_gap_m=altitude_gap,
                    bearing_gap_deg=bearing_gap
                ))

    return layers


def nearest_neighbor_relationships(balloons: Iterable[BalloonTrack]) -> List[NeighborRelationship]:
    located = _located(balloons)
    relationships = []

    for balloon in located:
        distances = sorted(
            distance_km(balloon.current_position, other.current_position)
            for other in located if other is not balloon
        )
        if not distances:
            relationships.append(NeighborRelationship(balloon.balloon_id, 0.0, 0.0, 0, 0))
            continue

        relationships.append(NeighborRelationship(
            balloon_id=balloon.balloon_id,
            nearest_km=distances[0],
            mean_km=sum(distances) / len(distances),
            within_10km=len([d for d in distances if d < 10]),
            within_100km=len([d for d in distances if d < 100])
        ))

    return relationships
