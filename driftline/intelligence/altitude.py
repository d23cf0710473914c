"""
Altitude analytics over current balloon positions.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .trajectory import current_position_of


ALTITUDE_BINS = [
    ('0-5km', 0, 5000),
    ('5-10km', 5000, 10000),
    ('10-15km', 10000, 15000),
    ('15-20km', 15000, 20000),
    ('20-25km', 20000, 25000),
    ('25-30km', 25000, 30000),
    ('30km+', 30000, float('inf')),
]

ATMOSPHERIC_LAYERS = [
    (10000, 'troposphere'),
    (20000, 'lower_stratosphere'),
    (30000, 'mid_stratosphere'),
]


@dataclass(frozen=True)
class AltitudeBin:
    label: str
    min_m: float
    max_m: float
    count: int

    def to_dict(self) -> dict:
        return {
            'range': self.label,
            'min_m': self.min_m,
            'max_m': None if self.max_m == float('inf') else self.max_m,
            'count': self.count
        }


@dataclass(frozen=True)
class AltitudeStatistics:
    min_m: float = 0.0
    max_m: float = 0.0
    mean_m: float = 0.0
    median_m: float = 0.0
    distribution: List[AltitudeBin] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'min_m': self.min_m,
            'max_m': self.max_m,
            'mean_m': self.mean_m,
            'median_m': self.median_m,
            'distribution': [b.to_dict() for b in self.distribution]
        }


def _current_altitudes(balloons: Iterable) -> List[float]:
    altitudes = []
    for balloon in balloons:
        position = current_position_of(balloon)
        if position is not None and position.altitude_m > 0:
            altitudes.append(position.altitude_m)
    return altitudes


def altitude_distribution(altitudes: Iterable[float]) -> List[AltitudeBin]:
    counts = [0] * len(ALTITUDE_BINS)
    for alt in altitudes:
        for i, (_, lower, upper) in enumerate(ALTITUDE_BINS):
            if lower <= alt < upper:
                counts[i] += 1
                break

    return [
        AltitudeBin(label=label, min_m=lower, max_m=upper, count=counts[i])
        for i, (label, lower, upper) in enumerate(ALTITUDE_BINS)
    ]


def altitude_statistics(balloons: Iterable) -> AltitudeStatistics:
    altitudes = sorted(_current_altitudes(balloons))
    if not altitudes:
        return AltitudeStatistics()

    return AltitudeStatistics(
        min_m=altitudes[0],
        max_m=altitudes[-1],
        mean_m=sum(altitudes) / len(altitudes),
        median_m=altitudes[len(altitudes) // 2],
        distribution=altitude_distribution(altitudes)
    )


def atmospheric_layer(altitude_m: float) -> str:
    for upper, layer in ATMOSPHERIC_LAYERS:
        if altitude_m < upper:
            return layer
    return 'upper_stratosphere'


def filter_by_altitude(balloons: Iterable, min_m: Optional[float] = None,
                       max_m: Optional[float] = None) -> list:
    kept = []
    for balloon in balloons:
        position = current_position_of(balloon)
        if position is None:
            continue
        if min_m is not None and position.altitude_m < min_m:
            continue
        if max_m is not None and position.altitude_m > max_m:
            continue
        kept.append(balloon)
    return kept
