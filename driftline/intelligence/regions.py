"""
Spatial Classifier
Nested-rectangle region buckets and hemisphere split.
Deliberately coarse, not geographically exact.

Longitude bands are checked in order with upper-closed limits, so every
longitude falls in exactly one band:
    lon <= -70    northAmerica (lat 15..75) else atlantic
    lon <= 20     atlantic
    lon <= 60     europe (lat 35..75), other (lat 0..35) else indian
    lon <= 150    asia (lat >= 10) else indian
    otherwise     pacific
"""

from collections import OrderedDict
from typing import Dict, Iterable

from .trajectory import current_position_of


REGIONS = ('pacific', 'atlantic', 'northAmerica', 'europe', 'asia', 'indian', 'other')
HEMISPHERES = ('northern', 'southern')


def classify_region(lat: float, lon: float) -> str:
    if lon <= -70:
        if 15 <= lat <= 75:
            return 'northAmerica'
        return 'atlantic'
    if lon <= 20:
        return 'atlantic'
    if lon <= 60:
        if 35 <= lat <= 75:
            return 'europe'
        if 0 <= lat < 35:
            return 'other'
        return 'indian'
    if lon <= 150:
        if lat >= 10:
            return 'asia'
        return 'indian'
    return 'pacific'


def classify_hemisphere(lat: float) -> str:
    return 'northern' if lat >= 0 else 'southern'


def regional_distribution(balloons: Iterable) -> Dict[str, Dict[str, int]]:
    regions = OrderedDict((name, 0) for name in REGIONS)
    hemispheres = OrderedDict((name, 0) for name in HEMISPHERES)

    for balloon in balloons:
        position = current_position_of(balloon)
        if position is None:
            continue
        regions[classify_region(position.lat, position.lon)] += 1
        hemispheres[classify_hemisphere(position.lat)] += 1

    return {
        'regions': dict(regions),
        'hemispheres': dict(hemispheres)
    }
