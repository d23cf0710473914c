"""
Hourly Snapshot Validator
Turns one hour of raw [lat, lon, altitude_km] entries into validated positions.
Bad entries are dropped, never coerced; the array index is kept as identity.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidatedPosition:
    index: int
    lat: float
    lon: float
    altitude_m: float
    hour_offset: int


@dataclass(frozen=True)
class HourlySnapshot:
    hour_offset: int
    positions: Tuple[ValidatedPosition, ...]
    fetched_at: datetime

    @property
    def observed_at(self) -> datetime:
        return self.fetched_at - timedelta(hours=self.hour_offset)


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def validate_entry(entry: Any, index: int, hour_offset: int) -> Optional[ValidatedPosition]:
    if not isinstance(entry, (list, tuple)) or len(entry) < 3:
        return None

    lat, lon, altitude_km = entry[0], entry[1], entry[2]
    if not (_is_number(lat) and _is_number(lon) and _is_number(altitude_km)):
        return None

    if lat < -90 or lat > 90 or lon < -180 or lon > 180:
        return None
    if altitude_km < 0:
        return None

    return ValidatedPosition(
        index=index,
        lat=float(lat),
        lon=float(lon),
        altitude_m=float(altitude_km) * 1000,
        hour_offset=hour_offset
    )


def validate_snapshot(payload: Any, hour_offset: int,
                      fetched_at: Optional[datetime] = None) -> Optional[HourlySnapshot]:
    """Validate one hour's payload.

    Returns None when the payload is not a JSON array at all. Otherwise every
    entry that fails the shape or range checks is silently excluded and the
    surviving ones keep their original array index.
    """
    if not isinstance(payload, (list, tuple)):
        return None

    positions = []
    for index, entry in enumerate(payload):
        position = validate_entry(entry, index, hour_offset)
        if position is not None:
            positions.append(position)

    dropped = len(payload) - len(positions)
    if dropped:
        logger.debug("Hour %02d: dropped %d of %d entries", hour_offset, dropped, len(payload))

    return HourlySnapshot(
        hour_offset=hour_offset,
        positions=tuple(positions),
        fetched_at=fetched_at or datetime.now(timezone.utc)
    )
