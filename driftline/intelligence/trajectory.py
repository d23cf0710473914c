"""
Balloon Trajectory Builder
Merges hourly snapshots into per-balloon tracks.

Identity is positional: index i in one hour is assumed to be the same physical
balloon as index i in every other hour. Nothing here tries to repair a feed
that reorders balloons between hours.

Tracks are stored oldest first (descending hour_offset). A balloon present in
the newest snapshot also gets one synthetic copy of that position, one hour
ahead of it, so a looping animation has a final interpolation target. Balloons
last seen in an older hour get none.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from .snapshot import HourlySnapshot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackPoint:
    lat: float
    lon: float
    altitude_m: float
    hour_offset: int
    timestamp: datetime
    synthetic: bool = False

    def to_dict(self) -> dict:
        return {
            'lat': self.lat,
            'lon': self.lon,
            'altitude_m': self.altitude_m,
            'hour_offset': self.hour_offset,
            'timestamp': self.timestamp.isoformat(),
            'synthetic': self.synthetic
        }


@dataclass
class BalloonTrack:
    balloon_id: str
    index: int
    points: List[TrackPoint] = field(default_factory=list)

    @property
    def real_points(self) -> List[TrackPoint]:
        return [p for p in self.points if not p.synthetic]

    @property
    def current_position(self) -> Optional[TrackPoint]:
        real = self.real_points
        return real[-1] if real else None

    def point_at(self, hour_offset: int) -> Optional[TrackPoint]:
        for p in self.points:
            if p.hour_offset == hour_offset and not p.synthetic:
                return p
        return None

    def get_trail(self, max_points: int = 25) -> List[Tuple[float, float]]:
        return [(p.lat, p.lon) for p in self.real_points[-max_points:]]

    def to_dict(self, include_positions: bool = True) -> dict:
        current = self.current_position
        data = {
            'id': self.balloon_id,
            'index': self.index,
            'current_position': current.to_dict() if current else None,
            'point_count': len(self.real_points)
        }
        if include_positions:
            data['positions'] = [p.to_dict() for p in self.points]
            data['trajectory'] = self.get_trail()
        return data


def balloon_id_for(index: int) -> str:
    return f"balloon-{index}"


def current_position_of(item):
    if isinstance(item, BalloonTrack):
        return item.current_position
    return item


def build_tracks(snapshots: Iterable[Optional[HourlySnapshot]]) -> Dict[str, BalloonTrack]:
    collected: Dict[str, Dict[int, TrackPoint]] = defaultdict(dict)
    indices: Dict[str, int] = {}
    duplicates = 0
    newest_offset = None

    for snapshot in snapshots:
        if snapshot is None:
            continue

        if newest_offset is None or snapshot.hour_offset < newest_offset:
            newest_offset = snapshot.hour_offset

        observed_at = snapshot.observed_at
        for position in snapshot.positions:
            balloon_id = balloon_id_for(position.index)
            indices[balloon_id] = position.index

            if position.hour_offset in collected[balloon_id]:
                duplicates += 1

            collected[balloon_id][position.hour_offset] = TrackPoint(
                lat=position.lat,
                lon=position.lon,
                altitude_m=position.altitude_m,
                hour_offset=position.hour_offset,
                timestamp=observed_at
            )

    if duplicates:
        logger.warning("Duplicate hour offsets in input, kept last write for %d points", duplicates)

    tracks: Dict[str, BalloonTrack] = {}
    for balloon_id in sorted(collected, key=lambda bid: indices[bid]):
        points = sorted(collected[balloon_id].values(), key=lambda p: -p.hour_offset)

        latest = points[-1]
        if latest.hour_offset == newest_offset:
            points.append(replace(
                latest,
                hour_offset=latest.hour_offset - 1,
                timestamp=latest.timestamp + timedelta(hours=1),
                synthetic=True
            ))

        tracks[balloon_id] = BalloonTrack(
            balloon_id=balloon_id,
            index=indices[balloon_id],
            points=points
        )

    return tracks
