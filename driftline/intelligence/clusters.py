"""
Balloon Cluster Detector (DBSCAN)
Density-based clustering over current positions using the altitude-weighted
3D distance. Expansion runs off an explicit pending queue of indices; a
balloon is claimed by at most one cluster, so clusters never overlap.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .geo import GeoPoint, circular_mean_lon, distance_3d
from .trajectory import BalloonTrack

logger = logging.getLogger(__name__)


DEFAULT_EPS_KM = 1000
DEFAULT_MIN_PTS = 15
DEFAULT_ALTITUDE_WEIGHT = 0.75


@dataclass
class Cluster:
    center: GeoPoint
    members: List[BalloonTrack] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def member_ids(self) -> List[str]:
        return [m.balloon_id for m in self.members]

    def to_dict(self) -> dict:
        return {
            'center': {'lat': self.center.lat, 'lon': self.center.lon},
            'count': self.count,
            'balloon_ids': self.member_ids
        }


class _NeighborIndex:
    """Lazily computed, symmetric epsilon-neighborhoods."""

    def __init__(self, positions: Sequence, eps: float, altitude_weight: float):
        self.positions = positions
        self.eps = eps
        self.altitude_weight = altitude_weight
        self._cache: Dict[int, List[int]] = {}

    def neighbors(self, i: int) -> List[int]:
        if i not in self._cache:
            origin = self.positions[i]
            self._cache[i] = [
                j for j, other in enumerate(self.positions)
                if j != i and distance_3d(origin, other, self.altitude_weight) <= self.eps
            ]
        return self._cache[i]


def _center_of(members: List[BalloonTrack]) -> GeoPoint:
    positions = [m.current_position for m in members]
    lat = sum(p.lat for p in positions) / len(positions)
    lon = circular_mean_lon(p.lon for p in positions)
    return GeoPoint(lat=lat, lon=lon)


def detect_clusters(balloons: Sequence[BalloonTrack], eps: float = DEFAULT_EPS_KM,
                    min_pts: int = DEFAULT_MIN_PTS,
                    altitude_weight: float = DEFAULT_ALTITUDE_WEIGHT) -> List[Cluster]:
    if eps <= 0:
        raise ValueError(f"eps must be positive, got {eps}")
    if min_pts < 1:
        raise ValueError(f"min_pts must be at least 1, got {min_pts}")

    candidates = [b for b in balloons if b.current_position is not None]
    index = _NeighborIndex([b.current_position for b in candidates], eps, altitude_weight)

    visited = [False] * len(candidates)
    owner: List[Optional[int]] = [None] * len(candidates)
    groups: List[List[int]] = []

    for i in range(len(candidates)):
        if visited[i]:
            continue
        visited[i] = True

        seeds = index.neighbors(i)
        if len(seeds) < min_pts:
            # noise for now; may still join a later cluster as a border point
            continue

        cluster_id = len(groups)
        group = [i]
        owner[i] = cluster_id
        queue = deque(seeds)

        while queue:
            j = queue.popleft()
            if owner[j] is not None:
                continue

            owner[j] = cluster_id
            group.append(j)

            if not visited[j]:
                visited[j] = True
                reach = index.neighbors(j)
                if len(reach) >= min_pts:
                    queue.extend(k for k in reach if owner[k] is None)

        groups.append(group)

    clusters = []
    for group in groups:
        members = [candidates[i] for i in group]
        clusters.append(Cluster(center=_center_of(members), members=members))

    logger.debug("DBSCAN: %d clusters, %d balloons clustered, %d overlaps (eps=%skm, min_pts=%s, altitude_weight=%s)",
                 len(clusters), sum(c.count for c in clusters), count_overlaps(clusters),
                 eps, min_pts, altitude_weight)

    return clusters


def count_overlaps(clusters: List[Cluster]) -> int:
    seen = set()
    overlaps = 0
    for cluster in clusters:
        for balloon_id in cluster.member_ids:
            if balloon_id in seen:
                overlaps += 1
            seen.add(balloon_id)
    return overlaps
