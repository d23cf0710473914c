"""
Constellation refresh pipeline
Runs every analysis over one cycle's snapshots and freezes the result.
A Constellation is rebuilt from scratch each cycle and never mutated.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from .. import config
from .altitude import AltitudeStatistics, altitude_statistics
from .anomalies import (ConvergenceEstimate, EddyResult, ShearLayer, TurbulenceResult,
                        detect_eddy, detect_shear_layers, detect_turbulence, estimate_convergence)
from .clusters import Cluster, detect_clusters
from .grid import DensityCell, density_grid, density_stats
from .motion import TrackStatistics, speed_tier, track_statistics
from .regions import classify_region, regional_distribution
from .snapshot import HourlySnapshot
from .trajectory import BalloonTrack, build_tracks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackAnalysis:
    statistics: TrackStatistics
    eddy: EddyResult
    turbulence: TurbulenceResult
    region: Optional[str]
    speed_tier: str

    def to_dict(self) -> dict:
        return {
            'statistics': self.statistics.to_dict(),
            'eddy': self.eddy.to_dict(),
            'turbulence': self.turbulence.to_dict(),
            'region': self.region,
            'speed_tier': self.speed_tier
        }


@dataclass(frozen=True)
class Constellation:
    tracks: Dict[str, BalloonTrack]
    hours_with_data: List[int]
    clusters: List[Cluster]
    density: List[DensityCell]
    density_summary: dict
    distribution: dict
    altitude: AltitudeStatistics
    analyses: Dict[str, TrackAnalysis]
    shear_layers: List[ShearLayer]
    convergence: List[ConvergenceEstimate]
    built_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def balloons(self) -> List[BalloonTrack]:
        return list(self.tracks.values())

    def summary(self) -> dict:
        return {
            'total_balloons': len(self.tracks),
            'hours_with_data': len(self.hours_with_data),
            'avg_altitude_m': round(self.altitude.mean_m),
            'northern_hemisphere': self.distribution['hemispheres']['northern'],
            'southern_hemisphere': self.distribution['hemispheres']['southern'],
            'clusters': len(self.clusters),
            'shear_layers': len(self.shear_layers),
            'eddies': len([a for a in self.analyses.values() if a.eddy.is_eddy]),
            'turbulent': len([a for a in self.analyses.values() if a.turbulence.is_turbulent]),
            'built_at': self.built_at.isoformat()
        }


def analyze_track(track: BalloonTrack) -> TrackAnalysis:
    stats = track_statistics(track)
    current = track.current_position
    return TrackAnalysis(
        statistics=stats,
        eddy=detect_eddy(track),
        turbulence=detect_turbulence(track),
        region=classify_region(current.lat, current.lon) if current else None,
        speed_tier=speed_tier(stats.average_speed_kmh)
    )


def build_constellation(snapshots: Sequence[HourlySnapshot],
                        eps: float = config.CLUSTER_EPS_KM,
                        min_pts: int = config.CLUSTER_MIN_PTS,
                        altitude_weight: float = config.CLUSTER_ALTITUDE_WEIGHT,
                        cell_size_deg: float = config.DENSITY_CELL_SIZE_DEG) -> Constellation:
    tracks = build_tracks(snapshots)
    balloons = list(tracks.values())
    grid = density_grid(balloons, cell_size_deg)

    constellation = Constellation(
        tracks=tracks,
        hours_with_data=sorted({s.hour_offset for s in snapshots if s is not None}),
        clusters=detect_clusters(balloons, eps=eps, min_pts=min_pts, altitude_weight=altitude_weight),
        density=grid,
        density_summary=density_stats(grid, config.HOTSPOT_THRESHOLD),
        distribution=regional_distribution(balloons),
        altitude=altitude_statistics(balloons),
        analyses={balloon_id: analyze_track(track) for balloon_id, track in tracks.items()},
        shear_layers=detect_shear_layers(balloons),
        convergence=estimate_convergence(balloons)
    )

    logger.info("Constellation built: %d balloons over %d hours, %d clusters, %d shear layers",
                len(tracks), len(constellation.hours_with_data),
                len(constellation.clusters), len(constellation.shear_layers))

    return constellation
