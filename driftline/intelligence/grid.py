"""
Balloon Density Grid
Fixed-size lat/lon binning of current positions with hotspot statistics.
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple

from .trajectory import current_position_of


DEFAULT_CELL_SIZE_DEG = 10
HOTSPOT_THRESHOLD = 20


@dataclass(frozen=True)
class DensityCell:
    lat_bin: float
    lon_bin: float
    count: int

    def to_dict(self) -> dict:
        return {'lat': self.lat_bin, 'lon': self.lon_bin, 'count': self.count}


def cell_key(lat: float, lon: float, cell_size_deg: float = DEFAULT_CELL_SIZE_DEG) -> Tuple[float, float]:
    return (
        math.floor(lat / cell_size_deg) * cell_size_deg,
        math.floor(lon / cell_size_deg) * cell_size_deg
    )


def cell_contains(cell: DensityCell, lat: float, lon: float,
                  cell_size_deg: float = DEFAULT_CELL_SIZE_DEG) -> bool:
    return (cell.lat_bin <= lat < cell.lat_bin + cell_size_deg and
            cell.lon_bin <= lon < cell.lon_bin + cell_size_deg)


def density_grid(balloons: Iterable, cell_size_deg: float = DEFAULT_CELL_SIZE_DEG) -> List[DensityCell]:
    if cell_size_deg <= 0:
        raise ValueError(f"cell_size_deg must be positive, got {cell_size_deg}")

    counts: Dict[Tuple[float, float], int] = {}
    for balloon in balloons:
        position = current_position_of(balloon)
        if position is None:
            continue
        key = cell_key(position.lat, position.lon, cell_size_deg)
        counts[key] = counts.get(key, 0) + 1

    return [DensityCell(lat_bin=lat, lon_bin=lon, count=count) for (lat, lon), count in counts.items()]


def density_stats(grid: List[DensityCell], hotspot_threshold: int = HOTSPOT_THRESHOLD) -> dict:
    if not grid:
        return {
            'total': 0,
            'cells': 0,
            'avg_per_cell': 0.0,
            'max_in_cell': 0,
            'hotspots': 0
        }

    total = sum(cell.count for cell in grid)
    return {
        'total': total,
        'cells': len(grid),
        'avg_per_cell': total / len(grid),
        'max_in_cell': max(cell.count for cell in grid),
        'hotspots': len([cell for cell in grid if cell.count >= hotspot_threshold])
    }


def top_cells(grid: List[DensityCell], top_n: int = 10) -> List[DensityCell]:
    return sorted(grid, key=lambda c: (-c.count, c.lat_bin, c.lon_bin))[:top_n]
