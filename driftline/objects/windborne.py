"""
WindBorne hourly constellation feed.

One JSON file per hour offset (00.json = now ... 24.json = 24 hours ago), each
an array of [lat, lon, altitude_km]. Files are fetched concurrently; a failed
hour is skipped and only a total absence of data is an error.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import requests

from .. import config
from ..intelligence.snapshot import HourlySnapshot, validate_snapshot

logger = logging.getLogger(__name__)


class NoBalloonDataError(Exception):
    """No hour of the feed could be fetched and validated."""


def hour_url(hour_offset: int, base_url: Optional[str] = None) -> str:
    return f"{(base_url or config.WINDBORNE_API_BASE).rstrip('/')}/{hour_offset:02d}.json"


def fetch_raw_hour(hour_offset: int, session=None, timeout: Optional[float] = None):
    """Raw upstream response for one hour; raises requests exceptions."""
    http = session or requests
    return http.get(
        hour_url(hour_offset),
        headers={'Accept': 'application/json'},
        timeout=timeout or config.FETCH_TIMEOUT_SEC
    )


def fetch_hour(hour_offset: int, session=None, timeout: Optional[float] = None) -> Optional[HourlySnapshot]:
    try:
        response = fetch_raw_hour(hour_offset, session, timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as e:
        logger.warning("Hour %02d unavailable: %s", hour_offset, e)
        return None
    except ValueError as e:
        logger.warning("Hour %02d returned corrupted JSON: %s", hour_offset, e)
        return None

    snapshot = validate_snapshot(payload, hour_offset, fetched_at=datetime.now(timezone.utc))
    if snapshot is None:
        logger.warning("Hour %02d payload is not an array, skipping", hour_offset)
    return snapshot


def fetch_snapshots(hours: Optional[Iterable[int]] = None, session=None,
                    max_workers: Optional[int] = None) -> List[HourlySnapshot]:
    if hours is None:
        hours = range(config.HOURS_TO_FETCH, -1, -1)
    hours = list(hours)

    snapshots = []
    with ThreadPoolExecutor(max_workers=max_workers or config.MAX_FETCH_WORKERS) as executor:
        futures = {executor.submit(fetch_hour, hour, session): hour for hour in hours}
        for future in as_completed(futures):
            snapshot = future.result()
            if snapshot is not None:
                snapshots.append(snapshot)

    if not snapshots:
        raise NoBalloonDataError(f"No balloon data available for any of {len(hours)} hours")

    snapshots.sort(key=lambda s: -s.hour_offset)
    logger.info("Fetched %d of %d hourly snapshots", len(snapshots), len(hours))
    return snapshots
