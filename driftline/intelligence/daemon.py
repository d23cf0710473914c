"""
Constellation Refresh Daemon
Background hourly refresh with:
- Exponential back-off retries after failed cycles
- Last-cycle-wins publishing (a stale cycle never overwrites a newer one)
- Previous constellation kept when a cycle finds no data
"""

import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .. import config
from .pipeline import Constellation, build_constellation

logger = logging.getLogger(__name__)


class RefreshDaemon:
    RETRY_DELAY = 5
    MAX_RETRY_DELAY = 300

    def __init__(self, load_snapshots: Callable[[], list],
                 build: Callable[[list], Constellation] = build_constellation,
                 interval_sec: Optional[float] = None):
        self.load_snapshots = load_snapshots
        self.build = build
        self.interval_sec = interval_sec if interval_sec is not None else config.REFRESH_INTERVAL_SEC

        self.is_running = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lock = threading.Lock()

        self._constellation: Optional[Constellation] = None
        self._latest_cycle = 0
        self._published_cycle = 0

        self.current_batch_id: Optional[str] = None
        self.cycle_count = 0
        self.consecutive_failures = 0
        self.last_error: Optional[str] = None
        self.last_update: Optional[datetime] = None
        self.started_at: Optional[datetime] = None

        self._callbacks: Dict[str, List[Callable]] = {
            'on_cycle_complete': [],
            'on_error': [],
        }

    @property
    def constellation(self) -> Optional[Constellation]:
        with self._lock:
            return self._constellation

    def register_callback(self, event: str, callback: Callable):
        if event in self._callbacks:
            self._callbacks[event].append(callback)

    def _emit(self, event: str, data: dict):
        for callback in self._callbacks.get(event, []):
            try:
                callback(data)
            except Exception:
                logger.exception("Callback error for %s", event)

    def start(self) -> bool:
        if self.is_running:
            return False

        self._stop_event.clear()
        self.is_running = True
        self.started_at = datetime.now()

        self._thread = threading.Thread(target=self._run_loop, daemon=True)
        self._thread.start()
        return True

    def stop(self) -> bool:
        if not self.is_running:
            return False

        self._stop_event.set()
        self.is_running = False

        if self._thread:
            self._thread.join(timeout=10)
        return True

    def retry_delay(self, failures: int) -> float:
        """Back-off after `failures` consecutive failed cycles, capped at MAX_RETRY_DELAY."""
        return min(self.RETRY_DELAY * 2 ** (failures - 1), self.MAX_RETRY_DELAY)

    def _run_loop(self):
        while not self._stop_event.is_set():
            self.refresh()

            wait = self.interval_sec
            if self.consecutive_failures:
                wait = min(wait, self.retry_delay(self.consecutive_failures))
                logger.warning("Retrying in %ss after %d failed cycles", wait, self.consecutive_failures)
            self._stop_event.wait(wait)

        self.is_running = False

    def _begin_cycle(self) -> int:
        with self._lock:
            self._latest_cycle += 1
            return self._latest_cycle

    def refresh(self) -> bool:
        """Run one load-and-analyse cycle. Returns True if its result was published."""
        cycle_id = self._begin_cycle()
        batch_id = str(uuid.uuid4())[:8]
        self.current_batch_id = batch_id

        try:
            snapshots = self.load_snapshots()
            constellation = self.build(snapshots)
        except Exception as e:
            self.last_error = str(e)
            self.consecutive_failures += 1
            logger.error("Refresh cycle %d (%s) failed: %s", cycle_id, batch_id, e)
            self._emit('on_error', {'error': self.last_error, 'cycle': cycle_id,
                                    'consecutive_failures': self.consecutive_failures})
            return False

        with self._lock:
            if cycle_id < self._latest_cycle:
                logger.info("Discarding stale cycle %d, cycle %d already started", cycle_id, self._latest_cycle)
                return False
            self._constellation = constellation
            self._published_cycle = cycle_id

        self.cycle_count += 1
        self.consecutive_failures = 0
        self.last_error = None
        self.last_update = datetime.now()
        logger.info("Cycle %d (%s) published: %d balloons", cycle_id, batch_id, len(constellation.tracks))
        self._emit('on_cycle_complete', {'cycle': cycle_id, 'batch_id': batch_id, **constellation.summary()})
        return True

    def get_status(self) -> Dict:
        constellation = self.constellation
        uptime = None
        if self.started_at:
            uptime = (datetime.now() - self.started_at).total_seconds()

        return {
            'is_running': self.is_running,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'uptime_seconds': uptime,
            'current_batch_id': self.current_batch_id,
            'cycle_count': self.cycle_count,
            'consecutive_failures': self.consecutive_failures,
            'published_cycle': self._published_cycle,
            'last_error': self.last_error,
            'last_update': self.last_update.isoformat() if self.last_update else None,
            'hours_with_data': len(constellation.hours_with_data) if constellation else 0,
            'total_balloons': len(constellation.tracks) if constellation else 0
        }
