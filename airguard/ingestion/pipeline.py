"""
Tracking pipeline - schedules polling cycles and drives the tracking core.

Each cycle:
1. Fetch: one snapshot through the quota-aware client
2. Reconcile: merge state vectors into tracked entities
3. Detect: test entities against restricted airspace zones
4. Publish: entities-updated, then violation-detected / -resolved events

Cycles never overlap. After a cycle completes the next one is scheduled
after max(base update interval, time until the quota gate opens), so a
tight loop can never burn through the daily budget. The connection test
goes through the same client and is serialized with cycles.
"""

import logging
import threading
import time
from typing import Callable, List, Optional, Sequence

from airguard.airspace.detector import ViolationDetector
from airguard.airspace.zones import AirspaceZone
from airguard.analytics.fleet_statistics import fleet_statistics
from airguard.config import RegionConfig, config
from airguard.errors import AuthDenied, QuotaExceeded, TrackingError
from airguard.events import (
    EntitiesUpdated,
    EventBus,
    StatusChanged,
    TrackingStatus,
    ViolationDetected,
    ViolationResolved,
)
from airguard.ingestion.opensky_client import BoundingBox, OpenSkyClient
from airguard.tracking.lifecycle import AircraftLifecycleManager

logger = logging.getLogger(__name__)

# Connection test probes a small area around Ljubljana
TEST_CENTER = (46.0, 14.5)
TEST_RADIUS_KM = 25.0

# Smoothing factor for the average cycle time
CYCLE_TIME_ALPHA = 0.1


def region_bbox(region: RegionConfig) -> Optional[BoundingBox]:
    """
    Resolve the configured tracking region.

    'global' polls without a bounding box, 'custom' requires
    TRACKING_BOUNDS, anything else must be a named preset.
    """
    if region.name == 'global':
        return None
    if region.name == 'custom':
        if region.custom_bounds is None:
            raise ValueError('TRACKING_REGION=custom requires TRACKING_BOUNDS')
        return BoundingBox.from_bounds(region.custom_bounds)
    return BoundingBox.from_preset(region.name)


class TrackingPipeline:
    """
    Runs tracking cycles on a background thread.

    Args:
        client: Quota-aware OpenSky client (created from config if None)
        lifecycle: Entity lifecycle manager
        detector: Airspace violation detector
        bus: Event bus events are published to
        bbox: Region to poll (None = global)
        zones: Initial airspace zones
        base_update_interval: Minimum seconds between cycles
        clock: Time source for reconcile and detection
    """

    def __init__(
        self,
        client: Optional[OpenSkyClient] = None,
        lifecycle: Optional[AircraftLifecycleManager] = None,
        detector: Optional[ViolationDetector] = None,
        bus: Optional[EventBus] = None,
        bbox: Optional[BoundingBox] = None,
        zones: Optional[Sequence[AirspaceZone]] = None,
        base_update_interval: Optional[float] = None,
        region_name: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.client = client or OpenSkyClient.from_config()
        self.lifecycle = lifecycle or AircraftLifecycleManager()
        self.detector = detector or ViolationDetector()
        self.bus = bus or EventBus()
        self.bbox = bbox
        self.region_name = region_name or ('custom' if bbox else 'global')
        self.base_update_interval = (
            base_update_interval if base_update_interval is not None
            else config.tracking.base_update_interval
        )
        self._clock = clock
        self._zones: List[AirspaceZone] = list(zones or [])

        # Scheduling; a loop exits once its generation is superseded
        self._condition = threading.Condition()
        self._thread: Optional[threading.Thread] = None
        self._generation = 0
        self._scheduled = False
        self._next_cycle_at: Optional[float] = None

        # Serializes cycles and connection tests
        self._fetch_lock = threading.Lock()

        self.status = TrackingStatus.STOPPED
        self.status_message = 'Tracking stopped'

        # Statistics
        self._cycle_count = 0
        self._error_count = 0
        self._last_update_time: Optional[float] = None
        self._last_error: Optional[str] = None
        self._average_cycle_ms: Optional[float] = None
        self._entities_in_last_update = 0

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def _set_status(self, status: TrackingStatus, message: str) -> None:
        self.status = status
        self.status_message = message
        self.bus.publish(StatusChanged(status, message))

    @property
    def is_running(self) -> bool:
        return self._scheduled

    # -------------------------------------------------------------------------
    # Zones
    # -------------------------------------------------------------------------

    @property
    def zones(self) -> List[AirspaceZone]:
        return list(self._zones)

    def set_zones(self, zones: Sequence[AirspaceZone]) -> None:
        """Replace the airspace zones used from the next cycle on."""
        self._zones = list(zones)
        logger.info(f'Airspace zones updated: {len(self._zones)} zones')

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    def next_delay(self) -> float:
        """Seconds to wait before the next cycle."""
        return max(self.base_update_interval, self.client.time_until_next_request())

    def _record_error(self, error: Exception, generation: int) -> None:
        self._error_count += 1
        self._last_error = str(error)
        if self._generation != generation:
            # Paused or stopped while the request was in flight
            return
        self._set_status(TrackingStatus.ERROR, str(error))

    def run_cycle(self, generation: Optional[int] = None) -> int:
        """
        Execute one tracking cycle.

        A cycle started by the scheduler passes its loop generation and is
        dropped if pause or stop superseded it. Results of a superseded
        cycle are not published.

        Returns count of tracked entities, or -1 on error.
        """
        with self._fetch_lock:
            if generation is None:
                generation = self._generation
            elif generation != self._generation:
                return -1

            started = time.monotonic()

            try:
                snapshot = self.client.fetch_snapshot(self.bbox)

                now = self._clock()
                entities = self.lifecycle.reconcile(snapshot.states, now)
                result = self.detector.check_violations(entities, self._zones, now)
                statistics = fleet_statistics(entities, now)
            except AuthDenied as e:
                logger.error(f'OpenSky authentication failed, tracking halted: {e}')
                self._record_error(e, generation)
                self._halt()
                return -1
            except QuotaExceeded as e:
                if not e.remote:
                    # Local gate closed; the scheduler waits it out
                    logger.info(f'Tracking cycle skipped: {e}')
                    return -1
                logger.warning(f'Tracking cycle failed: {e}')
                self._record_error(e, generation)
                return -1
            except TrackingError as e:
                logger.error(f'Tracking cycle failed: {e}')
                self._record_error(e, generation)
                return -1
            except Exception as e:
                logger.exception(f'Unexpected error in tracking cycle: {e}')
                self._record_error(e, generation)
                return -1

            elapsed_ms = (time.monotonic() - started) * 1000
            if self._average_cycle_ms is None:
                self._average_cycle_ms = elapsed_ms
            else:
                self._average_cycle_ms = (
                    CYCLE_TIME_ALPHA * elapsed_ms
                    + (1 - CYCLE_TIME_ALPHA) * self._average_cycle_ms
                )

            self._cycle_count += 1
            self._last_update_time = now
            self._last_error = None
            self._entities_in_last_update = len(entities)

        if self._generation != generation:
            logger.info('Tracking cycle superseded by pause or stop, results not published')
            return len(entities)

        if self.status == TrackingStatus.ERROR and self._scheduled:
            self._set_status(TrackingStatus.RUNNING, 'Tracking recovered')

        self.bus.publish(EntitiesUpdated(entities, statistics))
        for violation in result.detected:
            self.bus.publish(ViolationDetected(violation))
        for violation in result.resolved:
            self.bus.publish(ViolationResolved(violation))

        logger.info(
            f'Cycle {self._cycle_count}: {len(snapshot.states)} aircraft in snapshot, '
            f'{len(entities)} tracked, {len(result.detected)} new violations, '
            f'{len(result.resolved)} resolved'
        )
        return len(entities)

    def test_connection(self) -> dict:
        """
        Probe the remote source with a small regional query.

        Goes through the same quota gate as regular cycles.
        """
        with self._fetch_lock:
            try:
                snapshot = self.client.fetch_in_region(*TEST_CENTER, radius_km=TEST_RADIUS_KM)
            except TrackingError as e:
                logger.warning(f'Connection test failed: {e}')
                return {
                    'success': False,
                    'message': f'Connection failed: {e}',
                    'error': type(e).__name__,
                    'quota': self.client.usage_stats(),
                }

        count = len(snapshot.states)
        logger.info(f'Connection test succeeded, {count} aircraft found')
        return {
            'success': True,
            'message': f'Connection successful. Found {count} aircraft.',
            'aircraft_count': count,
            'quota': self.client.usage_stats(),
        }

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def _run_loop(self, generation: int, delay: float) -> None:
        while True:
            with self._condition:
                self._next_cycle_at = time.monotonic() + delay
                self._condition.wait_for(lambda: self._generation != generation, timeout=delay)
                if self._generation != generation:
                    return
                self._next_cycle_at = None

            if not self.client.can_request():
                delay = self.next_delay()
                continue

            self.run_cycle(generation)

            if self._generation != generation:
                return
            delay = self.next_delay()

    def _launch(self) -> None:
        delay = 0.0 if self.client.can_request() else self.next_delay()
        with self._condition:
            self._generation += 1
            self._scheduled = True
            generation = self._generation

        self._thread = threading.Thread(
            target=self._run_loop,
            args=(generation, delay),
            daemon=True,
        )
        self._thread.start()
        if delay:
            logger.info(f'First tracking cycle in {delay:.0f}s')

    def _halt(self) -> None:
        """Cancel the pending cycle and let the loop exit."""
        with self._condition:
            self._generation += 1
            self._scheduled = False
            self._next_cycle_at = None
            self._condition.notify_all()

    def _join(self) -> None:
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=5)

    def start(self) -> bool:
        """Begin tracking. Returns False if already running."""
        if self._scheduled:
            logger.warning('Tracking already running')
            return False

        self._launch()
        self._set_status(TrackingStatus.RUNNING, 'Tracking started')
        logger.info(f'Tracking started (region={self.region_name}, interval={self.base_update_interval}s)')
        return True

    def pause(self) -> bool:
        """Suspend scheduling, keeping entities and violations."""
        if not self._scheduled:
            return False

        self._halt()
        self._set_status(TrackingStatus.PAUSED, 'Tracking paused')
        logger.info('Tracking paused')
        return True

    def resume(self) -> bool:
        """Reschedule after pause, honoring the quota gate."""
        if self.status != TrackingStatus.PAUSED:
            return False

        self._join()
        self._launch()
        self._set_status(TrackingStatus.RUNNING, 'Tracking resumed')
        logger.info('Tracking resumed')
        return True

    def stop(self) -> None:
        """Stop tracking and discard entities and violations. Quota persists."""
        self._halt()
        self._join()

        with self._fetch_lock:
            self.lifecycle.clear()
            self.detector.reset()
            self._entities_in_last_update = 0

        self._set_status(TrackingStatus.STOPPED, 'Tracking stopped')
        logger.info('Tracking stopped')

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    def statistics(self) -> dict:
        """Point-in-time tracking statistics."""
        next_update_in = None
        with self._condition:
            if self._next_cycle_at is not None:
                next_update_in = round(max(0.0, self._next_cycle_at - time.monotonic()), 1)

        return {
            'status': self.status.value,
            'message': self.status_message,
            'region': self.region_name,
            'is_running': self._scheduled,
            'tracked_entities': len(self.lifecycle),
            'entities_in_last_update': self._entities_in_last_update,
            'active_violations': len(self.detector.active_violations()),
            'airspace_zones': len(self._zones),
            'cycle_count': self._cycle_count,
            'error_count': self._error_count,
            'last_update_time': self._last_update_time,
            'last_error': self._last_error,
            'average_cycle_ms': (
                round(self._average_cycle_ms, 1) if self._average_cycle_ms is not None else None
            ),
            'base_update_interval': self.base_update_interval,
            'next_update_in': next_update_in,
            'quota': self.client.usage_stats(),
        }
