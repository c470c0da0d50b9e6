"""
Aircraft lifecycle management - reconciles snapshots into tracked entities.

Each reconcile pass:
1. Merge: update entities present in the snapshot, create new ones
2. Trail: append fixes that moved more than the jitter threshold
3. Interpolation: rebuild the window from the last two trail fixes
4. Eviction: drop absent entities once their last contact is older than
   the cleanup interval (a single missed cycle never removes an aircraft)
5. Capacity: keep only the most recently contacted entities
"""

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Set

from airguard.config import config
from airguard.tracking.entity import Position, TrackedEntity

if TYPE_CHECKING:
    from airguard.ingestion.opensky_client import StateVector

logger = logging.getLogger(__name__)


class AircraftLifecycleManager:
    """
    Owns the keyed set of tracked entities.

    Mutated only from the tracking cycle; readers get lists that are
    point-in-time copies of the current set.
    """

    def __init__(
        self,
        max_tracked: Optional[int] = None,
        cleanup_interval: Optional[float] = None,
        trail_length: Optional[int] = None,
        min_trail_displacement_m: Optional[float] = None,
        interpolation_tolerance: Optional[float] = None,
    ):
        tracking = config.tracking
        self.max_tracked = max_tracked if max_tracked is not None else tracking.max_tracked_entities
        self.cleanup_interval = (
            cleanup_interval if cleanup_interval is not None else tracking.cleanup_interval_seconds
        )
        self.trail_length = trail_length if trail_length is not None else tracking.trail_length
        self.min_trail_displacement_m = (
            min_trail_displacement_m if min_trail_displacement_m is not None
            else tracking.min_trail_displacement_m
        )
        self.interpolation_tolerance = (
            interpolation_tolerance if interpolation_tolerance is not None
            else tracking.interpolation_tolerance_seconds
        )

        self._entities: Dict[str, TrackedEntity] = {}

    def __len__(self) -> int:
        return len(self._entities)

    def reconcile(self, states: Iterable['StateVector'], now: float) -> List[TrackedEntity]:
        """
        Merge validated state vectors into the tracked set.

        Returns the full reconciled set, including entities absent from
        this snapshot that are still within the grace period.
        """
        present: Set[str] = set()
        created = 0

        for state in states:
            if state.icao24 in present:
                # Duplicate id in one snapshot: first record wins
                continue
            present.add(state.icao24)

            existing = self._entities.get(state.icao24)
            if existing:
                existing.apply_state(state, now)
            else:
                entity = TrackedEntity.from_state(
                    state,
                    now,
                    max_trail_length=self.trail_length,
                    min_displacement_m=self.min_trail_displacement_m,
                )
                self._entities[entity.id] = entity
                created += 1
                logger.debug(
                    f'New aircraft: {entity.display_callsign} ({entity.category.display_name})'
                )

        evicted = self._evict_inactive(present, now)
        truncated = self._enforce_capacity()

        if created or evicted or truncated:
            logger.info(
                f'Reconciled {len(present)} aircraft: {created} new, '
                f'{evicted} inactive removed, {truncated} over capacity dropped'
            )

        return list(self._entities.values())

    def _evict_inactive(self, present: Set[str], now: float) -> int:
        """Remove absent entities whose last contact exceeds the cleanup interval."""
        to_remove = [
            entity_id
            for entity_id, entity in self._entities.items()
            if entity_id not in present and entity.contact_age(now) > self.cleanup_interval
        ]
        for entity_id in to_remove:
            del self._entities[entity_id]
            logger.debug(f'Removed inactive aircraft: {entity_id}')
        return len(to_remove)

    def _enforce_capacity(self) -> int:
        """Keep the max_tracked most recently contacted entities."""
        overflow = len(self._entities) - self.max_tracked
        if overflow <= 0:
            return 0

        ranked = sorted(
            self._entities.values(),
            key=lambda e: e.last_contact_time,
            reverse=True,
        )
        for entity in ranked[self.max_tracked:]:
            del self._entities[entity.id]
        return overflow

    # -------------------------------------------------------------------------
    # Query surface
    # -------------------------------------------------------------------------

    def get(self, entity_id: str) -> Optional[TrackedEntity]:
        return self._entities.get(entity_id.lower())

    def entities(self) -> List[TrackedEntity]:
        return list(self._entities.values())

    def search(self, term: str) -> List[TrackedEntity]:
        """Case-insensitive substring match over callsign and identifier."""
        needle = term.strip().lower()
        if not needle:
            return self.entities()
        return [
            entity for entity in self._entities.values()
            if needle in (entity.callsign or '').lower() or needle in entity.id
        ]

    def interpolated_position_at(self, entity_id: str, time: float) -> Optional[Position]:
        entity = self.get(entity_id)
        if entity is None:
            return None
        return entity.interpolated_position_at(time, self.interpolation_tolerance)

    def clear(self) -> None:
        """Discard all tracked entities."""
        self._entities.clear()
