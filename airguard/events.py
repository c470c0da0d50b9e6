"""
Outbound events for UI and visualization collaborators.

The core pushes; collaborators subscribe. Each event kind has its own
observer list so a subscriber only ever receives the payload type it
asked for.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Union

logger = logging.getLogger(__name__)


class TrackingStatus(str, Enum):
    """Scheduler status reported through StatusChanged."""
    RUNNING = 'running'
    PAUSED = 'paused'
    STOPPED = 'stopped'
    ERROR = 'error'


class EventKind(str, Enum):
    STATUS_CHANGED = 'status-changed'
    ENTITIES_UPDATED = 'entities-updated'
    VIOLATION_DETECTED = 'violation-detected'
    VIOLATION_RESOLVED = 'violation-resolved'


@dataclass(frozen=True)
class StatusChanged:
    status: TrackingStatus
    message: str
    kind: EventKind = field(default=EventKind.STATUS_CHANGED, init=False)


@dataclass(frozen=True)
class EntitiesUpdated:
    entities: list
    statistics: Dict[str, Any]
    kind: EventKind = field(default=EventKind.ENTITIES_UPDATED, init=False)


@dataclass(frozen=True)
class ViolationDetected:
    violation: Any
    kind: EventKind = field(default=EventKind.VIOLATION_DETECTED, init=False)


@dataclass(frozen=True)
class ViolationResolved:
    violation: Any
    kind: EventKind = field(default=EventKind.VIOLATION_RESOLVED, init=False)


TrackingEvent = Union[StatusChanged, EntitiesUpdated, ViolationDetected, ViolationResolved]


class EventBus:
    """
    Per-kind observer lists.

    Observer failures are logged and never propagate into the tracking
    cycle that published the event.
    """

    def __init__(self):
        self._observers: Dict[EventKind, List[Callable[[TrackingEvent], None]]] = {
            kind: [] for kind in EventKind
        }

    def subscribe(self, kind: EventKind, callback: Callable[[TrackingEvent], None]) -> None:
        """Register callback for one event kind."""
        self._observers[EventKind(kind)].append(callback)

    def unsubscribe(self, kind: EventKind, callback: Callable[[TrackingEvent], None]) -> None:
        observers = self._observers[EventKind(kind)]
        if callback in observers:
            observers.remove(callback)

    def publish(self, event: TrackingEvent) -> None:
        for callback in list(self._observers[event.kind]):
            try:
                callback(event)
            except Exception as e:
                logger.error(f'{event.kind.value} observer error: {e}')
