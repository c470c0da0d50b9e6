"""
Daily request quota bookkeeping.

QuotaState is the in-memory view the client checks before every request;
QuotaStore moves it to and from the quota_usage table. The store is
handed to the client at construction and touched at exactly two points:
startup load and the write that follows every mutation.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from airguard.models import QuotaUsage, SessionLocal

logger = logging.getLogger(__name__)


def local_day(timestamp: float) -> str:
    """Local calendar day of a Unix timestamp as an ISO date."""
    return datetime.fromtimestamp(timestamp).date().isoformat()


def seconds_until_local_midnight(timestamp: float) -> float:
    """Seconds from timestamp until the next local midnight."""
    current = datetime.fromtimestamp(timestamp)
    next_day = date.fromordinal(current.date().toordinal() + 1)
    midnight = datetime.combine(next_day, datetime.min.time())
    return max(0.0, midnight.timestamp() - timestamp)


@dataclass
class QuotaState:
    """
    Requests charged against the daily budget.

    requests_used never decreases except through roll_over(), which fires
    once when the local calendar day changes.
    """
    requests_used: int
    daily_limit: int
    last_request_time: float
    day_marker: str

    @property
    def exhausted(self) -> bool:
        return self.requests_used >= self.daily_limit

    @property
    def remaining(self) -> int:
        return max(0, self.daily_limit - self.requests_used)

    def roll_over(self, today: str) -> bool:
        """Reset the counter if today differs from the stored day. Returns True on reset."""
        if self.day_marker == today:
            return False
        self.requests_used = 0
        self.day_marker = today
        return True

    def charge(self, timestamp: float) -> None:
        """Record one outbound request."""
        self.requests_used += 1
        self.last_request_time = timestamp


class QuotaStore:
    """
    Persists QuotaState keyed by calendar day.

    Args:
        session_factory: Callable returning a SQLAlchemy session
            (defaults to the application SessionLocal)
    """

    def __init__(self, session_factory: Optional[Callable[[], Session]] = None):
        self._session_factory = session_factory or SessionLocal

    def load(self, today: str, daily_limit: int) -> QuotaState:
        """
        Load today's quota row.

        A missing row means a fresh day; last_request_time is carried over
        from the most recent earlier row so spacing survives midnight.
        """
        with self._session_factory() as session:
            row = session.get(QuotaUsage, today)
            if row is not None:
                logger.info(f'Loaded request count: {row.requests_used}/{daily_limit}')
                return QuotaState(
                    requests_used=row.requests_used,
                    daily_limit=daily_limit,
                    last_request_time=row.last_request_time,
                    day_marker=today,
                )

            previous = (
                session.query(QuotaUsage)
                .order_by(QuotaUsage.day.desc())
                .first()
            )

        state = QuotaState(
            requests_used=0,
            daily_limit=daily_limit,
            last_request_time=previous.last_request_time if previous else 0.0,
            day_marker=today,
        )
        self.save(state)
        return state

    def save(self, state: QuotaState) -> None:
        """Write state to the row for its day."""
        with self._session_factory() as session:
            row = session.get(QuotaUsage, state.day_marker)
            if row is None:
                row = QuotaUsage(day=state.day_marker)
                session.add(row)
            row.requests_used = state.requests_used
            row.daily_limit = state.daily_limit
            row.last_request_time = state.last_request_time
            session.commit()
