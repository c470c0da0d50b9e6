"""
QuotaUsage model - persisted daily request budget.

One row per local calendar day. The row for today is the only one the
client reads; older rows are kept as a usage log and never mutated.
"""

from datetime import datetime, timezone

from sqlalchemy import String, Float, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from airguard.models.base import Base


class QuotaUsage(Base):
    """
    Requests charged against the remote source for one calendar day.

    Fields:
        day: Local ISO date (e.g., '2026-10-19')
        requests_used: Outbound requests charged so far today
        daily_limit: Limit in force when the row was last written
        last_request_time: Unix timestamp of the most recent request
    """

    __tablename__ = 'quota_usage'

    day: Mapped[str] = mapped_column(
        String(10),
        primary_key=True,
        comment='Local calendar day (ISO date)'
    )

    requests_used: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment='Requests charged today'
    )

    daily_limit: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment='Daily request limit'
    )

    last_request_time: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment='Unix timestamp of last outbound request'
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        comment='Last write timestamp'
    )

    def __repr__(self) -> str:
        return f'<QuotaUsage {self.day} {self.requests_used}/{self.daily_limit}>'
