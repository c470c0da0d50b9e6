"""
Database models for AirGuard.

Only quota usage is persisted; tracked entities and violations are
rebuilt every session.
"""

from airguard.models.base import Base, engine, SessionLocal, init_db
from airguard.models.quota_usage import QuotaUsage

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'init_db',
    'QuotaUsage',
]
