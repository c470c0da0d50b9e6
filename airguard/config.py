"""
Configuration management for AirGuard.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.
"""

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

load_dotenv()


# Named tracking regions: (lat_min, lon_min, lat_max, lon_max)
REGION_PRESETS = {
    'slovenia': (45.4, 13.4, 46.9, 16.6),
}


def _parse_bounds(value: str) -> Optional[Tuple[float, float, float, float]]:
    """Parse 'lamin,lomin,lamax,lomax' string into tuple, or None if empty/invalid."""
    if not value:
        return None
    try:
        lamin, lomin, lamax, lomax = (float(part.strip()) for part in value.split(','))
    except (ValueError, AttributeError):
        return None
    return (lamin, lomin, lamax, lomax)


def _parse_classes(value: str) -> Tuple[str, ...]:
    """Parse comma separated airspace classifications, upper-cased."""
    return tuple(part.strip().upper() for part in value.split(',') if part.strip())


@dataclass(frozen=True)
class OpenSkyConfig:
    """OpenSky API configuration."""
    username: Optional[str] = os.getenv('OPENSKY_USERNAME') or None
    password: Optional[str] = os.getenv('OPENSKY_PASSWORD') or None
    base_url: str = os.getenv('OPENSKY_BASE_URL', 'https://opensky-network.org/api')
    timeout_ms: int = int(os.getenv('OPENSKY_TIMEOUT_MS', '10000'))
    retry_attempts: int = int(os.getenv('OPENSKY_RETRY_ATTEMPTS', '3'))

    @property
    def is_authenticated(self) -> bool:
        return bool(self.username and self.password)


@dataclass(frozen=True)
class QuotaConfig:
    """Daily request budget for the remote source."""
    daily_limit: int = int(os.getenv('OPENSKY_DAILY_LIMIT', '400'))
    min_request_interval: float = float(os.getenv('OPENSKY_MIN_REQUEST_INTERVAL', '30'))


@dataclass(frozen=True)
class RegionConfig:
    """Geographic region the tracker polls."""
    name: str = os.getenv('TRACKING_REGION', 'slovenia').lower()
    custom_bounds: Optional[Tuple[float, float, float, float]] = _parse_bounds(
        os.getenv('TRACKING_BOUNDS', '')
    )


@dataclass(frozen=True)
class TrackingConfig:
    """Entity lifecycle settings."""
    base_update_interval: float = float(os.getenv('BASE_UPDATE_INTERVAL_SECONDS', '30'))
    max_tracked_entities: int = int(os.getenv('MAX_TRACKED_ENTITIES', '100'))
    cleanup_interval_seconds: float = float(os.getenv('CLEANUP_INTERVAL_SECONDS', '300'))

    trail_length: int = 20
    min_trail_displacement_m: float = 100.0
    interpolation_tolerance_seconds: float = 30.0
    max_record_age_seconds: float = 300.0  # Drop records older than this at fetch


@dataclass(frozen=True)
class DetectionConfig:
    """Airspace violation detection settings."""
    restricted_classes: Tuple[str, ...] = _parse_classes(
        os.getenv('RESTRICTED_CLASSES', 'DANGER,PROHIBITED,RESTRICTED')
    )
    zones_file: Optional[str] = os.getenv('AIRSPACE_ZONES_FILE') or None

    freshness_seconds: float = 300.0
    history_limit: int = 1000
    terrain_buffer_ft: float = 1000.0  # Assumed ground elevation for AGL bounds


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///airguard.db')

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith('sqlite')


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    opensky: OpenSkyConfig
    quota: QuotaConfig
    region: RegionConfig
    tracking: TrackingConfig
    detection: DetectionConfig
    database: DatabaseConfig

    # Flask settings
    secret_key: str
    debug: bool


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        opensky=OpenSkyConfig(),
        quota=QuotaConfig(),
        region=RegionConfig(),
        tracking=TrackingConfig(),
        detection=DetectionConfig(),
        database=DatabaseConfig(),
        secret_key=os.getenv('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
    )


# Singleton instance
config = load_config()
