"""
AirGuard Flask Application.

Main entry point for the web application. Initializes:
- Database schema (quota table)
- Airspace zones from AIRSPACE_ZONES_FILE
- Tracking pipeline
- API routes

Usage:
    python -m airguard.app

Or with gunicorn:
    gunicorn 'airguard.app:create_app()'
"""

import logging
import os
from typing import Optional

from flask import Flask
from flask_cors import CORS

from airguard.airspace.zones import load_zones_file
from airguard.api import aircraft_bp, airspace_bp, tracking_bp, violations_bp
from airguard.config import config
from airguard.events import EventBus, EventKind
from airguard.ingestion import TrackingPipeline, region_bbox
from airguard.models import init_db

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def _load_configured_zones() -> list:
    path = config.detection.zones_file
    if not path:
        logger.warning('No AIRSPACE_ZONES_FILE configured, violation detection has no zones')
        return []

    try:
        return load_zones_file(path)
    except (OSError, ValueError) as e:
        logger.error(f'Failed to load airspace zones from {path}: {e}')
        return []


def _log_violation(event) -> None:
    violation = event.violation
    if violation.alertable:
        logger.warning(f'ALERT: {violation.message}')


def build_pipeline() -> TrackingPipeline:
    """Create the tracking pipeline from application configuration."""
    bus = EventBus()
    bus.subscribe(EventKind.VIOLATION_DETECTED, _log_violation)

    return TrackingPipeline(
        bus=bus,
        bbox=region_bbox(config.region),
        zones=_load_configured_zones(),
        region_name=config.region.name,
    )


def create_app(start_tracking: bool = True, pipeline: Optional[TrackingPipeline] = None) -> Flask:
    """
    Application factory for Flask.

    Args:
        start_tracking: Whether to start the background tracking loop.
                        Set to False for testing.
        pipeline: Pre-built pipeline (tests inject one with fakes).
                  Built from config, with the database initialized, if None.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)

    # Configuration
    app.config['SECRET_KEY'] = config.secret_key

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    if pipeline is None:
        logger.info('Initializing database...')
        init_db()
        pipeline = build_pipeline()

    app.config['TRACKING_PIPELINE'] = pipeline

    # Register API blueprints
    app.register_blueprint(tracking_bp)
    app.register_blueprint(aircraft_bp)
    app.register_blueprint(violations_bp)
    app.register_blueprint(airspace_bp)

    if start_tracking:
        pipeline.start()

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok', 'tracking': pipeline.status.value}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    app = create_app()

    port = int(os.environ.get('PORT', 5000))

    logger.info(f'Starting AirGuard on http://localhost:{port}')

    app.run(
        host='0.0.0.0',
        port=port,
        debug=config.debug,
        use_reloader=False,  # Disable reloader to prevent duplicate tracking threads
    )


if __name__ == '__main__':
    run_development_server()
