"""
Flask application factory.

create_app() is the composition root: it builds the Redis-backed services
(slot counter, progress store, funnel sessions, vendor circuit breakers) once
and hangs them on `app.extensions['homemaxx']` for the blueprints.
"""
import logging
import os

from flask import Flask

logger = logging.getLogger('homemaxx')

CORS_ALLOW_HEADERS = 'Content-Type'
CORS_ALLOW_METHODS = 'GET, POST, DELETE, OPTIONS'


def create_app(redis_client=None, init_database=True):
    """Create and configure the Flask application."""
    from homemaxx import config
    from homemaxx.logging_config import configure_logging

    app = Flask(
        __name__,
        template_folder=os.path.join(os.path.dirname(os.path.dirname(__file__)), 'templates'),
    )

    configure_logging(app)
    app.secret_key = config.SECRET_KEY

    @app.after_request
    def add_cors_headers(response):
        response.headers['Access-Control-Allow-Origin'] = config.CORS_ALLOW_ORIGIN
        response.headers['Access-Control-Allow-Headers'] = CORS_ALLOW_HEADERS
        response.headers['Access-Control-Allow-Methods'] = CORS_ALLOW_METHODS
        return response

    # Register blueprints
    from homemaxx.routes.appointments import bp as appointments_bp
    from homemaxx.routes.funnel import bp as funnel_bp
    from homemaxx.routes.health import bp as health_bp
    from homemaxx.routes.offers import bp as offers_bp
    from homemaxx.routes.property import bp as property_bp
    from homemaxx.routes.slots import bp as slots_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(offers_bp)
    app.register_blueprint(property_bp)
    app.register_blueprint(appointments_bp)
    app.register_blueprint(slots_bp)
    app.register_blueprint(funnel_bp)

    # Services
    from homemaxx.funnel.progress import ProgressStore
    from homemaxx.funnel.service import FunnelService
    from homemaxx.services.circuit_breaker import init_breakers
    from homemaxx.services.slots import SlotCounter

    if redis_client is None:
        from homemaxx.extensions import redis_client

    init_breakers(redis_client)
    progress = ProgressStore(redis_client)
    app.extensions['homemaxx'] = {
        'redis': redis_client,
        'slots': SlotCounter(redis_client),
        'progress': progress,
        'funnel': FunnelService(redis_client, progress),
    }

    if init_database:
        from homemaxx.database import init_db
        try:
            init_db()
        except Exception as e:
            logger.error("Could not create lead-submission tables: %s", e)

    return app
