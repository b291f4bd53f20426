from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _configure_logging(app: Flask):
    level = getattr(logging, str(app.config['LOG_LEVEL']).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logging.getLogger('assetcare').setLevel(level)
    app.logger.setLevel(level)


def _build_engine(db_url: str, timeout: float):
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        return create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False, "timeout": timeout},
            poolclass=StaticPool,
        )
    if db_url.startswith('sqlite'):
        return create_engine(db_url, echo=False, future=True, connect_args={"timeout": timeout})
    return create_engine(db_url, echo=False, future=True, pool_timeout=timeout, pool_pre_ping=True)


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config['JWT_SECRET_KEY'] = os.getenv('JWT_SECRET_KEY', 'dev-secret')
    app.config['DATABASE_URL'] = os.getenv('DATABASE_URL', 'sqlite:///dev.db')
    app.config['DB_TIMEOUT_SECONDS'] = float(os.getenv('DB_TIMEOUT_SECONDS', '5'))
    app.config['RATE_LIMIT_WINDOW_SECONDS'] = int(os.getenv('RATE_LIMIT_WINDOW_SECONDS', '600'))
    app.config['RATE_LIMIT_MAX_REPORTS'] = int(os.getenv('RATE_LIMIT_MAX_REPORTS', '1'))
    app.config['HEALTH_SWEEP_WORKERS'] = int(os.getenv('HEALTH_SWEEP_WORKERS', '1'))
    app.config['LOG_LEVEL'] = os.getenv('LOG_LEVEL', 'INFO')
    # HEALTH_<THRESHOLD> overrides, e.g. HEALTH_OPEN_ISSUES_WARNING=4
    for key, val in os.environ.items():
        if key.startswith('HEALTH_') and key != 'HEALTH_SWEEP_WORKERS':
            app.config[key] = val

    if config:
        # allow tests or callers to override default config values
        app.config.update(config)

    _configure_logging(app)

    # Database
    db_engine = _build_engine(app.config['DATABASE_URL'], app.config['DB_TIMEOUT_SECONDS'])
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    # Domain services, built once per app from config
    from .config.thresholds import ThresholdConfig
    from .services.intake import IntakePipeline
    from .services.rate_limiter import RateLimiter
    from .services.maintenance import MaintenanceStateMachine
    thresholds = ThresholdConfig.from_mapping(app.config)
    app.extensions['assetcare'] = {
        'thresholds': thresholds,
        'intake': IntakePipeline(RateLimiter(app.config['RATE_LIMIT_WINDOW_SECONDS'], app.config['RATE_LIMIT_MAX_REPORTS'])),
        'maintenance': MaintenanceStateMachine(thresholds),
    }

    from .routes.issues import issues_bp  # report intake + ticket lookup
    from .routes.asset_health import health_bp  # health summary, sweep, maintenance
    app.register_blueprint(issues_bp, url_prefix='/issues')
    app.register_blueprint(health_bp, url_prefix='/asset-health')

    from .cli import register_cli
    register_cli(app)

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    from .errors import AssetCareError, ConflictRetryable, TransientStoreFailure

    @app.errorhandler(AssetCareError)
    def handle_domain_error(e: AssetCareError):  # type: ignore
        get_db().rollback()
        headers = {}
        if getattr(e, 'retry_after', None):
            headers['Retry-After'] = str(e.retry_after)
        if e.status >= 500:
            app.logger.error('%s: %s', e.kind, e.detail)
        return e.to_payload(), e.status, headers

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            payload = {
                'error': {
                    'status': e.code,
                    'title': e.name,
                    'kind': 'http_error',
                    'detail': e.description,
                }
            }
            return payload, e.code
        if isinstance(e, (OperationalError, PoolTimeoutError)):
            app.logger.exception('Store failure')
            return handle_domain_error(TransientStoreFailure('Store unavailable, please retry later'))
        if isinstance(e, StaleDataError):
            return handle_domain_error(ConflictRetryable('Record changed concurrently, please retry'))
        # Unhandled exception
        app.logger.exception('Unhandled exception')
        return {
            'error': {
                'status': 500,
                'title': 'Internal Server Error',
                'kind': 'internal',
                'detail': 'Unexpected error'
            }
        }, 500

    # OpenAPI spec route (minimal)
    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    @app.route('/docs')
    def docs_index():
        # Lightweight HTML referencing Redoc CDN (no local install) for quick browsing
        return (
            "<!DOCTYPE html><html><head><title>Asset Health API Docs</title>"
            "<link rel=\"stylesheet\" href=\"https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.css\" />"
            "</head><body><redoc spec-url='/openapi.json'></redoc>"
            "<script src='https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.js'></script>"
            "</body></html>"
        )

    return app


def get_db():
    return SessionLocal()


def domain_services() -> Dict[str, Any]:
    from flask import current_app
    return current_app.extensions['assetcare']
