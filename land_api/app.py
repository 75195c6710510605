"""
Land Services API - Flask Application Factory

Builds the Flask application for the land application workflow: wires the
MongoDB, Redis, ledger and document services, installs middleware, and
registers the citizen and admin blueprints.
"""

import os
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from flask import Flask, jsonify

from .config import load_config
from .observability.config import setup_observability
from .observability.middleware import add_observability_middleware
from .middleware.error_handler import ErrorHandlerMiddleware
from .middleware.auth import AuthMiddleware
from .services.hal import create_hal_formatter
from .services.mongodb import MongoDBService
from .services.redis import RedisService
from .services.auth import AuthService
from .services.chain import ChainClient, HttpChainClient
from .services.documents import DocumentStore, GridFSDocumentStore
from .services.audit import AuditTrailService
from .services.applications import ApplicationService
from .services.reconciliation import LedgerReconciliationService, ReconciliationConfig
from .services.health import HealthCheckService

logger = logging.getLogger(__name__)


def create_app(
    config_overrides: Optional[Dict[str, Any]] = None,
    mongodb_service: Optional[MongoDBService] = None,
    redis_service: Optional[RedisService] = None,
    auth_service: Optional[AuthService] = None,
    chain_client: Optional[ChainClient] = None,
    document_store: Optional[DocumentStore] = None
) -> Flask:
    """
    Create and configure the Flask application.

    Collaborators that are passed in are used as-is; anything omitted is
    built from configuration.

    Args:
        config_overrides: Configuration values that take precedence over the environment
        mongodb_service: MongoDB service
        redis_service: Redis service; none is used when REDIS_URL is empty
        auth_service: Bearer token validation service
        chain_client: Ledger gateway client
        document_store: Binary document store

    Returns:
        Configured Flask application
    """
    config = load_config(config_overrides)

    # Initialize observability first
    setup_observability(config)

    app = Flask(__name__)
    app.config.update(config)

    add_observability_middleware(app)

    # Initialize services
    if mongodb_service is None:
        mongodb_service = MongoDBService(app.config['MONGODB_URI'], app.config['MONGODB_DATABASE'])
    if redis_service is None and app.config['REDIS_URL']:
        redis_service = RedisService(app.config['REDIS_URL'])
    if auth_service is None:
        auth_service = AuthService(
            public_key=app.config['JWT_PUBLIC_KEY'] or None,
            algorithm=app.config['JWT_ALGORITHM'],
            secret=app.config['JWT_SECRET'] or None
        )
    if chain_client is None:
        chain_client = HttpChainClient(
            app.config['LEDGER_GATEWAY_URL'],
            token=app.config['LEDGER_GATEWAY_TOKEN'] or None,
            timeout=app.config['LEDGER_TIMEOUT_SECONDS']
        )
    if document_store is None:
        document_store = GridFSDocumentStore(mongodb_service)

    audit_service = AuditTrailService(mongodb_service)
    application_service = ApplicationService(
        mongodb_service,
        document_store,
        audit_service,
        redis_service=redis_service,
        max_document_bytes=app.config['MAX_DOCUMENT_BYTES'],
        counts_cache_ttl=app.config['STATUS_COUNTS_CACHE_TTL']
    )
    reconciliation_service = LedgerReconciliationService(
        chain_client,
        application_service=application_service,
        redis_service=redis_service,
        config=ReconciliationConfig(
            timeout=app.config['LEDGER_TIMEOUT_SECONDS'],
            max_retries=app.config['LEDGER_MAX_RETRIES'],
            retry_delay=app.config['LEDGER_RETRY_DELAY_SECONDS'],
            cache_ttl=app.config['LEDGER_STATS_CACHE_TTL'],
            max_age=app.config['LEDGER_STATS_MAX_AGE']
        )
    )
    health_service = HealthCheckService(mongodb_service, redis_service, chain_client)

    # Initialize middleware
    hal_formatter = create_hal_formatter(app.config['BASE_URL'])
    auth_middleware = AuthMiddleware(auth_service, redis_service)
    ErrorHandlerMiddleware(app, app.config['BASE_URL'])

    # Make services available to routes
    app.mongodb_service = mongodb_service
    app.redis_service = redis_service
    app.auth_service = auth_service
    app.chain_client = chain_client
    app.document_store = document_store
    app.audit_service = audit_service
    app.application_service = application_service
    app.reconciliation_service = reconciliation_service
    app.health_service = health_service
    app.hal_formatter = hal_formatter
    app.auth_middleware = auth_middleware

    # Register routes
    from .routes.land import land_bp
    from .routes.admin import admin_bp

    app.register_blueprint(land_bp)
    app.register_blueprint(admin_bp)

    @app.route('/api/healthz')
    def health_check():
        """Health check endpoint with dependency monitoring"""
        try:
            health_data = health_service.get_comprehensive_health()
            status_code = 503 if health_data["status"] == "unhealthy" else 200
        except Exception as e:
            logger.error(f"Health check failed: {str(e)}", exc_info=True)
            health_data = {
                "status": "unhealthy",
                "service": app.config['SERVICE_NAME'],
                "environment": app.config['ENVIRONMENT'],
                "timestamp": datetime.utcnow().isoformat() + "Z",
                "error": f"Health check service failed: {str(e)}"
            }
            status_code = 503

        return jsonify(hal_formatter.format_resource(health_data, '/api/healthz')), status_code

    logger.info(
        "Land services API initialized",
        extra={"environment": app.config['ENVIRONMENT'], "base_url": app.config['BASE_URL']}
    )
    return app


if __name__ == '__main__':
    # Development server
    app = create_app()
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=app.config['DEBUG']
    )
