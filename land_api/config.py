# SPDX-License-Identifier: Apache-2.0

"""
Application configuration.

Settings are read from the environment once at startup and placed in
``app.config``; tests pass overrides instead of touching the environment.
"""

import os
from typing import Any, Dict, Optional

from .domain.documents import MAX_DOCUMENT_BYTES


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('true', '1', 'yes', 'on')


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def load_config(overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Build the configuration mapping from environment variables.

    Args:
        overrides: Values that take precedence over the environment

    Returns:
        Configuration dictionary suitable for ``app.config.update``
    """
    environment = os.getenv('ENVIRONMENT', 'development')

    config = {
        'ENVIRONMENT': environment,
        'DEBUG': environment == 'development',
        'BASE_URL': os.getenv('BASE_URL', 'http://localhost:5000'),
        'SERVICE_NAME': 'land-services-api',
        'SERVICE_VERSION': os.getenv('SERVICE_VERSION', '1.0.0'),

        # Database configuration
        'MONGODB_URI': os.getenv('MONGODB_URI', 'mongodb://localhost:27017/land_services'),
        'MONGODB_DATABASE': os.getenv('MONGODB_DATABASE', 'land_services'),
        'REDIS_URL': os.getenv('REDIS_URL', ''),

        # Token validation
        'JWT_ALGORITHM': os.getenv('JWT_ALGORITHM', 'RS256'),
        'JWT_PUBLIC_KEY': os.getenv('JWT_PUBLIC_KEY', ''),
        'JWT_SECRET': os.getenv('JWT_SECRET', ''),

        # Ledger gateway
        'LEDGER_GATEWAY_URL': os.getenv('LEDGER_GATEWAY_URL', 'http://localhost:8545/api'),
        'LEDGER_GATEWAY_TOKEN': os.getenv('LEDGER_GATEWAY_TOKEN', ''),
        'LEDGER_TIMEOUT_SECONDS': _env_float('LEDGER_TIMEOUT_SECONDS', 5.0),
        'LEDGER_MAX_RETRIES': _env_int('LEDGER_MAX_RETRIES', 1),
        'LEDGER_RETRY_DELAY_SECONDS': _env_float('LEDGER_RETRY_DELAY_SECONDS', 0.5),
        'LEDGER_STATS_CACHE_TTL': _env_int('LEDGER_STATS_CACHE_TTL', 3600),
        'LEDGER_STATS_MAX_AGE': _env_int('LEDGER_STATS_MAX_AGE', 30),

        # Intake
        'MAX_DOCUMENT_BYTES': _env_int('MAX_DOCUMENT_BYTES', MAX_DOCUMENT_BYTES),
        'STATUS_COUNTS_CACHE_TTL': _env_int('STATUS_COUNTS_CACHE_TTL', 60),

        # Observability
        'OTEL_ENABLED': _env_bool('OTEL_ENABLED', False),
        'OTEL_EXPORTER_OTLP_ENDPOINT': os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT', ''),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', ''),
    }

    if overrides:
        config.update(overrides)

    # Room for the multipart envelope around a full set of documents
    config.setdefault('MAX_CONTENT_LENGTH', config['MAX_DOCUMENT_BYTES'] * 6 + 1024 * 1024)
    return config
