"""
OpenTelemetry Configuration

Sets up distributed tracing and structured logging for the land services API.
"""

import os
import logging
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

logger = logging.getLogger(__name__)

SAMPLING_RATIOS = {
    'production': 0.1,
    'staging': 0.5,
}

_configured = False


def setup_observability(config=None):
    """
    Initialize OpenTelemetry tracing and logging from configuration.

    Args:
        config: Mapping of configuration values, defaults to the environment
    """
    global _configured
    config = config or {}
    environment = config.get('ENVIRONMENT') or os.getenv('ENVIRONMENT', 'development')
    otel_enabled = str(config.get('OTEL_ENABLED', os.getenv('OTEL_ENABLED', 'false'))).lower() == 'true'

    setup_structured_logging(environment, config.get('LOG_LEVEL') or os.getenv('LOG_LEVEL'))

    # Tracer providers can only be installed once per process
    if not otel_enabled or _configured:
        return

    resource = Resource.create({
        "service.name": config.get('SERVICE_NAME', 'land-services-api'),
        "service.version": config.get('SERVICE_VERSION') or os.getenv('SERVICE_VERSION', '1.0.0'),
        "deployment.environment": environment
    })

    tracer_provider = TracerProvider(
        sampler=TraceIdRatioBased(SAMPLING_RATIOS.get(environment, 1.0)),
        resource=resource
    )

    otlp_endpoint = config.get('OTEL_EXPORTER_OTLP_ENDPOINT') or os.getenv('OTEL_EXPORTER_OTLP_ENDPOINT')
    if otlp_endpoint:
        headers = None
        api_key = os.getenv('OTEL_API_KEY')
        if api_key:
            headers = {"authorization": f"Bearer {api_key}"}
        tracer_provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=otlp_endpoint, headers=headers), max_export_batch_size=512)
        )
    elif environment == 'development':
        tracer_provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(tracer_provider)
    _configured = True
    logger.info(
        "Tracing enabled",
        extra={"environment": environment, "otlp_endpoint": otlp_endpoint}
    )


def setup_structured_logging(environment: str, level_name=None):
    """Configure logging levels per environment."""
    default_level = {
        'production': logging.WARNING,
        'staging': logging.INFO,
        'development': logging.DEBUG
    }.get(environment, logging.INFO)
    log_level = logging.getLevelName(level_name.upper()) if level_name else default_level
    if not isinstance(log_level, int):
        log_level = default_level

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s %(levelname)s %(name)s %(message)s',
        handlers=[logging.StreamHandler()]
    )
    logging.getLogger('land_api').setLevel(log_level)

    if environment == 'production':
        logging.getLogger('urllib3').setLevel(logging.WARNING)
        logging.getLogger('requests').setLevel(logging.WARNING)
        logging.getLogger('pymongo').setLevel(logging.WARNING)
