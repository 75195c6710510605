"""
Observability Middleware

Flask hooks that open a server span per request, time it, and log its
completion with the trace id.
"""

import time
import logging
from flask import Flask, request, g
from opentelemetry import context, trace
from opentelemetry.trace import SpanKind, Status, StatusCode

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


def add_observability_middleware(app: Flask):
    """Add request spans and request logging to the Flask app."""

    @app.before_request
    def before_request():
        """Start the request span and timing."""
        g.start_time = time.time()
        g.trace_id = None

        span = tracer.start_span(
            f"{request.method} {request.path}",
            kind=SpanKind.SERVER,
            attributes={
                "http.method": request.method,
                "http.url": request.url,
                "http.scheme": request.scheme,
                "http.host": request.host,
                "http.target": request.path,
                "http.user_agent": request.headers.get("User-Agent", ""),
                "http.remote_addr": request.remote_addr or ""
            }
        )
        g.request_span = span
        g.request_span_token = context.attach(trace.set_span_in_context(span))

        span_context = span.get_span_context()
        if span_context.is_valid:
            g.trace_id = format(span_context.trace_id, "032x")

    @app.after_request
    def after_request(response):
        """Log request completion and add response attributes to span."""
        duration_ms = round((time.time() - g.get('start_time', time.time())) * 1000, 2)

        span = g.get('request_span')
        if span is not None and span.is_recording():
            span.set_attributes({
                "http.status_code": response.status_code,
                "http.duration_ms": duration_ms
            })
            if response.status_code >= 500:
                span.set_status(Status(StatusCode.ERROR))

        logger.info(
            "HTTP request completed",
            extra={
                "method": request.method,
                "path": request.path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
                "remote_addr": request.remote_addr,
                "trace_id": g.get('trace_id'),
                "request_size": request.content_length or 0
            }
        )

        if g.get('trace_id'):
            response.headers['X-Trace-Id'] = g.trace_id

        return response

    @app.teardown_request
    def teardown_request(error=None):
        """End the request span and detach its context."""
        span = g.pop('request_span', None)
        token = g.pop('request_span_token', None)
        if span is None:
            return
        if error is not None:
            span.record_exception(error)
            span.set_status(Status(StatusCode.ERROR, str(error)))
        span.end()
        if token is not None:
            context.detach(token)
