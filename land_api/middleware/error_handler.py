# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.
Maps HTTP errors and land service errors to RFC 7807 problem documents.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, Tuple
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from ..domain.errors import LandServiceError, ValidationError, AlreadyResolved
from ..services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with HAL response formatting."""

    CLIENT_ERRORS = {
        400: ("bad-request", "Bad Request"),
        401: ("authentication-required", "Authentication Required"),
        403: ("insufficient-permissions", "Insufficient Permissions"),
        404: ("resource-not-found", "Resource Not Found"),
        405: ("method-not-allowed", "Method Not Allowed"),
        409: ("resource-conflict", "Resource Conflict"),
        413: ("payload-too-large", "Payload Too Large"),
        422: ("validation-error", "Validation Error"),
    }

    SERVER_ERRORS = {
        500: ("internal-server-error", "Internal Server Error"),
        502: ("bad-gateway", "Bad Gateway"),
        503: ("service-unavailable", "Service Unavailable"),
        504: ("gateway-timeout", "Gateway Timeout"),
    }

    def __init__(self, app: Flask, base_url: str):
        self.app = app
        self.hal_formatter = HalFormatter(base_url)
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        for code, (error_type, title) in self.CLIENT_ERRORS.items():
            self.app.register_error_handler(code, self._client_handler(error_type, title))

        for code, (error_type, title) in self.SERVER_ERRORS.items():
            self.app.register_error_handler(code, self._server_handler(error_type, title))

        @self.app.errorhandler(LandServiceError)
        def handle_land_service_error(error):
            return self.handle_service_error(error)

        # Handle generic exceptions
        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            if isinstance(error, HTTPException):
                return self.handle_client_error(error, "http-error", error.name)
            return self.handle_unexpected_error(error)

    def _client_handler(self, error_type: str, title: str):
        def handler(error):
            return self.handle_client_error(error, error_type, title)
        return handler

    def _server_handler(self, error_type: str, title: str):
        def handler(error):
            return self.handle_server_error(error, error_type, title)
        return handler

    def _request_extra(self) -> Dict[str, Any]:
        return {
            "path": request.path,
            "method": request.method,
            "user_agent": request.headers.get('User-Agent'),
            "ip_address": request.remote_addr
        }

    def handle_client_error(
        self,
        error: HTTPException,
        error_type: str,
        title: str
    ) -> Tuple[Dict[str, Any], int]:
        """
        Handle client errors (4xx status codes).

        Args:
            error: HTTP exception
            error_type: Error type identifier
            title: Error title

        Returns:
            Tuple of (error response dict, status code)
        """
        status = getattr(error, 'code', None) or 400
        with tracer.start_as_current_span("error_handler.client_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": status,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if getattr(error, 'description', None) else title

            logger.warning(
                f"Client error: {title}",
                extra={"error_type": error_type, "status_code": status, "detail": detail, **self._request_extra()}
            )

            error_response = self.hal_formatter.builder.build_error_response(
                error_type,
                title,
                status,
                detail,
                request.path
            )
            return error_response, status

    def handle_server_error(
        self,
        error: HTTPException,
        error_type: str,
        title: str
    ) -> Tuple[Dict[str, Any], int]:
        """
        Handle server errors (5xx status codes).

        Args:
            error: HTTP exception
            error_type: Error type identifier
            title: Error title

        Returns:
            Tuple of (error response dict, status code)
        """
        status = getattr(error, 'code', None) or 500
        with tracer.start_as_current_span("error_handler.server_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": status,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if getattr(error, 'description', None) else title

            logger.error(
                f"Server error: {title}",
                extra={"error_type": error_type, "status_code": status, "detail": detail, **self._request_extra()},
                exc_info=True
            )

            # Don't expose internal error details in production
            if self.app.config.get('ENVIRONMENT') == 'production':
                detail = "An internal server error occurred"

            error_response = self.hal_formatter.builder.build_error_response(
                error_type,
                title,
                status,
                detail,
                request.path
            )
            return error_response, status

    def handle_service_error(self, error: LandServiceError):
        """
        Render a land service error as a problem document.

        Validation errors list every failed check; conflicts report the
        application's current status.
        """
        with tracer.start_as_current_span("error_handler.service_error") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.class": error.__class__.__name__,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })

            log_extra = {
                "error_type": error.error_type,
                "error_class": error.__class__.__name__,
                "status_code": error.status_code,
                **self._request_extra()
            }
            if error.status_code >= 500:
                span.record_exception(error)
                span.set_status(Status(StatusCode.ERROR, error.message))
                logger.error(f"Service error: {error.message}", extra=log_extra, exc_info=True)
            else:
                logger.warning(f"Request refused: {error.message}", extra=log_extra)

            validation_errors = error.details if isinstance(error, ValidationError) else None
            extra = {'errorCode': error.__class__.__name__}
            if isinstance(error, AlreadyResolved):
                extra['currentStatus'] = error.current_status

            error_response = self.hal_formatter.format_error(
                error.error_type,
                error.status_code,
                error.message,
                request.path,
                validation_errors,
                extra
            )
            return jsonify(error_response), error.status_code

    def handle_unexpected_error(self, error: Exception) -> Tuple[Dict[str, Any], int]:
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception

        Returns:
            Tuple of (error response dict, status code)
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "unexpected-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "unexpected-error",
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    **self._request_extra()
                },
                exc_info=True
            )

            # Don't expose internal error details
            detail = "An unexpected error occurred"
            if self.app.config.get('ENVIRONMENT') != 'production':
                detail = f"{error.__class__.__name__}: {str(error)}"

            error_response = self.hal_formatter.format_server_error(detail, request.path)
            return error_response, 500
