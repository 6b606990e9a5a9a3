# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware with structured HAL responses.

HTTP errors and the domain exceptions raised by the wizard, invite issuer
and submission gateway are all rendered as RFC 7807 problems here, so
routes can let them propagate.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from typing import Dict, Any, Tuple
from opentelemetry import trace
import logging
import traceback

from domain.wizard import GuardNotSatisfied, InvalidTransition, InvalidCapture, CaptureDenied
from services.hal import HalFormatter
from services.invites import InviteValidationError
from services.adjudicator import SubmissionRejected
from services.verification import InvalidSelection

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

INVITE_ERROR_STATUS = {
    InviteValidationError.INVALID: 404,
    InviteValidationError.CONSUMED: 410,
    InviteValidationError.EXPIRED: 410,
    InviteValidationError.SCOPE_MISMATCH: 409,
}


class ErrorHandlerMiddleware:
    """Centralized error handling middleware with HAL response formatting."""

    def __init__(self, app: Flask, base_url: str):
        self.app = app
        self.hal_formatter = HalFormatter(base_url)
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(400)
        def handle_bad_request(error):
            return self.handle_client_error(error, "bad-request", "Bad Request")

        @self.app.errorhandler(401)
        def handle_unauthorized(error):
            return self.handle_client_error(error, "authentication-required", "Authentication Required")

        @self.app.errorhandler(403)
        def handle_forbidden(error):
            return self.handle_client_error(error, "insufficient-permissions", "Insufficient Permissions")

        @self.app.errorhandler(404)
        def handle_not_found(error):
            return self.handle_client_error(error, "resource-not-found", "Resource Not Found")

        @self.app.errorhandler(405)
        def handle_method_not_allowed(error):
            return self.handle_client_error(error, "method-not-allowed", "Method Not Allowed")

        @self.app.errorhandler(409)
        def handle_conflict(error):
            return self.handle_client_error(error, "resource-conflict", "Resource Conflict")

        @self.app.errorhandler(413)
        def handle_payload_too_large(error):
            return self.handle_client_error(error, "payload-too-large", "Payload Too Large")

        @self.app.errorhandler(422)
        def handle_unprocessable_entity(error):
            return self.handle_client_error(error, "validation-error", "Validation Error")

        @self.app.errorhandler(500)
        def handle_internal_server_error(error):
            return self.handle_server_error(error, "internal-server-error", "Internal Server Error")

        @self.app.errorhandler(502)
        def handle_bad_gateway(error):
            return self.handle_server_error(error, "bad-gateway", "Bad Gateway")

        @self.app.errorhandler(503)
        def handle_service_unavailable(error):
            return self.handle_server_error(error, "service-unavailable", "Service Unavailable")

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error):
            if isinstance(error, HTTPException):
                if error.code and error.code < 500:
                    return self.handle_client_error(error, "http-error", error.name)
                return self.handle_server_error(error, "http-error", error.name)
            return self.handle_unexpected_error(error)

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
        with tracer.start_as_current_span("error_handler.client_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else title

            logger.warning(
                f"Client error: {title}",
                extra={
                    "error_type": error_type,
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method,
                    "ip_address": request.remote_addr
                }
            )

            if error_type == "authentication-required":
                error_response = self.hal_formatter.format_authentication_error(detail, request.path)
            elif error_type == "insufficient-permissions":
                error_response = self.hal_formatter.format_authorization_error(detail, request.path)
            elif error_type == "resource-not-found":
                error_response = self.hal_formatter.format_not_found_error(detail, request.path)
            else:
                error_response = self.hal_formatter.builder.build_error_response(
                    error_type,
                    title,
                    error.code,
                    detail,
                    request.path
                )

            return error_response, error.code

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
        with tracer.start_as_current_span("error_handler.server_error") as span:
            span.set_attributes({
                "error.type": error_type,
                "error.status": error.code,
                "http.method": request.method,
                "http.path": request.path
            })

            detail = str(error.description) if error.description else title

            logger.error(
                f"Server error: {title}",
                extra={
                    "error_type": error_type,
                    "status_code": error.code,
                    "detail": detail,
                    "path": request.path,
                    "method": request.method
                },
                exc_info=True
            )

            if self.app.config.get('ENVIRONMENT') == 'production':
                detail = "An internal server error occurred"

            error_response = self.hal_formatter.builder.build_error_response(
                error_type, title, error.code, detail, request.path
            )

            return error_response, error.code

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
                    "path": request.path,
                    "method": request.method,
                    "traceback": traceback.format_exc()
                },
                exc_info=True
            )

            detail = "An unexpected error occurred"
            if self.app.config.get('ENVIRONMENT') != 'production':
                detail = f"{error.__class__.__name__}: {str(error)}"

            error_response = self.hal_formatter.format_server_error(detail, request.path)

            return error_response, 500


class CustomException(Exception):
    """Base class for custom application exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ServiceUnavailableException(CustomException):
    """Exception for service unavailable errors."""

    def __init__(self, message: str):
        super().__init__(message, 503, "service-unavailable")


def _log_domain_error(error_type: str, status: int, detail: str):
    logger.warning(
        f"Request rejected: {error_type}",
        extra={
            "error_type": error_type,
            "status_code": status,
            "detail": detail,
            "path": request.path,
            "method": request.method
        }
    )


def register_custom_error_handlers(app: Flask, hal_formatter: HalFormatter):
    """
    Register handlers for application and domain exceptions.

    Args:
        app: Flask application
        hal_formatter: HAL formatter instance
    """
    builder = hal_formatter.builder

    @app.errorhandler(CustomException)
    def handle_custom_exception(error: CustomException):
        with tracer.start_as_current_span("error_handler.custom_exception") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "http.method": request.method,
                "http.path": request.path
            })
            _log_domain_error(error.error_type, error.status_code, error.message)

            error_response = builder.build_error_response(
                error.error_type,
                error.error_type.replace("-", " ").title(),
                error.status_code,
                error.message,
                request.path
            )

            return jsonify(error_response), error.status_code

    @app.errorhandler(GuardNotSatisfied)
    def handle_guard_not_satisfied(error: GuardNotSatisfied):
        _log_domain_error("validation-error", 422, str(error))
        errors = [
            {"field": field, "message": "Field is required for this step", "type": "missing"}
            for field in error.missing
        ]
        body = hal_formatter.format_validation_error(str(error), request.path, errors, status=422)
        body['step'] = error.step
        return jsonify(body), 422

    @app.errorhandler(InvalidTransition)
    def handle_invalid_transition(error: InvalidTransition):
        _log_domain_error("invalid-transition", 409, str(error))
        return jsonify(builder.build_error_response(
            "invalid-transition", "Invalid Transition", 409, str(error), request.path
        )), 409

    @app.errorhandler(InvalidCapture)
    def handle_invalid_capture(error: InvalidCapture):
        _log_domain_error("invalid-capture", 422, str(error))
        return jsonify(builder.build_error_response(
            "invalid-capture", "Invalid Capture", 422, str(error), request.path
        )), 422

    @app.errorhandler(CaptureDenied)
    def handle_capture_denied(error: CaptureDenied):
        _log_domain_error("capture-denied", 422, error.message)
        return jsonify(builder.build_error_response(
            "capture-denied", "Capture Denied", 422, error.message, request.path
        )), 422

    @app.errorhandler(InvalidSelection)
    def handle_invalid_selection(error: InvalidSelection):
        _log_domain_error("validation-error", 422, str(error))
        errors = [{"field": error.field, "message": str(error), "type": "invalid_selection"}]
        return jsonify(hal_formatter.format_validation_error(
            str(error), request.path, errors, status=422
        )), 422

    @app.errorhandler(InviteValidationError)
    def handle_invite_error(error: InviteValidationError):
        status = INVITE_ERROR_STATUS.get(error.reason, 400)
        error_type = f"invite-{error.reason.replace('_', '-')}"
        _log_domain_error(error_type, status, str(error))
        return jsonify(builder.build_error_response(
            error_type, "Invite Rejected", status, str(error), request.path
        )), status

    @app.errorhandler(SubmissionRejected)
    def handle_submission_rejected(error: SubmissionRejected):
        with tracer.start_as_current_span("error_handler.submission_rejected") as span:
            span.set_attributes({
                "error.type": "submission-rejected",
                "adjudicator.status_code": error.status_code or 0
            })
            _log_domain_error("submission-rejected", 502, error.reason)
            body = builder.build_error_response(
                "submission-rejected", "Submission Rejected", 502, error.reason, request.path
            )
            return jsonify(body), 502
