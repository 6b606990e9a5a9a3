# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request validation error formatting.

flask-openapi3 validates path, query and body models before a route runs;
this module turns its pydantic errors into RFC 7807 problem responses.
"""

from flask import request, make_response
from typing import Dict, Any, List
from pydantic import ValidationError
from opentelemetry import trace
import logging

from services.hal import HalFormatter

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

VALIDATION_ERROR_STATUS = 422


class ValidationMiddleware:
    """Formats request validation failures."""

    def __init__(self, base_url: str):
        self.hal_formatter = HalFormatter(base_url)

    def format_validation_errors(self, validation_error: ValidationError) -> List[Dict[str, Any]]:
        """
        Format Pydantic validation errors for API response.

        Args:
            validation_error: Pydantic ValidationError

        Returns:
            List of formatted error dictionaries
        """
        errors = []

        for error in validation_error.errors():
            field_path = ".".join(str(loc) for loc in error["loc"])
            errors.append({
                "field": field_path,
                "message": error["msg"],
                "type": error["type"]
            })

        return errors

    def validation_error_response(self, validation_error: ValidationError) -> Dict[str, Any]:
        """Problem body for a failed request model."""
        with tracer.start_as_current_span("validation.request_model") as span:
            errors = self.format_validation_errors(validation_error)
            span.set_attributes({
                "validation.result": "validation_error",
                "validation.model": validation_error.title,
                "validation.error_count": len(errors)
            })

            logger.warning(
                "Request validation failed",
                extra={
                    "model": validation_error.title,
                    "path": request.path,
                    "method": request.method,
                    "errors": errors
                }
            )

            return self.hal_formatter.format_validation_error(
                f"Request validation failed for {validation_error.title}",
                request.path,
                errors,
                status=VALIDATION_ERROR_STATUS
            )

    def error_callback(self, validation_error: ValidationError):
        """Callback handed to the OpenAPI app for request model failures."""
        response = make_response(self.validation_error_response(validation_error), VALIDATION_ERROR_STATUS)
        response.mimetype = "application/problem+json"
        return response
