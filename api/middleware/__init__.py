# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains middleware components for authentication, authorization,
request validation, error handling and CORS for the barangay onboarding API.
"""
