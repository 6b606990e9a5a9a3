# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the barangay onboarding platform.

This package contains pure business logic with no side effects: the
canonical geography index, reconciliation, geofence evaluation, the
verification wizard state machine and invite token helpers.
"""
