# SPDX-License-Identifier: Apache-2.0

"""HTTP blueprints for the barangay onboarding API."""
