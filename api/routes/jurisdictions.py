# SPDX-License-Identifier: Apache-2.0

"""
Jurisdiction coverage endpoints.

Canonical provinces and cities, and the reconciled per-barangay coverage
view administrators use to find untapped barangays.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from domain.reconciliation import reconcile, filter_entries, summarize_coverage
from models.entities import UserContext
from models.enums import Permission
from models.requests import CoverageQuery, ProvincePath
from models.responses import CoverageResponse
from middleware.auth import require_jwt

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

jurisdictions_tag = Tag(name="Jurisdictions", description="Canonical geography and tenant coverage")
jurisdictions_bp = APIBlueprint(
    'jurisdictions',
    __name__,
    url_prefix='/api/jurisdictions',
    abp_tags=[jurisdictions_tag]
)


def _unit_summary(unit, index):
    if unit is None:
        return None
    return {
        "code": unit.code,
        "name": unit.name,
        "parentCode": unit.parent_code,
        "region": index.region_name(unit.region_code)
    }


@jurisdictions_bp.get('/provinces')
@require_jwt(Permission.JURISDICTION_READ.value)
def list_provinces(user_context: UserContext):
    """List canonical provinces with their region."""
    with tracer.start_as_current_span("jurisdictions.list_provinces") as span:
        index = current_app.geography_index
        provinces = [_unit_summary(p, index) for p in index.provinces()]
        span.set_attribute("jurisdictions.count", len(provinces))

        hal = current_app.hal_formatter
        body = hal.format_resource(
            {"provinces": provinces, "count": len(provinces)},
            "/api/jurisdictions/provinces",
            cities=hal.link("/api/jurisdictions/provinces/{code}/cities", templated=True, title="Cities of a province")
        )
        return jsonify(body), 200


@jurisdictions_bp.get('/provinces/<string:code>/cities')
@require_jwt(Permission.JURISDICTION_READ.value)
def list_cities(user_context: UserContext, path: ProvincePath):
    """List cities of a province. Unknown provinces give an empty list."""
    with tracer.start_as_current_span("jurisdictions.list_cities") as span:
        index = current_app.geography_index
        cities = [_unit_summary(c, index) for c in index.cities(path.code)]
        span.set_attributes({
            "jurisdictions.province_code": path.code,
            "jurisdictions.count": len(cities)
        })

        hal = current_app.hal_formatter
        body = hal.format_resource(
            {"provinceCode": path.code, "cities": cities, "count": len(cities)},
            f"/api/jurisdictions/provinces/{path.code}/cities",
            provinces=hal.link("/api/jurisdictions/provinces", title="All provinces")
        )
        return jsonify(body), 200


@jurisdictions_bp.get('/coverage', responses={200: CoverageResponse})
@require_jwt(Permission.JURISDICTION_READ.value)
def get_coverage(user_context: UserContext, query: CoverageQuery):
    """
    Reconciled coverage for one province/city pair.

    Every canonical barangay appears exactly once, paired with the first
    tenant whose name matches. The summary always covers the whole city;
    the optional `q` filter only narrows `entries`.
    """
    with tracer.start_as_current_span("jurisdictions.coverage") as span:
        index = current_app.geography_index
        tenants = current_app.tenant_directory.for_city_codes(index, query.province, query.city)
        entries = reconcile(index, query.province, query.city, tenants)
        summary = summarize_coverage(entries)
        if query.q:
            entries = filter_entries(entries, query.q)

        span.set_attributes({
            "jurisdictions.province_code": query.province,
            "jurisdictions.city_code": query.city,
            "reconciliation.tenant_count": len(tenants),
            "reconciliation.matched_count": summary["total"] - summary["untapped"],
            "reconciliation.entry_count": len(entries)
        })

        logger.debug("Coverage reconciled", extra={
            "user_id": user_context.user_id,
            "province_code": query.province,
            "city_code": query.city,
            "total": summary["total"],
            "onboarded": summary["onboarded"]
        })

        # Only a valid province/city pair is echoed back
        province, city = index.resolve_city(query.province, query.city) or (None, None)
        body = {
            "province": _unit_summary(province, index),
            "city": _unit_summary(city, index),
            "summary": summary,
            "entries": [entry.to_dict() for entry in entries]
        }
        return jsonify(current_app.hal_formatter.format_coverage(
            body, query.province, query.city, user_context.permissions, query.q
        )), 200
