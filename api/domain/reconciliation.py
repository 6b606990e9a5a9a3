# SPDX-License-Identifier: Apache-2.0

"""
Reconciliation of the canonical geography index against the tenant directory.

Pure read-and-join: the same inputs always produce the same entries, so the
functions here are safe to call on every keystroke of a search box.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from models.entities import GeographicUnit, ReconciledJurisdiction, TenantRecord
from models.enums import CoverageStatus, MatchKind, TenantStatus
from .geography import CanonicalGeographyIndex

logger = logging.getLogger(__name__)

Matcher = Callable[[str, str], MatchKind]


def normalize(value: Optional[str]) -> str:
    """Lowercase and trim a free-text name."""
    return (value or "").strip().lower()


def match_kind(canonical_name: str, tenant_name: str) -> MatchKind:
    """
    Classify how a canonical barangay name relates to a tenant's self-reported name.

    Equal normalized names are an exact match. When either normalized name
    contains the other the match is a substring match. Empty names never match.

    Args:
        canonical_name: Name from the canonical index
        tenant_name: Barangay name recorded on the tenant

    Returns:
        MatchKind.EXACT, MatchKind.SUBSTRING or MatchKind.NONE
    """
    canonical = normalize(canonical_name)
    tenant = normalize(tenant_name)
    if not canonical or not tenant:
        return MatchKind.NONE
    if canonical == tenant:
        return MatchKind.EXACT
    if canonical in tenant or tenant in canonical:
        return MatchKind.SUBSTRING
    return MatchKind.NONE


def names_match(canonical_name: str, tenant_name: str) -> bool:
    return match_kind(canonical_name, tenant_name) != MatchKind.NONE


def candidate_tenants(
    tenants: Iterable[TenantRecord],
    province_name: str,
    city_name: str
) -> List[TenantRecord]:
    """Tenants whose denormalized province and city names equal the given pair."""
    return [
        t for t in tenants
        if t.province_name == province_name and t.city_name == city_name
    ]


def reconcile(
    index: CanonicalGeographyIndex,
    province_code: str,
    city_code: str,
    tenants: Iterable[TenantRecord],
    query: Optional[str] = None,
    matcher: Matcher = match_kind
) -> List[ReconciledJurisdiction]:
    """
    Pair every canonical barangay of a city with at most one tenant.

    The first tenant (in directory order) satisfying the matcher wins; there is
    no best-match scoring, so a tenant may be linked to more than one barangay
    when names overlap.

    Args:
        index: Canonical geography index
        province_code: Canonical province code
        city_code: Canonical city code
        tenants: Tenant records in directory iteration order
        query: Optional free-text filter applied after matching
        matcher: Name matcher, replaceable without touching callers

    Returns:
        One entry per canonical barangay, or an empty list when the codes
        do not resolve
    """
    resolved = index.resolve_city(province_code, city_code)
    if resolved is None:
        logger.debug("Unresolved province/city pair", extra={
            "province_code": province_code,
            "city_code": city_code
        })
        return []

    province, city = resolved
    candidates = candidate_tenants(tenants, province.name, city.name)

    entries = [_reconcile_unit(unit, candidates, matcher) for unit in index.barangays(city.code)]

    if query:
        entries = filter_entries(entries, query)

    return entries


def _reconcile_unit(
    unit: GeographicUnit,
    candidates: List[TenantRecord],
    matcher: Matcher
) -> ReconciledJurisdiction:
    for tenant in candidates:
        kind = MatchKind(matcher(unit.name, tenant.barangay_name))
        if kind == MatchKind.NONE:
            continue

        if kind != MatchKind.EXACT:
            logger.info("Non-exact reconciliation match", extra={
                "canonical_code": unit.code,
                "canonical_name": unit.name,
                "tenant_id": tenant.tenant_id,
                "tenant_name": tenant.barangay_name,
                "match_kind": kind.value
            })

        return ReconciledJurisdiction(
            unit=unit,
            tenant=tenant,
            status=CoverageStatus(tenant.status or TenantStatus.LIVE.value),
            match_kind=kind,
            population=tenant.population or 0,
            quality=tenant.quality or 0
        )

    return ReconciledJurisdiction(
        unit=unit,
        tenant=None,
        status=CoverageStatus.UNTAPPED,
        match_kind=MatchKind.NONE
    )


def filter_entries(entries: List[ReconciledJurisdiction], query: str) -> List[ReconciledJurisdiction]:
    """Keep entries whose barangay name or matched tenant id contains the query."""
    needle = normalize(query)
    if not needle:
        return entries
    return [
        e for e in entries
        if needle in normalize(e.unit.name)
        or (e.tenant is not None and needle in normalize(e.tenant.tenant_id))
    ]


def summarize_coverage(entries: Iterable[ReconciledJurisdiction]) -> Dict[str, int]:
    """
    Count entries per coverage status.

    `onboarded` is Live plus Onboarding, the adoption figure shown on the
    admin coverage view.
    """
    counts = {status.value: 0 for status in CoverageStatus}
    total = 0
    for entry in entries:
        total += 1
        counts[CoverageStatus(entry.status).value] += 1

    live = counts[CoverageStatus.LIVE.value]
    onboarding = counts[CoverageStatus.ONBOARDING.value]
    return {
        "total": total,
        "onboarded": live + onboarding,
        "live": live,
        "onboarding": onboarding,
        "rejected": counts[CoverageStatus.REJECTED.value],
        "untapped": counts[CoverageStatus.UNTAPPED.value]
    }
