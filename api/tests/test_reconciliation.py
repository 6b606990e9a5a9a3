# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for reconciliation of the canonical index against tenant records.
"""

from domain.reconciliation import (
    normalize, match_kind, names_match, candidate_tenants,
    reconcile, filter_entries, summarize_coverage
)
from models.enums import MatchKind
from fakes import BULACAN, MALOLOS, MARILAO, RIZAL, CAINTA, tenant_record


def malolos_records():
    return [
        tenant_record("malolos-atlag", "Atlag"),
        tenant_record("malolos-longos", " longos ", status="Onboarding"),
        tenant_record("malolos-san-vicente", "San Vicente"),
        tenant_record("malolos-mojon", "Mojon", status="Rejected"),
    ]


class TestNameMatching:
    """Test the barangay name matcher."""

    def test_normalize(self):
        """Test names are trimmed and lowercased."""
        assert normalize("  San Vicente ") == "san vicente"
        assert normalize(None) == ""

    def test_exact_ignores_case_and_whitespace(self):
        """Test exact matches ignore case and surrounding whitespace."""
        assert match_kind("Longos", " longos ") == MatchKind.EXACT
        assert match_kind("ATLAG", "atlag") == MatchKind.EXACT

    def test_substring_in_both_directions(self):
        """Test containment is checked both ways."""
        assert match_kind("San Vicente (Pob.)", "San Vicente") == MatchKind.SUBSTRING
        assert match_kind("Poblacion", "Poblacion I") == MatchKind.SUBSTRING

    def test_no_match(self):
        """Test unrelated and empty names do not match."""
        assert match_kind("Anilao", "Atlag") == MatchKind.NONE
        assert match_kind("Anilao", "") == MatchKind.NONE
        assert match_kind("", "   ") == MatchKind.NONE
        assert not names_match("Bulihan", "Caingin")
        assert names_match("Santo Rosario", "santo rosario")


class TestCandidateTenants:
    """Test the province/city pre-filter."""

    def test_filters_on_exact_denormalized_names(self):
        """Test candidates must carry the exact province and city names."""
        tenants = malolos_records() + [
            tenant_record("marilao-poblacion", "Poblacion", city="Marilao"),
            tenant_record("cainta-san-juan", "San Juan", city="Cainta", province="Rizal"),
        ]

        candidates = candidate_tenants(tenants, "Bulacan", "Marilao")

        assert [t.tenant_id for t in candidates] == ["marilao-poblacion"]


class TestReconcile:
    """Test pairing canonical barangays with tenants."""

    def test_one_entry_per_canonical_barangay(self, geography_index):
        """Test every canonical barangay appears exactly once, in index order."""
        entries = reconcile(geography_index, BULACAN, MALOLOS, malolos_records())

        assert [e.unit.name for e in entries] == [
            b.name for b in geography_index.barangays(MALOLOS)
        ]

    def test_statuses_and_match_kinds(self, geography_index):
        """Test exact, substring and untapped classification."""
        entries = {e.unit.name: e for e in reconcile(geography_index, BULACAN, MALOLOS, malolos_records())}

        assert entries["Atlag"].status == "Live"
        assert entries["Atlag"].match_kind == MatchKind.EXACT.value
        assert entries["Longos"].status == "Onboarding"
        assert entries["Longos"].tenant.tenant_id == "malolos-longos"
        assert entries["San Vicente (Pob.)"].match_kind == MatchKind.SUBSTRING.value
        assert entries["San Vicente (Pob.)"].tenant.tenant_id == "malolos-san-vicente"
        assert entries["Mojon"].status == "Rejected"
        assert entries["Anilao"].status == "Untapped"
        assert entries["Anilao"].tenant is None
        assert entries["Anilao"].population == 0

    def test_first_match_wins(self, geography_index):
        """Test the first tenant in directory order is linked."""
        tenants = [
            tenant_record("marilao-poblacion", "Poblacion", city="Marilao"),
            tenant_record("marilao-poblacion-i", "Poblacion I", city="Marilao"),
        ]

        entries = {e.unit.name: e for e in reconcile(geography_index, BULACAN, MARILAO, tenants)}

        # The broad tenant name shadows the exact one for both barangays
        assert entries["Poblacion I"].tenant.tenant_id == "marilao-poblacion"
        assert entries["Poblacion I"].match_kind == MatchKind.SUBSTRING.value
        assert entries["Poblacion II"].tenant.tenant_id == "marilao-poblacion"
        assert entries["Abangan Norte"].tenant is None

    def test_missing_status_counts_as_live(self, geography_index):
        """Test tenants without a status are treated as Live."""
        tenants = [tenant_record("cainta-san-juan", "San Juan", city="Cainta", province="Rizal", status=None)]

        entries = {e.unit.name: e for e in reconcile(geography_index, RIZAL, CAINTA, tenants)}

        assert entries["San Juan"].status == "Live"

    def test_population_and_quality_carried(self, geography_index):
        """Test matched entries carry tenant population and quality."""
        tenants = [tenant_record(
            "cainta-santa-rosa", "Santa Rosa", city="Cainta", province="Rizal", population=5000, quality=80
        )]

        entries = {e.unit.name: e for e in reconcile(geography_index, RIZAL, CAINTA, tenants)}

        assert entries["Santa Rosa"].population == 5000
        assert entries["Santa Rosa"].quality == 80

    def test_other_city_tenants_ignored(self, geography_index):
        """Test tenants registered under another city never match."""
        tenants = [tenant_record("marilao-atlag", "Atlag", city="Marilao")]

        entries = reconcile(geography_index, BULACAN, MALOLOS, tenants)

        assert all(e.tenant is None for e in entries)

    def test_unresolved_codes(self, geography_index):
        """Test unknown or mismatched codes give an empty list."""
        assert reconcile(geography_index, BULACAN, CAINTA, malolos_records()) == []
        assert reconcile(geography_index, "bad", "codes", malolos_records()) == []

    def test_idempotent(self, geography_index):
        """Test the same inputs produce the same entries."""
        first = reconcile(geography_index, BULACAN, MALOLOS, malolos_records())
        second = reconcile(geography_index, BULACAN, MALOLOS, malolos_records())

        assert [e.to_dict() for e in first] == [e.to_dict() for e in second]

    def test_query_filter(self, geography_index):
        """Test the query filters on barangay name or tenant id."""
        by_name = reconcile(geography_index, BULACAN, MALOLOS, malolos_records(), query="SAN")
        by_tenant = reconcile(geography_index, BULACAN, MALOLOS, malolos_records(), query="malolos-mojon")

        assert [e.unit.name for e in by_name] == ["San Vicente (Pob.)", "Santo Rosario"]
        assert [e.unit.name for e in by_tenant] == ["Mojon"]

    def test_custom_matcher(self, geography_index):
        """Test the matcher can be replaced."""
        def exact_only(canonical, tenant):
            return MatchKind.EXACT if normalize(canonical) == normalize(tenant) else MatchKind.NONE

        entries = {
            e.unit.name: e
            for e in reconcile(geography_index, BULACAN, MALOLOS, malolos_records(), matcher=exact_only)
        }

        assert entries["San Vicente (Pob.)"].status == "Untapped"
        assert entries["Atlag"].status == "Live"


class TestCoverageSummary:
    """Test coverage counting."""

    def test_summary_counts(self, geography_index):
        """Test counts per status and the onboarded figure."""
        entries = reconcile(geography_index, BULACAN, MALOLOS, malolos_records())

        assert summarize_coverage(entries) == {
            "total": 8,
            "onboarded": 3,
            "live": 2,
            "onboarding": 1,
            "rejected": 1,
            "untapped": 4
        }

    def test_empty_summary(self):
        """Test an empty entry list counts zero everywhere."""
        summary = summarize_coverage([])
        assert summary["total"] == 0
        assert summary["untapped"] == 0

    def test_filter_blank_query(self, geography_index):
        """Test a blank query keeps every entry."""
        entries = reconcile(geography_index, BULACAN, MALOLOS, malolos_records())
        assert filter_entries(entries, "   ") == entries
