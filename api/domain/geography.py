# SPDX-License-Identifier: Apache-2.0

"""
Canonical geography index.

Read-only province/city/barangay hierarchy loaded from bundled PSGC data.
The index is the authoritative list of barangays; tenant records are matched
against it, never the other way around.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from models.entities import GeographicUnit
from models.enums import GeographicLevel

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).parent / "psgc_data"

# Metro Manila has no province level; its cities hang off this pseudo-province
NCR_REGION_CODE = "130000000"
NCR_PROVINCE_NAME = "Metro Manila"

UNKNOWN_REGION = "Unknown Region"

REGIONS: Dict[str, str] = {
    "010000000": "Region I (Ilocos Region)",
    "020000000": "Region II (Cagayan Valley)",
    "030000000": "Region III (Central Luzon)",
    "040000000": "Region IV-A (CALABARZON)",
    "050000000": "Region V (Bicol Region)",
    "060000000": "Region VI (Western Visayas)",
    "070000000": "Region VII (Central Visayas)",
    "080000000": "Region VIII (Eastern Visayas)",
    "090000000": "Region IX (Zamboanga Peninsula)",
    "100000000": "Region X (Northern Mindanao)",
    "110000000": "Region XI (Davao Region)",
    "120000000": "Region XII (SOCCSKSARGEN)",
    "130000000": "National Capital Region (NCR)",
    "140000000": "Cordillera Administrative Region (CAR)",
    "160000000": "Region XIII (Caraga)",
    "170000000": "MIMAROPA Region",
    "190000000": "Bangsamoro Autonomous Region in Muslim Mindanao (BARMM)",
}


class CanonicalGeographyIndex:
    """
    Immutable lookup structure over the canonical hierarchy.

    Children are kept in source order so option lists render the same way
    on every load.
    """

    def __init__(self, units: Iterable[GeographicUnit]):
        self._units: Dict[str, GeographicUnit] = {}
        self._children: Dict[Optional[str], List[str]] = {}

        for unit in units:
            if unit.code in self._units:
                raise ValueError(f"Duplicate geographic code: {unit.code}")
            self._units[unit.code] = unit
            self._children.setdefault(unit.parent_code, []).append(unit.code)

        for unit in self._units.values():
            if unit.parent_code and unit.parent_code not in self._units:
                raise ValueError(f"Unit {unit.code} references unknown parent {unit.parent_code}")

    @classmethod
    def load(cls, data_dir: Optional[str] = None) -> "CanonicalGeographyIndex":
        """
        Load the index from a PSGC data directory.

        Args:
            data_dir: Directory holding provinces.json, cities.json and
                barangays.json. Defaults to the bundled dataset.

        Returns:
            A populated index
        """
        base = Path(data_dir) if data_dir else DEFAULT_DATA_DIR

        with open(base / "provinces.json", encoding="utf-8") as fh:
            provinces = json.load(fh)
        with open(base / "cities.json", encoding="utf-8") as fh:
            cities = json.load(fh)
        with open(base / "barangays.json", encoding="utf-8") as fh:
            barangays = json.load(fh)

        index = cls(_build_units(provinces, cities, barangays))
        logger.info("Loaded canonical geography index", extra={
            "data_dir": str(base),
            "provinces": len(provinces),
            "cities": len(cities),
            "barangays": len(barangays)
        })
        return index

    def get(self, code: Optional[str]) -> Optional[GeographicUnit]:
        """Look up any unit by code."""
        if not code:
            return None
        return self._units.get(code)

    def children(self, code: str) -> List[GeographicUnit]:
        """Direct children of a unit, in source order."""
        return [self._units[c] for c in self._children.get(code, [])]

    def provinces(self) -> List[GeographicUnit]:
        """All provinces, including the Metro Manila pseudo-province."""
        return [self._units[c] for c in self._children.get(None, [])]

    def cities(self, province_code_or_name: str) -> List[GeographicUnit]:
        """
        Cities of a province, looked up by code first and then by name.

        Returns an empty list when the province is unknown.
        """
        province = self.get(province_code_or_name)
        if province is None:
            wanted = (province_code_or_name or "").strip().lower()
            province = next(
                (p for p in self.provinces() if p.name.lower() == wanted),
                None
            )
        if province is None or province.level != GeographicLevel.PROVINCE.value:
            return []
        return self.children(province.code)

    def barangays(self, city_code: str) -> List[GeographicUnit]:
        """Barangays of a city. Empty for unknown or non-city codes."""
        city = self.get(city_code)
        if city is None or city.level != GeographicLevel.CITY.value:
            return []
        return self.children(city.code)

    def resolve_city(self, province_code: str, city_code: str) -> Optional[Tuple[GeographicUnit, GeographicUnit]]:
        """
        Resolve a province/city code pair.

        Returns None when either code is unknown or the city does not belong
        to the province.
        """
        province = self.get(province_code)
        city = self.get(city_code)
        if province is None or city is None:
            return None
        if province.level != GeographicLevel.PROVINCE.value or city.level != GeographicLevel.CITY.value:
            return None
        if city.parent_code != province.code:
            return None
        return province, city

    def province_name(self, code: str) -> Optional[str]:
        unit = self.get(code)
        return unit.name if unit and unit.level == GeographicLevel.PROVINCE.value else None

    def city_name(self, code: str) -> Optional[str]:
        unit = self.get(code)
        return unit.name if unit and unit.level == GeographicLevel.CITY.value else None

    def region_name(self, region_code: Optional[str]) -> str:
        return REGIONS.get(region_code or "", UNKNOWN_REGION)

    def region_for_province(self, province_name: str) -> str:
        """Region name for a province given by name, or "Unknown Region"."""
        wanted = (province_name or "").strip().lower()
        for province in self.provinces():
            if province.name.lower() == wanted:
                return self.region_name(province.region_code)
        return UNKNOWN_REGION

    def __len__(self) -> int:
        return len(self._units)

    def __contains__(self, code: str) -> bool:
        return code in self._units


def _build_units(provinces: List[dict], cities: List[dict], barangays: List[dict]) -> List[GeographicUnit]:
    units = [
        GeographicUnit(
            code=p["code"],
            name=p["name"],
            parent_code=None,
            level=GeographicLevel.PROVINCE,
            region_code=p.get("regionCode")
        )
        for p in provinces
    ]

    needs_ncr = any(not c.get("provinceCode") for c in cities)
    if needs_ncr:
        units.append(GeographicUnit(
            code=NCR_REGION_CODE,
            name=NCR_PROVINCE_NAME,
            parent_code=None,
            level=GeographicLevel.PROVINCE,
            region_code=NCR_REGION_CODE
        ))

    city_regions = {}
    for c in cities:
        region_code = c.get("regionCode")
        city_regions[c["code"]] = region_code
        units.append(GeographicUnit(
            code=c["code"],
            name=c["name"],
            parent_code=c.get("provinceCode") or NCR_REGION_CODE,
            level=GeographicLevel.CITY,
            region_code=region_code
        ))

    for b in barangays:
        units.append(GeographicUnit(
            code=b["code"],
            name=b["name"],
            parent_code=b["cityCode"],
            level=GeographicLevel.BARANGAY,
            region_code=city_regions.get(b["cityCode"])
        ))

    return units
