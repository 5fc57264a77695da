# ABOUTME: Read-only District Catalog and Representative Roster loaded from snapshot files.
# ABOUTME: Maps district ids to districts and representatives, and postal prefixes to regions.

import logging
from collections import defaultdict
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..constants import normalize_display_name
from ..types import District, Representative
from .snapshots import CATALOG, ROSTER, read_snapshot

logger = logging.getLogger('districts.services')


class DistrictCatalog:
    """Immutable table of a country's electoral districts."""

    def __init__(
        self,
        country_code: str,
        districts: Iterable[District],
        region_prefixes: Optional[Mapping[str, str]] = None,
        version: Optional[str] = None,
    ):
        self.country_code = country_code.upper()
        self.version = version

        by_id: Dict[str, District] = {}
        by_name: Dict[str, List[District]] = defaultdict(list)
        for district in districts:
            if district.id in by_id:
                logger.warning("Duplicate district id %s in %s catalog", district.id, self.country_code)
                continue
            by_id[district.id] = district
            by_name[normalize_display_name(district.name)].append(district)

        self._by_id = MappingProxyType(by_id)
        self._by_name = MappingProxyType({key: tuple(value) for key, value in by_name.items()})
        self._region_prefixes = MappingProxyType(
            {str(prefix): str(region).upper() for prefix, region in (region_prefixes or {}).items()}
        )
        self._prefix_lengths = tuple(sorted({len(prefix) for prefix in self._region_prefixes}, reverse=True))

    @classmethod
    def from_snapshot(cls, path: Path, country_code: str) -> 'DistrictCatalog':
        payload = read_snapshot(path, CATALOG, country_code)
        data = payload['data']
        districts = [District.from_dict(item, country_code.upper()) for item in data.get('districts', [])]
        logger.info("Loaded %s districts for %s from %s", len(districts), country_code.upper(), path)
        return cls(
            country_code,
            districts,
            region_prefixes=data.get('region_prefixes'),
            version=payload.get('version'),
        )

    @classmethod
    def empty(cls, country_code: str) -> 'DistrictCatalog':
        return cls(country_code, [])

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, district_id: str) -> bool:
        return district_id in self._by_id

    def __iter__(self):
        return iter(self._by_id.values())

    def get(self, district_id: str) -> Optional[District]:
        return self._by_id.get(district_id)

    def find_by_name(self, name: str) -> Tuple[District, ...]:
        """Districts whose normalized display name equals the normalized `name`."""
        key = normalize_display_name(name)
        if not key:
            return ()
        return self._by_name.get(key, ())

    def region_for_postal_code(self, compact_code: str) -> Optional[str]:
        """Longest-prefix match of a space-free postal code against the region table."""
        for length in self._prefix_lengths:
            region = self._region_prefixes.get(compact_code[:length])
            if region:
                return region
        return None

    def merged_with(self, districts: Iterable[District]) -> 'DistrictCatalog':
        """New catalog with extra districts added; existing ids win."""
        combined = list(self._by_id.values())
        combined.extend(d for d in districts if d.id not in self._by_id)
        return DistrictCatalog(
            self.country_code,
            combined,
            region_prefixes=self._region_prefixes,
            version=self.version,
        )


class RepresentativeRoster:
    """Immutable table of representatives, keyed by district and by region."""

    def __init__(self, country_code: str, representatives: Iterable[Representative], version: Optional[str] = None):
        self.country_code = country_code.upper()
        self.version = version

        by_district: Dict[str, List[Representative]] = defaultdict(list)
        by_region: Dict[str, List[Representative]] = defaultdict(list)
        count = 0
        for rep in representatives:
            count += 1
            if rep.district_id:
                by_district[rep.district_id].append(rep)
            elif rep.region_code:
                by_region[rep.region_code].append(rep)
            else:
                logger.warning("Representative %s (%s) has neither district nor region", rep.id, rep.name)

        self._count = count
        self._by_district = MappingProxyType(
            {key: tuple(sorted(reps, key=lambda r: r.name)) for key, reps in by_district.items()}
        )
        self._by_region = MappingProxyType(
            {key: tuple(sorted(reps, key=lambda r: r.name)) for key, reps in by_region.items()}
        )

    @classmethod
    def from_snapshot(cls, path: Path, country_code: str) -> 'RepresentativeRoster':
        payload = read_snapshot(path, ROSTER, country_code)
        representatives = [
            Representative.from_dict(item) for item in payload['data'].get('representatives', [])
        ]
        logger.info("Loaded %s representatives for %s from %s", len(representatives), country_code.upper(), path)
        return cls(country_code, representatives, version=payload.get('version'))

    @classmethod
    def empty(cls, country_code: str) -> 'RepresentativeRoster':
        return cls(country_code, [])

    def __len__(self) -> int:
        return self._count

    @property
    def has_regional_members(self) -> bool:
        return bool(self._by_region)

    def district_ids(self) -> Tuple[str, ...]:
        return tuple(sorted(self._by_district))

    def for_district(self, district_id: str) -> Tuple[Representative, ...]:
        """All representatives bound to a district (several for mixed-member systems)."""
        return self._by_district.get(district_id, ())

    def for_region(self, region_code: Optional[str]) -> Tuple[Representative, ...]:
        """Upper-chamber members for a region, e.g. both senators of a US state."""
        if not region_code:
            return ()
        return self._by_region.get(region_code.upper(), ())
