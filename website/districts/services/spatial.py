# ABOUTME: Offline builder that assigns postal-code polygons to district polygons by point-in-polygon.
# ABOUTME: Also provides the runtime read-only table the builder's snapshot is loaded into.

import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from shapely.geometry import Point
from tqdm import tqdm

from ..constants import normalize_region
from ..geo import BoundaryIndex, InvalidGeometry, parse_polygon
from ..postal_codes import get_postal_format
from ..types import District
from .snapshots import SPATIAL_TABLE, read_snapshot

logger = logging.getLogger('districts.services')

CENTROID = 'centroid'
LARGEST_OVERLAP = 'largest-overlap'
STRATEGIES = (CENTROID, LARGEST_OVERLAP)

DEFAULT_POSTAL_CODE_PROPERTIES = ('postcode', 'plz')
DEFAULT_DISTRICT_ID_PROPERTIES = ('WKR_NR', 'wkr_nr')
DEFAULT_DISTRICT_NAME_PROPERTIES = ('WKR_NAME', 'wkr_name')
DEFAULT_REGION_PROPERTIES = ('LAND_NAME', 'land_name')


def first_property(properties: Mapping[str, Any], names: Sequence[str]) -> Optional[str]:
    """Value of the first non-empty property among `names`, as a string."""
    for name in names:
        value = properties.get(name)
        if value is None or value == '':
            continue
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        return str(value).strip()
    return None


@dataclass
class SpatialBuildReport:
    """Counters for data-quality gating of a spatial build."""

    strategy: str = CENTROID
    features: int = 0
    postal_codes: int = 0
    matched: int = 0
    unmatched: List[str] = field(default_factory=list)
    invalid_postal_geometries: int = 0
    invalid_district_geometries: int = 0
    missing_code: int = 0
    malformed_code: int = 0
    centroid_outside: int = 0
    districts_total: int = 0
    districts_covered: int = 0

    @property
    def unresolved(self) -> int:
        return self.postal_codes - self.matched

    @property
    def unmatched_ratio(self) -> float:
        """Share of distinct postal codes that did not make it into the table."""
        if not self.postal_codes:
            return 1.0
        return self.unresolved / self.postal_codes

    def exceeds(self, threshold: float) -> bool:
        return self.unmatched_ratio > threshold

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['unmatched_ratio'] = round(self.unmatched_ratio, 6)
        return data


@dataclass
class SpatialBuildResult:
    entries: Dict[str, Dict[str, str]]
    report: SpatialBuildReport

    def to_snapshot_data(self) -> Dict[str, Any]:
        return {'entries': dict(sorted(self.entries.items()))}


class SpatialTableBuilder:
    """
    Build a postal code → district table from two polygon collections.

    For every postal-code polygon a representative point (its centroid) is
    tested against the district polygons in source order; the first polygon
    containing it is the match. With strategy='largest-overlap' the district
    sharing the largest area wins instead. The centroid of a concave or
    multi-part polygon may fall outside it; such cases are counted in the
    report rather than corrected.
    """

    def __init__(
        self,
        country_code: str = 'DE',
        strategy: str = CENTROID,
        postal_code_properties: Sequence[str] = DEFAULT_POSTAL_CODE_PROPERTIES,
        district_id_properties: Sequence[str] = DEFAULT_DISTRICT_ID_PROPERTIES,
        district_name_properties: Sequence[str] = DEFAULT_DISTRICT_NAME_PROPERTIES,
        region_properties: Sequence[str] = DEFAULT_REGION_PROPERTIES,
        district_id_width: int = 3,
        progress: bool = False,
    ):
        if strategy not in STRATEGIES:
            raise ValueError(f"Unknown matching strategy '{strategy}', expected one of {STRATEGIES}")

        self.country_code = country_code.upper()
        self.postal_format = get_postal_format(self.country_code)
        self.strategy = strategy
        self.postal_code_properties = tuple(postal_code_properties)
        self.district_id_properties = tuple(district_id_properties)
        self.district_name_properties = tuple(district_name_properties)
        self.region_properties = tuple(region_properties)
        self.district_id_width = district_id_width
        self.progress = progress

    def build(
        self,
        postal_features: Iterable[Dict[str, Any]],
        district_features: Iterable[Dict[str, Any]],
        postal_crs: Optional[str] = None,
        district_crs: Optional[str] = None,
    ) -> SpatialBuildResult:
        report = SpatialBuildReport(strategy=self.strategy)
        index = BoundaryIndex(district_features, source_crs=district_crs)
        report.invalid_district_geometries = index.invalid_count
        report.districts_total = len(index)

        entries: Dict[str, Dict[str, str]] = {}
        seen_codes: Set[str] = set()
        unmatched_codes: Set[str] = set()

        postal_features = list(postal_features)
        report.features = len(postal_features)

        for position, feature in enumerate(
            tqdm(postal_features, desc='Matching postal codes', disable=not self.progress)
        ):
            properties = feature.get('properties') or {}
            raw_code = first_property(properties, self.postal_code_properties)
            if not raw_code:
                report.missing_code += 1
                continue

            code = self.postal_format.clean(raw_code)
            if code is None:
                report.malformed_code += 1
                logger.warning("Skipping postal feature #%s with malformed code %r", position, raw_code)
                continue

            seen_codes.add(code)
            if code in entries:
                continue

            try:
                geometry = parse_polygon(feature.get('geometry'), postal_crs)
            except InvalidGeometry as exc:
                report.invalid_postal_geometries += 1
                logger.warning("Skipping postal code %s: %s", code, exc)
                continue

            district_properties = self._match(geometry, index, report)
            entry = self._entry(district_properties) if district_properties else None
            if entry is None:
                unmatched_codes.add(code)
                continue

            entries[code] = entry
            unmatched_codes.discard(code)

        report.postal_codes = len(seen_codes)
        report.matched = len(entries)
        report.unmatched = sorted(unmatched_codes - set(entries))
        report.districts_covered = len({entry['district_id'] for entry in entries.values()})

        logger.info(
            "Spatial build for %s: %s/%s postal codes matched, %s unmatched, %s invalid postal geometries, "
            "%s invalid district geometries, %s centroids outside their polygon",
            self.country_code,
            report.matched,
            report.postal_codes,
            len(report.unmatched),
            report.invalid_postal_geometries,
            report.invalid_district_geometries,
            report.centroid_outside,
        )
        return SpatialBuildResult(entries=entries, report=report)

    def _match(self, geometry, index: BoundaryIndex, report: SpatialBuildReport) -> Optional[Dict[str, Any]]:
        if self.strategy == LARGEST_OVERLAP:
            return index.largest_overlap(geometry)

        centroid = geometry.centroid
        point = Point(centroid.x, centroid.y)
        if not geometry.contains(point):
            report.centroid_outside += 1
        return index.lookup(point)

    def _entry(self, properties: Mapping[str, Any]) -> Optional[Dict[str, str]]:
        district_id = first_property(properties, self.district_id_properties)
        if not district_id:
            logger.warning("Matched district feature has no id property: %s", dict(properties))
            return None

        if district_id.isdigit() and self.district_id_width:
            district_id = district_id.zfill(self.district_id_width)

        return {
            'district_id': district_id,
            'district_name': first_property(properties, self.district_name_properties) or '',
            'region': normalize_region(
                self.country_code, first_property(properties, self.region_properties)
            ) or '',
        }


class SpatialTable:
    """Runtime postal code → single district table produced by SpatialTableBuilder."""

    def __init__(self, country_code: str, entries: Mapping[str, Mapping[str, str]], version: Optional[str] = None):
        self.country_code = country_code.upper()
        self.version = version
        self._entries = MappingProxyType(
            {code: MappingProxyType(dict(entry)) for code, entry in entries.items() if entry.get('district_id')}
        )

    @classmethod
    def from_snapshot(cls, path: Path, country_code: str) -> 'SpatialTable':
        payload = read_snapshot(path, SPATIAL_TABLE, country_code)
        entries = payload['data'].get('entries', {})
        logger.info("Loaded %s postal code entries for %s from %s", len(entries), country_code.upper(), path)
        return cls(country_code, entries, version=payload.get('version'))

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, postal_code: str) -> Tuple[str, ...]:
        entry = self._entries.get(postal_code)
        if entry is None:
            return ()
        return (entry['district_id'],)

    def districts(self) -> List[District]:
        """Districts named in the table, for filling gaps in the catalog."""
        found: Dict[str, District] = {}
        for entry in self._entries.values():
            district_id = entry['district_id']
            if district_id not in found:
                found[district_id] = District(
                    id=district_id,
                    name=entry.get('district_name') or district_id,
                    country_code=self.country_code,
                    parent_region=entry.get('region') or None,
                )
        return list(found.values())

    def coverage(self) -> Counter:
        """Number of postal codes per district id."""
        return Counter(entry['district_id'] for entry in self._entries.values())
