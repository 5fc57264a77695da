# ABOUTME: Offline composer joining postal-code→administrative-unit and unit→district tables.
# ABOUTME: Applies a total-replace manual override layer and serves the result as a two-tier runtime table.

import csv
import json
import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from ..postal_codes import get_postal_format
from .snapshots import CROSSWALK_TABLE, read_snapshot

logger = logging.getLogger('districts.services')

Pair = Tuple[str, str]


def normalize_id_set(values: Iterable[str]) -> Tuple[str, ...]:
    """Deduplicated, sorted, blank-free tuple of ids."""
    return tuple(sorted({str(value).strip() for value in values if value is not None and str(value).strip()}))


@dataclass(frozen=True)
class OverrideEntry:
    """Manually curated district set that replaces the computed one for a postal code."""

    postal_code: str
    district_ids: Tuple[str, ...]
    note: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {'district_ids': list(self.district_ids), 'note': self.note}


def parse_overrides(raw: Mapping[str, Any], country_code: str) -> Dict[str, OverrideEntry]:
    """
    Parse override mappings of the form {"75006": {"district_ids": [...], "note": "..."}}.

    A bare list is accepted in place of the object. Keys starting with "_" are
    treated as file metadata and ignored.
    """
    postal_format = get_postal_format(country_code)
    overrides: Dict[str, OverrideEntry] = {}

    for raw_code, value in raw.items():
        if str(raw_code).startswith('_'):
            continue

        if isinstance(value, dict):
            district_ids = value.get('district_ids', [])
            note = value.get('note', '')
        else:
            district_ids = value
            note = ''

        code = postal_format.clean(str(raw_code))
        if code is None:
            raise ValueError(f"Override key {raw_code!r} is not a valid {country_code.upper()} postal code")

        ids = normalize_id_set(district_ids)
        if not ids:
            raise ValueError(f"Override for {code} has no district ids")

        if code in overrides and overrides[code].district_ids != ids:
            raise ValueError(f"Conflicting overrides for {code}")
        overrides[code] = OverrideEntry(postal_code=code, district_ids=ids, note=note or '')

    return overrides


def load_overrides(path: Path, country_code: str) -> Dict[str, OverrideEntry]:
    with Path(path).open('r', encoding='utf-8') as overrides_file:
        raw = json.load(overrides_file)
    overrides = parse_overrides(raw, country_code)
    logger.info("Loaded %s manual overrides from %s", len(overrides), path)
    return overrides


def read_columns(
    path: Path,
    columns: Sequence[str],
    delimiter: str = ',',
    encoding: str = 'utf-8-sig',
) -> Iterator[Tuple[str, ...]]:
    """
    Yield the named columns of each row of a delimited text file, stripped.

    Rows with a blank value in any of the columns are skipped. Raises
    ValueError when the header lacks one of the columns.
    """
    with Path(path).open('r', encoding=encoding, newline='') as csv_file:
        reader = csv.DictReader(csv_file, delimiter=delimiter)
        if reader.fieldnames is None:
            raise ValueError(f"File has no header row: {path}")

        missing = set(columns) - set(reader.fieldnames)
        if missing:
            raise ValueError(
                f"File {path} is missing column(s) {', '.join(sorted(missing))}; "
                f"available: {', '.join(reader.fieldnames)}"
            )

        for row in reader:
            values = tuple((row.get(column) or '').strip() for column in columns)
            if all(values):
                yield values


def read_pairs(
    path: Path,
    key_column: str,
    value_column: str,
    delimiter: str = ',',
    encoding: str = 'utf-8-sig',
) -> Iterator[Pair]:
    """Yield (key, value) pairs from two named columns of a delimited text file."""
    for key, value in read_columns(path, (key_column, value_column), delimiter=delimiter, encoding=encoding):
        yield key, value


@dataclass
class CrosswalkReport:
    """Statistics of a composition run, for reviewing a snapshot before publishing it."""

    postal_codes: int = 0
    matched: int = 0
    unmatched: List[str] = field(default_factory=list)
    malformed_codes: int = 0
    single_district: int = 0
    multi_district: int = 0
    multi_district_sizes: Dict[int, int] = field(default_factory=dict)
    units_without_districts: int = 0
    overrides_replaced: int = 0
    overrides_added: int = 0
    overrides_unchanged: int = 0

    @property
    def unmatched_ratio(self) -> float:
        if not self.postal_codes:
            return 1.0
        return len(self.unmatched) / self.postal_codes

    def to_dict(self) -> Dict[str, Any]:
        return {
            'postal_codes': self.postal_codes,
            'matched': self.matched,
            'unmatched': list(self.unmatched),
            'unmatched_ratio': round(self.unmatched_ratio, 6),
            'malformed_codes': self.malformed_codes,
            'single_district': self.single_district,
            'multi_district': self.multi_district,
            'multi_district_sizes': {str(size): count for size, count in sorted(self.multi_district_sizes.items())},
            'units_without_districts': self.units_without_districts,
            'overrides_replaced': self.overrides_replaced,
            'overrides_added': self.overrides_added,
            'overrides_unchanged': self.overrides_unchanged,
        }


@dataclass
class CrosswalkBuildResult:
    entries: Dict[str, Tuple[str, ...]]
    overrides: Dict[str, OverrideEntry]
    report: CrosswalkReport

    def effective(self) -> Dict[str, Tuple[str, ...]]:
        """The table as callers see it: overrides replace computed sets."""
        table = dict(self.entries)
        for code, override in self.overrides.items():
            table[code] = override.district_ids
        return dict(sorted(table.items()))

    def to_snapshot_data(self) -> Dict[str, Any]:
        return {
            'entries': {code: list(ids) for code, ids in sorted(self.entries.items())},
            'overrides': {code: entry.to_dict() for code, entry in sorted(self.overrides.items())},
        }


class CrosswalkComposer:
    """
    Compose postal code → district sets through an intermediate administrative unit.

    The two inputs never share postal codes or district ids directly; a
    postal code resolves to the union of the districts of every unit it
    covers, which is why one code can legitimately yield several districts.
    """

    def __init__(self, country_code: str):
        self.country_code = country_code.upper()
        self.postal_format = get_postal_format(self.country_code)

    def compose(
        self,
        postal_units: Iterable[Pair],
        unit_districts: Iterable[Pair],
        overrides: Optional[Mapping[str, OverrideEntry]] = None,
    ) -> CrosswalkBuildResult:
        report = CrosswalkReport()
        code_to_units = self._group_postal_codes(postal_units, report)

        unit_to_districts: Dict[str, Set[str]] = defaultdict(set)
        for unit, district_id in unit_districts:
            unit_to_districts[unit.strip()].add(district_id.strip())

        orphan_units: Set[str] = set()
        composed: Dict[str, Set[str]] = {}
        for code, units in code_to_units.items():
            districts: Set[str] = set()
            for unit in units:
                unit_districts_set = unit_to_districts.get(unit)
                if unit_districts_set:
                    districts.update(unit_districts_set)
                else:
                    orphan_units.add(unit)
            composed[code] = districts

        report.units_without_districts = len(orphan_units)
        logger.info(
            "Composed %s postal codes through %s administrative units (%s units without districts)",
            len(code_to_units),
            len(unit_to_districts),
            len(orphan_units),
        )
        return self._finish(composed, overrides or {}, report)

    def compose_direct(
        self,
        postal_districts: Iterable[Pair],
        overrides: Optional[Mapping[str, OverrideEntry]] = None,
    ) -> CrosswalkBuildResult:
        """Build a table from rows that already pair postal codes with districts."""
        report = CrosswalkReport()
        composed = self._group_postal_codes(postal_districts, report)
        return self._finish(composed, overrides or {}, report)

    def _group_postal_codes(self, pairs: Iterable[Pair], report: CrosswalkReport) -> Dict[str, Set[str]]:
        grouped: Dict[str, Set[str]] = defaultdict(set)
        for raw_code, value in pairs:
            code = self.postal_format.clean(raw_code)
            if code is None:
                report.malformed_codes += 1
                logger.debug("Skipping malformed postal code %r", raw_code)
                continue
            grouped[code].add(value.strip())
        return grouped

    def _finish(
        self,
        composed: Mapping[str, Set[str]],
        overrides: Mapping[str, OverrideEntry],
        report: CrosswalkReport,
    ) -> CrosswalkBuildResult:
        entries: Dict[str, Tuple[str, ...]] = {}
        unmatched: List[str] = []
        sizes: Counter = Counter()

        for code in sorted(composed):
            district_ids = normalize_id_set(composed[code])
            if not district_ids:
                unmatched.append(code)
                continue
            entries[code] = district_ids
            sizes[len(district_ids)] += 1

        report.postal_codes = len(composed)
        report.matched = len(entries)
        report.unmatched = unmatched
        report.single_district = sizes.get(1, 0)
        report.multi_district = sum(count for size, count in sizes.items() if size > 1)
        report.multi_district_sizes = {size: count for size, count in sizes.items() if size > 1}

        for code, override in overrides.items():
            computed = entries.get(code)
            if computed is None:
                report.overrides_added += 1
            elif computed == override.district_ids:
                report.overrides_unchanged += 1
            else:
                report.overrides_replaced += 1
                logger.info(
                    "Override replaces %s: %s -> %s",
                    code,
                    ','.join(computed),
                    ','.join(override.district_ids),
                )

        logger.info(
            "Crosswalk for %s: %s matched, %s unmatched, %s multi-district, %s overrides",
            self.country_code,
            report.matched,
            len(report.unmatched),
            report.multi_district,
            len(overrides),
        )
        return CrosswalkBuildResult(entries=entries, overrides=dict(overrides), report=report)


class CrosswalkTable:
    """Runtime two-tier lookup: the override table first, the computed table as fallback."""

    def __init__(
        self,
        country_code: str,
        entries: Mapping[str, Iterable[str]],
        overrides: Optional[Mapping[str, OverrideEntry]] = None,
        version: Optional[str] = None,
    ):
        self.country_code = country_code.upper()
        self.version = version
        computed = {}
        for code, ids in entries.items():
            normalized = normalize_id_set(ids)
            if normalized:
                computed[code] = normalized
        self._entries = MappingProxyType(computed)
        self._overrides = MappingProxyType(dict(overrides or {}))

    @classmethod
    def from_snapshot(cls, path: Path, country_code: str) -> 'CrosswalkTable':
        payload = read_snapshot(path, CROSSWALK_TABLE, country_code)
        data = payload['data']
        overrides = parse_overrides(data.get('overrides', {}), country_code)
        entries = data.get('entries', {})
        logger.info(
            "Loaded %s crosswalk entries and %s overrides for %s from %s",
            len(entries),
            len(overrides),
            country_code.upper(),
            path,
        )
        return cls(country_code, entries, overrides, version=payload.get('version'))

    def __len__(self) -> int:
        return len(set(self._entries) | set(self._overrides))

    def lookup(self, postal_code: str) -> Tuple[str, ...]:
        override = self._overrides.get(postal_code)
        if override is not None:
            return override.district_ids
        return self._entries.get(postal_code, ())

    def override_for(self, postal_code: str) -> Optional[OverrideEntry]:
        return self._overrides.get(postal_code)

    def district_ids(self) -> Set[str]:
        ids: Set[str] = set()
        for district_ids in self._entries.values():
            ids.update(district_ids)
        for override in self._overrides.values():
            ids.update(override.district_ids)
        return ids
