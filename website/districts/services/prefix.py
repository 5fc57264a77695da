# ABOUTME: Prefix resolver keyed by the leading characters of a postal code (e.g. Canadian FSAs).
# ABOUTME: A prefix is coarser than a full code, so it may map to several districts.

import logging
from collections import defaultdict
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Set, Tuple

from ..postal_codes import get_postal_format
from .crosswalk import Pair, normalize_id_set
from .snapshots import PREFIX_TABLE, read_snapshot

logger = logging.getLogger('districts.services')


class PrefixTable:
    """Runtime prefix → districts table."""

    def __init__(
        self,
        country_code: str,
        prefix_length: int,
        entries: Mapping[str, Iterable[str]],
        version: Optional[str] = None,
    ):
        if prefix_length < 1:
            raise ValueError('prefix_length must be positive')

        self.country_code = country_code.upper()
        self.prefix_length = prefix_length
        self.version = version
        table = {}
        for prefix, ids in entries.items():
            normalized = normalize_id_set(ids)
            if normalized:
                table[prefix.upper()] = normalized
        self._entries = MappingProxyType(table)

    @classmethod
    def from_pairs(cls, country_code: str, pairs: Iterable[Pair], prefix_length: int = 3) -> 'PrefixTable':
        """
        Build a table from (postal code or prefix, district id) rows.

        Full postal codes are cut down to their prefix; rows sharing a prefix
        are unioned.
        """
        grouped: Dict[str, Set[str]] = defaultdict(set)
        skipped = 0
        for raw_code, district_id in pairs:
            key = ''.join((raw_code or '').split()).upper()[:prefix_length]
            if len(key) < prefix_length:
                skipped += 1
                continue
            grouped[key].add(district_id)

        if skipped:
            logger.warning("Skipped %s rows with codes shorter than %s characters", skipped, prefix_length)
        return cls(country_code, prefix_length, grouped)

    @classmethod
    def from_snapshot(cls, path: Path, country_code: str) -> 'PrefixTable':
        payload = read_snapshot(path, PREFIX_TABLE, country_code)
        data = payload['data']
        entries = data.get('entries', {})
        logger.info("Loaded %s prefixes for %s from %s", len(entries), country_code.upper(), path)
        return cls(country_code, int(data.get('prefix_length', 3)), entries, version=payload.get('version'))

    def __len__(self) -> int:
        return len(self._entries)

    def prefix_of(self, postal_code: str) -> str:
        return get_postal_format(self.country_code).compact(postal_code)[:self.prefix_length]

    def lookup(self, postal_code: str) -> Tuple[str, ...]:
        """All districts sharing the postal code's prefix, in sorted id order."""
        return self._entries.get(self.prefix_of(postal_code), ())

    def to_snapshot_data(self):
        return {
            'prefix_length': self.prefix_length,
            'entries': {prefix: list(ids) for prefix, ids in sorted(self._entries.items())},
        }

    def district_ids(self) -> Set[str]:
        ids: Set[str] = set()
        for district_ids in self._entries.values():
            ids.update(district_ids)
        return ids
