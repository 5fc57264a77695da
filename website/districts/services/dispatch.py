# ABOUTME: Resolver dispatch routing (country, postal code) to the country's resolution strategy.
# ABOUTME: Turns strategy output into Resolved/Ambiguous/Unresolved and attaches representatives.

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from django.conf import settings

from ..constants import normalize_country_code
from ..postal_codes import UnsupportedCountryError, get_postal_format
from ..types import (
    INVALID_FORMAT,
    NOT_FOUND,
    Ambiguous,
    Candidate,
    Representative,
    ResolutionResult,
    Resolved,
    Unresolved,
)
from .catalog import DistrictCatalog, RepresentativeRoster
from .crosswalk import CrosswalkTable
from .geocoding import GeocodingResolver, PostcodeGeocoder
from .prefix import PrefixTable
from .spatial import SpatialTable

logger = logging.getLogger('districts.services')

SPATIAL = 'spatial'
CROSSWALK = 'crosswalk'
PREFIX = 'prefix'
GEOCODING = 'geocoding'

STRATEGIES = (SPATIAL, CROSSWALK, PREFIX, GEOCODING)


@dataclass
class CountryResolver:
    """Everything needed to resolve postal codes of one country."""

    country_code: str
    strategy_name: str
    strategy: object
    catalog: DistrictCatalog
    roster: RepresentativeRoster

    @property
    def empty_reason(self) -> str:
        return getattr(self.strategy, 'empty_reason', NOT_FOUND)


class ResolverDispatch:
    """
    Resolve (country, postal code) pairs to districts and representatives.

    Process:
    1. Normalize the country code; unknown countries raise UnsupportedCountryError
    2. Normalize and validate the postal code; malformed codes never reach a strategy
    3. Ask the country's strategy for district ids
    4. Wrap the ids into Resolved / Ambiguous / Unresolved, with representatives
    """

    def __init__(self, countries: Mapping[str, CountryResolver]):
        self._countries = {normalize_country_code(code): resolver for code, resolver in countries.items()}

    def supported_countries(self) -> Tuple[str, ...]:
        return tuple(sorted(self._countries))

    def country(self, country_code: str) -> CountryResolver:
        code = normalize_country_code(country_code)
        resolver = self._countries.get(code)
        if resolver is None:
            raise UnsupportedCountryError(f"Country '{country_code}' is not supported")
        return resolver

    def resolve(self, country_code: str, postal_code: str) -> ResolutionResult:
        """
        Resolve a postal code.

        Args:
            country_code: ISO country code (e.g., 'FR'); 'UK' is accepted for 'GB'
            postal_code: Postal code as typed by the user

        Returns:
            Resolved, Ambiguous or Unresolved

        Raises:
            UnsupportedCountryError if no resolver is configured for the country
        """
        resolver = self.country(country_code)
        normalized = get_postal_format(resolver.country_code).clean(postal_code)
        if normalized is None:
            logger.debug("Rejected %s postal code %r: invalid format", resolver.country_code, postal_code)
            return Unresolved(reason=INVALID_FORMAT)

        district_ids = tuple(resolver.strategy.lookup(normalized))
        regional = self._regional_representatives(resolver, district_ids, normalized)

        if not district_ids:
            logger.debug("No district for %s %s (%s)", resolver.country_code, normalized, resolver.empty_reason)
            return Unresolved(reason=resolver.empty_reason, regional_representatives=regional)

        if len(district_ids) == 1:
            district_id = district_ids[0]
            district = resolver.catalog.get(district_id)
            return Resolved(
                district_ids=district_ids,
                representatives=resolver.roster.for_district(district_id),
                districts=(district,) if district else (),
                regional_representatives=regional,
            )

        logger.info(
            "%s %s spans %s districts: %s",
            resolver.country_code,
            normalized,
            len(district_ids),
            ', '.join(district_ids),
        )
        candidates = tuple(
            Candidate(
                district_id=district_id,
                district=resolver.catalog.get(district_id),
                representatives=resolver.roster.for_district(district_id),
            )
            for district_id in sorted(district_ids)
        )
        return Ambiguous(candidates=candidates, regional_representatives=regional)

    def _regional_representatives(
        self,
        resolver: CountryResolver,
        district_ids: Tuple[str, ...],
        normalized_postal_code: str,
    ) -> Tuple[Representative, ...]:
        if not resolver.roster.has_regional_members:
            return ()

        region = self._region_of(resolver, district_ids, normalized_postal_code)
        return resolver.roster.for_region(region)

    @staticmethod
    def _region_of(
        resolver: CountryResolver,
        district_ids: Tuple[str, ...],
        normalized_postal_code: str,
    ) -> Optional[str]:
        regions = set()
        for district_id in district_ids:
            district = resolver.catalog.get(district_id)
            if district and district.parent_region:
                regions.add(district.parent_region.upper())

        if len(regions) == 1:
            return regions.pop()

        compact = get_postal_format(resolver.country_code).compact(normalized_postal_code)
        return resolver.catalog.region_for_postal_code(compact)


class ResolverRepository:
    """
    Process-wide ResolverDispatch built from the snapshot files named in settings.

    Tables are loaded once and shared read-only between requests.
    """

    _cached_dispatch = None
    _cached_config = None

    @classmethod
    def get_dispatch(cls) -> ResolverDispatch:
        config = cls._current_config()
        if cls._cached_dispatch is None or cls._cached_config != config:
            cls._cached_dispatch = build_dispatch()
            cls._cached_config = config
        return cls._cached_dispatch

    @classmethod
    def configure(cls, dispatch: ResolverDispatch) -> None:
        """Install a prebuilt dispatch for the current settings (used by tests)."""
        cls._cached_dispatch = dispatch
        cls._cached_config = cls._current_config()

    @classmethod
    def reset(cls) -> None:
        cls._cached_dispatch = None
        cls._cached_config = None

    @staticmethod
    def _current_config():
        data_dir = str(getattr(settings, 'DISTRICT_DATA_DIR', ''))
        resolution = getattr(settings, 'DISTRICT_RESOLUTION', {})
        return data_dir, repr(sorted(resolution.items()))


def resolve(country_code: str, postal_code: str) -> ResolutionResult:
    """Resolve with the process-wide dispatch."""
    return ResolverRepository.get_dispatch().resolve(country_code, postal_code)


def build_dispatch(data_dir: Optional[Path] = None) -> ResolverDispatch:
    """Load every configured country from settings into a ResolverDispatch."""
    base_dir = Path(data_dir or settings.DISTRICT_DATA_DIR)
    countries: Dict[str, CountryResolver] = {}
    for country_code, config in settings.DISTRICT_RESOLUTION.items():
        countries[normalize_country_code(country_code)] = load_country(country_code, config, base_dir)
    logger.info("District resolution ready for %s", ', '.join(sorted(countries)) or 'no countries')
    return ResolverDispatch(countries)


def country_paths(country_code: str, config: Mapping, base_dir: Path) -> Dict[str, Optional[Path]]:
    """Resolve the catalog, roster and table paths of a country configuration."""
    country_dir = Path(base_dir) / country_code.lower()

    def _path(key: str, default: Optional[str]) -> Optional[Path]:
        value = config.get(key, default)
        if not value:
            return None
        path = Path(value)
        return path if path.is_absolute() else country_dir / path

    return {
        'catalog': _path('catalog', 'districts.json'),
        'roster': _path('roster', 'representatives.json'),
        'table': _path('table', None),
    }


def load_country(country_code: str, config: Mapping, base_dir: Path) -> CountryResolver:
    code = normalize_country_code(country_code)
    strategy_name = config.get('strategy')
    if strategy_name not in STRATEGIES:
        raise ValueError(f"Unknown resolution strategy '{strategy_name}' for {code}")
    get_postal_format(code)

    paths = country_paths(code, config, base_dir)
    catalog = _load_or_empty(paths['catalog'], DistrictCatalog, code)
    roster = _load_or_empty(paths['roster'], RepresentativeRoster, code)

    if strategy_name == GEOCODING:
        geocoder = PostcodeGeocoder(
            endpoint=config.get('endpoint'),
            result_field=config.get('result_field'),
        )
        strategy = GeocodingResolver(catalog, geocoder)
    else:
        table_class = {SPATIAL: SpatialTable, CROSSWALK: CrosswalkTable, PREFIX: PrefixTable}[strategy_name]
        strategy = _load_table(paths['table'], table_class, code, config)
        if strategy_name == SPATIAL:
            catalog = catalog.merged_with(strategy.districts())

    logger.info(
        "%s: %s strategy, %s districts, %s representatives",
        code,
        strategy_name,
        len(catalog),
        len(roster),
    )
    return CountryResolver(
        country_code=code,
        strategy_name=strategy_name,
        strategy=strategy,
        catalog=catalog,
        roster=roster,
    )


def _load_or_empty(path: Optional[Path], loader, country_code: str):
    if path is None or not path.exists():
        logger.warning("No %s snapshot for %s at %s; using an empty one", loader.__name__, country_code, path)
        return loader.empty(country_code)
    return loader.from_snapshot(path, country_code)


def _load_table(path: Optional[Path], table_class, country_code: str, config: Mapping):
    if path is not None and path.exists():
        return table_class.from_snapshot(path, country_code)

    logger.warning(
        "Resolution table for %s missing at %s; every lookup will be not-found", country_code, path
    )
    if table_class is PrefixTable:
        return PrefixTable(country_code, int(config.get('prefix_length', 3)), {})
    return table_class(country_code, {})
