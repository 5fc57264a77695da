# ABOUTME: Service layer for district resolution.
# ABOUTME: Re-exports the resolver, table and builder classes used by views, commands and tests.

from .catalog import DistrictCatalog, RepresentativeRoster
from .crosswalk import CrosswalkComposer, CrosswalkTable, OverrideEntry
from .dispatch import ResolverDispatch, ResolverRepository, UnsupportedCountryError, resolve
from .geocoding import GeocodingResolver, PostcodeGeocoder
from .prefix import PrefixTable
from .snapshots import SnapshotError
from .spatial import SpatialTable, SpatialTableBuilder

__all__ = [
    'DistrictCatalog',
    'RepresentativeRoster',
    'CrosswalkComposer',
    'CrosswalkTable',
    'OverrideEntry',
    'ResolverDispatch',
    'ResolverRepository',
    'UnsupportedCountryError',
    'resolve',
    'GeocodingResolver',
    'PostcodeGeocoder',
    'PrefixTable',
    'SnapshotError',
    'SpatialTable',
    'SpatialTableBuilder',
]
