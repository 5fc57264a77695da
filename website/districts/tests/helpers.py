# ABOUTME: Builders for boundary features, snapshot files and dispatch fixtures used across the tests.
# ABOUTME: Keeps test modules focused on behaviour instead of fixture plumbing.

import json
from pathlib import Path
from unittest.mock import MagicMock

from districts.services.catalog import DistrictCatalog, RepresentativeRoster
from districts.services.crosswalk import CrosswalkTable, OverrideEntry
from districts.services.dispatch import CountryResolver, ResolverDispatch
from districts.services.snapshots import CATALOG, ROSTER, write_snapshot
from districts.types import District, Representative


def rectangle(minx, miny, maxx, maxy):
    return {
        'type': 'Polygon',
        'coordinates': [[[minx, miny], [maxx, miny], [maxx, maxy], [minx, maxy], [minx, miny]]],
    }


def square(minx, miny, size=1.0):
    return rectangle(minx, miny, minx + size, miny + size)


def bowtie():
    return {
        'type': 'Polygon',
        'coordinates': [[[0, 0], [1, 1], [1, 0], [0, 1], [0, 0]]],
    }


def feature(geometry, **properties):
    return {'type': 'Feature', 'geometry': geometry, 'properties': properties}


def write_geojson(path, features):
    path = Path(path)
    path.write_text(json.dumps({'type': 'FeatureCollection', 'features': features}), encoding='utf-8')
    return path


def write_catalog(data_dir, country, districts, region_prefixes=None, version='test'):
    data = {'districts': districts}
    if region_prefixes:
        data['region_prefixes'] = region_prefixes
    path = Path(data_dir) / country.lower() / 'districts.json'
    return write_snapshot(path, CATALOG, country, version, data)


def write_roster(data_dir, country, representatives, version='test'):
    path = Path(data_dir) / country.lower() / 'representatives.json'
    return write_snapshot(path, ROSTER, country, version, {'representatives': representatives})


def country_resolver(country, strategy, districts=(), representatives=(), region_prefixes=None, name='table'):
    catalog = DistrictCatalog(
        country,
        [District(id=d[0], name=d[1], country_code=country, parent_region=d[2] if len(d) > 2 else None)
         for d in districts],
        region_prefixes=region_prefixes,
    )
    roster = RepresentativeRoster(country, [Representative.from_dict(rep) for rep in representatives])
    return CountryResolver(
        country_code=country,
        strategy_name=name,
        strategy=strategy,
        catalog=catalog,
        roster=roster,
    )


def stub_strategy(*district_ids):
    strategy = MagicMock(spec=['lookup'])
    strategy.lookup.return_value = tuple(district_ids)
    return strategy


def dispatch_for(*resolvers):
    return ResolverDispatch({resolver.country_code: resolver for resolver in resolvers})


FR_DISTRICTS = [
    ('0101', 'Ain (1re circonscription)', '01'),
    ('7502', 'Paris (2e circonscription)', '75'),
    ('7511', 'Paris (11e circonscription)', '75'),
]

FR_REPRESENTATIVES = [
    {'id': 'pa1', 'name': 'Député Ain', 'district_id': '0101'},
    {'id': 'pa2', 'name': 'Députée Deux', 'district_id': '7502'},
    {'id': 'pa11', 'name': 'Député Onze', 'district_id': '7511'},
]

US_DISTRICTS = [
    ('NY-10', 'New York 10th', 'NY'),
    ('NY-12', 'New York 12th', 'NY'),
    ('NJ-08', 'New Jersey 8th', 'NJ'),
]

US_REPRESENTATIVES = [
    {'id': 'h1', 'name': 'Rep Twelve', 'district_id': 'NY-12'},
    {'id': 's2', 'name': 'Senator Zed', 'region_code': 'NY'},
    {'id': 's1', 'name': 'Senator Amy', 'region_code': 'NY'},
    {'id': 's3', 'name': 'Senator Jersey', 'region_code': 'NJ'},
]


def french_resolver():
    """FR crosswalk where 75006 is overridden to two circonscriptions and 7599 is unknown to the catalog."""
    table = CrosswalkTable(
        'FR',
        {'01000': ['0101'], '75006': ['7599']},
        overrides={'75006': OverrideEntry('75006', ('7502', '7511'), 'Paris 6e')},
    )
    return country_resolver('FR', table, FR_DISTRICTS, FR_REPRESENTATIVES, name='crosswalk')


def american_resolver():
    """US crosswalk with senators for NY and NJ; 07030 spans districts of both states."""
    table = CrosswalkTable('US', {'10001': ['NY-12'], '10002': ['NY-10', 'NY-12'], '07030': ['NJ-08', 'NY-10']})
    return country_resolver(
        'US',
        table,
        US_DISTRICTS,
        US_REPRESENTATIVES,
        region_prefixes={'100': 'NY', '070': 'NJ'},
        name='crosswalk',
    )
