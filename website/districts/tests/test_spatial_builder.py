# ABOUTME: Test the spatial table builder that assigns postal-code polygons to district polygons.
# ABOUTME: Uses small synthetic squares so matches, misses and invalid geometries are predictable.

import json
import tempfile
from pathlib import Path

from django.test import SimpleTestCase

from districts.geo import BoundaryIndex, InvalidGeometry, load_features, parse_polygon
from districts.services.snapshots import SPATIAL_TABLE, write_snapshot
from districts.services.spatial import (
    CENTROID,
    LARGEST_OVERLAP,
    SpatialBuildReport,
    SpatialTable,
    SpatialTableBuilder,
)

from .helpers import bowtie, feature, rectangle, square, write_geojson

DISTRICTS = [
    feature(square(0, 0, 2), WKR_NR=75, WKR_NAME='Berlin-Mitte', LAND_NAME='Berlin'),
    feature(square(2, 0, 2), WKR_NR=217, WKR_NAME='München-Nord', LAND_NAME='Bavaria'),
]


class SpatialTableBuilderTests(SimpleTestCase):

    def setUp(self):
        self.builder = SpatialTableBuilder(country_code='DE')

    def test_centroid_is_assigned_to_containing_district(self):
        postal = [
            feature(square(0.2, 0.2, 0.5), plz='10117'),
            feature(square(2.5, 0.5, 0.5), plz='80331'),
        ]

        result = self.builder.build(postal, DISTRICTS)

        self.assertEqual(result.entries['10117'], {
            'district_id': '075',
            'district_name': 'Berlin-Mitte',
            'region': 'Berlin',
        })
        self.assertEqual(result.entries['80331']['district_id'], '217')
        self.assertEqual(result.entries['80331']['region'], 'Bayern')
        self.assertEqual(result.report.matched, 2)
        self.assertEqual(result.report.unmatched_ratio, 0.0)
        self.assertEqual(result.report.districts_covered, 2)
        self.assertEqual(result.report.districts_total, 2)

    def test_unmatched_postal_codes_are_reported(self):
        postal = [
            feature(square(0.2, 0.2, 0.5), plz='10117'),
            feature(square(50, 50, 1), plz='99999'),
        ]

        result = self.builder.build(postal, DISTRICTS)

        self.assertNotIn('99999', result.entries)
        self.assertEqual(result.report.unmatched, ['99999'])
        self.assertEqual(result.report.unmatched_ratio, 0.5)
        self.assertTrue(result.report.exceeds(0.02))
        self.assertFalse(result.report.exceeds(0.5))

    def test_invalid_and_incomplete_features_are_counted(self):
        postal = [
            feature(bowtie(), plz='10115'),
            feature(square(0.2, 0.2, 0.5)),
            feature(square(0.2, 0.2, 0.5), plz='ABC'),
            feature({'type': 'Point', 'coordinates': [0.5, 0.5]}, plz='10119'),
            feature(square(0.2, 0.2, 0.5), plz='10117'),
        ]
        districts = DISTRICTS + [feature(bowtie(), WKR_NR=1)]

        result = self.builder.build(postal, districts)

        report = result.report
        self.assertEqual(report.invalid_postal_geometries, 2)
        self.assertEqual(report.invalid_district_geometries, 1)
        self.assertEqual(report.missing_code, 1)
        self.assertEqual(report.malformed_code, 1)
        self.assertEqual(report.postal_codes, 3)
        self.assertEqual(report.matched, 1)
        self.assertEqual(list(result.entries), ['10117'])

    def test_first_district_in_source_order_wins_overlaps(self):
        overlapping = [
            feature(square(0, 0, 2), WKR_NR=1, WKR_NAME='First'),
            feature(square(0, 0, 2), WKR_NR=2, WKR_NAME='Second'),
        ]

        result = self.builder.build([feature(square(0.5, 0.5, 0.5), plz='10117')], overlapping)

        self.assertEqual(result.entries['10117']['district_id'], '001')

    def test_duplicate_postal_codes_keep_first_match(self):
        postal = [
            feature(square(0.2, 0.2, 0.5), plz='10117'),
            feature(square(2.5, 0.5, 0.5), plz='10117'),
        ]

        result = self.builder.build(postal, DISTRICTS)

        self.assertEqual(result.entries['10117']['district_id'], '075')
        self.assertEqual(result.report.postal_codes, 1)
        self.assertEqual(result.report.features, 2)

    def test_postal_codes_are_normalized_like_runtime_lookups(self):
        result = self.builder.build([feature(square(0.2, 0.2, 0.5), plz=1067)], DISTRICTS)
        self.assertIn('01067', result.entries)

    def test_centroid_outside_multipolygon_is_counted(self):
        multipolygon = {
            'type': 'MultiPolygon',
            'coordinates': [square(0, 0)['coordinates'], square(4, 0)['coordinates']],
        }
        districts = [feature(square(0, 0, 6), WKR_NR=3)]

        result = self.builder.build([feature(multipolygon, plz='10117')], districts)

        self.assertEqual(result.report.centroid_outside, 1)
        self.assertEqual(result.entries['10117']['district_id'], '003')

    def test_largest_overlap_strategy(self):
        postal = [feature(square(0, 0, 2), plz='10117')]
        districts = [
            feature(rectangle(0.9, 0, 1.1, 2), WKR_NR=1),
            feature(rectangle(1.1, 0, 4, 2), WKR_NR=2),
        ]

        by_centroid = SpatialTableBuilder('DE', strategy=CENTROID).build(postal, districts)
        by_overlap = SpatialTableBuilder('DE', strategy=LARGEST_OVERLAP).build(postal, districts)

        self.assertEqual(by_centroid.entries['10117']['district_id'], '001')
        self.assertEqual(by_overlap.entries['10117']['district_id'], '002')

    def test_unknown_strategy_is_rejected(self):
        with self.assertRaises(ValueError):
            SpatialTableBuilder('DE', strategy='nearest')

    def test_reprojects_postal_geometries(self):
        # Web Mercator square around 9-10.8°E / 9-10.7°N
        postal = [feature(rectangle(1000000, 1000000, 1200000, 1200000), plz='10117')]
        districts = [feature(square(8, 8, 4), WKR_NR=9)]

        result = self.builder.build(postal, districts, postal_crs='EPSG:3857')

        self.assertEqual(result.entries['10117']['district_id'], '009')

    def test_empty_input_counts_as_fully_unmatched(self):
        report = SpatialBuildReport()
        self.assertEqual(report.unmatched_ratio, 1.0)


class SpatialTableTests(SimpleTestCase):

    def test_snapshot_round_trip(self):
        builder = SpatialTableBuilder('DE')
        result = builder.build([feature(square(0.2, 0.2, 0.5), plz='10117')], DISTRICTS)

        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_snapshot(
                Path(tmpdir) / 'plz-wahlkreis.json', SPATIAL_TABLE, 'DE', '2025', result.to_snapshot_data()
            )
            table = SpatialTable.from_snapshot(path, 'DE')

        self.assertEqual(table.version, '2025')
        self.assertEqual(table.lookup('10117'), ('075',))
        self.assertEqual(table.lookup('99999'), ())
        self.assertEqual(table.coverage()['075'], 1)

        district = table.districts()[0]
        self.assertEqual((district.id, district.name, district.parent_region), ('075', 'Berlin-Mitte', 'Berlin'))


class GeometryHelpersTests(SimpleTestCase):

    def test_parse_polygon_rejects_invalid_geometries(self):
        for geometry in (None, {'type': 'Point', 'coordinates': [0, 0]}, bowtie(), {'type': 'Polygon'}):
            with self.assertRaises(InvalidGeometry):
                parse_polygon(geometry)

    def test_boundary_index_lookup(self):
        from shapely.geometry import Point

        index = BoundaryIndex(DISTRICTS)

        self.assertEqual(len(index), 2)
        self.assertEqual(index.lookup(Point(3, 1))['WKR_NR'], 217)
        self.assertIsNone(index.lookup(Point(30, 30)))

    def test_load_features_from_geojson(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = write_geojson(Path(tmpdir) / 'districts.geojson', DISTRICTS)
            features = load_features(path)

        self.assertEqual(len(features), 2)
        self.assertEqual(features[0]['properties']['WKR_NAME'], 'Berlin-Mitte')

    def test_load_features_from_shapefile(self):
        import shapefile

        with tempfile.TemporaryDirectory() as tmpdir:
            base = str(Path(tmpdir) / 'wahlkreise')
            with shapefile.Writer(base, shapeType=shapefile.POLYGON) as writer:
                writer.field('WKR_NR', 'N')
                writer.field('WKR_NAME', 'C')
                writer.poly([[[0, 0], [0, 2], [2, 2], [2, 0], [0, 0]]])
                writer.record(75, 'Berlin-Mitte')

            features = load_features(Path(base + '.shp'))

        self.assertEqual(len(features), 1)
        self.assertEqual(features[0]['properties']['WKR_NAME'], 'Berlin-Mitte')
        self.assertEqual(features[0]['geometry']['type'], 'Polygon')
        self.assertEqual(json.loads(json.dumps(features[0]['geometry']))['type'], 'Polygon')
