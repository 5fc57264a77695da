# ABOUTME: Test the live postcode geocoder and the name join against the district catalog.
# ABOUTME: HTTP calls are mocked; every failure mode must degrade to "no districts".

from unittest.mock import MagicMock, patch

import requests
from django.core.cache import cache
from django.test import SimpleTestCase, override_settings

from districts.services.catalog import DistrictCatalog
from districts.services.geocoding import GeocodingResolver, PostcodeGeocoder
from districts.types import GEOCODING_UNAVAILABLE, District


def postcodes_response(constituency='Cities of London and Westminster', status_code=200):
    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.json.return_value = {
        'status': status_code,
        'result': {
            'postcode': 'SW1A 1AA',
            'parliamentary_constituency': 'Cities of London and Westminster',
            'parliamentary_constituency_2024': constituency,
        },
    }
    return mock_response


@override_settings(GEOCODING_TIMEOUT_SECONDS=3, GEOCODING_USER_AGENT='tests')
class PostcodeGeocoderTests(SimpleTestCase):

    def setUp(self):
        cache.clear()
        self.geocoder = PostcodeGeocoder()

    def test_lookup_success(self):
        with patch('requests.get') as mock_get:
            mock_get.return_value = postcodes_response()

            name, success, error = self.geocoder.lookup_constituency('SW1A 1AA')

            self.assertTrue(success)
            self.assertIsNone(error)
            self.assertEqual(name, 'Cities of London and Westminster')

            args, kwargs = mock_get.call_args
            self.assertEqual(args[0], 'https://api.postcodes.io/postcodes/SW1A1AA')
            self.assertEqual(kwargs['timeout'], 3)
            self.assertEqual(kwargs['headers']['User-Agent'], 'tests')

    def test_results_are_cached(self):
        with patch('requests.get') as mock_get:
            mock_get.return_value = postcodes_response()

            self.geocoder.lookup_constituency('SW1A 1AA')
            name, success, _ = self.geocoder.lookup_constituency('sw1a1aa')

            self.assertTrue(success)
            self.assertEqual(name, 'Cities of London and Westminster')
            self.assertEqual(mock_get.call_count, 1)

    def test_unknown_postcode_is_cached(self):
        with patch('requests.get') as mock_get:
            mock_get.return_value = MagicMock(status_code=404)

            first = self.geocoder.lookup_constituency('ZZ9 9ZZ')
            second = self.geocoder.lookup_constituency('ZZ9 9ZZ')

            self.assertEqual(first, (None, False, 'Postcode not found'))
            self.assertEqual(second, first)
            self.assertEqual(mock_get.call_count, 1)

    def test_timeout_is_not_cached(self):
        with patch('requests.get') as mock_get:
            mock_get.side_effect = requests.Timeout('read timed out')

            name, success, error = self.geocoder.lookup_constituency('SW1A 1AA')
            self.geocoder.lookup_constituency('SW1A 1AA')

            self.assertIsNone(name)
            self.assertFalse(success)
            self.assertIn('timed out', error)
            self.assertEqual(mock_get.call_count, 2)

    def test_server_error(self):
        with patch('requests.get') as mock_get:
            mock_response = MagicMock(status_code=500)
            mock_response.raise_for_status.side_effect = requests.HTTPError('500 Server Error')
            mock_get.return_value = mock_response

            name, success, error = self.geocoder.lookup_constituency('SW1A 1AA')

            self.assertIsNone(name)
            self.assertFalse(success)
            self.assertIn('500', error)

    def test_malformed_payload(self):
        with patch('requests.get') as mock_get:
            mock_response = MagicMock(status_code=200)
            mock_response.json.side_effect = ValueError('Expecting value')
            mock_get.return_value = mock_response

            _, success, _ = self.geocoder.lookup_constituency('SW1A 1AA')

            self.assertFalse(success)

    def test_missing_result_field(self):
        with patch('requests.get') as mock_get:
            mock_get.return_value = postcodes_response(constituency=None)

            name, success, _ = self.geocoder.lookup_constituency('SW1A 1AA')

            self.assertIsNone(name)
            self.assertFalse(success)

    def test_configurable_result_field(self):
        geocoder = PostcodeGeocoder(result_field='parliamentary_constituency')
        with patch('requests.get') as mock_get:
            mock_get.return_value = postcodes_response(constituency='New Name')

            name, _, _ = geocoder.lookup_constituency('SW1A 1AA')

            self.assertEqual(name, 'Cities of London and Westminster')

    def test_empty_postcode(self):
        with patch('requests.get') as mock_get:
            self.assertEqual(self.geocoder.lookup_constituency(''), (None, False, 'Postcode is required'))
            mock_get.assert_not_called()


class GeocodingResolverTests(SimpleTestCase):

    def setUp(self):
        self.catalog = DistrictCatalog('GB', [
            District('W07000041', 'Ynys Môn', 'GB'),
            District('E14001172', 'Cities of London and Westminster', 'GB'),
        ])
        self.geocoder = MagicMock(spec=PostcodeGeocoder)
        self.resolver = GeocodingResolver(self.catalog, self.geocoder)

    def test_name_is_joined_with_catalog(self):
        self.geocoder.lookup_constituency.return_value = ('Cities of London and Westminster', True, None)
        self.assertEqual(self.resolver.lookup('SW1A 1AA'), ('E14001172',))

    def test_join_ignores_case_and_diacritics(self):
        self.geocoder.lookup_constituency.return_value = ('YNYS MON', True, None)
        self.assertEqual(self.resolver.lookup('LL77 7TW'), ('W07000041',))

    def test_unknown_name_yields_no_districts(self):
        self.geocoder.lookup_constituency.return_value = ('Atlantis', True, None)
        with self.assertLogs('districts.services', level='WARNING'):
            self.assertEqual(self.resolver.lookup('SW1A 1AA'), ())

    def test_geocoder_failure_yields_no_districts(self):
        self.geocoder.lookup_constituency.return_value = (None, False, 'Geocoding API error: timeout')
        self.assertEqual(self.resolver.lookup('SW1A 1AA'), ())

    def test_empty_reason(self):
        self.assertEqual(self.resolver.empty_reason, GEOCODING_UNAVAILABLE)
