# ABOUTME: Test the JSON resolve endpoint for every result variant and for client errors.

from django.test import SimpleTestCase
from django.urls import reverse

from districts.services.dispatch import ResolverRepository

from .helpers import american_resolver, dispatch_for, french_resolver


class ResolveViewTests(SimpleTestCase):

    def setUp(self):
        ResolverRepository.configure(dispatch_for(french_resolver(), american_resolver()))
        self.url = reverse('districts:resolve')

    def tearDown(self):
        ResolverRepository.reset()

    def test_resolved(self):
        response = self.client.get(self.url, {'country': 'US', 'postal_code': '10001'})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'resolved')
        self.assertEqual(data['country'], 'US')
        self.assertEqual(data['district_ids'], ['NY-12'])
        self.assertEqual(data['representatives'][0]['name'], 'Rep Twelve')
        self.assertEqual(len(data['regional_representatives']), 2)

    def test_ambiguous(self):
        response = self.client.get(self.url, {'country': 'fr', 'postal_code': '75006'})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'ambiguous')
        self.assertEqual([c['district_id'] for c in data['candidates']], ['7502', '7511'])
        self.assertEqual(data['candidates'][1]['representatives'][0]['name'], 'Député Onze')

    def test_unresolved_is_not_an_http_error(self):
        response = self.client.get(self.url, {'country': 'FR', 'postal_code': 'nope'})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['reason'], 'invalid-format')

    def test_unsupported_country(self):
        response = self.client.get(self.url, {'country': 'IT', 'postal_code': '00100'})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['supported_countries'], ['FR', 'US'])

    def test_country_is_required(self):
        response = self.client.get(self.url, {'postal_code': '75006'})
        self.assertEqual(response.status_code, 400)

    def test_only_get_is_allowed(self):
        response = self.client.post(self.url, {'country': 'FR', 'postal_code': '75006'})
        self.assertEqual(response.status_code, 405)
