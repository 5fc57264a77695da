# ABOUTME: Live geocoding resolver: postcode → constituency name via postcodes.io, joined on catalog names.
# ABOUTME: Every failure (timeout, HTTP error, unknown name) degrades to "no districts"; nothing is raised.

import logging
from typing import Optional, Tuple
from urllib.parse import quote

import requests
from django.conf import settings
from django.core.cache import cache

from ..types import GEOCODING_UNAVAILABLE
from .catalog import DistrictCatalog

logger = logging.getLogger('districts.services')


class PostcodeGeocoder:
    """
    Look up the parliamentary constituency of a postcode with the postcodes.io API.

    Features:
    - Bounded timeout on every request
    - Caches answers using Django's cache framework, keyed on the normalized postcode
    - Caches "postcode not found" answers, but never transport failures
    """

    DEFAULT_ENDPOINT = 'https://api.postcodes.io/postcodes/'
    DEFAULT_RESULT_FIELD = 'parliamentary_constituency_2024'
    CACHE_PREFIX = 'postcode-constituency'

    def __init__(
        self,
        endpoint: Optional[str] = None,
        result_field: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_seconds: Optional[int] = None,
    ):
        self.endpoint = endpoint or self.DEFAULT_ENDPOINT
        if not self.endpoint.endswith('/'):
            self.endpoint += '/'
        self.result_field = result_field or self.DEFAULT_RESULT_FIELD
        self.timeout = timeout if timeout is not None else getattr(settings, 'GEOCODING_TIMEOUT_SECONDS', 5.0)
        self.cache_seconds = (
            cache_seconds if cache_seconds is not None else getattr(settings, 'GEOCODING_CACHE_SECONDS', 86400)
        )
        self.user_agent = getattr(settings, 'GEOCODING_USER_AGENT', 'lettergen/0.1')

    def lookup_constituency(self, postcode: str) -> Tuple[Optional[str], bool, Optional[str]]:
        """
        Resolve a postcode to the constituency name reported by the service.

        Args:
            postcode: Normalized postcode (e.g., "SW1A 1AA")

        Returns:
            Tuple of (constituency_name, success, error_message)
            - On success: (name, True, None)
            - On failure: (None, False, error_message)
        """
        compact = ''.join((postcode or '').split()).upper()
        if not compact:
            return None, False, 'Postcode is required'

        cache_key = self._cache_key(compact)
        cached = cache.get(cache_key)
        if cached is not None:
            if cached:
                return cached, True, None
            return None, False, 'Postcode not found'

        try:
            name = self._query(compact)
        except (requests.RequestException, ValueError) as e:
            error_msg = f'Geocoding API error: {e}'
            logger.warning('Postcode lookup failed for %s: %s', compact, error_msg)
            return None, False, error_msg

        cache.set(cache_key, name or '', self.cache_seconds)
        if not name:
            return None, False, 'Postcode not found'
        return name, True, None

    def _cache_key(self, compact: str) -> str:
        return f"{self.CACHE_PREFIX}:{self.result_field}:{compact}"

    def _query(self, compact: str) -> Optional[str]:
        """
        Query the service for one postcode.

        Returns:
            Constituency name, or None if the service does not know the postcode

        Raises:
            requests.RequestException on network and HTTP errors
            ValueError on a malformed response body
        """
        response = requests.get(
            f"{self.endpoint}{quote(compact)}",
            headers={'User-Agent': self.user_agent},
            timeout=self.timeout,
        )
        if response.status_code == 404:
            return None
        response.raise_for_status()

        payload = response.json()
        result = payload.get('result') if isinstance(payload, dict) else None
        if not isinstance(result, dict):
            raise ValueError('response has no result object')

        value = result.get(self.result_field)
        if not isinstance(value, str) or not value.strip():
            return None
        return value.strip()


class GeocodingResolver:
    """
    Resolve postcodes through the live geocoder and the district catalog.

    The service returns a constituency *name*, the only key shared with the
    catalog. Names are compared after normalization and must match exactly.
    """

    empty_reason = GEOCODING_UNAVAILABLE

    def __init__(self, catalog: DistrictCatalog, geocoder: Optional[PostcodeGeocoder] = None):
        self.catalog = catalog
        self.geocoder = geocoder or PostcodeGeocoder()

    def lookup(self, postal_code: str) -> Tuple[str, ...]:
        name, success, error = self.geocoder.lookup_constituency(postal_code)
        if not success:
            logger.info("No constituency for %s: %s", postal_code, error)
            return ()

        districts = self.catalog.find_by_name(name)
        if not districts:
            logger.warning(
                "Constituency %r for %s has no match in the %s district catalog",
                name,
                postal_code,
                self.catalog.country_code,
            )
            return ()

        return tuple(sorted(district.id for district in districts))
