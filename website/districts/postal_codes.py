# ABOUTME: Country-scoped postal code normalization and validation.
# ABOUTME: Every resolver and offline builder normalizes through here so table keys and lookups agree.

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from typing import Dict, Optional, Pattern

from .constants import normalize_country_code


class UnsupportedCountryError(ValueError):
    """Raised for a country code that has no postal format or resolver configured."""


@dataclass(frozen=True)
class PostalCodeFormat:
    """Normalization rules and validation pattern for one country's postal codes."""

    country_code: str
    pattern: Pattern
    example: str
    # Numeric codes that lost leading zeros (spreadsheets) are padded back to this width.
    pad_width: int = 0
    outward_split: bool = False

    def normalize(self, raw: Optional[str]) -> str:
        # Fullwidth digits and letters fold to ASCII; other scripts fail the pattern.
        value = unicodedata.normalize('NFKC', raw or '')
        value = re.sub(r'\s+', '', value).upper()

        if self.pad_width:
            if self.country_code == 'US':
                value = self._strip_zip_plus_four(value)
            if value.isascii() and value.isdigit() and self.pad_width - 1 <= len(value) < self.pad_width:
                value = value.zfill(self.pad_width)
            return value

        value = value.replace('-', '')
        if self.outward_split and len(value) >= 5:
            value = f"{value[:-3]} {value[-3:]}"
        return value

    def is_valid(self, normalized: str) -> bool:
        return bool(self.pattern.match(normalized))

    def clean(self, raw: Optional[str]) -> Optional[str]:
        """Return the normalized code, or None when it does not match the country pattern."""
        normalized = self.normalize(raw)
        if not self.is_valid(normalized):
            return None
        return normalized

    def compact(self, normalized: str) -> str:
        """Space-free form used for prefix keys and external services."""
        return normalized.replace(' ', '')

    @staticmethod
    def _strip_zip_plus_four(value: str) -> str:
        match = re.match(r'^(\d{5})-?\d{4}$', value, re.ASCII)
        if match:
            return match.group(1)
        return value


POSTAL_CODE_FORMATS: Dict[str, PostalCodeFormat] = {
    'DE': PostalCodeFormat('DE', re.compile(r'^\d{5}$', re.ASCII), '10115', pad_width=5),
    'FR': PostalCodeFormat('FR', re.compile(r'^\d{5}$', re.ASCII), '75001', pad_width=5),
    'US': PostalCodeFormat('US', re.compile(r'^\d{5}$', re.ASCII), '90210', pad_width=5),
    'CA': PostalCodeFormat(
        'CA',
        re.compile(r'^[A-Z]\d[A-Z] \d[A-Z]\d$', re.ASCII),
        'K1A 0A6',
        outward_split=True,
    ),
    'GB': PostalCodeFormat(
        'GB',
        re.compile(r'^(?:GIR 0AA|[A-Z]{1,2}\d[\dA-Z]? \d[A-Z]{2})$', re.ASCII),
        'SW1A 1AA',
        outward_split=True,
    ),
}


def get_postal_format(country: str) -> PostalCodeFormat:
    code = normalize_country_code(country)
    try:
        return POSTAL_CODE_FORMATS[code]
    except KeyError:
        raise UnsupportedCountryError(f"No postal code format for country '{country}'") from None


def normalize_postal_code(country: str, raw: Optional[str]) -> str:
    return get_postal_format(country).normalize(raw)


def clean_postal_code(country: str, raw: Optional[str]) -> Optional[str]:
    return get_postal_format(country).clean(raw)
