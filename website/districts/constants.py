"""Static constants and helpers for geographic normalization."""

from __future__ import annotations

import re
import unicodedata
from typing import Optional

COUNTRY_ALIASES = {
    'UK': 'GB',
}

GERMAN_STATE_ALIASES = {
    'Baden-Württemberg': ['Baden-Württemberg', 'BW'],
    'Bayern': ['Bayern', 'Bavaria', 'BY'],
    'Berlin': ['Berlin', 'BE'],
    'Brandenburg': ['Brandenburg', 'BB'],
    'Bremen': ['Bremen', 'HB'],
    'Hamburg': ['Hamburg', 'HH'],
    'Hessen': ['Hessen', 'Hesse', 'HE'],
    'Mecklenburg-Vorpommern': ['Mecklenburg-Vorpommern', 'MV'],
    'Niedersachsen': ['Niedersachsen', 'Lower Saxony', 'NI'],
    'Nordrhein-Westfalen': ['Nordrhein-Westfalen', 'North Rhine-Westphalia', 'NRW', 'NW'],
    'Rheinland-Pfalz': ['Rheinland-Pfalz', 'Rhineland-Palatinate', 'RP'],
    'Saarland': ['Saarland', 'SL'],
    'Sachsen': ['Sachsen', 'Saxony', 'SN'],
    'Sachsen-Anhalt': ['Sachsen-Anhalt', 'Saxony-Anhalt', 'ST'],
    'Schleswig-Holstein': ['Schleswig-Holstein', 'SH'],
    'Thüringen': ['Thüringen', 'Thuringia', 'TH'],
}

US_STATE_CODES = {
    'AL': 'Alabama',
    'AK': 'Alaska',
    'AZ': 'Arizona',
    'AR': 'Arkansas',
    'CA': 'California',
    'CO': 'Colorado',
    'CT': 'Connecticut',
    'DE': 'Delaware',
    'FL': 'Florida',
    'GA': 'Georgia',
    'HI': 'Hawaii',
    'ID': 'Idaho',
    'IL': 'Illinois',
    'IN': 'Indiana',
    'IA': 'Iowa',
    'KS': 'Kansas',
    'KY': 'Kentucky',
    'LA': 'Louisiana',
    'ME': 'Maine',
    'MD': 'Maryland',
    'MA': 'Massachusetts',
    'MI': 'Michigan',
    'MN': 'Minnesota',
    'MS': 'Mississippi',
    'MO': 'Missouri',
    'MT': 'Montana',
    'NE': 'Nebraska',
    'NV': 'Nevada',
    'NH': 'New Hampshire',
    'NJ': 'New Jersey',
    'NM': 'New Mexico',
    'NY': 'New York',
    'NC': 'North Carolina',
    'ND': 'North Dakota',
    'OH': 'Ohio',
    'OK': 'Oklahoma',
    'OR': 'Oregon',
    'PA': 'Pennsylvania',
    'RI': 'Rhode Island',
    'SC': 'South Carolina',
    'SD': 'South Dakota',
    'TN': 'Tennessee',
    'TX': 'Texas',
    'UT': 'Utah',
    'VT': 'Vermont',
    'VA': 'Virginia',
    'WA': 'Washington',
    'WV': 'West Virginia',
    'WI': 'Wisconsin',
    'WY': 'Wyoming',
    'DC': 'District of Columbia',
    'PR': 'Puerto Rico',
    'GU': 'Guam',
    'VI': 'Virgin Islands',
    'AS': 'American Samoa',
    'MP': 'Northern Mariana Islands',
}

# Leading two digits of a federal electoral district (FED) code.
CA_PROVINCE_CODES = {
    '10': 'NL',
    '11': 'PE',
    '12': 'NS',
    '13': 'NB',
    '24': 'QC',
    '35': 'ON',
    '46': 'MB',
    '47': 'SK',
    '48': 'AB',
    '59': 'BC',
    '60': 'YT',
    '61': 'NT',
    '62': 'NU',
}

_DASHES = re.compile(r'[\u2010-\u2015\u2212-]+')
_WHITESPACE = re.compile(r'\s+')


def normalize_country_code(country: Optional[str]) -> str:
    """Return the upper-case ISO code, resolving aliases such as UK."""
    code = (country or '').strip().upper()
    return COUNTRY_ALIASES.get(code, code)


def normalize_german_state(state: Optional[str]) -> Optional[str]:
    """Return canonical German state name if known."""
    if not state:
        return None

    state_clean = state.strip()
    if not state_clean:
        return None

    lower_value = state_clean.lower()

    for canonical, variants in GERMAN_STATE_ALIASES.items():
        if lower_value == canonical.lower():
            return canonical
        for variant in variants:
            if lower_value == variant.lower():
                return canonical

    return state_clean


def normalize_us_state(state: Optional[str]) -> Optional[str]:
    """Return the two-letter USPS code for a state code or name."""
    if not state:
        return None

    cleaned = state.strip()
    if cleaned.upper() in US_STATE_CODES:
        return cleaned.upper()

    lower_value = cleaned.lower()
    for code, name in US_STATE_CODES.items():
        if name.lower() == lower_value:
            return code
    return None


def normalize_region(country_code: str, region: Optional[str]) -> Optional[str]:
    """Canonical region label for a country, falling back to the stripped input."""
    if not region:
        return None
    if country_code == 'DE':
        return normalize_german_state(region)
    if country_code == 'US':
        return normalize_us_state(region) or region.strip()
    if country_code == 'CA' and region[:2] in CA_PROVINCE_CODES:
        return CA_PROVINCE_CODES[region[:2]]
    return region.strip() or None


def normalize_display_name(name: Optional[str]) -> str:
    """
    Fold a constituency display name into a comparison key.

    Strips diacritics, case-folds, unifies dash characters and collapses
    whitespace. Two names match only if their keys are equal.
    """
    if not name:
        return ''

    decomposed = unicodedata.normalize('NFKD', name)
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    folded = stripped.casefold()
    folded = _DASHES.sub('-', folded)
    folded = re.sub(r'\s*-\s*', '-', folded)
    return _WHITESPACE.sub(' ', folded).strip()
