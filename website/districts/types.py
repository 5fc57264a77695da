"""Shared value types for district resolution."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

INVALID_FORMAT = 'invalid-format'
NOT_FOUND = 'not-found'
GEOCODING_UNAVAILABLE = 'geocoding-unavailable'


@dataclass(frozen=True)
class District:
    """A single electoral constituency as published in a snapshot."""

    id: str
    name: str
    country_code: str
    parent_region: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], country_code: str) -> 'District':
        parent_region = data.get('parent_region')
        return cls(
            id=str(data['id']),
            name=data.get('name') or str(data['id']),
            country_code=country_code,
            parent_region=str(parent_region) if parent_region else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Representative:
    """An elected official bound to a district or, for upper chambers, to a region."""

    id: str
    name: str
    party: str = ''
    district_id: Optional[str] = None
    region_code: Optional[str] = None
    chamber: str = 'lower'
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    contact_form: Optional[str] = None
    image_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Representative':
        district_id = data.get('district_id')
        region_code = data.get('region_code')
        return cls(
            id=str(data['id']),
            name=data['name'],
            party=data.get('party') or '',
            district_id=str(district_id) if district_id else None,
            region_code=str(region_code).upper() if region_code else None,
            chamber=data.get('chamber') or ('upper' if not district_id else 'lower'),
            email=data.get('email') or None,
            phone=data.get('phone') or None,
            website=data.get('website') or None,
            contact_form=data.get('contact_form') or None,
            image_url=data.get('image_url') or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Candidate:
    """One district option of an ambiguous resolution."""

    district_id: str
    district: Optional[District]
    representatives: Tuple[Representative, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'district_id': self.district_id,
            'district': self.district.to_dict() if self.district else None,
            'representatives': [rep.to_dict() for rep in self.representatives],
        }


@dataclass(frozen=True)
class Resolved:
    """The postal code maps to exactly one district."""

    status: ClassVar[str] = 'resolved'

    district_ids: Tuple[str, ...]
    representatives: Tuple[Representative, ...]
    districts: Tuple[District, ...] = ()
    regional_representatives: Tuple[Representative, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'district_ids': list(self.district_ids),
            'districts': [district.to_dict() for district in self.districts],
            'representatives': [rep.to_dict() for rep in self.representatives],
            'regional_representatives': [rep.to_dict() for rep in self.regional_representatives],
        }


@dataclass(frozen=True)
class Ambiguous:
    """The postal code legitimately spans several districts; the caller picks."""

    status: ClassVar[str] = 'ambiguous'

    candidates: Tuple[Candidate, ...]
    regional_representatives: Tuple[Representative, ...] = ()

    @property
    def district_ids(self) -> Tuple[str, ...]:
        return tuple(candidate.district_id for candidate in self.candidates)

    def first(self) -> Candidate:
        """Caller-side shortcut for flows that auto-select the first candidate."""
        return self.candidates[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'district_ids': list(self.district_ids),
            'candidates': [candidate.to_dict() for candidate in self.candidates],
            'regional_representatives': [rep.to_dict() for rep in self.regional_representatives],
        }


@dataclass(frozen=True)
class Unresolved:
    """No district could be determined; `reason` tells the caller why."""

    status: ClassVar[str] = 'unresolved'

    reason: str
    regional_representatives: Tuple[Representative, ...] = field(default=())

    @property
    def district_ids(self) -> Tuple[str, ...]:
        return ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'reason': self.reason,
            'district_ids': [],
            'regional_representatives': [rep.to_dict() for rep in self.regional_representatives],
        }


ResolutionResult = Union[Resolved, Ambiguous, Unresolved]
