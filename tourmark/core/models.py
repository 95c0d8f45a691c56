"""Core data models shared by the registry client and the bookmark engine."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(slots=True, frozen=True)
class Coordinates:
    """Registry coordinates: fixed-point integers as received plus derived degrees."""

    raw_x: Optional[int]
    raw_y: Optional[int]
    lng: Optional[float]
    lat: Optional[float]


@dataclass(slots=True, frozen=True)
class Address:
    primary: str = ""
    secondary: Optional[str] = None


@dataclass(slots=True)
class PointOfInterest:
    """Normalized registry record; ``id`` is never empty."""

    id: str
    category_id: str
    title: str
    address: Address
    coordinates: Coordinates
    images: List[str] = field(default_factory=list)
    phone: Optional[str] = None
    last_modified: Optional[str] = None
    area_code: Optional[str] = None
    overview: Optional[str] = None
    homepage: Optional[str] = None
    zipcode: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "title": self.title,
            "address": {"primary": self.address.primary, "secondary": self.address.secondary},
            "coordinates": {
                "raw_x": self.coordinates.raw_x,
                "raw_y": self.coordinates.raw_y,
                "lng": self.coordinates.lng,
                "lat": self.coordinates.lat,
            },
            "images": list(self.images),
            "phone": self.phone,
            "last_modified": self.last_modified,
            "area_code": self.area_code,
            "overview": self.overview,
            "homepage": self.homepage,
            "zipcode": self.zipcode,
        }


@dataclass(slots=True)
class OperatingInfo:
    id: str
    category_id: str
    use_time: Optional[str] = None
    rest_date: Optional[str] = None
    info_center: Optional[str] = None
    parking: Optional[str] = None
    pets: Optional[str] = None
    extra: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class Image:
    id: str
    origin_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    serial: Optional[str] = None
    image_type: Optional[str] = None


@dataclass(slots=True, frozen=True)
class AreaCode:
    code: str
    name: str


@dataclass(slots=True)
class ListingPage:
    """One page of registry results; ``total_count`` comes from the envelope, not ``len(records)``."""

    records: List[PointOfInterest]
    total_count: int
    page_number: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)


@dataclass(slots=True, frozen=True)
class Identity:
    """Per-session signal from the identity provider."""

    subject_id: Optional[str] = None
    established: bool = False

    @property
    def is_authenticated(self) -> bool:
        return self.established and bool(self.subject_id)


ANONYMOUS = Identity()


@dataclass(slots=True, frozen=True)
class Bookmark:
    """A bookmarked POI; ``identity`` and ``created_at`` are None for anonymous entries."""

    poi_id: str
    identity: Optional[str] = None
    created_at: Optional[datetime] = None
    id: Optional[str] = None


@dataclass(slots=True, frozen=True)
class ToggleResult:
    bookmarked: bool


@dataclass(slots=True)
class MergeReport:
    merged: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed
