"""Utilities for transforming tour API envelopes into normalized records."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

from tourmark.core.models import Address, AreaCode, Coordinates, Image, ListingPage, OperatingInfo, PointOfInterest

logger = logging.getLogger(__name__)

COORDINATE_SCALE = 10_000_000

_IDENTITY_KEYS = {"contentid", "contenttypeid"}
_EXCLUDED_INFO_WORDS = ("fee",)


@dataclass(frozen=True)
class Absent:
    """The body carries no ``items`` wrapper (or an empty placeholder)."""


@dataclass(frozen=True)
class Single:
    item: Any


@dataclass(frozen=True)
class Many:
    items: List[Any]


ItemsShape = Union[Absent, Single, Many]


def get_body(payload: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    response = (payload or {}).get("response") or {}
    body = response.get("body")
    return body if isinstance(body, dict) else {}


def classify_items(body: Dict[str, Any]) -> ItemsShape:
    # The registry sends "items": "" when a query has no results.
    wrapper = body.get("items")
    if not isinstance(wrapper, dict):
        return Absent()
    item = wrapper.get("item")
    if isinstance(item, list):
        return Many(item)
    return Single(item)


def resolve_items(shape: ItemsShape) -> List[Dict[str, Any]]:
    """Collapse the item/array ambiguity into one list, dropping empty slots."""
    if isinstance(shape, Many):
        candidates: Iterable[Any] = shape.items
    elif isinstance(shape, Single):
        candidates = [shape.item]
    else:
        candidates = []
    return [item for item in candidates if isinstance(item, dict)]


def extract_items(payload: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return resolve_items(classify_items(get_body(payload)))


def convert_coordinates(raw_x: int, raw_y: int) -> Coordinates:
    """Registry coordinates are signed integers scaled by 10^7."""
    return Coordinates(raw_x=raw_x, raw_y=raw_y, lng=raw_x / COORDINATE_SCALE, lat=raw_y / COORDINATE_SCALE)


def to_point_of_interest(raw: Dict[str, Any]) -> Optional[PointOfInterest]:
    poi_id = _strip_or_none(raw.get("contentid"))
    if not poi_id:
        logger.debug("Dropping registry item without contentid: %s", str(raw)[:200])
        return None

    raw_x = _safe_int(raw.get("mapx"))
    raw_y = _safe_int(raw.get("mapy"))
    if raw_x is not None and raw_y is not None:
        coordinates = convert_coordinates(raw_x, raw_y)
    else:
        coordinates = Coordinates(raw_x=raw_x, raw_y=raw_y, lng=None, lat=None)

    images = [url for url in (_strip_or_none(raw.get("firstimage")), _strip_or_none(raw.get("firstimage2"))) if url]

    return PointOfInterest(
        id=poi_id,
        category_id=_strip_or_none(raw.get("contenttypeid")) or "",
        title=_strip_or_none(raw.get("title")) or "",
        address=Address(
            primary=_strip_or_none(raw.get("addr1")) or "",
            secondary=_strip_or_none(raw.get("addr2")),
        ),
        coordinates=coordinates,
        images=images,
        phone=_strip_or_none(raw.get("tel")),
        last_modified=_strip_or_none(raw.get("modifiedtime")),
        area_code=_strip_or_none(raw.get("areacode")),
        overview=_strip_or_none(raw.get("overview")),
        homepage=_strip_or_none(raw.get("homepage")),
        zipcode=_strip_or_none(raw.get("zipcode")),
    )


def to_points_of_interest(items: Iterable[Dict[str, Any]]) -> List[PointOfInterest]:
    records = []
    for raw in items:
        record = to_point_of_interest(raw)
        if record is not None:
            records.append(record)
    return records


def to_listing_page(payload: Dict[str, Any], page_size: int, page_number: int) -> ListingPage:
    body = get_body(payload)
    return ListingPage(
        records=to_points_of_interest(resolve_items(classify_items(body))),
        total_count=_safe_int(body.get("totalCount")) or 0,
        page_number=_safe_int(body.get("pageNo")) or page_number,
        page_size=_safe_int(body.get("numOfRows")) or page_size,
    )


def to_operating_info(raw: Dict[str, Any]) -> Optional[OperatingInfo]:
    """Operating fields carry a per-category suffix (``usetimeculture``, ``restdatefood``...)."""
    poi_id = _strip_or_none(raw.get("contentid"))
    if not poi_id:
        return None

    extra = {}
    for key, value in raw.items():
        text = _strip_or_none(value)
        if key in _IDENTITY_KEYS or not text:
            continue
        extra[key] = text

    return OperatingInfo(
        id=poi_id,
        category_id=_strip_or_none(raw.get("contenttypeid")) or "",
        use_time=_first_prefixed(extra, ("usetime", "opentime", "playtime", "checkintime")),
        rest_date=_first_prefixed(extra, ("restdate",)),
        info_center=_first_prefixed(extra, ("infocenter",)),
        parking=_first_prefixed(extra, ("parking",)),
        pets=_first_prefixed(extra, ("chkpet",)),
        extra=extra,
    )


def to_image(raw: Dict[str, Any]) -> Optional[Image]:
    poi_id = _strip_or_none(raw.get("contentid"))
    if not poi_id:
        return None
    return Image(
        id=poi_id,
        origin_url=_strip_or_none(raw.get("originimgurl")),
        thumbnail_url=_strip_or_none(raw.get("smallimageurl")),
        serial=_strip_or_none(raw.get("serialnum")),
        image_type=_strip_or_none(raw.get("imagetype") or raw.get("cpyrhtDivCd")),
    )


def to_area_code(raw: Dict[str, Any]) -> Optional[AreaCode]:
    code = _strip_or_none(raw.get("code"))
    if not code:
        return None
    return AreaCode(code=code, name=_strip_or_none(raw.get("name")) or "")


def _first_prefixed(fields: Dict[str, str], prefixes: Iterable[str]) -> Optional[str]:
    for prefix in prefixes:
        for key, value in fields.items():
            if key.startswith(prefix) and not any(word in key for word in _EXCLUDED_INFO_WORDS):
                return value
    return None


def _strip_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None


def _safe_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None
