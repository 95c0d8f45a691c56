"""Client utilities for the Korea Tourism Organization open API (KorService2)."""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from tourmark.core.cache import ResponseCache, make_key
from tourmark.core.config import get_settings, get_tour_api_key
from tourmark.core.errors import DomainError, InvalidInput, RegistryFailure, TourmarkError, TransportError
from tourmark.core.models import AreaCode, Image, ListingPage, OperatingInfo, PointOfInterest
from tourmark.etl import transform

logger = logging.getLogger(__name__)

SUCCESS_CODE = "0000"
COMMON_PARAMS = {"MobileOS": "ETC", "_type": "json"}
_RETRY_STATUSES = (502, 503, 504)

_SESSION: Optional[requests.Session] = None
_CACHE: Optional[ResponseCache] = None


def _get_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        session = requests.Session()
        max_retries = get_settings().max_retries
        if max_retries > 0:
            # Only transient gateway statuses are retried; registry result codes never are.
            retries = Retry(
                total=max_retries,
                backoff_factor=0.5,
                status_forcelist=_RETRY_STATUSES,
                allowed_methods=("GET",),
                raise_on_status=False,
            )
            session.mount("https://", HTTPAdapter(max_retries=retries))
            session.mount("http://", HTTPAdapter(max_retries=retries))
        _SESSION = session
    return _SESSION


def _get_cache() -> ResponseCache:
    global _CACHE
    if _CACHE is None:
        _CACHE = ResponseCache(ttl_seconds=get_settings().cache_ttl_seconds)
    return _CACHE


def _build_params(params: Dict[str, Any]) -> Dict[str, Any]:
    query: Dict[str, Any] = dict(COMMON_PARAMS)
    query["MobileApp"] = get_settings().mobile_app
    for key, value in params.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        query[key] = value.strip() if isinstance(value, str) else value
    return query


def _check_envelope(endpoint: str, payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise RegistryFailure(f"{endpoint} returned a non-object payload")
    header = (payload.get("response") or {}).get("header") or {}
    result_code = str(header.get("resultCode", ""))
    if result_code != SUCCESS_CODE:
        message = header.get("resultMsg") or "unknown registry error"
        logger.error("%s failed: resultCode=%s, resultMsg=%s", endpoint, result_code, message)
        raise DomainError(f"{message} (code: {result_code})", code=result_code)
    return payload


def _get_json(endpoint: str, params: Dict[str, Any], timeout: float) -> Dict[str, Any]:
    url = f"{get_settings().tour_api_base_url}/{endpoint}"
    response = _get_session().get(url, params=params, timeout=timeout)
    if not 200 <= response.status_code < 300:
        logger.error("%s failed: http status=%s", endpoint, response.status_code)
        raise TransportError(
            f"tour API request failed: {response.status_code} {getattr(response, 'reason', '') or ''}".strip(),
            status_code=response.status_code,
        )
    return _check_envelope(endpoint, response.json())


async def fetch(endpoint: str, params: Dict[str, Any]) -> Dict[str, Any]:
    """Call ``endpoint`` with the shared parameter block, serving from cache when fresh."""
    api_key = get_tour_api_key()
    query = _build_params(params)
    cache = _get_cache()
    key = make_key(endpoint, query)

    cached = cache.get(key)
    if cached is not None:
        logger.debug("Cache hit for %s", key)
        return cached

    logger.debug("Cache miss for %s; calling registry", key)
    try:
        payload = await asyncio.to_thread(
            _get_json, endpoint, {**query, "serviceKey": api_key}, get_settings().request_timeout
        )
    except TourmarkError:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.error("%s failed: %s", endpoint, exc)
        raise RegistryFailure(str(exc) or exc.__class__.__name__) from exc

    cache.put(key, payload)
    return payload


def _require(value: Optional[str], label: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidInput(f"{label} must not be empty")
    return str(value).strip()


async def list_area_codes(page_size: int = 50, page_number: int = 1) -> List[AreaCode]:
    payload = await fetch("areaCode2", {"numOfRows": page_size, "pageNo": page_number})
    codes = (transform.to_area_code(item) for item in transform.extract_items(payload))
    return [code for code in codes if code is not None]


async def list_by_area_and_category(
    area_code: Optional[str] = None,
    category_id: Optional[str] = None,
    page_size: int = 10,
    page_number: int = 1,
) -> ListingPage:
    payload = await fetch(
        "areaBasedList2",
        {"areaCode": area_code, "contentTypeId": category_id, "numOfRows": page_size, "pageNo": page_number},
    )
    return transform.to_listing_page(payload, page_size=page_size, page_number=page_number)


async def search_by_keyword(
    keyword: str,
    area_code: Optional[str] = None,
    category_id: Optional[str] = None,
    page_size: int = 10,
    page_number: int = 1,
) -> ListingPage:
    keyword = _require(keyword, "keyword")
    payload = await fetch(
        "searchKeyword2",
        {
            "keyword": keyword,
            "areaCode": area_code,
            "contentTypeId": category_id,
            "numOfRows": page_size,
            "pageNo": page_number,
        },
    )
    return transform.to_listing_page(payload, page_size=page_size, page_number=page_number)


async def get_detail(poi_id: str) -> Optional[PointOfInterest]:
    payload = await fetch("detailCommon2", {"contentId": _require(poi_id, "poi_id")})
    items = transform.extract_items(payload)
    if not items:
        return None
    return transform.to_point_of_interest(items[0])


async def get_operating_info(poi_id: str, category_id: str) -> Optional[OperatingInfo]:
    params = {"contentId": _require(poi_id, "poi_id"), "contentTypeId": _require(category_id, "category_id")}
    payload = await fetch("detailIntro2", params)
    items = transform.extract_items(payload)
    if not items:
        return None
    return transform.to_operating_info(items[0])


async def get_images(poi_id: str, page_size: int = 20, page_number: int = 1) -> List[Image]:
    payload = await fetch(
        "detailImage2",
        {"contentId": _require(poi_id, "poi_id"), "numOfRows": page_size, "pageNo": page_number},
    )
    images = (transform.to_image(item) for item in transform.extract_items(payload))
    return [image for image in images if image is not None]
