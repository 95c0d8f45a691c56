"""HTTP entrypoint exposing the tour API listing, search and detail routes."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import asdict
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request

from tourmark.core.config import get_settings
from tourmark.core.errors import (
    ConfigurationError,
    DomainError,
    InvalidInput,
    RegistryFailure,
    TourmarkError,
    TransportError,
)
from tourmark.core.models import ListingPage
from tourmark.etl.sorting import SORT_LATEST, clamp_page, sort_records
from tourmark.vendors import tour_api

# ---------- Logging ----------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ---------- App ----------
app = Flask(__name__)

DEFAULT_PAGE_SIZE = 10

_STATUS_BY_ERROR = (
    (InvalidInput, 400),
    (ConfigurationError, 500),
    (DomainError, 502),
    (TransportError, 502),
    (RegistryFailure, 502),
)

# ---------- Routes ----------


@app.get("/healthz")
def healthcheck() -> Any:
    """Lightweight health endpoint; reads settings only."""
    settings = get_settings()
    return (
        jsonify(
            {
                "status": "ok",
                "port_config": getattr(settings, "port", None),
                "cache_ttl_seconds": settings.cache_ttl_seconds,
            }
        ),
        200,
    )


@app.get("/api/tour/area-codes")
def area_codes() -> Any:
    try:
        page_size = _int_arg("numOfRows", 50)
        page_number = _int_arg("pageNo", 1)
        codes = asyncio.run(tour_api.list_area_codes(page_size, page_number))
    except TourmarkError as exc:
        return _error_response(exc, "area code lookup failed")
    data = [asdict(code) for code in codes]
    return jsonify({"success": True, "data": data, "count": len(data)}), 200


@app.get("/api/tour/list")
def list_places() -> Any:
    try:
        page = _fetch_listing(keyword=None)
    except TourmarkError as exc:
        return _error_response(exc, "tour list lookup failed")
    return _listing_response(page)


@app.get("/api/tour/search")
def search_places() -> Any:
    keyword = request.args.get("keyword", "")
    if not keyword.strip():
        return jsonify({"success": False, "error": "keyword is required", "kind": InvalidInput.kind}), 400
    try:
        page = _fetch_listing(keyword=keyword)
    except TourmarkError as exc:
        return _error_response(exc, "keyword search failed")
    return _listing_response(page)


@app.get("/api/tour/detail/<content_id>")
def place_detail(content_id: str) -> Any:
    try:
        detail = asyncio.run(tour_api.get_detail(content_id))
    except TourmarkError as exc:
        return _error_response(exc, "detail lookup failed")
    if detail is None:
        return jsonify({"success": False, "error": "place not found"}), 404
    return jsonify({"success": True, "data": detail.to_dict()}), 200


@app.get("/api/tour/intro/<content_id>")
def place_intro(content_id: str) -> Any:
    category_id = request.args.get("contentTypeId", "")
    try:
        info = asyncio.run(tour_api.get_operating_info(content_id, category_id))
    except TourmarkError as exc:
        return _error_response(exc, "operating info lookup failed")
    if info is None:
        return jsonify({"success": False, "error": "operating info not found"}), 404
    return jsonify({"success": True, "data": asdict(info)}), 200


@app.get("/api/tour/images/<content_id>")
def place_images(content_id: str) -> Any:
    try:
        page_size = _int_arg("numOfRows", 20)
        page_number = _int_arg("pageNo", 1)
        images = asyncio.run(tour_api.get_images(content_id, page_size, page_number))
    except TourmarkError as exc:
        return _error_response(exc, "image lookup failed")
    data = [asdict(image) for image in images]
    return jsonify({"success": True, "data": data, "count": len(data)}), 200


# ---------- Internals ----------


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidInput(f"{name} must be numeric") from exc
    if value <= 0:
        raise InvalidInput(f"{name} must be positive")
    return value


def _filter_arg(name: str) -> Optional[str]:
    # "all" selects every area/category.
    value = (request.args.get(name) or "").strip()
    return None if value in ("", "all") else value


def _fetch_listing(keyword: Optional[str]) -> ListingPage:
    area_code = _filter_arg("areaCode")
    category_id = _filter_arg("contentTypeId")
    page_size = _int_arg("numOfRows", DEFAULT_PAGE_SIZE)
    requested_page = _int_arg("pageNo", 1)
    sort_by = request.args.get("sortBy") or SORT_LATEST

    page = asyncio.run(_load_page(keyword, area_code, category_id, page_size, requested_page))
    # The registry total is only known after a fetch; out-of-range requests are re-served clamped.
    clamped = clamp_page(requested_page, page.total_pages)
    if clamped != requested_page:
        logger.info("Clamping page %d to %d (total_pages=%d)", requested_page, clamped, page.total_pages)
        page = asyncio.run(_load_page(keyword, area_code, category_id, page_size, clamped))

    page.records = sort_records(page.records, sort_by)
    return page


async def _load_page(
    keyword: Optional[str],
    area_code: Optional[str],
    category_id: Optional[str],
    page_size: int,
    page_number: int,
) -> ListingPage:
    if keyword is not None:
        return await tour_api.search_by_keyword(keyword, area_code, category_id, page_size, page_number)
    return await tour_api.list_by_area_and_category(area_code, category_id, page_size, page_number)


def _listing_response(page: ListingPage) -> Any:
    return (
        jsonify(
            {
                "success": True,
                "data": [record.to_dict() for record in page.records],
                "pagination": {
                    "totalCount": page.total_count,
                    "pageNo": page.page_number,
                    "numOfRows": page.page_size,
                    "totalPages": page.total_pages,
                },
            }
        ),
        200,
    )


def _error_response(exc: TourmarkError, context: str) -> Any:
    status = 500
    for error_type, error_status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            status = error_status
            break
    if status >= 500:
        logger.error("%s: %s", context, exc)
    payload: Dict[str, Any] = {"success": False, "error": exc.message, "kind": exc.kind}
    if exc.code is not None:
        payload["code"] = exc.code
    return jsonify(payload), status


def main() -> None:
    """Bind on 0.0.0.0 and the injected PORT, falling back to settings."""
    env_port = os.getenv("PORT")
    port = int(env_port or get_settings().port)
    logger.info("[BOOT] Binding on 0.0.0.0:%d", port)
    app.run(host="0.0.0.0", port=port)


if __name__ == "__main__":
    main()
