"""CLI job to list or search tour API places with deterministic ordering."""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from tourmark.core.errors import InvalidInput, TourmarkError
from tourmark.core.models import ListingPage
from tourmark.etl.sorting import SORT_LATEST, SORT_NAME, check_page, sort_records
from tourmark.vendors import tour_api

logger = logging.getLogger(__name__)

PAGE_SIZE = 21


async def run_listing(
    *,
    keyword: Optional[str],
    area_code: Optional[str],
    category_id: Optional[str],
    sort_by: str,
    page_number: int,
    page_size: int = PAGE_SIZE,
) -> ListingPage:
    if page_number < 1:
        raise InvalidInput(f"page {page_number} must be 1 or greater")
    if page_size < 1:
        raise InvalidInput(f"page size {page_size} must be 1 or greater")

    if keyword and keyword.strip():
        logger.info("Searching tour API for keyword=%s page=%d", keyword, page_number)
        page = await tour_api.search_by_keyword(keyword, area_code, category_id, page_size, page_number)
    else:
        logger.info("Listing tour API area=%s category=%s page=%d", area_code, category_id, page_number)
        page = await tour_api.list_by_area_and_category(area_code, category_id, page_size, page_number)

    if page.total_count:
        check_page(page_number, page.total_pages)
    page.records = sort_records(page.records, sort_by)
    logger.info("Fetched %d of %d records (%d pages)", len(page.records), page.total_count, page.total_pages)
    return page


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="List tour API places")
    parser.add_argument("--keyword", dest="keyword", help="Keyword search instead of area listing")
    parser.add_argument("--area", dest="area_code", help="Area code filter (e.g. 1 for Seoul)")
    parser.add_argument("--category", dest="category_id", help="Content type id filter (e.g. 12)")
    parser.add_argument(
        "--sort",
        dest="sort_by",
        default=SORT_LATEST,
        help=f"Ordering: {SORT_LATEST} or {SORT_NAME}; anything else keeps registry order",
    )
    parser.add_argument("--page", dest="page_number", type=int, default=1, help="1-based page number")
    parser.add_argument("--page-size", dest="page_size", type=int, default=PAGE_SIZE, help="Records per page")
    return parser


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    parser = build_parser()
    args = parser.parse_args()

    try:
        page = asyncio.run(
            run_listing(
                keyword=args.keyword,
                area_code=args.area_code,
                category_id=args.category_id,
                sort_by=args.sort_by,
                page_number=args.page_number,
                page_size=args.page_size,
            )
        )
    except TourmarkError as exc:
        logger.error("Listing failed: %s", exc)
        raise SystemExit(1) from exc

    json.dump(
        {
            "records": [record.to_dict() for record in page.records],
            "total_count": page.total_count,
            "page_number": page.page_number,
            "total_pages": page.total_pages,
        },
        sys.stdout,
        ensure_ascii=False,
        indent=2,
    )
    sys.stdout.write("\n")


if __name__ == "__main__":
    main()
