"""Deterministic ordering and page arithmetic for registry listings."""

from __future__ import annotations

import math
import unicodedata
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from tourmark.core.errors import InvalidInput
from tourmark.core.models import Bookmark, PointOfInterest

SORT_LATEST = "latest"
SORT_NAME = "name"
SORT_REGION = "region"

BookmarkedEntry = Tuple[Bookmark, Optional[PointOfInterest]]


def parse_modified_time(value: Optional[str]) -> Optional[datetime]:
    """Parse the registry's fixed-width ``YYYYMMDDHHmmss`` timestamp; None when missing or malformed."""
    if not value or len(value) != 14 or not value.isdigit():
        return None
    try:
        return datetime(
            int(value[0:4]),
            int(value[4:6]),
            int(value[6:8]),
            int(value[8:10]),
            int(value[10:12]),
            int(value[12:14]),
        )
    except ValueError:
        return None


def collation_key(text: str) -> Tuple[str, str]:
    """Case, width and accent insensitive primary key with a deterministic tiebreak."""
    folded = unicodedata.normalize("NFKC", text).casefold()
    primary = "".join(ch for ch in unicodedata.normalize("NFKD", folded) if not unicodedata.combining(ch))
    return primary, folded


def _sort_by_text(items: Sequence, text_of) -> List:
    with_text = [item for item in items if text_of(item)]
    without_text = [item for item in items if not text_of(item)]
    return sorted(with_text, key=lambda item: collation_key(text_of(item))) + without_text


def sort_records(records: Iterable[PointOfInterest], sort_key: Optional[str]) -> List[PointOfInterest]:
    """Order records by ``latest`` or ``name``; any other key keeps fetch order."""
    records = list(records)
    if sort_key == SORT_LATEST:
        stamped = [(record, parse_modified_time(record.last_modified)) for record in records]
        valid = [pair for pair in stamped if pair[1] is not None]
        invalid = [record for record, stamp in stamped if stamp is None]
        # reverse=True keeps ties in input order
        valid.sort(key=lambda pair: pair[1], reverse=True)
        return [record for record, _ in valid] + invalid
    if sort_key == SORT_NAME:
        return _sort_by_text(records, lambda record: record.title)
    return records


def sort_bookmarked(entries: Iterable[BookmarkedEntry], sort_key: Optional[str]) -> List[BookmarkedEntry]:
    entries = list(entries)
    if sort_key == SORT_LATEST:
        dated = [entry for entry in entries if entry[0].created_at is not None]
        undated = [entry for entry in entries if entry[0].created_at is None]
        dated.sort(key=lambda entry: entry[0].created_at, reverse=True)
        return dated + undated
    if sort_key == SORT_NAME:
        return _sort_by_text(entries, lambda entry: entry[1].title if entry[1] else "")
    if sort_key == SORT_REGION:
        return _sort_by_text(entries, lambda entry: entry[1].address.primary if entry[1] else "")
    return entries


def total_pages(total_count: int, page_size: int) -> int:
    if page_size <= 0:
        raise InvalidInput("page_size must be positive")
    return math.ceil(max(total_count, 0) / page_size)


def check_page(page: int, pages: int) -> int:
    if page < 1 or page > pages:
        raise InvalidInput(f"page {page} is outside 1..{pages}")
    return page


def clamp_page(page: int, pages: int) -> int:
    if pages < 1:
        return 1
    return min(max(page, 1), pages)


def paginate(records: Sequence[PointOfInterest], page: int, page_size: int) -> List[PointOfInterest]:
    """Pure slice of an already-ordered sequence; ``page`` is 1-based and validated by the caller."""
    if page_size <= 0:
        raise InvalidInput("page_size must be positive")
    start = (page - 1) * page_size
    return list(records[start:start + page_size])
