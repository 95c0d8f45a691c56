"""Bookmark lifecycle across the anonymous local store and the durable store.

A ``BookmarkSession`` models one caller session. While no identity is
established the local string list under ``TEMP_BOOKMARKS_NAMESPACE`` is
authoritative. The first call carrying an established identity moves every
local id into the durable store (duplicates count as merged), clears the local
list and switches the session to the durable store for good. The identity is
passed to every call; nothing is read from ambient state.

Callers must await ``merge`` (or the first authenticated call) before issuing
further toggles in the same session; there is no internal lock.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

from tourmark.core.errors import InvalidInput, StoreConflict, StoreError, TourmarkError
from tourmark.core.local_store import LocalStore, MemoryLocalStore
from tourmark.core.models import Bookmark, Identity, MergeReport, PointOfInterest, ToggleResult

logger = logging.getLogger(__name__)

TEMP_BOOKMARKS_NAMESPACE = "mytrip_temp_bookmarks"


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    MERGING = "merging"
    AUTHENTICATED = "authenticated"


class BookmarkStore(Protocol):
    async def resolve_user_id(self, subject_id: str) -> str:
        ...

    async def exists(self, user_id: str, poi_id: str) -> bool:
        ...

    async def insert(self, user_id: str, poi_id: str) -> None:
        ...

    async def delete(self, user_id: str, poi_id: str) -> int:
        ...

    async def list_for_user(self, user_id: str) -> List[Bookmark]:
        ...

    async def delete_many(self, user_id: str, poi_ids: Sequence[str]) -> int:
        ...


class DetailClient(Protocol):
    async def get_detail(self, poi_id: str) -> Optional[PointOfInterest]:
        ...


def _require_id(poi_id: str) -> str:
    if poi_id is None or not str(poi_id).strip():
        raise InvalidInput("poi_id must not be empty")
    return str(poi_id).strip()


class BookmarkSession:
    def __init__(
        self,
        store: BookmarkStore,
        local_store: Optional[LocalStore] = None,
        namespace: str = TEMP_BOOKMARKS_NAMESPACE,
    ) -> None:
        self.store = store
        self.local_store = local_store if local_store is not None else MemoryLocalStore()
        self.namespace = namespace
        self.state = SessionState.UNAUTHENTICATED
        self.last_merge: Optional[MergeReport] = None

    # ---------- state ----------

    async def _sync(self, identity: Identity) -> Optional[str]:
        """Apply the identity signal and return the durable user id, or None when anonymous."""
        if identity.is_authenticated:
            if self.state is SessionState.UNAUTHENTICATED:
                self.last_merge = await self.merge(identity)
            return await self.store.resolve_user_id(identity.subject_id)

        if self.state is not SessionState.UNAUTHENTICATED:
            # Sign-out never restores anonymous bookmarks.
            logger.info("Identity no longer established; starting a fresh anonymous session")
            self.local_store.set(self.namespace, [])
            self.state = SessionState.UNAUTHENTICATED
        return None

    async def merge(self, identity: Identity) -> MergeReport:
        """Move the anonymous set into the durable store exactly once per session."""
        if not identity.is_authenticated:
            raise InvalidInput("merge requires an established identity")
        report = MergeReport()
        if self.state is not SessionState.UNAUTHENTICATED:
            return report

        self.state = SessionState.MERGING
        pending = self.local_store.get(self.namespace)
        try:
            if pending:
                user_id = await self.store.resolve_user_id(identity.subject_id)
                for poi_id in pending:
                    try:
                        await self._add(user_id, poi_id)
                    except StoreError as exc:
                        logger.warning("Merge of bookmark %s failed: %s", poi_id, exc)
                        report.failed.append(poi_id)
                    else:
                        report.merged.append(poi_id)
        finally:
            # Cleared even on failure so a broken id cannot trigger a merge loop.
            self.local_store.set(self.namespace, [])
            self.state = SessionState.AUTHENTICATED
            lost = [poi_id for poi_id in pending if poi_id not in report.merged]
            if lost:
                logger.warning("Anonymous bookmarks dropped during merge: %s", ", ".join(lost))
                for poi_id in lost:
                    if poi_id not in report.failed:
                        report.failed.append(poi_id)

        logger.info("Merged %d anonymous bookmarks (%d failed)", len(report.merged), len(report.failed))
        return report

    async def _add(self, user_id: str, poi_id: str) -> None:
        try:
            await self.store.insert(user_id, poi_id)
        except StoreConflict:
            logger.debug("Bookmark %s already present for user %s", poi_id, user_id)

    # ---------- operations ----------

    async def is_bookmarked(self, identity: Identity, poi_id: str) -> bool:
        poi_id = _require_id(poi_id)
        user_id = await self._sync(identity)
        if user_id is None:
            return poi_id in self.local_store.get(self.namespace)
        return await self.store.exists(user_id, poi_id)

    async def toggle(self, identity: Identity, poi_id: str) -> ToggleResult:
        poi_id = _require_id(poi_id)
        user_id = await self._sync(identity)

        if user_id is None:
            ids = self.local_store.get(self.namespace)
            if poi_id in ids:
                self.local_store.set(self.namespace, [value for value in ids if value != poi_id])
                return ToggleResult(bookmarked=False)
            self.local_store.set(self.namespace, ids + [poi_id])
            return ToggleResult(bookmarked=True)

        if await self.store.exists(user_id, poi_id):
            await self.store.delete(user_id, poi_id)
            return ToggleResult(bookmarked=False)
        await self._add(user_id, poi_id)
        return ToggleResult(bookmarked=True)

    async def list_mine(self, identity: Identity) -> List[Bookmark]:
        """Most recent first; anonymous entries have no ``created_at``."""
        user_id = await self._sync(identity)
        if user_id is None:
            return [Bookmark(poi_id=poi_id) for poi_id in reversed(self.local_store.get(self.namespace))]
        return await self.store.list_for_user(user_id)

    async def delete_many(self, identity: Identity, poi_ids: Iterable[str]) -> int:
        """Remove every listed id in one step; a store error propagates and nothing is deleted."""
        wanted = list(dict.fromkeys(_require_id(poi_id) for poi_id in poi_ids))
        user_id = await self._sync(identity)
        if not wanted:
            return 0

        if user_id is None:
            ids = self.local_store.get(self.namespace)
            kept = [value for value in ids if value not in wanted]
            self.local_store.set(self.namespace, kept)
            return len(ids) - len(kept)

        deleted = await self.store.delete_many(user_id, wanted)
        logger.info("Deleted %d of %d requested bookmarks", deleted, len(wanted))
        return deleted


async def resolve_bookmarks(
    bookmarks: Sequence[Bookmark],
    client: DetailClient,
) -> List[Tuple[Bookmark, Optional[PointOfInterest]]]:
    """Fetch display records concurrently; an entry whose lookup fails keeps ``None``."""

    async def _lookup(bookmark: Bookmark) -> Optional[PointOfInterest]:
        try:
            return await client.get_detail(bookmark.poi_id)
        except TourmarkError as exc:
            logger.warning("Failed to resolve bookmark %s: %s", bookmark.poi_id, exc)
            return None

    records = await asyncio.gather(*(_lookup(bookmark) for bookmark in bookmarks))
    return list(zip(bookmarks, records))
