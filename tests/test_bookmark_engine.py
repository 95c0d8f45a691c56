import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from tourmark.bookmarks.engine import TEMP_BOOKMARKS_NAMESPACE, BookmarkSession, SessionState, resolve_bookmarks
from tourmark.core.errors import InvalidInput, StoreConflict, StoreError, TransportError, UnresolvedIdentity
from tourmark.core.local_store import MemoryLocalStore
from tourmark.core.models import ANONYMOUS, Address, Bookmark, Coordinates, Identity, PointOfInterest

ALICE = Identity(subject_id="user_alice", established=True)


def make_poi(poi_id, title=""):
    return PointOfInterest(
        id=poi_id,
        category_id="12",
        title=title,
        address=Address(),
        coordinates=Coordinates(None, None, None, None),
    )


class FakeStore:
    """In-memory stand-in for the users/bookmarks tables with a unique (user, poi) constraint."""

    def __init__(self, users=None):
        self.users = users if users is not None else {"user_alice": "u1"}
        self.rows = {}
        self.insert_calls = 0
        self.fail_on = set()
        self.fail_delete_many = False
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    async def resolve_user_id(self, subject_id):
        await asyncio.sleep(0)
        if subject_id not in self.users:
            raise UnresolvedIdentity(f"no user row for subject {subject_id}")
        return self.users[subject_id]

    async def exists(self, user_id, poi_id):
        await asyncio.sleep(0)
        return (user_id, poi_id) in self.rows

    async def insert(self, user_id, poi_id):
        self.insert_calls += 1
        await asyncio.sleep(0)
        if poi_id in self.fail_on:
            raise StoreError("connection lost")
        if (user_id, poi_id) in self.rows:
            raise StoreConflict("duplicate key value violates unique constraint", code="23505")
        self._clock += timedelta(minutes=1)
        self.rows[(user_id, poi_id)] = Bookmark(poi_id=poi_id, identity=user_id, created_at=self._clock)

    async def delete(self, user_id, poi_id):
        await asyncio.sleep(0)
        return 1 if self.rows.pop((user_id, poi_id), None) else 0

    async def list_for_user(self, user_id):
        await asyncio.sleep(0)
        rows = [row for (owner, _), row in self.rows.items() if owner == user_id]
        return sorted(rows, key=lambda row: row.created_at, reverse=True)

    async def delete_many(self, user_id, poi_ids):
        await asyncio.sleep(0)
        if self.fail_delete_many:
            raise StoreError("statement timeout")
        keys = [(user_id, poi_id) for poi_id in poi_ids if (user_id, poi_id) in self.rows]
        for key in keys:
            del self.rows[key]
        return len(keys)


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def local():
    return MemoryLocalStore()


@pytest.fixture
def session(store, local):
    return BookmarkSession(store, local)


def test_anonymous_toggle_flips(session, local):
    first = asyncio.run(session.toggle(ANONYMOUS, "126508"))
    second = asyncio.run(session.toggle(ANONYMOUS, "126508"))

    assert first.bookmarked is True
    assert second.bookmarked is False
    assert local.get(TEMP_BOOKMARKS_NAMESPACE) == []


def test_anonymous_reads_use_local_set(session):
    asyncio.run(session.toggle(ANONYMOUS, "A"))
    asyncio.run(session.toggle(ANONYMOUS, "B"))

    assert asyncio.run(session.is_bookmarked(ANONYMOUS, "A")) is True
    assert asyncio.run(session.is_bookmarked(ANONYMOUS, "C")) is False
    mine = asyncio.run(session.list_mine(ANONYMOUS))
    assert [b.poi_id for b in mine] == ["B", "A"]
    assert all(b.created_at is None and b.identity is None for b in mine)


def test_blank_id_is_invalid(session):
    with pytest.raises(InvalidInput):
        asyncio.run(session.toggle(ANONYMOUS, " "))


def test_authenticated_toggle_round_trip(session, store):
    assert asyncio.run(session.toggle(ALICE, "X")).bookmarked is True
    assert asyncio.run(session.is_bookmarked(ALICE, "X")) is True
    assert asyncio.run(session.toggle(ALICE, "X")).bookmarked is False
    assert asyncio.run(session.is_bookmarked(ALICE, "X")) is False
    assert store.rows == {}


def test_concurrent_adds_yield_one_row_and_no_error(session, store):
    async def scenario():
        await session.merge(ALICE)
        return await asyncio.gather(session.toggle(ALICE, "X"), session.toggle(ALICE, "X"))

    first, second = asyncio.run(scenario())

    assert first.bookmarked is True
    assert second.bookmarked is True
    assert store.insert_calls == 2
    assert list(store.rows) == [("u1", "X")]


def test_merge_moves_local_ids_without_duplicates(session, store, local):
    asyncio.run(session.toggle(ANONYMOUS, "A"))
    asyncio.run(session.toggle(ANONYMOUS, "B"))
    asyncio.run(store.insert("u1", "B"))

    mine = asyncio.run(session.list_mine(ALICE))

    assert sorted(b.poi_id for b in mine) == ["A", "B"]
    assert local.get(TEMP_BOOKMARKS_NAMESPACE) == []
    assert session.state is SessionState.AUTHENTICATED
    assert sorted(session.last_merge.merged) == ["A", "B"]
    assert session.last_merge.complete


def test_merge_runs_once_per_session(session, store, local):
    asyncio.run(session.merge(ALICE))
    local.set(TEMP_BOOKMARKS_NAMESPACE, ["late"])

    report = asyncio.run(session.merge(ALICE))

    assert report.merged == []
    assert ("u1", "late") not in store.rows


def test_merge_clears_local_set_even_on_partial_failure(session, store, local, caplog):
    local.set(TEMP_BOOKMARKS_NAMESPACE, ["A", "broken", "C"])
    store.fail_on = {"broken"}

    with caplog.at_level("WARNING"):
        report = asyncio.run(session.merge(ALICE))

    assert report.merged == ["A", "C"]
    assert report.failed == ["broken"]
    assert not report.complete
    assert local.get(TEMP_BOOKMARKS_NAMESPACE) == []
    assert session.state is SessionState.AUTHENTICATED
    assert "broken" in " ".join(caplog.messages)


def test_unresolved_identity_is_not_false(local):
    session = BookmarkSession(FakeStore(users={}), local)

    with pytest.raises(UnresolvedIdentity):
        asyncio.run(session.is_bookmarked(ALICE, "X"))


def test_merge_with_unresolved_identity_still_clears(local):
    session = BookmarkSession(FakeStore(users={}), local)
    local.set(TEMP_BOOKMARKS_NAMESPACE, ["A"])

    with pytest.raises(UnresolvedIdentity):
        asyncio.run(session.merge(ALICE))

    assert local.get(TEMP_BOOKMARKS_NAMESPACE) == []
    assert session.state is SessionState.AUTHENTICATED


def test_merge_requires_identity(session):
    with pytest.raises(InvalidInput):
        asyncio.run(session.merge(ANONYMOUS))


def test_sign_out_starts_fresh_anonymous_state(session, store):
    asyncio.run(session.toggle(ALICE, "X"))

    assert asyncio.run(session.list_mine(ANONYMOUS)) == []
    assert session.state is SessionState.UNAUTHENTICATED
    assert ("u1", "X") in store.rows


def test_authenticated_list_is_newest_first(session):
    for poi_id in ("first", "second", "third"):
        asyncio.run(session.toggle(ALICE, poi_id))

    mine = asyncio.run(session.list_mine(ALICE))

    assert [b.poi_id for b in mine] == ["third", "second", "first"]
    assert all(b.created_at is not None for b in mine)


def test_delete_many_counts_only_existing_rows(session, store):
    for poi_id in ("x", "z"):
        asyncio.run(session.toggle(ALICE, poi_id))

    assert asyncio.run(session.delete_many(ALICE, ["x", "y", "z", "x"])) == 2
    assert store.rows == {}


def test_delete_many_store_error_aborts_whole_batch(session, store):
    for poi_id in ("x", "z"):
        asyncio.run(session.toggle(ALICE, poi_id))
    store.fail_delete_many = True

    with pytest.raises(StoreError):
        asyncio.run(session.delete_many(ALICE, ["x", "z"]))
    assert len(store.rows) == 2


def test_delete_many_anonymous(session, local):
    local.set(TEMP_BOOKMARKS_NAMESPACE, ["x", "z"])
    assert asyncio.run(session.delete_many(ANONYMOUS, ["x", "y", "z"])) == 2
    assert asyncio.run(session.delete_many(ANONYMOUS, [])) == 0


def test_resolve_bookmarks_keeps_failed_lookups_as_none():
    class FakeClient:
        async def get_detail(self, poi_id):
            if poi_id == "gone":
                raise TransportError("tour API request failed: 500", status_code=500)
            return make_poi(poi_id, title=f"Place {poi_id}")

    bookmarks = [Bookmark(poi_id="1"), Bookmark(poi_id="gone")]
    resolved = asyncio.run(resolve_bookmarks(bookmarks, FakeClient()))

    assert resolved[0][1].title == "Place 1"
    assert resolved[1] == (bookmarks[1], None)
