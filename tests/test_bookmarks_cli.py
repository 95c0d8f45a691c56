import asyncio

from tourmark.bookmarks.engine import BookmarkSession
from tourmark.core.local_store import JsonFileLocalStore
from tourmark.core.models import ANONYMOUS, Address, Bookmark, Coordinates, Identity, PointOfInterest
from tourmark.jobs import bookmarks


class RecordingStore:
    def __init__(self):
        self.rows = []

    async def resolve_user_id(self, subject_id):
        return "u1"

    async def exists(self, user_id, poi_id):
        return poi_id in self.rows

    async def insert(self, user_id, poi_id):
        self.rows.append(poi_id)

    async def delete(self, user_id, poi_id):
        self.rows.remove(poi_id)
        return 1

    async def list_for_user(self, user_id):
        return [Bookmark(poi_id=poi_id, identity=user_id) for poi_id in reversed(self.rows)]

    async def delete_many(self, user_id, poi_ids):
        before = len(self.rows)
        self.rows = [poi_id for poi_id in self.rows if poi_id not in poi_ids]
        return before - len(self.rows)


def run(session, argv, identity=ANONYMOUS):
    args = bookmarks.build_parser().parse_args(argv)
    return asyncio.run(bookmarks.run_command(session, identity, args))


def test_anonymous_commands_use_local_file(tmp_path):
    path = tmp_path / "local.json"
    session = BookmarkSession(RecordingStore(), JsonFileLocalStore(str(path)))

    assert run(session, ["toggle", "126508"]) == {"poi_id": "126508", "bookmarked": True}
    assert run(session, ["status", "126508"]) == {"poi_id": "126508", "bookmarked": True}
    assert run(session, ["list"]) == {"bookmarks": [{"poi_id": "126508", "created_at": None, "title": None}]}
    assert run(session, ["delete", "126508", "999"]) == {"deleted": 1}
    assert path.exists()


def test_list_resolves_titles_and_sorts(monkeypatch):
    store = RecordingStore()
    store.rows = ["2", "1"]
    session = BookmarkSession(store)

    async def fake_detail(poi_id):
        title = {"1": "경복궁", "2": "창덕궁"}[poi_id]
        return PointOfInterest(
            id=poi_id,
            category_id="12",
            title=title,
            address=Address(),
            coordinates=Coordinates(None, None, None, None),
        )

    monkeypatch.setattr(bookmarks.tour_api, "get_detail", fake_detail)

    identity = Identity(subject_id="user_alice", established=True)
    output = run(session, ["list", "--resolve", "--sort", "name"], identity=identity)

    assert [item["title"] for item in output["bookmarks"]] == ["경복궁", "창덕궁"]


def test_merge_command_reports_moved_ids():
    store = RecordingStore()
    session = BookmarkSession(store)
    run(session, ["toggle", "A"])

    output = run(session, ["merge"], identity=Identity(subject_id="user_alice", established=True))

    assert output == {"merged": ["A"], "failed": []}
    assert store.rows == ["A"]
