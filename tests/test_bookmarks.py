import json

from globalfm.bookmarks import BookmarkStore


def test_toggle_adds_then_removes(tmp_path):
    store = BookmarkStore(tmp_path / "bookmarks.json")

    assert store.toggle("st-1") is True
    assert store.is_bookmarked("st-1")
    assert store.toggle("st-1") is False
    assert not store.is_bookmarked("st-1")


def test_bookmarks_survive_reload_in_order(tmp_path):
    path = tmp_path / "bookmarks.json"
    store = BookmarkStore(path)
    for station_id in ("c", "a", "b"):
        store.toggle(station_id)

    assert json.loads(path.read_text()) == ["c", "a", "b"]
    assert BookmarkStore(path).all() == ["c", "a", "b"]


def test_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "bookmarks.json"
    path.write_text("{not json")

    store = BookmarkStore(path)

    assert store.all() == []
    store.toggle("st-1")
    assert json.loads(path.read_text()) == ["st-1"]


def test_listeners_see_every_change(tmp_path):
    store = BookmarkStore(tmp_path / "bookmarks.json")
    seen = []
    store.add_listener(seen.append)

    store.toggle("a")
    store.toggle("b")
    store.toggle("a")

    assert seen == [["a"], ["a", "b"], ["b"]]
