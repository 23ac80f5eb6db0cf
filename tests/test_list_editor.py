import pytest

from signboard.services.content_store import StoreError
from signboard.services.list_editor import EditorRegistry, ListEditor, move_element
from signboard.services.storage import MediaStoreError


def _seed(store, media, names, active=None):
    created = []
    for position, name in enumerate(names, start=1):
        path = f"{name}.png"
        media.upload(path, b"png-bytes")
        created.append(
            store.insert_item(
                media_url=media.get_public_url(path),
                title=name,
                order_index=position,
                active=True if active is None else active.get(name, True),
            )
        )
    return created


def _titles(editor):
    return [item.title for item in editor.items]


@pytest.fixture
def editor(store, media):
    _seed(store, media, ["A", "B", "C", "D"], active={"C": False})
    editor = ListEditor(store, media)
    editor.fetch()
    return editor


def test_move_element_reinserts():
    assert move_element(["a", "b", "c", "d"], 0, 2) == ["b", "c", "a", "d"]
    assert move_element(["a", "b", "c", "d"], 3, 0) == ["d", "a", "b", "c"]
    with pytest.raises(IndexError):
        move_element(["a"], 0, 1)


def test_fetch_includes_inactive_items(editor):
    assert _titles(editor) == ["A", "B", "C", "D"]
    assert editor.dirty is False


def test_moves_mark_dirty_without_writing(editor, store):
    editor.move(0, 3)

    assert _titles(editor) == ["B", "C", "D", "A"]
    assert editor.dirty is True
    assert [item.title for item in store.list_items()] == ["A", "B", "C", "D"]


def test_move_up_and_down_swap_with_neighbour(editor):
    assert editor.move_up(0) is False
    assert editor.move_down(3) is False
    assert editor.dirty is False

    assert editor.move_down(0) is True
    assert _titles(editor) == ["B", "A", "C", "D"]
    assert editor.move_up(3) is True
    assert _titles(editor) == ["B", "A", "D", "C"]
    with pytest.raises(IndexError):
        editor.move_up(4)


def test_move_item_by_id(editor):
    ids = {item.title: item.id for item in editor.items}

    editor.move_item(ids["D"], ids["A"])

    assert _titles(editor) == ["D", "A", "B", "C"]
    with pytest.raises(KeyError):
        editor.move_item("missing", ids["A"])


def test_save_writes_dense_order_after_many_moves(editor, store):
    editor.move(0, 3)
    editor.move(2, 0)
    editor.move_down(1)
    editor.move_up(3)
    editor.move(1, 2)
    expected = _titles(editor)

    assert editor.save_order() is True

    persisted = store.list_items()
    assert [item.title for item in persisted] == expected
    assert [item.order_index for item in persisted] == [1, 2, 3, 4]
    assert editor.dirty is False
    assert [notice.level for notice in editor.notices.drain()] == ["success"]


def test_save_keeps_full_records(editor, store):
    before = {item.id: item for item in store.list_items()}
    editor.move(3, 0)
    editor.save_order()

    for item in store.list_items():
        assert item.title == before[item.id].title
        assert item.active == before[item.id].active
        assert item.created_at == before[item.id].created_at


class FailingUpsertStore:
    def __init__(self, inner):
        self.inner = inner

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def upsert_items(self, records):
        raise StoreError("write refused")


def test_failed_save_keeps_dirty_state(store, media):
    _seed(store, media, ["A", "B", "C"])
    editor = ListEditor(FailingUpsertStore(store), media)
    editor.fetch()
    editor.move(2, 0)

    assert editor.save_order() is False

    assert editor.dirty is True
    assert _titles(editor) == ["C", "A", "B"]
    assert [notice.message for notice in editor.notices.drain()] == ["Failed to save order"]
    assert [item.title for item in store.list_items()] == ["A", "B", "C"]


def test_discard_drops_unsaved_moves(editor):
    editor.move(0, 3)
    editor.discard()
    assert _titles(editor) == ["A", "B", "C", "D"]
    assert editor.dirty is False


def test_edit_title_only_writes_changes(editor, store):
    item = editor.items[0]

    assert editor.edit_title(item.id, "A") is False
    assert editor.notices.drain() == []

    assert editor.edit_title(item.id, "Alpha") is True
    assert store.get_item(item.id).title == "Alpha"
    assert editor.items[0].title == "Alpha"


def test_field_edit_preserves_unsaved_order(editor, store):
    editor.move(0, 3)
    target = editor.items[0]

    editor.edit_title(target.id, "Bee")

    assert _titles(editor) == ["Bee", "C", "D", "A"]
    assert editor.dirty is True


def test_edit_title_failure_keeps_prior_value(broken_store, editor):
    item = editor.items[0]
    editor.store = broken_store

    assert editor.edit_title(item.id, "Nope") is False
    assert editor.items[0].title == "A"
    assert [notice.message for notice in editor.notices.drain()] == ["Failed to update title"]


def test_edit_duration_validates_locally(editor, store):
    item = editor.items[1]
    for bad in (0, -3, 2.5, True):
        with pytest.raises(ValueError):
            editor.edit_duration(item.id, bad)

    assert editor.edit_duration(item.id, 25) is True
    assert store.get_item(item.id).duration_seconds == 25


def test_toggle_active_writes_immediately(editor, store):
    item = editor.items[2]
    editor.move(0, 1)

    assert editor.toggle_active(item.id, True) is True

    assert store.get_item(item.id).active is True
    assert editor.dirty is True
    assert any('"C" is now active' == notice.message for notice in editor.notices.drain())


def test_delete_removes_media_and_record(editor, store, media):
    item = editor.items[0]
    stored = media.path_from_url(item.media_url)

    assert editor.delete(item.id) is True

    assert store.get_item(item.id) is None
    assert _titles(editor) == ["B", "C", "D"]
    with pytest.raises(MediaStoreError):
        media.remove(stored)


def test_delete_survives_media_removal_failure(editor, store, media):
    item = editor.items[1]
    media.remove(media.path_from_url(item.media_url))

    assert editor.delete(item.id) is True

    assert item.id not in [row.id for row in store.list_items()]
    levels = [notice.level for notice in editor.notices.drain()]
    assert levels == ["warning", "success"]


def test_registry_keeps_one_editor_per_session(store, media):
    registry = EditorRegistry()
    first = registry.get("token-1", store, media)

    assert registry.get("token-1", store, media) is first
    assert registry.get("token-2", store, media) is not first
    registry.drop("token-1")
    assert registry.get("token-1", store, media) is not first


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_registry_drops_idle_editors(store, media):
    clock = FakeClock()
    registry = EditorRegistry(idle_seconds=60, clock=clock)
    stale = registry.get("old", store, media)

    clock.now = 30
    registry.get("recent", store, media)
    clock.now = 61
    fresh = registry.get("other", store, media)

    assert "old" not in registry
    assert "recent" in registry
    assert registry.get("old", store, media) is not stale
    assert registry.find("other") is fresh


def test_registry_evicts_least_recently_used(store, media):
    registry = EditorRegistry(max_editors=2)
    first = registry.get("a", store, media)
    registry.get("b", store, media)
    assert registry.get("a", store, media) is first

    registry.get("c", store, media)

    assert len(registry) == 2
    assert "b" not in registry
    assert registry.find("a") is first
    assert registry.find("b") is None
