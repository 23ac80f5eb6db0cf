import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable

from signboard.schemas.display_item import DisplayItemOut
from signboard.services.content_store import ContentStore, ItemNotFoundError, StoreError
from signboard.services.notices import Notifier
from signboard.services.storage import MediaStore, MediaStoreError

logger = logging.getLogger(__name__)


def move_element(items: list, old_index: int, new_index: int) -> list:
    """Return a copy of items with the element at old_index re-inserted at new_index."""
    size = len(items)
    if not (0 <= old_index < size) or not (0 <= new_index < size):
        raise IndexError(f"move {old_index} -> {new_index} out of range for {size} items")
    moved = list(items)
    moved.insert(new_index, moved.pop(old_index))
    return moved


class ListEditor:
    """
    Admin working copy of every display item, active or not.

    Reorders only touch the local list and set `dirty`; `save_order` writes a
    dense 1..N order_index for the whole list in one batch. Field edits are
    written immediately.
    """

    def __init__(self, store: ContentStore, media: MediaStore) -> None:
        self.store = store
        self.media = media
        self.items: list[DisplayItemOut] = []
        self.dirty = False
        self.loaded = False
        self.notices = Notifier()
        # Held by a request for the whole read-modify-drain of this editor.
        self.lock = threading.RLock()

    def fetch(self) -> bool:
        try:
            self.items = self.store.list_items()
        except StoreError:
            logger.exception("Could not load display items for editing")
            self.notices.error("Failed to load displays")
            return False
        self.dirty = False
        self.loaded = True
        return True

    def reload(self) -> bool:
        # Keeps unsaved moves: local order wins, server values win.
        if not self.dirty:
            return self.fetch()
        try:
            fresh = {item.id: item for item in self.store.list_items()}
        except StoreError:
            logger.exception("Could not reload display items")
            self.notices.error("Failed to reload displays")
            return False
        merged = [fresh.pop(item.id) for item in self.items if item.id in fresh]
        merged.extend(item for item in fresh.values())
        self.items = merged
        return True

    def index_of(self, item_id: str) -> int:
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        raise KeyError(item_id)

    def move(self, old_index: int, new_index: int) -> bool:
        if old_index == new_index:
            move_element(self.items, old_index, new_index)
            return False
        self.items = move_element(self.items, old_index, new_index)
        self.dirty = True
        return True

    def move_item(self, active_id: str, over_id: str) -> bool:
        if active_id == over_id:
            return False
        return self.move(self.index_of(active_id), self.index_of(over_id))

    def move_up(self, index: int) -> bool:
        if not 0 <= index < len(self.items):
            raise IndexError(index)
        if index == 0:
            return False
        self._swap(index, index - 1)
        return True

    def move_down(self, index: int) -> bool:
        if not 0 <= index < len(self.items):
            raise IndexError(index)
        if index == len(self.items) - 1:
            return False
        self._swap(index, index + 1)
        return True

    def _swap(self, a: int, b: int) -> None:
        items = list(self.items)
        items[a], items[b] = items[b], items[a]
        self.items = items
        self.dirty = True

    def dense_order(self) -> list[DisplayItemOut]:
        return [item.model_copy(update={"order_index": position + 1}) for position, item in enumerate(self.items)]

    def save_order(self) -> bool:
        updates = self.dense_order()
        try:
            self.store.upsert_items(updates)
        except StoreError:
            logger.exception("Saving display order failed; keeping %d unsaved positions", len(updates))
            self.notices.error("Failed to save order")
            return False
        self.items = updates
        self.dirty = False
        self.notices.success("Order saved successfully")
        self.fetch()
        return True

    def discard(self) -> bool:
        return self.fetch()

    def _find(self, item_id: str) -> DisplayItemOut:
        return self.items[self.index_of(item_id)]

    def _write_field(self, item_id: str, label: str, **fields) -> bool:
        try:
            self.store.update_item(item_id, **fields)
        except StoreError:
            logger.exception("Updating %s of display item %s failed", label, item_id)
            self.notices.error(f"Failed to update {label}")
            return False
        return True

    def edit_title(self, item_id: str, title: str) -> bool:
        current = self._find(item_id)
        if title == current.title:
            return False
        if not self._write_field(item_id, "title", title=title):
            return False
        self.notices.success("Title updated")
        self.reload()
        return True

    def edit_duration(self, item_id: str, seconds) -> bool:
        current = self._find(item_id)
        if isinstance(seconds, bool) or not isinstance(seconds, int) or seconds <= 0:
            raise ValueError("Duration must be a positive whole number of seconds")
        if seconds == current.duration_seconds:
            return False
        if not self._write_field(item_id, "duration", duration_seconds=seconds):
            return False
        self.notices.success("Duration updated")
        self.reload()
        return True

    def toggle_active(self, item_id: str, active: bool) -> bool:
        current = self._find(item_id)
        if not self._write_field(item_id, "status", active=active):
            return False
        state = "is now active" if active else "is now hidden"
        self.notices.success(f'"{current.title}" {state}')
        self.reload()
        return True

    def delete(self, item_id: str) -> bool:
        current = self._find(item_id)
        path = self.media.path_from_url(current.media_url)
        if path:
            try:
                self.media.remove(path)
            except MediaStoreError:
                # Best effort: the record is deleted even when the file is not.
                logger.warning("Could not remove media %s for display item %s", path, item_id, exc_info=True)
                self.notices.warning("Media file could not be removed")
        try:
            self.store.delete_item(item_id)
        except ItemNotFoundError:
            logger.info("Display item %s was already deleted", item_id)
        except StoreError:
            logger.exception("Deleting display item %s failed", item_id)
            self.notices.error("Failed to delete display")
            return False
        self.notices.success("Display deleted")
        self.reload()
        return True


class EditorRegistry:
    """
    One list editor per admin client, so unsaved order survives between requests.

    Editors idle for longer than `idle_seconds` are dropped, and at most
    `max_editors` are kept; the least recently used one goes first.
    """

    def __init__(
        self,
        max_editors: int = 64,
        idle_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_editors = max_editors
        self.idle_seconds = idle_seconds
        self._clock = clock
        self._editors: OrderedDict[str, tuple[ListEditor, float]] = OrderedDict()
        self._lock = threading.Lock()

    def get(self, key: str, store: ContentStore, media: MediaStore) -> ListEditor:
        with self._lock:
            now = self._clock()
            self._expire(now)
            entry = self._editors.pop(key, None)
            editor = entry[0] if entry else ListEditor(store, media)
            self._editors[key] = (editor, now)
            while len(self._editors) > self.max_editors:
                self._editors.popitem(last=False)
                logger.info("Evicted least recently used list editor; keeping %d", self.max_editors)
            return editor

    def find(self, key: str) -> ListEditor | None:
        with self._lock:
            entry = self._editors.get(key)
            return entry[0] if entry else None

    def drop(self, key: str) -> None:
        with self._lock:
            self._editors.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._editors.clear()

    def __len__(self) -> int:
        return len(self._editors)

    def __contains__(self, key: str) -> bool:
        return key in self._editors

    def _expire(self, now: float) -> None:
        # Entries are ordered by last use, so the idle ones sit at the front.
        while self._editors:
            key, (_, last_used) = next(iter(self._editors.items()))
            if now - last_used <= self.idle_seconds:
                break
            del self._editors[key]
            logger.debug("Dropped list editor idle for %.0fs", now - last_used)
