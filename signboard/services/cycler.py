import logging
from collections.abc import Callable
from typing import Any

from signboard.db import DEFAULT_DURATION_SECONDS, DEFAULT_REFRESH_INTERVAL_MINUTES
from signboard.schemas.display_item import DisplayItemOut
from signboard.services.content_store import ContentStore, StoreError
from signboard.services.scheduler import Cancellable

logger = logging.getLogger(__name__)

Loader = Callable[[], tuple[list[DisplayItemOut], int | None]]


def store_loader(store: ContentStore) -> Loader:
    """Items and refresh interval are read separately; a None interval means keep the current one."""

    def load() -> tuple[list[DisplayItemOut], int | None]:
        items = store.list_items(active_only=True)
        try:
            interval = store.get_settings().refresh_interval_minutes
        except StoreError:
            logger.warning("Could not read refresh interval; keeping the current one", exc_info=True)
            interval = None
        return items, interval
    return load


def item_duration(item: DisplayItemOut | None) -> int:
    if item is None or not item.duration_seconds or item.duration_seconds <= 0:
        return DEFAULT_DURATION_SECONDS
    return item.duration_seconds


class DisplayCycler:
    """
    Public slideshow state: polls the store and steps through active items.

    Two independently cancellable tasks drive it. The poll task repeats every
    refresh interval; the advance task is a one-shot re-armed after every
    index change, so manual navigation never produces a double advance.
    """

    def __init__(
        self,
        load: Loader,
        scheduler,
        on_change: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        self._load = load
        self._scheduler = scheduler
        self._on_change = on_change
        self.items: list[DisplayItemOut] = []
        self.index = 0
        self.loaded = False
        self.refresh_interval_minutes = DEFAULT_REFRESH_INTERVAL_MINUTES
        self._poll_handle: Cancellable | None = None
        self._poll_interval: int | None = None
        self._advance_handle: Cancellable | None = None

    @property
    def current(self) -> DisplayItemOut | None:
        if not self.items:
            return None
        return self.items[self.index]

    @property
    def polling(self) -> bool:
        return self._poll_handle is not None

    @property
    def advancing(self) -> bool:
        return self._advance_handle is not None

    def start(self) -> None:
        self.refresh()
        if not self.loaded:
            # First fetch failed; still poll with the default interval.
            self._arm_poll()

    def stop(self) -> None:
        self._cancel_advance()
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        self._poll_interval = None

    def refresh(self) -> bool:
        try:
            items, interval = self._load()
        except StoreError:
            logger.exception("Display refresh failed; keeping %d cached items", len(self.items))
            return False

        self.items = list(items)
        self.loaded = True
        if interval is None:
            interval = self.refresh_interval_minutes
        if self.index >= len(self.items):
            self.index = max(len(self.items) - 1, 0)
        self.refresh_interval_minutes = interval
        if self._poll_interval != interval or self._poll_handle is None:
            self._arm_poll()
        self._arm_advance()
        self._notify()
        return True

    def next(self) -> bool:
        return self._step(1)

    def previous(self) -> bool:
        return self._step(-1)

    def _step(self, delta: int) -> bool:
        if len(self.items) <= 1:
            return False
        self.index = (self.index + delta) % len(self.items)
        self._arm_advance()
        self._notify()
        return True

    def _arm_poll(self) -> None:
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        self._poll_interval = self.refresh_interval_minutes
        if self.refresh_interval_minutes <= 0:
            logger.info("Display polling disabled (refresh interval %s)", self.refresh_interval_minutes)
            return
        self._poll_handle = self._scheduler.call_every(self.refresh_interval_minutes * 60, self.refresh)

    def _cancel_advance(self) -> None:
        if self._advance_handle is not None:
            self._advance_handle.cancel()
            self._advance_handle = None

    def _arm_advance(self) -> None:
        self._cancel_advance()
        if len(self.items) <= 1:
            return
        self._advance_handle = self._scheduler.call_later(item_duration(self.current), self._on_timer)

    def _on_timer(self) -> None:
        self._advance_handle = None
        if not self.items:
            return
        self.index = (self.index + 1) % len(self.items)
        self._arm_advance()
        self._notify()

    def snapshot(self) -> dict[str, Any]:
        item = self.current
        if not self.loaded:
            state = "loading"
        elif item is None:
            state = "empty"
        else:
            state = "showing"
        return {
            "state": state,
            "index": self.index,
            "total": len(self.items),
            "item": item.model_dump(mode="json") if item else None,
            "refresh_interval_minutes": self.refresh_interval_minutes,
        }

    def _notify(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.snapshot())
        except Exception:
            logger.exception("Display change listener failed")
