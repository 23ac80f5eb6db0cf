import os
import tempfile

import pytest

# Point the app at throwaway storage before any signboard module is imported.
_TMP_DIR = tempfile.mkdtemp(prefix="signboard-tests-")
os.environ["SIGNAGE_DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'signage.db')}"
os.environ["SIGNAGE_MEDIA_DIR"] = os.path.join(_TMP_DIR, "media")
os.environ["SIGNAGE_API_KEY"] = ""

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from signboard.db import Base, SessionLocal, engine, ensure_settings_row  # noqa: E402
from signboard.models import admin_session, display_item, settings  # noqa: E402,F401
from signboard.services.content_store import ContentStore  # noqa: E402
from signboard.services.sessions import SessionMarkerStore  # noqa: E402
from signboard.services.storage import MediaStore, ensure_storage  # noqa: E402


class FakeTimer:
    def __init__(self, due: float, callback, interval: float | None = None) -> None:
        self.due = due
        self.callback = callback
        self.interval = interval
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Virtual clock: timers only fire inside advance()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def call_every(self, interval, callback):
        timer = FakeTimer(self.now + interval, callback, interval=interval)
        self.timers.append(timer)
        return timer

    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def one_shots(self) -> list[FakeTimer]:
        return [timer for timer in self.pending() if timer.interval is None]

    def repeating(self) -> list[FakeTimer]:
        return [timer for timer in self.pending() if timer.interval is not None]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [timer for timer in self.pending() if timer.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = timer.due
            if timer.interval is None:
                timer.cancelled = True
            else:
                timer.due += timer.interval
            timer.callback()
        self.now = target


@pytest.fixture(autouse=True)
def fresh_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    ensure_settings_row()
    ensure_storage()
    yield


@pytest.fixture
def store() -> ContentStore:
    return ContentStore(SessionLocal)


@pytest.fixture
def markers() -> SessionMarkerStore:
    return SessionMarkerStore(SessionLocal)


@pytest.fixture
def media(tmp_path) -> MediaStore:
    return MediaStore(root=str(tmp_path / "media"))


@pytest.fixture
def broken_store(tmp_path) -> ContentStore:
    # The parent directory does not exist, so every connection attempt fails.
    bad_engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'nope.db'}")
    return ContentStore(sessionmaker(bind=bad_engine))


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from signboard.api import items
    from signboard.main import app

    items.editors.clear()
    with TestClient(app) as test_client:
        yield test_client
    items.editors.clear()
