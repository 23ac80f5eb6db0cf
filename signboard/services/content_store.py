import hmac
import logging
from collections.abc import Iterable

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from signboard.db import SETTINGS_ROW_ID
from signboard.models.display_item import DisplayItem, TRANSITIONS
from signboard.models.settings import BoardSettings
from signboard.schemas.display_item import DisplayItemOut
from signboard.schemas.settings import SettingsOut

logger = logging.getLogger(__name__)

ITEM_FIELDS = ("id", "media_url", "title", "duration_seconds", "transition", "active", "order_index", "created_at")
EDITABLE_ITEM_FIELDS = {"media_url", "title", "duration_seconds", "transition", "active", "order_index"}
EDITABLE_SETTINGS_FIELDS = {"refresh_interval_minutes", "default_duration_seconds", "security_enabled", "admin_password"}


class StoreError(Exception):
    pass


class ItemNotFoundError(StoreError):
    pass


def _passwords_match(stored: str | None, attempt: str | None) -> bool:
    if stored is None or attempt is None:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), attempt.encode("utf-8"))


def _check_item_fields(fields: dict) -> None:
    unknown = set(fields) - EDITABLE_ITEM_FIELDS
    if unknown:
        raise ValueError(f"Unknown display item fields: {', '.join(sorted(unknown))}")
    if "transition" in fields and fields["transition"] not in TRANSITIONS:
        raise ValueError(f"transition must be one of {', '.join(TRANSITIONS)}")


class ContentStore:
    """
    Content Store over SQLAlchemy.

    Every operation opens and closes its own session, so a store can be held by
    long-lived objects (the display cycler, admin list editors). Database
    failures surface as StoreError; nothing here retries.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def list_items(self, active_only: bool = False) -> list[DisplayItemOut]:
        db = self._session()
        try:
            query = db.query(DisplayItem)
            if active_only:
                query = query.filter(DisplayItem.active.is_(True))
            rows = query.order_by(DisplayItem.order_index.asc(), DisplayItem.created_at.desc()).all()
            return [DisplayItemOut.model_validate(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError("Could not load display items") from exc
        finally:
            db.close()

    def get_item(self, item_id: str) -> DisplayItemOut | None:
        db = self._session()
        try:
            row = db.get(DisplayItem, item_id)
            return DisplayItemOut.model_validate(row) if row else None
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not load display item {item_id}") from exc
        finally:
            db.close()

    def insert_item(self, **fields) -> DisplayItemOut:
        _check_item_fields(fields)
        db = self._session()
        try:
            item = DisplayItem(**fields)
            db.add(item)
            db.commit()
            db.refresh(item)
            return DisplayItemOut.model_validate(item)
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError("Could not create display item") from exc
        finally:
            db.close()

    def update_item(self, item_id: str, **fields) -> None:
        _check_item_fields(fields)
        db = self._session()
        try:
            item = db.get(DisplayItem, item_id)
            if item is None:
                raise ItemNotFoundError(f"Display item {item_id} not found")
            for key, value in fields.items():
                setattr(item, key, value)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError(f"Could not update display item {item_id}") from exc
        finally:
            db.close()

    def next_order_index(self) -> int:
        db = self._session()
        try:
            highest = db.query(func.max(DisplayItem.order_index)).scalar()
            return (highest or 0) + 1
        except SQLAlchemyError as exc:
            raise StoreError("Could not read display order") from exc
        finally:
            db.close()

    def upsert_items(self, records: Iterable[DisplayItemOut]) -> None:
        """Write full records keyed by id in a single transaction."""
        db = self._session()
        try:
            for record in records:
                db.merge(DisplayItem(**{name: getattr(record, name) for name in ITEM_FIELDS}))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError("Could not save display items") from exc
        finally:
            db.close()

    def delete_item(self, item_id: str) -> None:
        db = self._session()
        try:
            item = db.get(DisplayItem, item_id)
            if item is None:
                raise ItemNotFoundError(f"Display item {item_id} not found")
            db.delete(item)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError(f"Could not delete display item {item_id}") from exc
        finally:
            db.close()

    def _settings_row(self, db: Session) -> BoardSettings:
        row = db.get(BoardSettings, SETTINGS_ROW_ID)
        if row is None:
            row = BoardSettings(id=SETTINGS_ROW_ID)
            db.add(row)
            db.flush()
        return row

    def get_settings(self) -> SettingsOut:
        db = self._session()
        try:
            row = self._settings_row(db)
            out = SettingsOut.model_validate(row)
            out.password_set = row.admin_password is not None
            db.commit()
            return out
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError("Could not load settings") from exc
        finally:
            db.close()

    def update_settings(self, **fields) -> None:
        unknown = set(fields) - EDITABLE_SETTINGS_FIELDS
        if unknown:
            raise ValueError(f"Unknown settings fields: {', '.join(sorted(unknown))}")
        db = self._session()
        try:
            row = self._settings_row(db)
            for key, value in fields.items():
                setattr(row, key, value)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError("Could not update settings") from exc
        finally:
            db.close()

    def _stored_password(self) -> str | None:
        db = self._session()
        try:
            row = db.get(BoardSettings, SETTINGS_ROW_ID)
            return row.admin_password if row else None
        except SQLAlchemyError as exc:
            raise StoreError("Could not read security settings") from exc
        finally:
            db.close()

    def is_password_set(self) -> bool:
        return self._stored_password() is not None

    def verify_password(self, attempt: str) -> bool:
        return _passwords_match(self._stored_password(), attempt)

    def change_password(self, current: str, new: str) -> bool:
        db = self._session()
        try:
            row = db.get(BoardSettings, SETTINGS_ROW_ID)
            if row is None or not _passwords_match(row.admin_password, current):
                return False
            row.admin_password = new
            db.commit()
            logger.info("Admin password changed")
            return True
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError("Could not change password") from exc
        finally:
            db.close()
