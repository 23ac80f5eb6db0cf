import secrets

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from signboard.models.admin_session import AdminSession
from signboard.services.content_store import StoreError


class SessionMarkerStore:
    """Server half of the "authenticated" marker; tokens live until revoked."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def issue(self) -> str:
        token = secrets.token_urlsafe(32)
        db = self._session_factory()
        try:
            db.add(AdminSession(token=token))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError("Could not persist session marker") from exc
        finally:
            db.close()
        return token

    def is_valid(self, token: str | None) -> bool:
        if not token:
            return False
        db = self._session_factory()
        try:
            return db.get(AdminSession, token) is not None
        except SQLAlchemyError as exc:
            raise StoreError("Could not check session marker") from exc
        finally:
            db.close()

    def revoke(self, token: str | None) -> None:
        if not token:
            return
        db = self._session_factory()
        try:
            db.query(AdminSession).filter(AdminSession.token == token).delete(synchronize_session=False)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise StoreError("Could not revoke session marker") from exc
        finally:
            db.close()
