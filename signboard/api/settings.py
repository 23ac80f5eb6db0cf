import logging

from fastapi import APIRouter, Depends, HTTPException

from signboard.api.deps import get_store, require_unlocked
from signboard.schemas.auth import PasswordChangeIn
from signboard.schemas.settings import SettingsOut
from signboard.services.auth_gate import AuthSession
from signboard.services.content_store import ContentStore, StoreError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


def _load(store: ContentStore) -> SettingsOut:
    try:
        return store.get_settings()
    except StoreError as exc:
        logger.exception("Could not load settings")
        raise HTTPException(status_code=503, detail="Failed to load settings") from exc


@router.get("", response_model=SettingsOut)
def get_settings(
    session: AuthSession = Depends(require_unlocked),
    store: ContentStore = Depends(get_store),
):
    return _load(store)


@router.put("", response_model=SettingsOut)
def update_settings(
    refresh_interval_minutes: int | None = None,
    default_duration_seconds: int | None = None,
    security_enabled: bool | None = None,
    session: AuthSession = Depends(require_unlocked),
    store: ContentStore = Depends(get_store),
):
    changes: dict = {}
    if refresh_interval_minutes is not None:
        if refresh_interval_minutes < 0:
            raise HTTPException(status_code=400, detail="refresh_interval_minutes cannot be negative")
        changes["refresh_interval_minutes"] = refresh_interval_minutes
    if default_duration_seconds is not None:
        if default_duration_seconds <= 0:
            raise HTTPException(status_code=400, detail="default_duration_seconds must be a positive integer")
        changes["default_duration_seconds"] = default_duration_seconds
    if security_enabled is not None:
        if security_enabled and not _load(store).password_set:
            raise HTTPException(status_code=400, detail="Set a password before enabling security")
        changes["security_enabled"] = security_enabled

    if changes:
        try:
            store.update_settings(**changes)
        except StoreError as exc:
            logger.exception("Error saving settings")
            raise HTTPException(status_code=503, detail="Failed to save settings") from exc
        logger.info("Settings updated: %s", ", ".join(sorted(changes)))
    return _load(store)


@router.post("/password")
def change_password(
    payload: PasswordChangeIn,
    session: AuthSession = Depends(require_unlocked),
    store: ContentStore = Depends(get_store),
):
    if not payload.current_password or not payload.new_password:
        raise HTTPException(status_code=400, detail="All fields are required")
    if payload.new_password != payload.confirm_password:
        raise HTTPException(status_code=400, detail="New passwords do not match")
    try:
        changed = store.change_password(payload.current_password, payload.new_password)
    except StoreError as exc:
        logger.exception("Change password error")
        raise HTTPException(status_code=503, detail="Failed to update password") from exc
    if not changed:
        raise HTTPException(status_code=401, detail="Incorrect old password")
    return {"ok": True}
