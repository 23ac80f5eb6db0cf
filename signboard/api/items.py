import logging
import os
import secrets

from fastapi import APIRouter, Depends, File, HTTPException, Request, Response, UploadFile

from signboard.api.deps import COOKIE_SECURE, get_media_store, get_store, require_unlocked
from signboard.models.display_item import TRANSITIONS
from signboard.schemas.display_item import DisplayItemOut, EditorStateOut
from signboard.services.auth_gate import AuthSession
from signboard.services.content_store import ContentStore, StoreError
from signboard.services.list_editor import EditorRegistry, ListEditor
from signboard.services.storage import MediaStore, MediaStoreError, save_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/items", tags=["items"])

EDITOR_COOKIE = "display_board_editor"
MAX_EDITORS = int(os.getenv("SIGNAGE_MAX_EDITORS", "64"))
EDITOR_IDLE_SECONDS = int(os.getenv("SIGNAGE_EDITOR_IDLE_SECONDS", "3600"))

editors = EditorRegistry(max_editors=MAX_EDITORS, idle_seconds=EDITOR_IDLE_SECONDS)


def session_editor_key(token: str) -> str:
    return f"session:{token}"


def get_editor_key(
    request: Request,
    response: Response,
    session: AuthSession = Depends(require_unlocked),
) -> str:
    """Logged-in clients edit under their session; others get a per-browser draft cookie."""
    if session.authenticated and session.token:
        return session_editor_key(session.token)
    draft = request.cookies.get(EDITOR_COOKIE)
    if not draft:
        draft = secrets.token_urlsafe(16)
        response.set_cookie(EDITOR_COOKIE, draft, httponly=True, samesite="lax", secure=COOKIE_SECURE)
    return f"draft:{draft}"


def get_editor(
    key: str = Depends(get_editor_key),
    store: ContentStore = Depends(get_store),
    media: MediaStore = Depends(get_media_store),
) -> ListEditor:
    editor = editors.get(key, store, media)
    with editor.lock:
        if not editor.loaded and not editor.fetch():
            editor.notices.drain()
            raise HTTPException(status_code=503, detail="Failed to load displays")
    return editor


def _editor_state(editor: ListEditor) -> EditorStateOut:
    notices = editor.notices.drain()
    errors = [notice for notice in notices if notice.level == "error"]
    if errors:
        raise HTTPException(status_code=503, detail=errors[-1].message)
    return EditorStateOut(items=editor.items, dirty=editor.dirty, notices=notices)


def _resolved_title(title: str | None, file: UploadFile) -> str:
    candidate = (title or "").strip()
    if candidate:
        return candidate
    stem, _ = os.path.splitext(os.path.basename((file.filename or "").strip()))
    return stem or (file.filename or "").strip() or "Untitled Announcement"


@router.get("", response_model=EditorStateOut)
def list_items(reload: bool = False, editor: ListEditor = Depends(get_editor)):
    with editor.lock:
        if reload:
            editor.reload()
        return _editor_state(editor)


@router.post("/upload", response_model=DisplayItemOut)
def upload_item(
    file: UploadFile = File(...),
    title: str | None = None,
    duration_seconds: int | None = None,
    transition: str = "fade",
    key: str = Depends(get_editor_key),
    store: ContentStore = Depends(get_store),
    media: MediaStore = Depends(get_media_store),
):
    if transition not in TRANSITIONS:
        raise HTTPException(status_code=400, detail=f"transition must be one of {', '.join(TRANSITIONS)}")
    if duration_seconds is not None and duration_seconds <= 0:
        raise HTTPException(status_code=400, detail="duration_seconds must be a positive integer")

    try:
        if duration_seconds is None:
            duration_seconds = store.get_settings().default_duration_seconds
        order_index = store.next_order_index()
    except StoreError as exc:
        logger.exception("Upload aborted: store unavailable")
        raise HTTPException(status_code=503, detail="Error uploading display") from exc

    try:
        path = save_upload(media, file)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except MediaStoreError as exc:
        logger.exception("Upload could not be stored")
        raise HTTPException(status_code=503, detail="Error uploading display") from exc

    try:
        item = store.insert_item(
            media_url=media.get_public_url(path),
            title=_resolved_title(title, file),
            duration_seconds=duration_seconds,
            transition=transition,
            active=True,
            order_index=order_index,
        )
    except StoreError as exc:
        logger.exception("Display record for %s could not be created", path)
        try:
            media.remove(path)
        except MediaStoreError:
            logger.warning("Orphaned upload %s left in media store", path, exc_info=True)
        raise HTTPException(status_code=503, detail="Error uploading display") from exc

    editor = editors.find(key)
    if editor is not None:
        with editor.lock:
            if editor.loaded:
                editor.reload()
                editor.notices.drain()
    return item


@router.post("/move", response_model=EditorStateOut)
def move_item(from_index: int, to_index: int, editor: ListEditor = Depends(get_editor)):
    with editor.lock:
        try:
            editor.move(from_index, to_index)
        except IndexError as exc:
            raise HTTPException(status_code=400, detail="Move position out of range") from exc
        return _editor_state(editor)


@router.post("/order/save", response_model=EditorStateOut)
def save_order(editor: ListEditor = Depends(get_editor)):
    with editor.lock:
        editor.save_order()
        return _editor_state(editor)


@router.post("/order/discard", response_model=EditorStateOut)
def discard_order(editor: ListEditor = Depends(get_editor)):
    with editor.lock:
        editor.discard()
        return _editor_state(editor)


def _position(editor: ListEditor, item_id: str) -> int:
    try:
        return editor.index_of(item_id)
    except KeyError:
        # Another session may have created it since this editor last loaded.
        editor.reload()
    try:
        return editor.index_of(item_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Display item not found") from exc


@router.post("/{item_id}/move-up", response_model=EditorStateOut)
def move_up(item_id: str, editor: ListEditor = Depends(get_editor)):
    with editor.lock:
        editor.move_up(_position(editor, item_id))
        return _editor_state(editor)


@router.post("/{item_id}/move-down", response_model=EditorStateOut)
def move_down(item_id: str, editor: ListEditor = Depends(get_editor)):
    with editor.lock:
        editor.move_down(_position(editor, item_id))
        return _editor_state(editor)


@router.put("/{item_id}/title", response_model=EditorStateOut)
def update_title(item_id: str, title: str, editor: ListEditor = Depends(get_editor)):
    with editor.lock:
        _position(editor, item_id)
        editor.edit_title(item_id, title)
        return _editor_state(editor)


@router.put("/{item_id}/duration", response_model=EditorStateOut)
def update_duration(item_id: str, duration_seconds: int, editor: ListEditor = Depends(get_editor)):
    with editor.lock:
        _position(editor, item_id)
        try:
            editor.edit_duration(item_id, duration_seconds)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _editor_state(editor)


@router.put("/{item_id}/active", response_model=EditorStateOut)
def update_active(item_id: str, active: bool, editor: ListEditor = Depends(get_editor)):
    with editor.lock:
        _position(editor, item_id)
        editor.toggle_active(item_id, active)
        return _editor_state(editor)


@router.delete("/{item_id}", response_model=EditorStateOut)
def delete_item(item_id: str, editor: ListEditor = Depends(get_editor)):
    with editor.lock:
        _position(editor, item_id)
        editor.delete(item_id)
        return _editor_state(editor)
