import os

from fastapi import Depends, HTTPException, Request, Response

from signboard.db import SessionLocal
from signboard.services.auth_gate import AuthGate, AuthSession, AuthState, FailureKind
from signboard.services.content_store import ContentStore
from signboard.services.sessions import SessionMarkerStore
from signboard.services.storage import MediaStore

AUTH_COOKIE = "display_board_auth"
AUTH_COOKIE_MAX_AGE = 10 * 365 * 24 * 3600
COOKIE_SECURE = os.getenv("SIGNAGE_COOKIE_SECURE", "0").strip().lower() in {"1", "true", "yes", "on"}


def get_store() -> ContentStore:
    return ContentStore(SessionLocal)


def get_media_store() -> MediaStore:
    return MediaStore()


def get_markers() -> SessionMarkerStore:
    return SessionMarkerStore(SessionLocal)


def get_auth_session(request: Request, markers: SessionMarkerStore = Depends(get_markers)) -> AuthSession:
    return AuthSession.restore(request.cookies.get(AUTH_COOKIE), markers)


def get_gate(
    store: ContentStore = Depends(get_store),
    session: AuthSession = Depends(get_auth_session),
    markers: SessionMarkerStore = Depends(get_markers),
) -> AuthGate:
    return AuthGate(store, session, markers)


def require_unlocked(gate: AuthGate = Depends(get_gate)) -> AuthSession:
    state = gate.check()
    if state == AuthState.UNLOCKED:
        return gate.session
    if gate.failure == FailureKind.STORE:
        raise HTTPException(status_code=503, detail="Could not check access settings")
    if state == AuthState.SETUP_REQUIRED:
        raise HTTPException(status_code=403, detail="Password setup required")
    raise HTTPException(status_code=401, detail="Locked")


def failure_status(kind: FailureKind | None) -> int:
    if kind == FailureKind.VERIFICATION:
        return 401
    if kind == FailureKind.STORE:
        return 503
    return 400


def remember_session(response: Response, session: AuthSession) -> None:
    response.set_cookie(
        AUTH_COOKIE,
        session.token or "",
        max_age=AUTH_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
    )


def forget_session(response: Response) -> None:
    response.delete_cookie(AUTH_COOKIE)
