from fastapi import APIRouter, Depends, HTTPException, Response

from signboard.api.deps import failure_status, forget_session, get_gate, remember_session
from signboard.api.items import editors, session_editor_key
from signboard.schemas.auth import AuthStatusOut, LoginIn, SetupIn
from signboard.services.auth_gate import AuthGate

router = APIRouter(prefix="/auth", tags=["auth"])


def _reject(gate: AuthGate) -> HTTPException:
    notices = gate.notices.drain()
    detail = notices[-1].message if notices else "Request rejected"
    return HTTPException(status_code=failure_status(gate.failure), detail=detail)


@router.get("/status", response_model=AuthStatusOut)
def auth_status(gate: AuthGate = Depends(get_gate)):
    state = gate.check()
    return AuthStatusOut(state=state.value, notices=gate.notices.drain())


@router.post("/setup", response_model=AuthStatusOut)
def setup_password(payload: SetupIn, response: Response, gate: AuthGate = Depends(get_gate)):
    if not gate.setup(payload.password, payload.confirm_password):
        raise _reject(gate)
    remember_session(response, gate.session)
    return AuthStatusOut(state=gate.state.value, notices=gate.notices.drain())


@router.post("/login", response_model=AuthStatusOut)
def login(payload: LoginIn, response: Response, gate: AuthGate = Depends(get_gate)):
    if not gate.login(payload.password):
        raise _reject(gate)
    remember_session(response, gate.session)
    return AuthStatusOut(state=gate.state.value, notices=gate.notices.drain())


@router.post("/logout", response_model=AuthStatusOut)
def logout(response: Response, gate: AuthGate = Depends(get_gate)):
    if gate.session.authenticated and gate.session.token:
        editors.drop(session_editor_key(gate.session.token))
    gate.logout()
    forget_session(response)
    return AuthStatusOut(state=gate.state.value, notices=[])
