import logging
from enum import Enum

from signboard.services.content_store import ContentStore, StoreError
from signboard.services.notices import Notifier
from signboard.services.sessions import SessionMarkerStore

logger = logging.getLogger(__name__)


class AuthState(str, Enum):
    LOADING = "loading"
    UNLOCKED = "unlocked"
    SETUP_REQUIRED = "setup_required"
    LOCKED = "locked"


class FailureKind(str, Enum):
    VERIFICATION = "verification"
    VALIDATION = "validation"
    STORE = "store"


class AuthSession:
    """
    Per-client session context carrying the persisted "authenticated" marker.

    It is restored from the client's marker token, flipped on by a successful
    login or setup, and cleared on logout.
    """

    def __init__(self, token: str | None = None, authenticated: bool = False) -> None:
        self.token = token
        self.authenticated = authenticated

    @classmethod
    def restore(cls, token: str | None, markers: SessionMarkerStore) -> "AuthSession":
        if not token:
            return cls()
        try:
            valid = markers.is_valid(token)
        except StoreError:
            logger.exception("Session marker lookup failed; treating client as unauthenticated")
            return cls()
        return cls(token=token, authenticated=True) if valid else cls()

    def mark_authenticated(self, token: str) -> None:
        self.token = token
        self.authenticated = True

    def clear(self) -> None:
        self.token = None
        self.authenticated = False


class AuthGate:
    def __init__(self, store: ContentStore, session: AuthSession, markers: SessionMarkerStore) -> None:
        self.store = store
        self.session = session
        self.markers = markers
        self.state = AuthState.LOADING
        self.failure: FailureKind | None = None
        self.notices = Notifier()

    def _fail(self, kind: FailureKind, message: str) -> None:
        self.failure = kind
        self.notices.error(message)

    def check(self) -> AuthState:
        self.failure = None
        try:
            settings = self.store.get_settings()
        except StoreError:
            logger.exception("Auth check failed")
            self._fail(FailureKind.STORE, "Could not check access settings")
            self.state = AuthState.LOCKED
            return self.state

        if not settings.security_enabled:
            self.state = AuthState.UNLOCKED
            return self.state

        try:
            password_set = self.store.is_password_set()
        except StoreError:
            logger.warning("Password presence check failed, assuming a password is set", exc_info=True)
            password_set = True

        if not password_set:
            self.state = AuthState.SETUP_REQUIRED
        elif self.session.authenticated:
            self.state = AuthState.UNLOCKED
        else:
            self.state = AuthState.LOCKED
        return self.state

    def setup(self, password: str, confirm: str) -> bool:
        self.failure = None
        if not password or password != confirm:
            self._fail(FailureKind.VALIDATION, "Passwords do not match")
            return False
        try:
            if self.store.is_password_set():
                self._fail(FailureKind.VALIDATION, "A password is already configured")
                return False
            self.store.update_settings(admin_password=password, security_enabled=True)
            token = self.markers.issue()
        except StoreError:
            logger.exception("Security setup failed")
            self._fail(FailureKind.STORE, "Failed to set password")
            return False
        self.session.mark_authenticated(token)
        self.state = AuthState.UNLOCKED
        self.notices.success("Security configured")
        logger.info("Admin password configured; security enabled")
        return True

    def login(self, password: str) -> bool:
        self.failure = None
        if not password:
            self._fail(FailureKind.VALIDATION, "Password is required")
            self.state = AuthState.LOCKED
            return False
        try:
            valid = self.store.verify_password(password)
            token = self.markers.issue() if valid else None
        except StoreError:
            logger.exception("Login failed")
            self._fail(FailureKind.STORE, "Login failed")
            self.state = AuthState.LOCKED
            return False
        if not valid:
            logger.info("Rejected login attempt with an incorrect password")
            self._fail(FailureKind.VERIFICATION, "Incorrect password")
            self.state = AuthState.LOCKED
            return False
        self.session.mark_authenticated(token)
        self.state = AuthState.UNLOCKED
        self.notices.success("Access granted")
        return True

    def logout(self) -> None:
        try:
            self.markers.revoke(self.session.token)
        except StoreError:
            logger.exception("Could not revoke session marker on logout")
        self.session.clear()
        self.state = AuthState.LOCKED
