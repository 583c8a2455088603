"""
Session Manager

Owns the authentication lifecycle over a RecordStore:

    UNAUTHENTICATED --signup/login/resume/restore--> AUTHENTICATED(session)
    AUTHENTICATED   --logout-----------------------> UNAUTHENTICATED

A manager instance is the explicit container of the "current user"; nothing
about the session lives in module globals. HTTP requests build one manager
per request and resume() it from the bearer token; long-lived clients keep
one manager and restore() it from a SessionCache on start.
"""
import logging
import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import uuid4

from app.config import DEFAULT_APP_BASE_URL
from app.errors import (
    AccountNotFound,
    DuplicateAccount,
    InvalidCredentials,
    InvalidOrExpiredToken,
    InvalidRole,
    NotAuthenticated,
    UserNotFound,
)
from app.models.records import ResetToken, StoredUser, UserRole, normalize_email, utc_now
from app.services.affiliate_ledger import AffiliateLedger
from app.services.credentials import hash_secret, verify_secret
from app.services.record_store import JsonFileRecordStore, RecordStore, read_json_object, write_json_object
from app.services.tokens import TokenIssuer

logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(minutes=15)
DEFAULT_SUBSCRIPTION_AMOUNT = 50.0


# =============================================================================
# STATE
# =============================================================================

class AuthState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"


class AuthEvent(str, Enum):
    """Notifications delivered to subscribers on state changes."""
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    USER_UPDATED = "USER_UPDATED"


class SessionRestorePolicy(str, Enum):
    """
    How restore() treats a cached session.

    VERIFY: re-check the token signature/expiry and that the account still
        exists with the cached identity before granting access.
    TRUST_CACHED: accept the cached triple as-is without touching the store.
    """
    VERIFY = "verify"
    TRUST_CACHED = "trust_cached"


@dataclass(frozen=True)
class Session:
    """An authenticated identity plus the token that proves it."""
    user_id: str
    email: str
    role: UserRole
    token: str
    expires_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_cache(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "role": self.role.value,
            "token": self.token,
        }

    def public_view(self) -> Dict[str, Any]:
        return {"id": self.user_id, "email": self.email, "role": self.role.value}


# =============================================================================
# SESSION CACHE
# =============================================================================

class SessionCache(ABC):
    """Where a client keeps its session triple between runs."""

    @abstractmethod
    def load(self) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def save(self, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemorySessionCache(SessionCache):
    def __init__(self):
        self._data: Optional[Dict[str, Any]] = None

    def load(self) -> Optional[Dict[str, Any]]:
        return dict(self._data) if self._data else None

    def save(self, data: Dict[str, Any]) -> None:
        self._data = dict(data)

    def clear(self) -> None:
        self._data = None


class FileSessionCache(SessionCache):
    """Session triple in a JSON file next to the local record store."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[Dict[str, Any]]:
        return read_json_object(self.path) or None

    def save(self, data: Dict[str, Any]) -> None:
        write_json_object(self.path, data)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


# =============================================================================
# RESET DELIVERY
# =============================================================================

class ResetNotifier(ABC):
    """Hands a freshly minted reset token to a delivery channel."""

    @abstractmethod
    def notify(self, email: str, token: str, expiry: datetime) -> None:
        ...


class LoggingResetNotifier(ResetNotifier):
    """Logs the reset link instead of emailing it."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def reset_url(self, token: str) -> str:
        return f"{self.base_url}/?reset_token={token}"

    def notify(self, email: str, token: str, expiry: datetime) -> None:
        logger.info(f"Password reset link for {email} (valid until {expiry.isoformat()}): {self.reset_url(token)}")


# =============================================================================
# MANAGER
# =============================================================================

AuthListener = Callable[[AuthEvent, Optional[Session]], None]


class SessionManager:
    def __init__(
        self,
        store: RecordStore,
        tokens: TokenIssuer,
        ledger: Optional[AffiliateLedger] = None,
        cache: Optional[SessionCache] = None,
        notifier: Optional[ResetNotifier] = None,
        clock: Callable[[], datetime] = utc_now,
        restore_policy: SessionRestorePolicy = SessionRestorePolicy.VERIFY,
    ):
        self.store = store
        self.tokens = tokens
        self.ledger = ledger or AffiliateLedger(store, clock=clock)
        self.cache = cache or MemorySessionCache()
        self.notifier = notifier or LoggingResetNotifier(DEFAULT_APP_BASE_URL)
        self.clock = clock
        self.restore_policy = restore_policy
        self._session: Optional[Session] = None
        self._listeners: List[AuthListener] = []

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> AuthState:
        return AuthState.AUTHENTICATED if self._session else AuthState.UNAUTHENTICATED

    @property
    def current_session(self) -> Optional[Session]:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    def require_session(self) -> Session:
        if self._session is None:
            raise NotAuthenticated()
        return self._session

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register for auth events. Returns a function that unsubscribes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            listener(event, self._session)

    def _start_session(self, user: StoredUser) -> Session:
        token = self.tokens.create_access_token(user.id, user.email, user.role.value)
        payload = self.tokens.decode_token(token)
        session = Session(
            user_id=user.id,
            email=user.email,
            role=user.role,
            token=token,
            expires_at=self.tokens.expires_at(payload) if payload else None,
        )
        self._session = session
        self.cache.save(session.to_cache())
        self._emit(AuthEvent.SIGNED_IN)
        return session

    # -------------------------------------------------------------------------
    # Signup / login / logout
    # -------------------------------------------------------------------------

    def signup(
        self,
        email: str,
        password: str,
        role: Union[UserRole, str] = UserRole.USER,
        affiliate_code: Optional[str] = None,
        subscription_amount: float = DEFAULT_SUBSCRIPTION_AMOUNT,
        used_discount: bool = False,
    ) -> Session:
        """
        Register an account, credit the referral if a code was given, then
        log in with the same credentials.
        """
        key = normalize_email(email)
        try:
            role = UserRole(role)
        except ValueError:
            raise InvalidRole(f"Unknown account role: {role}") from None
        users = self.store.users.get_all()
        if key in users:
            raise DuplicateAccount()

        users[key] = StoredUser(
            id=str(uuid4()),
            email=key,
            password_hash=hash_secret(password),
            role=role,
            created_at=self.clock(),
        )
        self.store.users.save_all(users)
        logger.info(f"User registered: {key} ({role.value})")

        if affiliate_code:
            # Separate write with no rollback: a failed credit never undoes the signup
            try:
                self.ledger.credit_affiliate(
                    affiliate_code,
                    referred_user_email=key,
                    subscription_amount=subscription_amount,
                    used_discount=used_discount,
                )
            except Exception:
                logger.exception(f"Affiliate credit failed for {key} with code {affiliate_code}")

        return self.login(email, password)

    def login(self, email: str, password: str) -> Session:
        user = self.store.users.get_all().get(normalize_email(email))
        if user is None:
            raise UserNotFound()
        if not verify_secret(password, user.password_hash):
            raise InvalidCredentials()

        session = self._start_session(user)
        logger.info(f"User logged in: {user.email}")
        return session

    def logout(self) -> None:
        """Clear the session and revoke its token. Safe to call in any state."""
        session = self._session
        if session is not None:
            self._revoke(session.token)
        self._session = None
        self.cache.clear()
        if session is not None:
            self._emit(AuthEvent.SIGNED_OUT)

    def _revoke(self, token: str) -> None:
        payload = self.tokens.decode_token(token)
        if payload is None:
            return

        now = self.clock()
        revoked = {
            jti: expiry
            for jti, expiry in self.store.revoked_tokens.get_all().items()
            if expiry > now
        }
        revoked[payload["jti"]] = self.tokens.expires_at(payload)
        self.store.revoked_tokens.save_all(revoked)
        logger.info(f"Session token revoked for {payload['email']}")

    # -------------------------------------------------------------------------
    # Token-based entry
    # -------------------------------------------------------------------------

    def resume(self, token: str) -> Session:
        """
        Authenticate from an existing token: signature and expiry must hold,
        the token must not have been revoked by logout, and the account must
        still exist under the same id.
        """
        payload = self.tokens.decode_token(token) if token else None
        if payload is None:
            raise NotAuthenticated("Session expired or invalid. Please sign in again.")
        if payload["jti"] in self.store.revoked_tokens.get_all():
            raise NotAuthenticated("Session has been signed out. Please sign in again.")

        user = self.store.users.get_all().get(normalize_email(payload["email"]))
        if user is None or user.id != payload["sub"]:
            raise NotAuthenticated("Session expired or invalid. Please sign in again.")

        self._session = Session(
            user_id=user.id,
            email=user.email,
            role=user.role,
            token=token,
            expires_at=self.tokens.expires_at(payload),
        )
        return self._session

    def restore(self) -> Optional[Session]:
        """Bring back a cached session according to the restore policy."""
        cached = self.cache.load()
        if not cached:
            return None

        if self.restore_policy == SessionRestorePolicy.TRUST_CACHED:
            try:
                self._session = Session(
                    user_id=str(cached.get("user_id", "")),
                    email=normalize_email(cached["email"]),
                    role=UserRole(cached["role"]),
                    token=str(cached["token"]),
                )
            except (KeyError, ValueError, AttributeError):
                logger.warning("Discarding malformed cached session")
                self.cache.clear()
                return None
            return self._session

        try:
            return self.resume(str(cached.get("token", "")))
        except NotAuthenticated:
            logger.info("Cached session failed verification, starting signed out")
            self._session = None
            self.cache.clear()
            return None

    # -------------------------------------------------------------------------
    # Passwords
    # -------------------------------------------------------------------------

    def request_password_reset(self, email: str) -> None:
        """
        Start a password reset. Returns normally whether or not the account
        exists, so callers cannot discover which emails are registered.
        """
        key = normalize_email(email)
        if key not in self.store.users.get_all():
            logger.info(f"Password reset requested for non-existent user: {key}")
            return

        now = self.clock()
        token = secrets.token_urlsafe(32)
        expiry = now + RESET_TOKEN_TTL

        tokens = {
            value: record
            for value, record in self.store.reset_tokens.get_all().items()
            if record.is_valid(now)
        }
        tokens[token] = ResetToken(token=token, email=key, expiry=expiry)
        self.store.reset_tokens.save_all(tokens)

        self.notifier.notify(key, token, expiry)

    def reset_password(self, token: str, new_password: str) -> None:
        """Consume a reset token and set a new password. Each token works once."""
        tokens = self.store.reset_tokens.get_all()
        record = tokens.get(token)
        if record is None or not record.is_valid(self.clock()):
            raise InvalidOrExpiredToken()

        users = self.store.users.get_all()
        user = users.get(record.email)
        if user is None:
            raise AccountNotFound()

        user.password_hash = hash_secret(new_password)
        self.store.users.save_all(users)

        del tokens[token]
        self.store.reset_tokens.save_all(tokens)
        logger.info(f"Password reset completed for {user.email}")
        self._emit(AuthEvent.PASSWORD_RECOVERY)

    def update_password(self, new_password: str) -> None:
        """Change the signed-in user's password."""
        session = self.require_session()
        users = self.store.users.get_all()
        user = users.get(session.email)
        if user is None:
            raise AccountNotFound("The signed-in account no longer exists.")

        user.password_hash = hash_secret(new_password)
        self.store.users.save_all(users)
        logger.info(f"Password changed for user: {user.email}")
        self._emit(AuthEvent.USER_UPDATED)


def open_local_session(
    store: JsonFileRecordStore,
    tokens: TokenIssuer,
    clock: Callable[[], datetime] = utc_now,
    restore_policy: SessionRestorePolicy = SessionRestorePolicy.VERIFY,
) -> SessionManager:
    """
    A long-lived manager for a local client. Its session is cached next to
    the store's files and restored on open, so a login outlives the process.
    """
    manager = SessionManager(
        store,
        tokens,
        cache=FileSessionCache(store.session_path),
        clock=clock,
        restore_policy=restore_policy,
    )
    manager.restore()
    return manager
