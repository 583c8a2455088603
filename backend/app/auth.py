"""
LetterDesk - Authentication Dependencies
Record store, session manager and bearer-token session resolution for routes
"""
import logging
from functools import lru_cache
from typing import Iterator, Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .config import RECORD_STORE_LOCAL, Settings, get_settings
from .database import SessionLocal
from .errors import NotAuthenticated
from .services.affiliate_ledger import AffiliateLedger
from .services.draft_generator import DraftGenerator, get_gemini_llm
from .services.letter_facade import LetterFacade
from .services.record_store import JsonFileRecordStore, RecordStore, SqlRecordStore
from .services.session_manager import LoggingResetNotifier, Session, SessionManager
from .services.tokens import TokenIssuer

logger = logging.getLogger(__name__)

# Bearer token security; missing credentials are reported as NotAuthenticated
security = HTTPBearer(auto_error=False)


def get_record_store(settings: Settings = Depends(get_settings)) -> Iterator[RecordStore]:
    """
    Dependency for FastAPI - yields the configured record store.
    The SQL store gets its own database session for the request.
    """
    if settings.record_store == RECORD_STORE_LOCAL:
        yield JsonFileRecordStore(settings.local_store_dir, seed_demo_letters=settings.seed_demo_data)
        return

    db = SessionLocal()
    try:
        yield SqlRecordStore(db, seed_demo_letters=settings.seed_demo_data)
    finally:
        db.close()


def get_token_issuer(settings: Settings = Depends(get_settings)) -> TokenIssuer:
    return TokenIssuer(settings.jwt_secret_key, expire_hours=settings.access_token_expire_hours)


def get_session_manager(
    store: RecordStore = Depends(get_record_store),
    tokens: TokenIssuer = Depends(get_token_issuer),
    settings: Settings = Depends(get_settings),
) -> SessionManager:
    """A fresh, signed-out manager for this request."""
    return SessionManager(
        store,
        tokens,
        ledger=AffiliateLedger(store),
        notifier=LoggingResetNotifier(settings.app_base_url),
    )


async def get_authenticated_manager(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    manager: SessionManager = Depends(get_session_manager),
) -> SessionManager:
    """
    Dependency to get a session manager resumed from the bearer token.
    Validates the JWT and that the account still exists.
    """
    if credentials is None:
        raise NotAuthenticated()
    manager.resume(credentials.credentials)
    return manager


async def get_current_session(manager: SessionManager = Depends(get_authenticated_manager)) -> Session:
    return manager.require_session()


def get_letter_facade(
    store: RecordStore = Depends(get_record_store),
    session: Session = Depends(get_current_session),
) -> LetterFacade:
    return LetterFacade(store, session)


@lru_cache(maxsize=4)
def _cached_llm(model_name: str, api_key: str):
    return get_gemini_llm(model_name, api_key)


def get_draft_generator(settings: Settings = Depends(get_settings)) -> DraftGenerator:
    return DraftGenerator(_cached_llm(settings.gemini_model, settings.google_api_key or ""))
