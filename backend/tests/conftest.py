"""
Shared fixtures: a controllable clock, both record store variants, and a
session manager wired to them.
"""
import sys
import os
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.database import Base
from app.models import db_models  # noqa: F401
from app.services.affiliate_ledger import AffiliateLedger
from app.services.record_store import JsonFileRecordStore, SqlRecordStore
from app.services.session_manager import MemorySessionCache, ResetNotifier, SessionManager
from app.services.tokens import TokenIssuer

TEST_SECRET = "test-secret-key"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier(ResetNotifier):
    def __init__(self):
        self.sent = []

    def notify(self, email, token, expiry):
        self.sent.append((email, token, expiry))

    @property
    def last_token(self):
        return self.sent[-1][1]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def json_store(tmp_path):
    return JsonFileRecordStore(tmp_path / "store", seed_demo_letters=False)


@pytest.fixture
def sql_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_session(sql_engine):
    db = sessionmaker(bind=sql_engine, autocommit=False, autoflush=False)()
    yield db
    db.close()


@pytest.fixture
def sql_store(sql_session):
    return SqlRecordStore(sql_session, seed_demo_letters=False)


@pytest.fixture(params=["json", "sql"])
def store(request):
    """Each test using this runs against both record store variants."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def tokens(clock):
    return TokenIssuer(TEST_SECRET, expire_hours=24, clock=clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def manager(store, tokens, notifier, clock):
    return SessionManager(
        store,
        tokens,
        ledger=AffiliateLedger(store, clock=clock),
        cache=MemorySessionCache(),
        notifier=notifier,
        clock=clock,
    )
