"""
Record Store

Key-value persistence of the record families behind a uniform
get_all()/save_all() contract:

    users             email -> StoredUser
    letters           id -> LetterRequest
    reset_tokens      token -> ResetToken
    revoked_tokens    session token id -> expiry
    affiliate_codes   employee email -> code
    affiliate_entries employee email -> [AffiliateEntry]   (append-only)

Two implementations:
    SqlRecordStore       - the relational backend (SQLAlchemy)
    JsonFileRecordStore  - one namespaced JSON file per family on local disk

Reads never raise on malformed stored state: a corrupt payload reads as an
empty map and an invalid record is skipped. Backend failures (connection,
constraint) surface as RemoteServiceError.

There is no locking. get_all -> mutate -> save_all is not atomic; a second
writer's save_all replaces the first writer's.
"""
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.errors import map_backend_error
from app.models.db_models import (
    AffiliateCodeDB,
    AffiliateEntryDB,
    LetterDB,
    PasswordResetTokenDB,
    RevokedTokenDB,
    SeedFlagDB,
    UserDB,
)
from app.models.records import (
    AffiliateEntry,
    LetterRequest,
    LetterStatus,
    LetterType,
    PriorityLevel,
    ResetToken,
    StoredUser,
    UserRole,
    as_utc,
    parse_timestamp,
    normalize_email,
    utc_now,
)
from app.services.demo_data import DEMO_LETTERS_FLAG, DEMO_OWNER, build_demo_letters, build_demo_user

logger = logging.getLogger(__name__)

R = TypeVar("R")

# Errors raised by from_dict()/row conversion on malformed data
MALFORMED_RECORD_ERRORS = (KeyError, ValueError, TypeError, AttributeError)


# =============================================================================
# CONTRACT
# =============================================================================

class RecordFamily(ABC, Generic[R]):
    """One independently persisted collection."""
    name: str = "records"

    @abstractmethod
    def get_all(self) -> Dict[str, R]:
        """Every record keyed by its identity key. Never raises on bad data."""

    @abstractmethod
    def save_all(self, records: Dict[str, R]) -> None:
        """Replace the whole family with `records`."""


class AffiliateEntryLog(ABC):
    """Append-only referral log, grouped by referring employee."""

    @abstractmethod
    def get_all(self) -> Dict[str, List[AffiliateEntry]]:
        """Entries per employee email, oldest first."""

    @abstractmethod
    def append(self, employee_email: str, entry: AffiliateEntry) -> None:
        """Add one entry. Existing entries are never touched."""


class RecordStore(ABC):
    """
    Uniform access to every record family.

    The letters family seeds itself with the demo dataset on first access
    when `seed_demo_letters` is set and nothing has been seeded before.
    """

    users: RecordFamily[StoredUser]
    reset_tokens: RecordFamily[ResetToken]
    revoked_tokens: RecordFamily[datetime]
    affiliate_codes: RecordFamily[str]
    affiliate_entries: AffiliateEntryLog

    def __init__(self, seed_demo_letters: bool = True):
        self.seed_demo_letters = seed_demo_letters
        self._letters_family = _SeedingLetterFamily(self)

    @property
    def letters(self) -> RecordFamily[LetterRequest]:
        return self._letters_family

    @property
    @abstractmethod
    def raw_letters(self) -> RecordFamily[LetterRequest]:
        """The letters family without first-access seeding."""

    @abstractmethod
    def is_flag_set(self, name: str) -> bool:
        """Whether a one-time seeding marker exists."""

    @abstractmethod
    def set_flag(self, name: str) -> None:
        """Record a one-time seeding marker."""

    def seed_letters_once(self) -> None:
        if not self.seed_demo_letters or self.is_flag_set(DEMO_LETTERS_FLAG):
            return

        letters = self.raw_letters.get_all()
        if not letters:
            users = self.users.get_all()
            owner = users.get(DEMO_OWNER[0])
            if owner is None:
                owner = build_demo_user(DEMO_OWNER)
                users[owner.email] = owner
                self.users.save_all(users)
            self.raw_letters.save_all(build_demo_letters(owner.id))
            logger.info(f"Seeded demo letters for {owner.email}")

        self.set_flag(DEMO_LETTERS_FLAG)


class _SeedingLetterFamily(RecordFamily[LetterRequest]):
    name = "letters"

    def __init__(self, store: RecordStore):
        self._store = store

    def get_all(self) -> Dict[str, LetterRequest]:
        self._store.seed_letters_once()
        return self._store.raw_letters.get_all()

    def save_all(self, records: Dict[str, LetterRequest]) -> None:
        self._store.raw_letters.save_all(records)


# =============================================================================
# JSON FILE STORE
# =============================================================================

KEY_PREFIX = "letterdesk"
USERS_KEY = f"{KEY_PREFIX}-users"
LETTERS_KEY = f"{KEY_PREFIX}-letters"
RESET_TOKENS_KEY = f"{KEY_PREFIX}-reset-tokens"
REVOKED_TOKENS_KEY = f"{KEY_PREFIX}-revoked-tokens"
AFFILIATE_CODES_KEY = f"{KEY_PREFIX}-affiliate-codes"
AFFILIATES_KEY = f"{KEY_PREFIX}-affiliates"
FLAGS_KEY = f"{KEY_PREFIX}-flags"
SESSION_KEY = f"{KEY_PREFIX}-session"


def read_json_object(path: Path) -> Dict[str, Any]:
    """Parse a JSON object from `path`; anything unreadable reads as {}."""
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8") or "{}")
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Corrupt payload in {path.name}, treating as empty: {e}")
        return {}
    if not isinstance(payload, dict):
        logger.warning(f"Unexpected payload type in {path.name}, treating as empty")
        return {}
    return payload


def write_json_object(path: Path, payload: Dict[str, Any]) -> None:
    """Write via a temp file + rename so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2, sort_keys=True)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class _JsonFamily(RecordFamily[R]):
    def __init__(
        self,
        path: Path,
        name: str,
        decode: Callable[[Any], R],
        encode: Callable[[R], Any],
    ):
        self.path = path
        self.name = name
        self._decode = decode
        self._encode = encode

    def get_all(self) -> Dict[str, R]:
        records: Dict[str, R] = {}
        for key, value in read_json_object(self.path).items():
            try:
                records[key] = self._decode(value)
            except MALFORMED_RECORD_ERRORS as e:
                logger.warning(f"Skipping malformed {self.name} record '{key}': {e}")
        return records

    def save_all(self, records: Dict[str, R]) -> None:
        write_json_object(self.path, {key: self._encode(record) for key, record in records.items()})


def _decode_code(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError("affiliate code must be a non-empty string")
    return value


class _JsonAffiliateLog(AffiliateEntryLog):
    def __init__(self, path: Path):
        self.path = path

    def get_all(self) -> Dict[str, List[AffiliateEntry]]:
        ledger: Dict[str, List[AffiliateEntry]] = {}
        for email, raw_entries in read_json_object(self.path).items():
            if not isinstance(raw_entries, list):
                logger.warning(f"Skipping malformed affiliate record for {email}")
                continue
            entries = []
            for raw in raw_entries:
                try:
                    entries.append(AffiliateEntry.from_dict(raw))
                except MALFORMED_RECORD_ERRORS as e:
                    logger.warning(f"Skipping malformed affiliate entry for {email}: {e}")
            ledger[email] = entries
        return ledger

    def append(self, employee_email: str, entry: AffiliateEntry) -> None:
        payload = read_json_object(self.path)
        existing = payload.get(employee_email)
        if not isinstance(existing, list):
            existing = []
        existing.append(entry.to_dict())
        payload[employee_email] = existing
        write_json_object(self.path, payload)


class JsonFileRecordStore(RecordStore):
    """Local persistence: one JSON document per namespaced key under `root`."""

    def __init__(self, root: Path, seed_demo_letters: bool = True):
        super().__init__(seed_demo_letters=seed_demo_letters)
        self.root = Path(root)
        self.users = _JsonFamily(
            self._path(USERS_KEY), "users", StoredUser.from_dict, StoredUser.to_dict
        )
        self._letters = _JsonFamily(
            self._path(LETTERS_KEY), "letters", LetterRequest.from_dict, LetterRequest.to_dict
        )
        self.reset_tokens = _JsonFamily(
            self._path(RESET_TOKENS_KEY), "reset_tokens", ResetToken.from_dict, ResetToken.to_dict
        )
        self.revoked_tokens = _JsonFamily(
            self._path(REVOKED_TOKENS_KEY), "revoked_tokens", parse_timestamp, datetime.isoformat
        )
        self.affiliate_codes = _JsonFamily(
            self._path(AFFILIATE_CODES_KEY), "affiliate_codes", _decode_code, str
        )
        self.affiliate_entries = _JsonAffiliateLog(self._path(AFFILIATES_KEY))
        self._flags_path = self._path(FLAGS_KEY)

    def _path(self, key: str) -> Path:
        return self.root / f"{key}.json"

    @property
    def session_path(self) -> Path:
        """Where a local client caches its signed-in session."""
        return self._path(SESSION_KEY)

    @property
    def raw_letters(self) -> RecordFamily[LetterRequest]:
        return self._letters

    def is_flag_set(self, name: str) -> bool:
        return name in read_json_object(self._flags_path)

    def set_flag(self, name: str) -> None:
        flags = read_json_object(self._flags_path)
        flags[name] = utc_now().isoformat()
        write_json_object(self._flags_path, flags)


# =============================================================================
# SQL STORE
# =============================================================================

def _user_from_row(row: UserDB) -> StoredUser:
    return StoredUser(
        id=row.id,
        email=normalize_email(row.email),
        password_hash=row.password_hash,
        role=UserRole(row.role),
        created_at=as_utc(row.created_at) if row.created_at else utc_now(),
    )


def _user_to_row(user: StoredUser) -> UserDB:
    return UserDB(
        id=user.id,
        email=user.email,
        password_hash=user.password_hash,
        role=user.role.value,
        created_at=user.created_at,
    )


def _letter_from_row(row: LetterDB) -> LetterRequest:
    return LetterRequest(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        letter_type=LetterType(row.letter_type),
        description=row.description or "",
        status=LetterStatus(row.status),
        priority=PriorityLevel(row.priority),
        template_data=dict(row.template_data or {}),
        recipient_info=dict(row.recipient_info or {}),
        sender_info=dict(row.sender_info or {}),
        due_date=row.due_date,
        ai_generated_content=row.ai_generated_content,
        final_content=row.final_content,
        created_at=as_utc(row.created_at),
        updated_at=as_utc(row.updated_at),
    )


def _letter_to_row(letter: LetterRequest) -> LetterDB:
    return LetterDB(
        id=letter.id,
        user_id=letter.user_id,
        title=letter.title,
        letter_type=letter.letter_type.value,
        description=letter.description,
        status=letter.status.value,
        priority=letter.priority.value,
        template_data=dict(letter.template_data),
        recipient_info=dict(letter.recipient_info),
        sender_info=dict(letter.sender_info),
        due_date=letter.due_date,
        ai_generated_content=letter.ai_generated_content,
        final_content=letter.final_content,
        created_at=letter.created_at,
        updated_at=letter.updated_at,
    )


def _token_from_row(row: PasswordResetTokenDB) -> ResetToken:
    return ResetToken(token=row.token, email=normalize_email(row.email), expiry=as_utc(row.expiry))


def _token_to_row(token: ResetToken) -> PasswordResetTokenDB:
    return PasswordResetTokenDB(token=token.token, email=token.email, expiry=token.expiry)


class _SqlFamily(RecordFamily[R]):
    """
    A table exposed as a keyed family. save_all runs in one transaction:
    rows whose key is absent from `records` are deleted, the rest merged.
    """

    def __init__(
        self,
        db: Session,
        name: str,
        model,
        key_column,
        from_row: Callable[[Any], R],
        to_row: Callable[[str, R], Any],
    ):
        self._db = db
        self.name = name
        self._model = model
        self._key_column = key_column
        self._from_row = from_row
        self._to_row = to_row

    def get_all(self) -> Dict[str, R]:
        try:
            rows = self._db.query(self._model).all()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise map_backend_error(e, f"get {self.name}") from e

        records: Dict[str, R] = {}
        for row in rows:
            key = getattr(row, self._key_column.key)
            try:
                records[key] = self._from_row(row)
            except MALFORMED_RECORD_ERRORS as e:
                logger.warning(f"Skipping malformed {self.name} row '{key}': {e}")
        return records

    def save_all(self, records: Dict[str, R]) -> None:
        try:
            existing = {key for (key,) in self._db.query(self._key_column).all()}
            stale = existing - set(records)
            if stale:
                self._db.query(self._model).filter(self._key_column.in_(stale)).delete(
                    synchronize_session=False
                )
            for key, record in records.items():
                self._db.merge(self._to_row(key, record))
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise map_backend_error(e, f"save {self.name}") from e


class _SqlAffiliateLog(AffiliateEntryLog):
    def __init__(self, db: Session):
        self._db = db

    def get_all(self) -> Dict[str, List[AffiliateEntry]]:
        try:
            rows = self._db.query(AffiliateEntryDB).order_by(AffiliateEntryDB.id).all()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise map_backend_error(e, "get affiliate entries") from e

        ledger: Dict[str, List[AffiliateEntry]] = {}
        for row in rows:
            try:
                entry = AffiliateEntry(
                    referred_user_email=normalize_email(row.referred_user_email),
                    subscription_amount=float(row.subscription_amount),
                    used_discount=bool(row.used_discount),
                    timestamp=as_utc(row.timestamp),
                )
            except MALFORMED_RECORD_ERRORS as e:
                logger.warning(f"Skipping malformed affiliate entry {row.id}: {e}")
                continue
            ledger.setdefault(row.employee_email, []).append(entry)
        return ledger

    def append(self, employee_email: str, entry: AffiliateEntry) -> None:
        try:
            self._db.add(AffiliateEntryDB(
                employee_email=employee_email,
                referred_user_email=entry.referred_user_email,
                subscription_amount=entry.subscription_amount,
                used_discount=entry.used_discount,
                timestamp=entry.timestamp,
            ))
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise map_backend_error(e, "append affiliate entry") from e


class SqlRecordStore(RecordStore):
    """Relational backend. One store per database session."""

    def __init__(self, db: Session, seed_demo_letters: bool = True):
        super().__init__(seed_demo_letters=seed_demo_letters)
        self._db = db
        self.users = _SqlFamily(
            db, "users", UserDB, UserDB.email,
            _user_from_row, lambda key, user: _user_to_row(user),
        )
        self._letters = _SqlFamily(
            db, "letters", LetterDB, LetterDB.id,
            _letter_from_row, lambda key, letter: _letter_to_row(letter),
        )
        self.reset_tokens = _SqlFamily(
            db, "reset_tokens", PasswordResetTokenDB, PasswordResetTokenDB.token,
            _token_from_row, lambda key, token: _token_to_row(token),
        )
        self.revoked_tokens = _SqlFamily(
            db, "revoked_tokens", RevokedTokenDB, RevokedTokenDB.jti,
            lambda row: as_utc(row.expiry),
            lambda key, expiry: RevokedTokenDB(jti=key, expiry=expiry),
        )
        self.affiliate_codes = _SqlFamily(
            db, "affiliate_codes", AffiliateCodeDB, AffiliateCodeDB.employee_email,
            lambda row: _decode_code(row.code),
            lambda key, code: AffiliateCodeDB(employee_email=key, code=code),
        )
        self.affiliate_entries = _SqlAffiliateLog(db)

    @property
    def raw_letters(self) -> RecordFamily[LetterRequest]:
        return self._letters

    def is_flag_set(self, name: str) -> bool:
        try:
            return self._db.get(SeedFlagDB, name) is not None
        except SQLAlchemyError as e:
            self._db.rollback()
            raise map_backend_error(e, "read seed flag") from e

    def set_flag(self, name: str) -> None:
        try:
            self._db.merge(SeedFlagDB(name=name, created_at=utc_now()))
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise map_backend_error(e, "write seed flag") from e
