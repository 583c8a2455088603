"""
Data-Access Facade

Role-scoped CRUD over letters plus the unscoped admin queries. Every
operation reads the whole letters family and writes it back (no partial
updates). The facade itself enforces capabilities: a session without the
required role never reaches the unscoped queries, whatever the caller does.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional
from uuid import uuid4

from app.errors import NotAuthenticated, PermissionDenied, RemoteErrorKind, RemoteServiceError, UserNotFound
from app.models.records import (
    AffiliateStats,
    LetterRequest,
    LetterStatus,
    LetterType,
    PriorityLevel,
    UserRole,
    normalize_email,
    utc_now,
)
from app.services.affiliate_ledger import AffiliateLedger
from app.services.letter_workflow import validate_transition
from app.services.record_store import RecordStore
from app.services.session_manager import Session

logger = logging.getLogger(__name__)


class Capability(str, Enum):
    VIEW_ALL_USERS = "view_all_users"
    VIEW_ALL_LETTERS = "view_all_letters"
    VIEW_AFFILIATE_STATS = "view_affiliate_stats"
    MANAGE_AFFILIATE_CODES = "manage_affiliate_codes"


ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Capability]] = {
    UserRole.USER: frozenset(),
    UserRole.EMPLOYEE: frozenset({Capability.VIEW_AFFILIATE_STATS}),
    UserRole.ADMIN: frozenset(Capability),
}


@dataclass
class LetterInput:
    """Caller-supplied fields of a new letter. Every letter starts as a draft."""
    title: str
    letter_type: LetterType
    description: str = ""
    priority: PriorityLevel = PriorityLevel.MEDIUM
    template_data: Dict[str, str] = field(default_factory=dict)
    recipient_info: Dict[str, Any] = field(default_factory=dict)
    sender_info: Dict[str, Any] = field(default_factory=dict)
    due_date: Optional[date] = None
    ai_generated_content: Optional[str] = None
    final_content: Optional[str] = None


def _not_found() -> RemoteServiceError:
    return RemoteServiceError(RemoteErrorKind.NOT_FOUND, "The requested item could not be found.")


class LetterFacade:
    def __init__(
        self,
        store: RecordStore,
        session: Optional[Session],
        ledger: Optional[AffiliateLedger] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.session = session
        self.ledger = ledger or AffiliateLedger(store, clock=clock)
        self.clock = clock

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    def _require_session(self) -> Session:
        if self.session is None:
            raise NotAuthenticated()
        return self.session

    def _require(self, capability: Capability) -> Session:
        session = self._require_session()
        if capability not in ROLE_CAPABILITIES.get(session.role, frozenset()):
            logger.warning(f"{session.email} ({session.role.value}) denied {capability.value}")
            raise PermissionDenied()
        return session

    def _owned(self, letters: Dict[str, LetterRequest], letter_id: str, session: Session) -> LetterRequest:
        letter = letters.get(letter_id)
        # Someone else's letter is indistinguishable from a missing one
        if letter is None or letter.user_id != session.user_id:
            raise _not_found()
        return letter

    # -------------------------------------------------------------------------
    # Scoped letter CRUD
    # -------------------------------------------------------------------------

    def fetch_letters(self) -> List[LetterRequest]:
        """The caller's own letters, newest first."""
        session = self._require_session()
        letters = [l for l in self.store.letters.get_all().values() if l.user_id == session.user_id]
        return sorted(letters, key=lambda l: l.created_at, reverse=True)

    def get_letter(self, letter_id: str) -> LetterRequest:
        session = self._require_session()
        return self._owned(self.store.letters.get_all(), letter_id, session)

    def create_letter(self, data: LetterInput) -> LetterRequest:
        session = self._require_session()
        if session.email not in self.store.users.get_all():
            raise UserNotFound("The signed-in account no longer exists.")

        now = self.clock()
        letter = LetterRequest(
            id=str(uuid4()),
            user_id=session.user_id,
            title=data.title,
            letter_type=LetterType(data.letter_type),
            description=data.description,
            status=LetterStatus.DRAFT,
            priority=PriorityLevel(data.priority),
            template_data=dict(data.template_data),
            recipient_info=dict(data.recipient_info),
            sender_info=dict(data.sender_info),
            due_date=data.due_date,
            ai_generated_content=data.ai_generated_content,
            final_content=data.final_content,
            created_at=now,
            updated_at=now,
        )
        letters = self.store.letters.get_all()
        letters[letter.id] = letter
        self.store.letters.save_all(letters)
        logger.info(f"Letter created: {letter.id} for {session.email}")
        return letter

    def update_letter(self, letter: LetterRequest) -> LetterRequest:
        """
        Replace the mutable fields of an existing letter. id, owner and
        created_at are kept from the stored record; a status change must be
        a valid workflow transition.
        """
        session = self._require_session()
        letters = self.store.letters.get_all()
        stored = self._owned(letters, letter.id, session)

        status = validate_transition(stored.status, LetterStatus(letter.status))
        updated = stored.copy(
            title=letter.title,
            letter_type=LetterType(letter.letter_type),
            description=letter.description,
            status=status,
            priority=PriorityLevel(letter.priority),
            template_data=dict(letter.template_data),
            recipient_info=dict(letter.recipient_info),
            sender_info=dict(letter.sender_info),
            due_date=letter.due_date,
            ai_generated_content=letter.ai_generated_content,
            final_content=letter.final_content,
            updated_at=self._next_updated_at(stored),
        )
        letters[updated.id] = updated
        self.store.letters.save_all(letters)
        logger.info(f"Letter updated: {updated.id} ({updated.status.value})")
        return updated

    def transition_letter(self, letter_id: str, status: LetterStatus) -> LetterRequest:
        session = self._require_session()
        letters = self.store.letters.get_all()
        stored = self._owned(letters, letter_id, session)

        updated = stored.copy(
            status=validate_transition(stored.status, LetterStatus(status)),
            updated_at=self._next_updated_at(stored),
        )
        letters[updated.id] = updated
        self.store.letters.save_all(letters)
        logger.info(f"Letter {updated.id}: {stored.status.value} -> {updated.status.value}")
        return updated

    def delete_letter(self, letter_id: str) -> None:
        session = self._require_session()
        letters = self.store.letters.get_all()
        self._owned(letters, letter_id, session)
        del letters[letter_id]
        self.store.letters.save_all(letters)
        logger.info(f"Letter deleted: {letter_id}")

    def _next_updated_at(self, stored: LetterRequest) -> datetime:
        now = self.clock()
        if now <= stored.updated_at:
            now = stored.updated_at + timedelta(microseconds=1)
        return now

    # -------------------------------------------------------------------------
    # Unscoped (admin) queries
    # -------------------------------------------------------------------------

    def fetch_all_users(self) -> List[Dict[str, Any]]:
        self._require(Capability.VIEW_ALL_USERS)
        users = sorted(self.store.users.get_all().values(), key=lambda u: u.email)
        return [user.public_view() for user in users]

    def fetch_all_letters(self) -> List[LetterRequest]:
        self._require(Capability.VIEW_ALL_LETTERS)
        return sorted(self.store.letters.get_all().values(), key=lambda l: l.created_at, reverse=True)

    # -------------------------------------------------------------------------
    # Affiliates
    # -------------------------------------------------------------------------

    def fetch_affiliate_stats(self) -> AffiliateStats:
        session = self._require(Capability.VIEW_AFFILIATE_STATS)
        return self.ledger.get_affiliate_data(session.email)

    def assign_affiliate_code(self, employee_email: str, code: str) -> AffiliateStats:
        self._require(Capability.MANAGE_AFFILIATE_CODES)
        employee_email = normalize_email(employee_email)
        employee = self.store.users.get_all().get(employee_email)
        if employee is None or employee.role == UserRole.USER:
            raise UserNotFound("No employee account with this email.")
        self.ledger.assign_code(employee_email, code)
        return self.ledger.get_affiliate_data(employee_email)
