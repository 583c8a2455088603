"""
Demo Dataset

Fixed accounts and letters used to seed an empty store. The letters belong to
DEMO_OWNER, which is seeded alongside them so ownership always resolves.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Tuple

from app.models.records import (
    LetterRequest,
    LetterStatus,
    LetterType,
    PriorityLevel,
    StoredUser,
    UserRole,
)
from app.services.credentials import hash_secret

logger = logging.getLogger(__name__)

DEMO_SETUP_FLAG = "demo-setup-done"
DEMO_LETTERS_FLAG = "demo-letters-seeded"

# (email, password, role, fixed id)
DEMO_ACCOUNTS: List[Tuple[str, str, UserRole, str]] = [
    ("admin@example.com", "admin123", UserRole.ADMIN, "demo-admin-0001"),
    ("employee@example.com", "employee123", UserRole.EMPLOYEE, "demo-employee-0001"),
]

DEMO_OWNER: Tuple[str, str, UserRole, str] = ("user@example.com", "user123", UserRole.USER, "demo-user-0001")


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value).replace(tzinfo=timezone.utc)


def build_demo_user(account: Tuple[str, str, UserRole, str]) -> StoredUser:
    email, password, role, user_id = account
    return StoredUser(
        id=user_id,
        email=email,
        password_hash=hash_secret(password),
        role=role,
        created_at=_ts("2023-10-01T09:00:00"),
    )


def build_demo_letters(owner_id: str = DEMO_OWNER[3]) -> Dict[str, LetterRequest]:
    letters = [
        LetterRequest(
            id="1",
            user_id=owner_id,
            title="Demand for Payment - Invoice #123",
            letter_type=LetterType.GENERAL_DEMAND_LETTER,
            status=LetterStatus.IN_REVIEW,
            priority=PriorityLevel.MEDIUM,
            description="A demand for an unpaid invoice from a client.",
            recipient_info={"name": "Client Corp"},
            sender_info={"name": "My Company"},
            template_data={
                "Recipient's Full Name": "Client Corp",
                "Amount Owed": "5,000",
                "Reason for Debt": "Unpaid invoice #123 for consulting services.",
                "Deadline for Action": "November 15, 2023",
            },
            created_at=_ts("2023-10-26T10:00:00"),
            updated_at=_ts("2023-10-26T12:30:00"),
        ),
        LetterRequest(
            id="2",
            user_id=owner_id,
            title="Cease and Desist - Trademark Infringement",
            letter_type=LetterType.CEASE_AND_DESIST,
            status=LetterStatus.COMPLETED,
            priority=PriorityLevel.HIGH,
            description="Letter to a competitor for using our trademarked logo.",
            recipient_info={"name": "Competitor Inc."},
            sender_info={"name": "My Company"},
            created_at=_ts("2023-10-25T14:00:00"),
            updated_at=_ts("2023-10-27T09:00:00"),
        ),
        LetterRequest(
            id="3",
            user_id=owner_id,
            title="Notice of Breach of Contract",
            letter_type=LetterType.BREACH_OF_CONTRACT,
            status=LetterStatus.DRAFT,
            priority=PriorityLevel.MEDIUM,
            description="Initial draft for a supplier failing to meet delivery deadlines.",
            recipient_info={"name": "Supplier LLC"},
            sender_info={"name": "My Company"},
            created_at=_ts("2023-10-27T11:00:00"),
            updated_at=_ts("2023-10-27T11:00:00"),
        ),
    ]
    return {letter.id: letter for letter in letters}


def initialize_demo_accounts(store) -> bool:
    """
    Create the admin and employee demo accounts once.
    Returns True when this call did the seeding.
    """
    if store.is_flag_set(DEMO_SETUP_FLAG):
        return False

    users = store.users.get_all()
    for account in DEMO_ACCOUNTS:
        if account[0] not in users:
            users[account[0]] = build_demo_user(account)
    store.users.save_all(users)
    store.set_flag(DEMO_SETUP_FLAG)
    logger.info("Demo accounts (admin@example.com, employee@example.com) created.")
    return True
