"""
LetterDesk - Record Models

The records held by every Record Store family. Stores serialize them with
to_dict() and rebuild them with from_dict(); from_dict() raises on malformed
input so stores can decide how to degrade.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    USER = "user"
    EMPLOYEE = "employee"
    ADMIN = "admin"


class LetterType(str, Enum):
    DEMAND_LETTER = "demand_letter"
    CEASE_AND_DESIST = "cease_and_desist"
    DEFAMATION_SLANDER = "defamation_slander"
    BREACH_OF_CONTRACT = "breach_of_contract"
    EMPLOYMENT_DISPUTE = "employment_dispute"
    LANDLORD_TENANT = "landlord_tenant"
    DEBT_COLLECTION = "debt_collection"
    INSURANCE_CLAIM = "insurance_claim"
    # Template-backed types
    GENERAL_DEMAND_LETTER = "general_demand_letter"
    CEASE_AND_DESIST_HARASSMENT = "cease_and_desist_harassment"
    OTHER = "other"


class LetterStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PriorityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# =============================================================================
# HELPERS
# =============================================================================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are treated as UTC (SQLite drops tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, (int, float)):
        # epoch milliseconds, as written by browser clients
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise ValueError(f"Cannot parse timestamp from {value!r}")


def normalize_email(email: str) -> str:
    return email.strip().lower()


# =============================================================================
# USERS
# =============================================================================

@dataclass
class StoredUser:
    """User account as persisted. Keyed by lower-cased email."""
    id: str
    email: str
    password_hash: str
    role: UserRole = UserRole.USER
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "password_hash": self.password_hash,
            "role": self.role.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoredUser":
        return cls(
            id=str(data["id"]),
            email=normalize_email(data["email"]),
            password_hash=str(data["password_hash"]),
            role=UserRole(data.get("role", UserRole.USER.value)),
            created_at=parse_timestamp(data["created_at"]) if data.get("created_at") else utc_now(),
        )

    def public_view(self) -> Dict[str, Any]:
        """Fields safe to expose outside the store."""
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role.value,
            "created_at": self.created_at.isoformat(),
        }


# =============================================================================
# PASSWORD RESET TOKENS
# =============================================================================

@dataclass
class ResetToken:
    """Single-use password reset token."""
    token: str
    email: str
    expiry: datetime  # absolute, timezone-aware UTC

    def is_valid(self, now: datetime) -> bool:
        return as_utc(now) < as_utc(self.expiry)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "email": self.email,
            "expiry": self.expiry.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResetToken":
        return cls(
            token=str(data["token"]),
            email=normalize_email(data["email"]),
            expiry=parse_timestamp(data["expiry"]),
        )


# =============================================================================
# LETTER REQUESTS
# =============================================================================

@dataclass
class LetterRequest:
    """
    A letter owned by exactly one user.

    updated_at is refreshed on every mutation and never moves backwards.
    """
    id: str
    user_id: str
    title: str
    letter_type: LetterType
    created_at: datetime
    updated_at: datetime
    description: str = ""
    status: LetterStatus = LetterStatus.DRAFT
    priority: PriorityLevel = PriorityLevel.MEDIUM
    template_data: Dict[str, str] = field(default_factory=dict)
    recipient_info: Dict[str, Any] = field(default_factory=dict)
    sender_info: Dict[str, Any] = field(default_factory=dict)
    due_date: Optional[date] = None
    ai_generated_content: Optional[str] = None
    final_content: Optional[str] = None

    def copy(self, **changes) -> "LetterRequest":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "letter_type": self.letter_type.value,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "template_data": dict(self.template_data),
            "recipient_info": dict(self.recipient_info),
            "sender_info": dict(self.sender_info),
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "ai_generated_content": self.ai_generated_content,
            "final_content": self.final_content,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LetterRequest":
        due_date = data.get("due_date")
        return cls(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            title=str(data["title"]),
            letter_type=LetterType(data["letter_type"]),
            description=data.get("description") or "",
            status=LetterStatus(data.get("status", LetterStatus.DRAFT.value)),
            priority=PriorityLevel(data.get("priority", PriorityLevel.MEDIUM.value)),
            template_data=dict(data.get("template_data") or {}),
            recipient_info=dict(data.get("recipient_info") or {}),
            sender_info=dict(data.get("sender_info") or {}),
            due_date=date.fromisoformat(due_date) if due_date else None,
            ai_generated_content=data.get("ai_generated_content"),
            final_content=data.get("final_content"),
            created_at=parse_timestamp(data["created_at"]),
            updated_at=parse_timestamp(data["updated_at"]),
        )


# =============================================================================
# AFFILIATES
# =============================================================================

@dataclass(frozen=True)
class AffiliateEntry:
    """One referred signup credited to an employee. Immutable once appended."""
    referred_user_email: str
    subscription_amount: float
    used_discount: bool
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "referred_user_email": self.referred_user_email,
            "subscription_amount": self.subscription_amount,
            "used_discount": self.used_discount,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AffiliateEntry":
        return cls(
            referred_user_email=normalize_email(data["referred_user_email"]),
            subscription_amount=float(data["subscription_amount"]),
            used_discount=bool(data.get("used_discount", False)),
            timestamp=parse_timestamp(data["timestamp"]),
        )


@dataclass(frozen=True)
class AffiliateStats:
    """Derived performance figures for one employee."""
    code: str
    total_signups: int
    total_earnings: float
    total_points: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "total_signups": self.total_signups,
            "total_earnings": self.total_earnings,
            "total_points": self.total_points,
        }
