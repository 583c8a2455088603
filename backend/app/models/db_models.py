"""
LetterDesk - SQLAlchemy ORM Models
Relational tables behind the SQL record store
"""
from datetime import datetime, timezone

from sqlalchemy import Column, String, Float, DateTime, Date, Text, JSON, ForeignKey, Boolean, Integer
from ..database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserDB(Base):
    """User account. Email is stored lower-cased and is the identity key."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(128), nullable=False)  # SHA-256 hex digest
    role = Column(String(20), nullable=False, default="user")  # user, employee, admin
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class LetterDB(Base):
    """Letter request owned by a single user."""
    __tablename__ = "letters"

    id = Column(String(36), primary_key=True)  # UUID
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    letter_type = Column(String(50), nullable=False)
    description = Column(Text, default="")
    status = Column(String(20), nullable=False, default="draft")
    priority = Column(String(20), nullable=False, default="medium")
    due_date = Column(Date, nullable=True)

    # Form input used to build the generation prompt
    template_data = Column(JSON, default=dict)
    recipient_info = Column(JSON, default=dict)
    sender_info = Column(JSON, default=dict)

    ai_generated_content = Column(Text, nullable=True)
    final_content = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class PasswordResetTokenDB(Base):
    """Single-use password reset token. Deleted on consumption."""
    __tablename__ = "password_reset_tokens"

    token = Column(String(128), primary_key=True)
    email = Column(String(255), nullable=False, index=True)
    expiry = Column(DateTime(timezone=True), nullable=False)


class RevokedTokenDB(Base):
    """Session token id revoked by logout. Rows past their expiry are purged."""
    __tablename__ = "revoked_tokens"

    jti = Column(String(64), primary_key=True)
    expiry = Column(DateTime(timezone=True), nullable=False)


class AffiliateCodeDB(Base):
    """Referral code assigned to an employee."""
    __tablename__ = "affiliate_codes"

    employee_email = Column(String(255), primary_key=True)
    code = Column(String(64), unique=True, nullable=False)


class AffiliateEntryDB(Base):
    """Append-only referral log. Rows are inserted, never updated or deleted."""
    __tablename__ = "affiliate_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_email = Column(String(255), nullable=False, index=True)
    referred_user_email = Column(String(255), nullable=False)
    subscription_amount = Column(Float, nullable=False)
    used_discount = Column(Boolean, default=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)


class SeedFlagDB(Base):
    """One-time seeding markers (e.g. demo data already created)."""
    __tablename__ = "seed_flags"

    name = Column(String(64), primary_key=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
