"""LetterDesk - Data Models"""
from .records import (
    # Enums
    UserRole, LetterType, LetterStatus, PriorityLevel,
    # Records
    StoredUser, ResetToken, LetterRequest, AffiliateEntry, AffiliateStats,
)

__all__ = [
    "UserRole", "LetterType", "LetterStatus", "PriorityLevel",
    "StoredUser", "ResetToken", "LetterRequest", "AffiliateEntry", "AffiliateStats",
]
