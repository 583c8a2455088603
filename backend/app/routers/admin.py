"""
LetterDesk - Admin Router
Read-only views across every account and letter. Access is enforced by the
data-access facade; non-admin sessions get 403.
"""
from typing import List
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..auth import get_letter_facade
from ..services.letter_facade import LetterFacade
from .letters import LetterResponse, letter_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class UserListItem(BaseModel):
    """User item for admin list view. Never includes the password digest."""
    id: str
    email: str
    role: str
    created_at: str


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.get("/users", response_model=List[UserListItem])
async def list_users(facade: LetterFacade = Depends(get_letter_facade)):
    """Every registered account, sorted by email."""
    return [UserListItem(**user) for user in facade.fetch_all_users()]


@router.get("/letters", response_model=List[LetterResponse])
async def list_all_letters(facade: LetterFacade = Depends(get_letter_facade)):
    """Every letter across all users, newest first."""
    return [letter_response(letter) for letter in facade.fetch_all_letters()]
