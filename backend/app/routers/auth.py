"""
LetterDesk - Authentication Router
Handles signup, login, session verification and password management.
"""
from typing import Optional
import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, field_validator

from ..auth import get_authenticated_manager, get_session_manager
from ..models.records import UserRole
from ..services.session_manager import DEFAULT_SUBSCRIPTION_AMOUNT, Session, SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

SIGNUP_ROLES = (UserRole.USER.value, UserRole.EMPLOYEE.value)


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class SignupRequest(BaseModel):
    email: EmailStr
    password: str
    role: str = UserRole.USER.value
    affiliate_code: Optional[str] = None
    subscription_amount: float = DEFAULT_SUBSCRIPTION_AMOUNT
    used_discount: bool = False

    @field_validator('role')
    @classmethod
    def validate_role(cls, v):
        v = v.lower()
        if v not in SIGNUP_ROLES:
            raise ValueError(f'Invalid role. Must be one of: {", ".join(SIGNUP_ROLES)}')
        return v

    @field_validator('affiliate_code')
    @classmethod
    def blank_code_is_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v

    @field_validator('subscription_amount')
    @classmethod
    def validate_amount(cls, v):
        if v < 0:
            raise ValueError('Subscription amount cannot be negative')
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PasswordUpdateRequest(BaseModel):
    new_password: str
    confirm_password: str

    @field_validator('confirm_password')
    @classmethod
    def passwords_match(cls, v, info):
        if 'new_password' in info.data and v != info.data['new_password']:
            raise ValueError('Passwords do not match')
        return v


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str


class UserResponse(BaseModel):
    id: str
    email: str
    role: str


class SessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: Optional[str] = None
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


def _session_response(session: Session) -> SessionResponse:
    return SessionResponse(
        access_token=session.token,
        expires_at=session.expires_at.isoformat() if session.expires_at else None,
        user=UserResponse(**session.public_view()),
    )


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("/signup", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def signup(request: SignupRequest, manager: SessionManager = Depends(get_session_manager)):
    """
    Register a new account and sign it in.
    A valid affiliate code credits the referring employee.
    """
    session = manager.signup(
        request.email,
        request.password,
        role=request.role,
        affiliate_code=request.affiliate_code,
        subscription_amount=request.subscription_amount,
        used_discount=request.used_discount,
    )
    return _session_response(session)


@router.post("/login", response_model=SessionResponse)
async def login(request: LoginRequest, manager: SessionManager = Depends(get_session_manager)):
    """
    Authenticate user and return a session token.
    """
    return _session_response(manager.login(request.email, request.password))


@router.post("/logout", response_model=MessageResponse)
async def logout(manager: SessionManager = Depends(get_authenticated_manager)):
    """
    End the session. The bearer token is revoked and rejected from now on.
    """
    manager.logout()
    return MessageResponse(message="Signed out")


@router.get("/me", response_model=UserResponse)
async def get_me(manager: SessionManager = Depends(get_authenticated_manager)):
    """
    Get current authenticated user info.
    """
    return UserResponse(**manager.require_session().public_view())


@router.put("/password", response_model=MessageResponse)
async def update_password(
    request: PasswordUpdateRequest,
    manager: SessionManager = Depends(get_authenticated_manager),
):
    manager.update_password(request.new_password)
    return MessageResponse(message="Password updated successfully")


@router.post("/password-reset/request", response_model=MessageResponse)
async def request_password_reset(
    request: PasswordResetRequest,
    manager: SessionManager = Depends(get_session_manager),
):
    """
    Start a password reset. The response is identical whether or not the
    email is registered.
    """
    manager.request_password_reset(request.email)
    return MessageResponse(message="If an account exists for this email, a reset link has been sent.")


@router.post("/password-reset/confirm", response_model=MessageResponse)
async def confirm_password_reset(
    request: PasswordResetConfirm,
    manager: SessionManager = Depends(get_session_manager),
):
    manager.reset_password(request.token, request.new_password)
    return MessageResponse(message="Password has been reset. Please sign in.")
