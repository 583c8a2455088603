"""LetterDesk - API Routers"""
from .auth import router as auth_router
from .letters import router as letters_router
from .admin import router as admin_router
from .affiliates import router as affiliates_router

__all__ = [
    "auth_router",
    "letters_router",
    "admin_router",
    "affiliates_router",
]
