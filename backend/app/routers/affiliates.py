"""
LetterDesk - Affiliates Router
Referral performance for employees and code management for admins.
"""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator

from ..auth import get_letter_facade
from ..models.records import AffiliateStats
from ..services.letter_facade import LetterFacade

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/affiliates", tags=["affiliates"])


class AffiliateStatsResponse(BaseModel):
    code: str
    total_signups: int
    total_earnings: float
    total_points: int


class AssignCodeRequest(BaseModel):
    code: str

    @field_validator('code')
    @classmethod
    def validate_code(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Affiliate code cannot be empty')
        return v


def _stats_response(stats: AffiliateStats) -> AffiliateStatsResponse:
    return AffiliateStatsResponse(**stats.to_dict())


@router.get("/me", response_model=AffiliateStatsResponse)
async def get_my_affiliate_stats(facade: LetterFacade = Depends(get_letter_facade)):
    """
    The calling employee's code, referred signups, earnings and points.
    Employees without a code get zeroed stats with code "N/A".
    """
    return _stats_response(facade.fetch_affiliate_stats())


@router.put("/{employee_email}/code", response_model=AffiliateStatsResponse)
async def assign_affiliate_code(
    employee_email: str,
    request: AssignCodeRequest,
    facade: LetterFacade = Depends(get_letter_facade),
):
    return _stats_response(facade.assign_affiliate_code(employee_email, request.code))
