"""
收入统计路由
"""
from fastapi import APIRouter, Depends

from api.dependencies import get_earnings_service, get_identity
from application.dtos.payouts import InstructorEarnings, PlatformEarnings
from application.services.earnings_service import EarningsService
from core.response import Response as ApiResponse, success_response
from domain.identity import Identity


router = APIRouter(prefix="/earnings", tags=["Earnings"])


@router.get("/me", summary="我的收入", response_model=ApiResponse[InstructorEarnings])
async def my_earnings(
    identity: Identity = Depends(get_identity),
    service: EarningsService = Depends(get_earnings_service),
):
    return success_response(data=await service.instructor_summary(identity))


@router.get("/instructors/{instructor_id}", summary="讲师收入", response_model=ApiResponse[InstructorEarnings])
async def instructor_earnings(
    instructor_id: str,
    identity: Identity = Depends(get_identity),
    service: EarningsService = Depends(get_earnings_service),
):
    return success_response(data=await service.instructor_summary(identity, instructor_id))


@router.get("/platform", summary="平台收入", response_model=ApiResponse[PlatformEarnings])
async def platform_earnings(
    identity: Identity = Depends(get_identity),
    service: EarningsService = Depends(get_earnings_service),
):
    return success_response(data=await service.platform_summary(identity))
