"""
讲师提现与银行账户路由
"""
from fastapi import APIRouter, Depends, Query

from api.dependencies import get_identity, get_payout_service
from application.dtos.payouts import (
    AdminPayoutSummary,
    BankAccountIn,
    BankAccountOut,
    BatchApproveIn,
    BatchApproveOut,
    PayoutApproveIn,
    PayoutCancelIn,
    PayoutCompleteIn,
    PayoutOut,
    PayoutRequestIn,
    PayoutRequestOut,
)
from application.services.payout_service import PayoutService
from core.config import settings
from core.i18n import t
from core.response import Response as ApiResponse, success_response
from domain.identity import Capability, Identity
from domain.payout.entity import BankAccount


router = APIRouter(prefix="/payouts", tags=["Payouts"])


def _bank_account_out(account: BankAccount) -> BankAccountOut:
    return BankAccountOut(
        instructor_id=account.instructor_id,
        bank_name=account.bank_name,
        account_number=account.masked_account_number,
        account_holder_name=account.account_holder_name,
        bank_code=account.bank_code,
        is_verified=account.is_verified,
        is_active=account.is_active,
    )


# ---- 讲师 ----

@router.post("/requests", summary="申请提现", response_model=ApiResponse[PayoutRequestOut])
async def request_payout(
    payload: PayoutRequestIn,
    identity: Identity = Depends(get_identity),
    service: PayoutService = Depends(get_payout_service),
):
    """
    提交提现申请

    以下情况返回 accepted=false：银行账户未验证、金额低于最低提现额、
    已有待处理申请、金额超过可提现收入。
    """
    identity.require(Capability.RECEIVE_PAYOUTS)
    accepted = await service.request_payout(identity.user_id, payload.amount, payload.payout_method)
    key = "payouts.requested" if accepted else "payouts.request_refused"
    message = t(key)
    return success_response(data=PayoutRequestOut(accepted=accepted, message=message), message=message)


@router.get("/requests", summary="我的提现记录", response_model=ApiResponse[list[PayoutOut]])
async def list_my_payouts(
    skip: int = Query(default=0, ge=0),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    identity: Identity = Depends(get_identity),
    service: PayoutService = Depends(get_payout_service),
):
    identity.require(Capability.RECEIVE_PAYOUTS)
    payouts = await service.list_instructor_payouts(identity.user_id, skip=skip, limit=limit)
    return success_response(data=[PayoutOut.model_validate(p) for p in payouts])


@router.get("/bank-account", summary="我的银行账户", response_model=ApiResponse[BankAccountOut])
async def get_bank_account(
    identity: Identity = Depends(get_identity),
    service: PayoutService = Depends(get_payout_service),
):
    identity.require(Capability.RECEIVE_PAYOUTS)
    account = await service.get_bank_account(identity.user_id)
    return success_response(data=_bank_account_out(account) if account else None)


@router.put("/bank-account", summary="保存银行账户", response_model=ApiResponse[BankAccountOut])
async def save_bank_account(
    payload: BankAccountIn,
    identity: Identity = Depends(get_identity),
    service: PayoutService = Depends(get_payout_service),
):
    """修改账户信息后需要管理员重新验证"""
    account = await service.save_bank_account(identity, payload)
    return success_response(data=_bank_account_out(account), message=t("payouts.bank_account.saved"))


# ---- 管理员 ----

@router.get("/pending", summary="待处理提现", response_model=ApiResponse[list[PayoutOut]])
async def list_pending(
    identity: Identity = Depends(get_identity),
    service: PayoutService = Depends(get_payout_service),
):
    payouts = await service.list_pending(identity)
    return success_response(data=[PayoutOut.model_validate(p) for p in payouts])


@router.get("/summary", summary="提现概览", response_model=ApiResponse[AdminPayoutSummary])
async def admin_summary(
    identity: Identity = Depends(get_identity),
    service: PayoutService = Depends(get_payout_service),
):
    return success_response(data=await service.admin_summary(identity))


@router.post("/batch-approve", summary="批量批准", response_model=ApiResponse[BatchApproveOut])
async def batch_approve(
    payload: BatchApproveIn,
    identity: Identity = Depends(get_identity),
    service: PayoutService = Depends(get_payout_service),
):
    count, reference = await service.batch_approve(payload.instructor_ids, payload.payout_method, actor=identity)
    return success_response(
        data=BatchApproveOut(approved=count, batch_reference=reference),
        message=t("payouts.batch_approved", count=count),
    )


@router.post("/{payout_id}/approve", summary="批准提现", response_model=ApiResponse[PayoutOut])
async def approve_payout(
    payout_id: str,
    payload: PayoutApproveIn,
    identity: Identity = Depends(get_identity),
    service: PayoutService = Depends(get_payout_service),
):
    payout = await service.approve(payout_id, payload.batch_reference, payload.notes, actor=identity)
    return success_response(data=PayoutOut.model_validate(payout), message=t("payouts.approved"))


@router.post("/{payout_id}/complete", summary="标记完成", response_model=ApiResponse[PayoutOut])
async def complete_payout(
    payout_id: str,
    payload: PayoutCompleteIn,
    identity: Identity = Depends(get_identity),
    service: PayoutService = Depends(get_payout_service),
):
    payout = await service.complete(payout_id, payload.transaction_reference, actor=identity)
    return success_response(data=PayoutOut.model_validate(payout), message=t("payouts.completed"))


@router.post("/{payout_id}/cancel", summary="取消提现", response_model=ApiResponse[PayoutOut])
async def cancel_payout(
    payout_id: str,
    payload: PayoutCancelIn,
    identity: Identity = Depends(get_identity),
    service: PayoutService = Depends(get_payout_service),
):
    payout = await service.cancel(payout_id, payload.reason, actor=identity)
    return success_response(data=PayoutOut.model_validate(payout), message=t("payouts.cancelled"))


@router.post(
    "/bank-accounts/{instructor_id}/verify",
    summary="验证讲师银行账户",
    response_model=ApiResponse[BankAccountOut],
)
async def verify_bank_account(
    instructor_id: str,
    identity: Identity = Depends(get_identity),
    service: PayoutService = Depends(get_payout_service),
):
    account = await service.verify_bank_account(identity, instructor_id)
    return success_response(data=_bank_account_out(account), message=t("payouts.bank_account.verified"))
