"""
Checkout orchestration.

start_checkout:  course -> instructor credentials -> split decision + breakdown
                 -> pending payment -> checkout script + gateway token.
submit_checkout_result: the browser relays the Snap callback; the server never
                 trusts it and confirms with the gateway before reconciling.
"""
from __future__ import annotations

from typing import Any, Callable, Optional

from application.dtos.payments import (
    CheckoutCallbacks,
    CheckoutOutcome,
    CheckoutSession,
    CustomerDetails,
    ItemDetail,
    SplitBreakdownOut,
    TransactionDescriptor,
)
from application.ports.payment_gateway import PaymentGateway
from application.services.platform_config_service import PlatformConfigService
from application.services.settlement_service import SettlementService, ensure_enrollment
from core.i18n import t
from core.logging_config import get_logger
from domain.common.exceptions import (
    BusinessException,
    CourseNotFoundException,
    PaymentNotFoundException,
    PaymentUnavailableException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.identity import Capability, Identity
from domain.payment.entity import Payment, PaymentStatus, build_order_id
from domain.payment.fee_policy import breakdown_for_checkout
from shared.codes.payment_codes import PaymentCode
from shared.money import format_idr


logger = get_logger(__name__)

STATUS_MESSAGES = {
    PaymentStatus.PAID: "Payment successful. You are now enrolled in the course.",
    PaymentStatus.PENDING: "Payment is pending. We will enroll you once it is confirmed.",
    PaymentStatus.FAILED: "Payment failed. Please try again.",
    PaymentStatus.EXPIRED: "Payment expired. Please start a new checkout.",
}


class CheckoutService:
    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        gateway: PaymentGateway,
        config: PlatformConfigService,
        settlement: SettlementService,
        *,
        callback_base_url: Optional[str] = None,
    ) -> None:
        self._uow_factory = uow_factory
        self._gateway = gateway
        self._config = config
        self._settlement = settlement
        self._callback_base_url = callback_base_url

    async def start_checkout(
        self,
        identity: Identity,
        course_id: str,
        *,
        origin: Optional[str] = None,
    ) -> CheckoutSession:
        identity.require(Capability.PURCHASE_COURSE)

        async with self._uow_factory(readonly=True) as uow:
            course = await uow.course_repository.get_by_id(course_id)
            if course is None:
                raise CourseNotFoundException(course_id)
            profile = await uow.profile_repository.get_by_id(identity.user_id)
            settings_row = None
            if not course.is_free:
                settings_row = await uow.instructor_settings_repository.get_by_instructor(course.instructor_id)

        if course.is_free:
            await ensure_enrollment(self._uow_factory, identity.user_id, course.id)
            logger.info("free_course_enrolled", user_id=identity.user_id, course_id=course.id)
            return CheckoutSession(course_id=course.id, enrolled=True, formatted_price=format_idr(0))

        instructor_credentials = settings_row.credentials if settings_row else None
        if instructor_credentials is None:
            logger.warning("checkout_unavailable", course_id=course.id, instructor_id=course.instructor_id)
            raise PaymentUnavailableException(course.instructor_id)

        fee_config = await self._config.fee_configuration()
        split, breakdown = breakdown_for_checkout(course.price, instructor_credentials, fee_config)
        order_id = build_order_id(course.id, identity.user_id)
        payment = Payment.create_pending(
            order_id=order_id,
            user_id=identity.user_id,
            course_id=course.id,
            instructor_id=course.instructor_id,
            breakdown=breakdown,
            split_enabled=split,
        )
        async with self._uow_factory() as uow:
            payment = await uow.payment_repository.create(payment)

        credentials = fee_config.platform_credentials if split else instructor_credentials
        script = self._gateway.checkout_script(credentials)

        first_name = profile.first_name if profile else "Anonymous"
        last_name = profile.last_name if profile else "User"
        email = identity.email or (profile.email if profile else None)
        base_url = self._callback_base_url or origin
        descriptor = TransactionDescriptor(
            order_id=order_id,
            gross_amount=course.price,
            customer_details=CustomerDetails(first_name=first_name, last_name=last_name, email=email),
            item_details=[ItemDetail(id=course.id, price=course.price, quantity=1, name=course.title)],
            callbacks=CheckoutCallbacks.from_base(base_url) if base_url else None,
        )
        token = await self._gateway.create_token(descriptor, credentials)

        logger.info(
            "checkout_started",
            order_id=order_id,
            course_id=course.id,
            split_payment_enabled=split,
            amount=course.price,
            platform_fee=breakdown.platform_fee,
        )
        return CheckoutSession(
            course_id=course.id,
            order_id=order_id,
            token=token.token,
            redirect_url=token.redirect_url,
            script=script,
            split_payment_enabled=split,
            breakdown=SplitBreakdownOut(
                total_amount=breakdown.total_amount,
                platform_fee=breakdown.platform_fee,
                instructor_share=breakdown.instructor_share,
                platform_fee_percentage=breakdown.platform_fee_percentage,
            ),
            formatted_price=format_idr(course.price),
        )

    async def submit_checkout_result(
        self,
        identity: Identity,
        order_id: str,
        event: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> CheckoutOutcome:
        payment = await self._settlement.get_payment(order_id)
        if payment.user_id != identity.user_id:
            raise PaymentNotFoundException(order_id)

        try:
            result = self._gateway.parse_checkout_result(event, payload or {})
        except BusinessException as exc:
            if exc.code != PaymentCode.CHECKOUT_DISMISSED:
                raise
            logger.info("checkout_dismissed", order_id=order_id)
            return CheckoutOutcome(
                order_id=order_id,
                status=payment.status.value,
                message=t("payments.checkout.dismissed"),
            )

        logger.info(
            "checkout_result_received",
            order_id=order_id,
            outcome=result.outcome,
            transaction_status=result.transaction_status,
        )
        settled = await self._settlement.reconcile_from_gateway(order_id)
        status = PaymentStatus(settled.status)
        enrolled = status is PaymentStatus.PAID
        return CheckoutOutcome(
            order_id=order_id,
            status=status.value,
            message=STATUS_MESSAGES[status],
            enrolled=enrolled,
        )

    async def list_payments(self, identity: Identity, skip: int = 0, limit: int = 50) -> list[Payment]:
        async with self._uow_factory(readonly=True) as uow:
            return await uow.payment_repository.list_by_user(identity.user_id, skip=skip, limit=limit)

    async def get_payment(self, identity: Identity, order_id: str) -> Payment:
        payment = await self._settlement.get_payment(order_id)
        if payment.user_id != identity.user_id and not identity.can(Capability.MANAGE_PAYOUTS):
            raise PaymentNotFoundException(order_id)
        return payment
