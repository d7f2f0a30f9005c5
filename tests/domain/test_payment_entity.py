from decimal import Decimal

import pytest

from domain.common.exceptions import DomainValidationException
from domain.payment.entity import (
    ORDER_ID_MAX_LENGTH,
    Payment,
    PaymentStatus,
    RevenueSplit,
    RevenueSplitStatus,
    SettlementOutboxEntry,
    OutboxTask,
    OutboxStatus,
    build_order_id,
    validate_order_id,
)
from domain.payment.fee_policy import SplitBreakdown
from shared.codes.payment_codes import map_gateway_status
from shared.money import format_idr


def _split_payment(**overrides) -> Payment:
    values = dict(
        order_id="ord-course-0-student--1700000000000",
        user_id="student-1",
        course_id="course-1",
        instructor_id="instructor-1",
        breakdown=SplitBreakdown(
            total_amount=100_000,
            platform_fee=5_000,
            instructor_share=95_000,
            platform_fee_percentage=Decimal("5"),
        ),
        split_enabled=True,
    )
    values.update(overrides)
    return Payment.create_pending(**values)


def test_build_order_id_format():
    order_id = build_order_id("course-0001-abcdef", "student-0001-xyz", 1_700_000_000_000)

    assert order_id == "ord-course-0-student--1700000000000"
    assert len(order_id) <= ORDER_ID_MAX_LENGTH


def test_order_id_length_limit():
    validate_order_id("x" * ORDER_ID_MAX_LENGTH)
    with pytest.raises(DomainValidationException):
        validate_order_id("x" * (ORDER_ID_MAX_LENGTH + 1))
    with pytest.raises(DomainValidationException):
        validate_order_id("")


def test_create_pending_freezes_breakdown():
    payment = _split_payment()

    assert payment.status is PaymentStatus.PENDING
    assert payment.id
    assert payment.amount == 100_000
    assert payment.platform_fee == 5_000
    assert payment.instructor_share == 95_000
    assert payment.breakdown.platform_fee_percentage == Decimal("5")


def test_direct_payment_must_not_carry_fee():
    with pytest.raises(DomainValidationException):
        Payment(
            id="p1",
            order_id="ord-1",
            user_id="u",
            course_id="c",
            instructor_id="i",
            amount=30_000,
            split_payment_enabled=False,
            platform_fee=1_000,
            instructor_share=29_000,
        )


def test_split_payment_must_reconstruct_amount():
    with pytest.raises(DomainValidationException):
        Payment(
            id="p1",
            order_id="ord-1",
            user_id="u",
            course_id="c",
            instructor_id="i",
            amount=100_000,
            split_payment_enabled=True,
            platform_fee=5_000,
            instructor_share=90_000,
        )


def test_amount_must_be_positive():
    with pytest.raises(DomainValidationException):
        _split_payment(breakdown=SplitBreakdown.direct(0), split_enabled=False)


def test_apply_status_only_moves_pending_once():
    payment = _split_payment()

    assert payment.apply_status(PaymentStatus.PAID, transaction_id="trx-1", payment_method="gopay") is True
    assert payment.status is PaymentStatus.PAID
    assert payment.paid_at is not None
    assert payment.gateway_transaction_id == "trx-1"

    assert payment.apply_status(PaymentStatus.FAILED) is False
    assert payment.status is PaymentStatus.PAID


def test_pending_to_pending_records_transaction_details():
    payment = _split_payment()

    assert payment.apply_status(PaymentStatus.PENDING, transaction_id="trx-9", payment_method="bank_transfer")
    assert payment.status is PaymentStatus.PENDING
    assert payment.payment_method == "bank_transfer"
    assert payment.paid_at is None


def test_revenue_split_from_payment_copies_frozen_amounts():
    payment = _split_payment()
    split = RevenueSplit.from_payment(payment)

    assert split.payment_id == payment.id
    assert split.total_amount == 100_000
    assert split.platform_fee_amount == 5_000
    assert split.instructor_share == 95_000
    assert split.status is RevenueSplitStatus.CALCULATED


def test_revenue_split_refuses_direct_payment():
    direct = _split_payment(breakdown=SplitBreakdown.direct(30_000), split_enabled=False)
    with pytest.raises(DomainValidationException):
        RevenueSplit.from_payment(direct)


def test_outbox_entry_tracks_attempts():
    entry = SettlementOutboxEntry.enqueue("ord-1", OutboxTask.ENROLLMENT, "db down")
    assert entry.attempts == 1
    assert entry.status is OutboxStatus.PENDING

    entry.record_failure("still down")
    assert entry.attempts == 2
    assert entry.last_error == "still down"

    entry.mark_done()
    assert entry.status is OutboxStatus.DONE
    assert entry.last_error is None


@pytest.mark.parametrize(
    "gateway_status, internal",
    [
        ("settlement", "paid"),
        ("capture", "paid"),
        ("pending", "pending"),
        ("deny", "failed"),
        ("cancel", "failed"),
        ("failure", "failed"),
        ("expire", "expired"),
        (" Settlement ", "paid"),
        ("refund", None),
        ("", None),
        (None, None),
    ],
)
def test_gateway_status_mapping(gateway_status, internal):
    assert map_gateway_status(gateway_status) == internal


@pytest.mark.parametrize(
    "amount, text",
    [(70_000, "Rp 70.000"), (0, "Rp 0"), (1_234_567, "Rp 1.234.567"), (-1_500, "-Rp 1.500"), (999, "Rp 999")],
)
def test_format_idr(amount, text):
    assert format_idr(amount) == text
