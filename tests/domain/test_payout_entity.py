import pytest

from domain.common.exceptions import DomainValidationException, PayoutTransitionException
from domain.payout.entity import (
    BankAccount,
    PayoutBatch,
    PayoutMethod,
    PayoutStatus,
    generate_batch_reference,
)


def _account(**overrides) -> BankAccount:
    values = dict(
        id="acc-1",
        instructor_id="instructor-1",
        bank_name="BCA",
        account_number="1234567890",
        account_holder_name="Budi Santoso",
    )
    values.update(overrides)
    return BankAccount(**values)


def test_request_starts_pending():
    payout = PayoutBatch.request("instructor-1", 75_000, transaction_count=3)

    assert payout.status is PayoutStatus.PENDING
    assert payout.payout_method is PayoutMethod.MANUAL_TRANSFER
    assert payout.scheduled_date is not None
    assert payout.transaction_count == 3


def test_amount_must_be_positive():
    with pytest.raises(DomainValidationException):
        PayoutBatch.request("instructor-1", 0)


def test_approve_then_complete():
    payout = PayoutBatch.request("instructor-1", 75_000)

    payout.approve(notes="weekly run")
    assert payout.status is PayoutStatus.PROCESSING
    assert payout.batch_reference.startswith("BATCH-")
    assert payout.processed_at is not None
    assert payout.notes == "weekly run"

    payout.complete("TRX-991")
    assert payout.status is PayoutStatus.COMPLETED
    assert payout.notes == "Transaction reference: TRX-991"


def test_approve_keeps_given_reference_and_method():
    payout = PayoutBatch.request("instructor-1", 75_000)
    payout.approve(batch_reference="BATCH-1", payout_method=PayoutMethod.BANK_API)

    assert payout.batch_reference == "BATCH-1"
    assert payout.payout_method is PayoutMethod.BANK_API


def test_complete_requires_processing():
    payout = PayoutBatch.request("instructor-1", 75_000)
    with pytest.raises(PayoutTransitionException):
        payout.complete()


def test_approve_twice_is_rejected():
    payout = PayoutBatch.request("instructor-1", 75_000)
    payout.approve()
    with pytest.raises(PayoutTransitionException):
        payout.approve()


def test_fail_only_from_processing():
    payout = PayoutBatch.request("instructor-1", 75_000)
    with pytest.raises(PayoutTransitionException):
        payout.fail("bank rejected")
    payout.approve()
    payout.fail("bank rejected")
    assert payout.status is PayoutStatus.FAILED
    assert payout.notes == "bank rejected"


def test_cancel_default_note_and_terminal_guard():
    payout = PayoutBatch.request("instructor-1", 75_000)
    payout.cancel()
    assert payout.status is PayoutStatus.CANCELLED
    assert payout.notes == "Cancelled by admin"

    with pytest.raises(PayoutTransitionException):
        payout.cancel("again")


def test_cancel_processing_payout():
    payout = PayoutBatch.request("instructor-1", 75_000)
    payout.approve()
    payout.cancel("duplicate request")
    assert payout.status is PayoutStatus.CANCELLED
    assert payout.notes == "duplicate request"


def test_completed_payout_cannot_be_cancelled():
    payout = PayoutBatch.request("instructor-1", 75_000)
    payout.approve()
    payout.complete()
    with pytest.raises(PayoutTransitionException) as exc_info:
        payout.cancel()
    assert exc_info.value.details["current"] == "completed"


def test_batch_reference_format():
    assert generate_batch_reference(1_700_000_000_000) == "BATCH-1700000000000"


def test_bank_account_masks_all_but_last_four():
    assert _account().masked_account_number == "******7890"
    assert _account(account_number="1234").masked_account_number == "1234"


def test_bank_account_requires_details():
    with pytest.raises(DomainValidationException):
        _account(bank_name="  ")


def test_changing_details_drops_verification():
    account = _account()
    account.verify()
    assert account.is_verified

    account.replace_details(bank_name="Mandiri", account_number="9876543210", account_holder_name="Budi Santoso")
    assert account.is_verified is False
    assert account.bank_name == "Mandiri"
