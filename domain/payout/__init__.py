"""Payout domain exports."""
from .entity import BankAccount, PayoutBatch, PayoutMethod, PayoutStatus
from .repository import BankAccountRepository, PayoutRepository

__all__ = [
    "BankAccount",
    "BankAccountRepository",
    "PayoutBatch",
    "PayoutMethod",
    "PayoutRepository",
    "PayoutStatus",
]
