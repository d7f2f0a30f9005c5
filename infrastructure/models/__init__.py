"""Infrastructure models package exports."""
from .base import Base, metadata
from .catalog import CourseModel, InstructorPaymentSettingsModel, PlatformSettingModel, ProfileModel
from .payment import CourseEnrollmentModel, PaymentModel, RevenueSplitModel, SettlementOutboxModel
from .payout import InstructorBankAccountModel, PayoutBatchModel

__all__ = [
    "Base",
    "metadata",
    "CourseModel",
    "ProfileModel",
    "InstructorPaymentSettingsModel",
    "PlatformSettingModel",
    "PaymentModel",
    "CourseEnrollmentModel",
    "RevenueSplitModel",
    "SettlementOutboxModel",
    "PayoutBatchModel",
    "InstructorBankAccountModel",
]
