"""
提现相关数据库模型
"""
from sqlalchemy import BigInteger, Boolean, Column, Date, DateTime, Index, Integer, String, Text

from .base import Base, utcnow


class PayoutBatchModel(Base):
    __tablename__ = "payout_batches"

    id = Column(String(36), primary_key=True)
    instructor_id = Column(String(36), nullable=False, index=True)
    total_amount = Column(BigInteger, nullable=False)
    transaction_count = Column(Integer, nullable=False, default=0)
    payout_method = Column(String(30), nullable=False, default="manual_transfer",
                           comment="manual_transfer/bank_api/digital_wallet")
    status = Column(String(20), nullable=False, default="pending", index=True,
                    comment="pending/processing/completed/failed/cancelled")
    scheduled_date = Column(Date, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    batch_reference = Column(String(100), nullable=True, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_payout_batches_instructor_status", "instructor_id", "status"),
    )


class InstructorBankAccountModel(Base):
    __tablename__ = "instructor_bank_accounts"

    id = Column(String(36), primary_key=True)
    instructor_id = Column(String(36), nullable=False, unique=True)
    bank_name = Column(String(100), nullable=False)
    account_number = Column(String(50), nullable=False)
    account_holder_name = Column(String(255), nullable=False)
    bank_code = Column(String(20), nullable=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
