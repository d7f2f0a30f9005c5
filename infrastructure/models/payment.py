"""
支付数据库模型 - SQLAlchemy ORM模型
注意：这是基础设施层的实现细节，不是领域模型
"""
from sqlalchemy import (
    BigInteger, Boolean, Column, Integer, String, Numeric, DateTime, Text,
    Index, ForeignKey, UniqueConstraint
)

from .base import Base, utcnow


class PaymentModel(Base):
    """
    支付数据库模型

    这是数据库表的映射，不包含业务逻辑
    所有业务规则都在 domain.payment.entity.Payment 中
    """
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True)

    # 订单信息
    order_id = Column(String(50), unique=True, index=True, nullable=False, comment="订单ID")
    user_id = Column(String(36), nullable=False, index=True, comment="购买者ID")
    course_id = Column(String(36), nullable=False, index=True, comment="课程ID")
    instructor_id = Column(String(36), nullable=True, index=True, comment="讲师ID")

    # 金额（IDR 无小数位，按整数存储）
    amount = Column(BigInteger, nullable=False, comment="支付金额")
    status = Column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="支付状态: pending/paid/failed/expired"
    )

    # 网关回调信息
    gateway_transaction_id = Column(String(100), nullable=True, index=True, comment="网关交易ID")
    payment_method = Column(String(50), nullable=True, comment="支付方式")

    # 结账时固定的分账结果
    split_payment_enabled = Column(Boolean, nullable=False, default=False, comment="是否分账")
    platform_fee = Column(BigInteger, nullable=False, default=0, comment="平台费用")
    instructor_share = Column(BigInteger, nullable=False, default=0, comment="讲师分成")
    platform_fee_percentage = Column(Numeric(5, 2), nullable=False, default=0, comment="平台费率%")

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, comment="创建时间")
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False, comment="更新时间")
    paid_at = Column(DateTime(timezone=True), nullable=True, comment="支付完成时间")

    __table_args__ = (
        Index("ix_payments_user_status", "user_id", "status"),
        Index("ix_payments_created_at", "created_at"),
    )

    def __repr__(self):
        return (
            f"<PaymentModel(id={self.id}, order_id='{self.order_id}', "
            f"amount={self.amount}, status='{self.status}')>"
        )


class CourseEnrollmentModel(Base):
    __tablename__ = "course_enrollments"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True, comment="学员ID")
    course_id = Column(String(36), nullable=False, index=True, comment="课程ID")
    payment_id = Column(String(36), ForeignKey("payments.id", ondelete="SET NULL"), nullable=True)
    enrolled_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, comment="报名时间")

    __table_args__ = (
        UniqueConstraint("user_id", "course_id", name="uq_course_enrollments_user_course"),
    )


class RevenueSplitModel(Base):
    __tablename__ = "revenue_splits"

    id = Column(String(36), primary_key=True)
    payment_id = Column(
        String(36),
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="每笔支付最多一条分账记录",
    )
    instructor_id = Column(String(36), nullable=False, index=True)
    course_id = Column(String(36), nullable=False, index=True)
    total_amount = Column(BigInteger, nullable=False)
    platform_fee_percentage = Column(Numeric(5, 2), nullable=False)
    platform_fee_amount = Column(BigInteger, nullable=False)
    instructor_share = Column(BigInteger, nullable=False)
    status = Column(String(20), nullable=False, default="calculated", index=True,
                    comment="pending/calculated/paid_out")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_revenue_splits_instructor_status", "instructor_id", "status"),
    )


class SettlementOutboxModel(Base):
    """支付成功后第二阶段记账（报名 / 分账）失败的待重试队列"""
    __tablename__ = "settlement_outbox"

    id = Column(String(36), primary_key=True)
    order_id = Column(String(50), nullable=False, index=True)
    task = Column(String(30), nullable=False, comment="enrollment/revenue_split")
    status = Column(String(20), nullable=False, default="pending", index=True)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
