"""create_settlement_tables

Revision ID: 3c1f8a2b9d04
Revises:
Create Date: 2026-03-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3c1f8a2b9d04'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(*, updated: bool = True) -> list:
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False))
    return cols


def upgrade() -> None:
    # 外部系统维护的资料表（本服务只读 / 只改 role）
    op.create_table(
        'courses',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price', sa.BigInteger(), nullable=False, server_default='0', comment='课程价格（IDR）'),
        sa.Column('instructor_id', sa.String(length=36), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_courses_instructor_id', 'courses', ['instructor_id'])

    op.create_table(
        'profiles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False, server_default='student',
                  comment='student/instructor/admin/super_admin'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'])
    op.create_index('ix_profiles_role', 'profiles', ['role'])

    op.create_table(
        'instructor_payment_settings',
        sa.Column('instructor_id', sa.String(length=36), nullable=False),
        sa.Column('midtrans_client_key', sa.String(length=255), nullable=True),
        sa.Column('midtrans_server_key', sa.String(length=255), nullable=True),
        sa.Column('is_production', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('instructor_id'),
    )

    op.create_table(
        'platform_settings',
        sa.Column('setting_key', sa.String(length=100), nullable=False),
        sa.Column('setting_value', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('setting_key'),
    )

    op.create_table(
        'payments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('order_id', sa.String(length=50), nullable=False, comment='订单ID'),
        sa.Column('user_id', sa.String(length=36), nullable=False, comment='购买者ID'),
        sa.Column('course_id', sa.String(length=36), nullable=False, comment='课程ID'),
        sa.Column('instructor_id', sa.String(length=36), nullable=True, comment='讲师ID'),
        sa.Column('amount', sa.BigInteger(), nullable=False, comment='支付金额'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending',
                  comment='支付状态: pending/paid/failed/expired'),
        sa.Column('gateway_transaction_id', sa.String(length=100), nullable=True, comment='网关交易ID'),
        sa.Column('payment_method', sa.String(length=50), nullable=True, comment='支付方式'),
        sa.Column('split_payment_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('platform_fee', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('instructor_share', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('platform_fee_percentage', sa.Numeric(5, 2), nullable=False, server_default='0'),
        *_timestamps(),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payments_order_id', 'payments', ['order_id'], unique=True)
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_course_id', 'payments', ['course_id'])
    op.create_index('ix_payments_instructor_id', 'payments', ['instructor_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_gateway_transaction_id', 'payments', ['gateway_transaction_id'])
    op.create_index('ix_payments_user_status', 'payments', ['user_id', 'status'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])

    op.create_table(
        'course_enrollments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('course_id', sa.String(length=36), nullable=False),
        sa.Column('payment_id', sa.String(length=36), nullable=True),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'course_id', name='uq_course_enrollments_user_course'),
    )
    op.create_index('ix_course_enrollments_user_id', 'course_enrollments', ['user_id'])
    op.create_index('ix_course_enrollments_course_id', 'course_enrollments', ['course_id'])

    op.create_table(
        'revenue_splits',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('payment_id', sa.String(length=36), nullable=False, comment='每笔支付最多一条分账记录'),
        sa.Column('instructor_id', sa.String(length=36), nullable=False),
        sa.Column('course_id', sa.String(length=36), nullable=False),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column('platform_fee_percentage', sa.Numeric(5, 2), nullable=False),
        sa.Column('platform_fee_amount', sa.BigInteger(), nullable=False),
        sa.Column('instructor_share', sa.BigInteger(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='calculated',
                  comment='pending/calculated/paid_out'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_id'),
    )
    op.create_index('ix_revenue_splits_instructor_id', 'revenue_splits', ['instructor_id'])
    op.create_index('ix_revenue_splits_course_id', 'revenue_splits', ['course_id'])
    op.create_index('ix_revenue_splits_status', 'revenue_splits', ['status'])
    op.create_index('ix_revenue_splits_created_at', 'revenue_splits', ['created_at'])
    op.create_index('ix_revenue_splits_instructor_status', 'revenue_splits', ['instructor_id', 'status'])

    op.create_table(
        'settlement_outbox',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('order_id', sa.String(length=50), nullable=False),
        sa.Column('task', sa.String(length=30), nullable=False, comment='enrollment/revenue_split'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_settlement_outbox_order_id', 'settlement_outbox', ['order_id'])
    op.create_index('ix_settlement_outbox_status', 'settlement_outbox', ['status'])

    op.create_table(
        'payout_batches',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('instructor_id', sa.String(length=36), nullable=False),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column('transaction_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payout_method', sa.String(length=30), nullable=False, server_default='manual_transfer',
                  comment='manual_transfer/bank_api/digital_wallet'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending',
                  comment='pending/processing/completed/failed/cancelled'),
        sa.Column('scheduled_date', sa.Date(), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('batch_reference', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payout_batches_instructor_id', 'payout_batches', ['instructor_id'])
    op.create_index('ix_payout_batches_status', 'payout_batches', ['status'])
    op.create_index('ix_payout_batches_batch_reference', 'payout_batches', ['batch_reference'])
    op.create_index('ix_payout_batches_created_at', 'payout_batches', ['created_at'])
    op.create_index('ix_payout_batches_instructor_status', 'payout_batches', ['instructor_id', 'status'])

    op.create_table(
        'instructor_bank_accounts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('instructor_id', sa.String(length=36), nullable=False),
        sa.Column('bank_name', sa.String(length=100), nullable=False),
        sa.Column('account_number', sa.String(length=50), nullable=False),
        sa.Column('account_holder_name', sa.String(length=255), nullable=False),
        sa.Column('bank_code', sa.String(length=20), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('instructor_id'),
    )


def downgrade() -> None:
    op.drop_table('instructor_bank_accounts')
    op.drop_table('payout_batches')
    op.drop_table('settlement_outbox')
    op.drop_table('revenue_splits')
    op.drop_table('course_enrollments')
    op.drop_table('payments')
    op.drop_table('platform_settings')
    op.drop_table('instructor_payment_settings')
    op.drop_table('profiles')
    op.drop_table('courses')
