"""create_marketplace_ledger_tables

Revision ID: 5b1e3c9a7d21
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Optional, Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '5b1e3c9a7d21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money() -> sa.Numeric:
    return sa.Numeric(precision=18, scale=4, asdecimal=True)


def _ts(name: str, nullable: bool = False, comment: Optional[str] = None) -> sa.Column:
    kwargs = {"server_default": sa.text('CURRENT_TIMESTAMP')} if not nullable else {}
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, comment=comment, **kwargs)


def upgrade() -> None:
    # 课程目录（只读，由课程服务维护）
    op.create_table(
        'teacher_profiles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='用户ID'),
        sa.Column('commission_rate', _money(), nullable=True, comment='平台佣金费率（百分比），为空则使用平台默认'),
        sa.Column('total_students', sa.Integer(), nullable=False, server_default='0', comment='累计学生数'),
        sa.Column('total_earnings', _money(), nullable=False, server_default='0', comment='累计收益'),
        _ts('created_at', comment='创建时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_teacher_profiles_user_id', 'teacher_profiles', ['user_id'], unique=True)

    op.create_table(
        'courses',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('teacher_profile_id', sa.Integer(), nullable=False, comment='教师档案ID'),
        sa.Column('title', sa.String(length=200), nullable=False, comment='课程标题'),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.false(), comment='是否已发布'),
        _ts('created_at', comment='创建时间'),
        sa.ForeignKeyConstraint(['teacher_profile_id'], ['teacher_profiles.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_courses_teacher_profile_id', 'courses', ['teacher_profile_id'])

    op.create_table(
        'lesson_packages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('course_id', sa.Integer(), nullable=False, comment='课程ID'),
        sa.Column('name', sa.String(length=200), nullable=False, comment='课程包名称'),
        sa.Column('price', _money(), nullable=False, comment='原价'),
        sa.Column('discount', _money(), nullable=False, server_default='0', comment='优惠'),
        sa.Column('final_price', _money(), nullable=False, comment='成交价'),
        sa.Column('duration_days', sa.Integer(), nullable=True, comment='有效天数，为空表示永久'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), comment='是否在售'),
        _ts('created_at', comment='创建时间'),
        sa.ForeignKeyConstraint(['course_id'], ['courses.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_lesson_packages_course_id', 'lesson_packages', ['course_id'])

    # 购物车与订单
    op.create_table(
        'cart_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='用户ID'),
        sa.Column('package_id', sa.Integer(), nullable=False, comment='课程包ID'),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1', comment='数量'),
        _ts('added_at', comment='加入时间'),
        sa.ForeignKeyConstraint(['package_id'], ['lesson_packages.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'package_id', name='uq_cart_items_user_package'),
    )
    op.create_index('ix_cart_items_user_id', 'cart_items', ['user_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_no', sa.String(length=64), nullable=False, comment='订单号'),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='用户ID'),
        sa.Column('total_amount', _money(), nullable=False, comment='订单总额'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING', comment='订单状态'),
        _ts('paid_at', nullable=True, comment='支付时间'),
        _ts('canceled_at', nullable=True, comment='取消时间'),
        sa.Column('cancel_reason', sa.Text(), nullable=True, comment='取消原因'),
        _ts('refunded_at', nullable=True, comment='退款时间'),
        sa.Column('refund_amount', _money(), nullable=True, comment='退款金额'),
        _ts('created_at', comment='创建时间'),
        _ts('updated_at', comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_order_no', 'orders', ['order_no'], unique=True)
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False, comment='订单ID'),
        sa.Column('package_id', sa.Integer(), nullable=False, comment='课程包ID'),
        sa.Column('price', _money(), nullable=False, comment='原价快照'),
        sa.Column('discount', _money(), nullable=False, server_default='0', comment='优惠快照'),
        sa.Column('final_price', _money(), nullable=False, comment='成交价快照'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['package_id'], ['lesson_packages.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_package_id', 'order_items', ['package_id'])

    # 支付与报名
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='用户ID'),
        sa.Column('package_id', sa.Integer(), nullable=True, comment='课程包ID'),
        sa.Column('order_id', sa.Integer(), nullable=True, comment='订单ID'),
        sa.Column('amount', _money(), nullable=False, comment='支付金额'),
        sa.Column('platform_commission', _money(), nullable=False, server_default='0', comment='平台佣金'),
        sa.Column('teacher_earning', _money(), nullable=False, server_default='0', comment='教师收益'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD', comment='货币代码 ISO-4217'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING', comment='支付状态'),
        sa.Column('provider_ref', sa.String(length=200), nullable=True, comment='网关收款凭证ID'),
        sa.Column('client_secret', sa.String(length=500), nullable=True, comment='前端调用凭证'),
        _ts('paid_at', nullable=True, comment='支付完成时间'),
        _ts('created_at', comment='创建时间'),
        _ts('updated_at', comment='更新时间'),
        sa.CheckConstraint('(package_id IS NULL) OR (order_id IS NULL)', name='ck_payments_single_scope'),
        sa.ForeignKeyConstraint(['package_id'], ['lesson_packages.id']),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payments_user_id', 'payments', ['user_id'])
    op.create_index('ix_payments_package_id', 'payments', ['package_id'])
    op.create_index('ix_payments_order_id', 'payments', ['order_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_provider_ref', 'payments', ['provider_ref'])
    op.create_index('ix_payments_paid_at', 'payments', ['paid_at'])
    op.create_index('ix_payments_created_at', 'payments', ['created_at'])

    op.create_table(
        'enrollments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='用户ID'),
        sa.Column('package_id', sa.Integer(), nullable=False, comment='课程包ID'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true(), comment='是否有效'),
        _ts('expires_at', nullable=True, comment='到期时间'),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0', comment='学习进度'),
        sa.Column('completed_lessons', sa.Integer(), nullable=False, server_default='0', comment='已完成课时'),
        _ts('enrolled_at', comment='报名时间'),
        sa.ForeignKeyConstraint(['package_id'], ['lesson_packages.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'package_id', name='uq_enrollments_user_package'),
    )
    op.create_index('ix_enrollments_user_id', 'enrollments', ['user_id'])
    op.create_index('ix_enrollments_package_id', 'enrollments', ['package_id'])

    # 钱包、流水与账本意图
    op.create_table(
        'wallets',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False, comment='钱包所有者（教师用户ID）'),
        sa.Column('available_balance', _money(), nullable=False, server_default='0', comment='可用余额'),
        sa.Column('pending_payout', _money(), nullable=False, server_default='0', comment='待提现金额'),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD', comment='货币代码'),
        _ts('created_at', comment='创建时间'),
        _ts('updated_at', comment='更新时间'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_wallets_owner_id', 'wallets', ['owner_id'], unique=True)

    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('wallet_id', sa.Integer(), nullable=False, comment='钱包ID'),
        sa.Column('amount', _money(), nullable=False, comment='金额（正数）'),
        sa.Column('type', sa.String(length=10), nullable=False, comment='CREDIT/DEBIT'),
        sa.Column('source', sa.String(length=30), nullable=False, comment='流水来源'),
        sa.Column('reference_id', sa.String(length=120), nullable=True, comment='业务引用ID（去重键）'),
        sa.Column('metadata', sa.JSON(), nullable=False, comment='附加信息'),
        _ts('created_at', comment='创建时间'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('wallet_id', 'reference_id', name='uq_wallet_transactions_reference'),
    )
    op.create_index('ix_wallet_transactions_wallet_id', 'wallet_transactions', ['wallet_id'])
    op.create_index('ix_wallet_transactions_type', 'wallet_transactions', ['type'])
    op.create_index('ix_wallet_transactions_source', 'wallet_transactions', ['source'])
    op.create_index('ix_wallet_transactions_created_at', 'wallet_transactions', ['created_at'])

    op.create_table(
        'wallet_outbox',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False, comment='钱包所有者'),
        sa.Column('direction', sa.String(length=10), nullable=False, comment='CREDIT/DEBIT'),
        sa.Column('source', sa.String(length=30), nullable=False, comment='流水来源'),
        sa.Column('amount', _money(), nullable=False, comment='金额'),
        sa.Column('reference_id', sa.String(length=120), nullable=False, comment='引用ID（全局唯一）'),
        sa.Column('metadata', sa.JSON(), nullable=False, comment='附加信息'),
        sa.Column('status', sa.String(length=10), nullable=False, server_default='PENDING', comment='PENDING/DONE/FAILED'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0', comment='已尝试次数'),
        sa.Column('last_error', sa.Text(), nullable=True, comment='最近一次错误'),
        _ts('created_at', comment='创建时间'),
        _ts('processed_at', nullable=True, comment='过账时间'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('reference_id', name='uq_wallet_outbox_reference'),
    )
    op.create_index('ix_wallet_outbox_owner_id', 'wallet_outbox', ['owner_id'])
    op.create_index('ix_wallet_outbox_status', 'wallet_outbox', ['status'])

    # 退款
    op.create_table(
        'refunds',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False, comment='订单ID'),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='申请人'),
        sa.Column('amount', _money(), nullable=False, comment='退款金额'),
        sa.Column('reason', sa.Text(), nullable=False, comment='退款原因'),
        sa.Column('reason_category', sa.String(length=50), nullable=True, comment='原因分类'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING', comment='退款状态'),
        sa.Column('refund_method', sa.String(length=30), nullable=False, server_default='ORIGINAL_PAYMENT', comment='退款方式'),
        sa.Column('bank_details', sa.JSON(), nullable=True, comment='银行转账信息'),
        sa.Column('notes', sa.Text(), nullable=True, comment='管理员备注'),
        sa.Column('provider_refund_id', sa.String(length=200), nullable=True, comment='网关退款ID'),
        _ts('processed_at', nullable=True, comment='审核时间'),
        _ts('completed_at', nullable=True, comment='完成时间'),
        _ts('created_at', comment='创建时间'),
        _ts('updated_at', comment='更新时间'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_refunds_order_id', 'refunds', ['order_id'])
    op.create_index('ix_refunds_user_id', 'refunds', ['user_id'])
    op.create_index('ix_refunds_status', 'refunds', ['status'])
    op.create_index('ix_refunds_created_at', 'refunds', ['created_at'])


def downgrade() -> None:
    for table in (
        'refunds',
        'wallet_outbox',
        'wallet_transactions',
        'wallets',
        'enrollments',
        'payments',
        'order_items',
        'orders',
        'cart_items',
        'lesson_packages',
        'courses',
        'teacher_profiles',
    ):
        op.drop_table(table)
