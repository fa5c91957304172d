"""add_payout_tables

Revision ID: 8c4d2f6e1a93
Revises: 5b1e3c9a7d21
Create Date: 2026-10-20 10:00:00.000000

"""
from typing import Optional, Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '8c4d2f6e1a93'
down_revision: Union[str, None] = '5b1e3c9a7d21'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, nullable: bool = False, comment: Optional[str] = None) -> sa.Column:
    kwargs = {"server_default": sa.text('CURRENT_TIMESTAMP')} if not nullable else {}
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, comment=comment, **kwargs)


def upgrade() -> None:
    # 收款方式
    op.create_table(
        'payout_methods',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('wallet_id', sa.Integer(), nullable=False, comment='钱包ID'),
        sa.Column('type', sa.String(length=30), nullable=False, comment='收款方式类型'),
        sa.Column('label', sa.String(length=100), nullable=False, comment='显示名称'),
        sa.Column('details', sa.JSON(), nullable=False, comment='收款账户信息'),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.false(), comment='是否默认'),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false(), comment='是否已核验'),
        _ts('created_at', comment='创建时间'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payout_methods_wallet_id', 'payout_methods', ['wallet_id'])

    # 提现申请
    op.create_table(
        'payout_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('wallet_id', sa.Integer(), nullable=False, comment='钱包ID'),
        sa.Column('method_id', sa.Integer(), nullable=True, comment='收款方式ID'),
        sa.Column('amount', sa.Numeric(precision=18, scale=4, asdecimal=True), nullable=False, comment='提现金额'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING', comment='提现状态'),
        sa.Column('note', sa.Text(), nullable=True, comment='申请备注'),
        sa.Column('admin_note', sa.Text(), nullable=True, comment='管理员备注'),
        sa.Column('external_reference', sa.String(length=200), nullable=True, comment='打款流水号'),
        _ts('requested_at', comment='申请时间'),
        _ts('processed_at', nullable=True, comment='打款时间'),
        sa.ForeignKeyConstraint(['wallet_id'], ['wallets.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['method_id'], ['payout_methods.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_payout_requests_wallet_id_status', 'payout_requests', ['wallet_id', 'status'])
    op.create_index('ix_payout_requests_status', 'payout_requests', ['status'])
    op.create_index('ix_payout_requests_requested_at', 'payout_requests', ['requested_at'])


def downgrade() -> None:
    op.drop_table('payout_requests')
    op.drop_table('payout_methods')
