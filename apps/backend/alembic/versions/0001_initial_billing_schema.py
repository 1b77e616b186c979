"""
Initial billing schema: ledger entries, installment plans, recurring templates, bill payments

Revision ID: 0001_initial
Revises:
Create Date: 2024-03-01 09:00:00
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


MONEY = sa.Numeric(18, 4)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
    ]


def upgrade() -> None:
    # On SQLite these become CHECK-constrained VARCHARs
    txn_type = sa.Enum('INCOME', 'EXPENSE', 'TRANSFER', name='txn_type')
    entry_kind = sa.Enum('REGULAR', 'BILL_PAYMENT', 'BILL_CARRYOVER', 'FINANCING', name='entry_kind')
    bill_payment_type = sa.Enum('PARTIAL', 'FINANCED', name='bill_payment_type')

    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
    )

    op.create_table(
        'category',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('color', sa.String(length=9), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'name', name='uq_category_name'),
    )

    op.create_table(
        'categoryrule',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('keyword', sa.String(length=120), nullable=False),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('category.id', ondelete='CASCADE'), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'keyword', name='uq_category_rule_keyword'),
    )

    op.create_table(
        'installment',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('description', sa.String(length=200), nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('total_installments', sa.Integer(), nullable=False),
        sa.Column('installment_amount', MONEY, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('origin', sa.String(length=120), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('total_installments >= 1', name='ck_installment_count_positive'),
    )

    op.create_table(
        'recurringexpense',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('description', sa.String(length=200), nullable=False),
        sa.Column('default_amount', MONEY, nullable=False),
        sa.Column('day_of_month', sa.Integer(), nullable=False),
        sa.Column('type', txn_type, nullable=False),
        sa.Column('origin', sa.String(length=120), nullable=False),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('category.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('auto_generate', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        *_timestamps(),
    )

    op.create_table(
        'transaction',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('description', sa.String(length=300), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('occurred_at', sa.Date(), nullable=False),
        sa.Column('type', txn_type, nullable=False),
        sa.Column('kind', entry_kind, nullable=False, server_default='REGULAR'),
        sa.Column('category_id', sa.Integer(), sa.ForeignKey('category.id', ondelete='SET NULL'), nullable=True),
        sa.Column('origin', sa.String(length=120), nullable=False),
        sa.Column('is_fixed', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_installment', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('current_installment', sa.Integer(), nullable=True),
        sa.Column('total_installments', sa.Integer(), nullable=True),
        sa.Column('installment_id', sa.Integer(), sa.ForeignKey('installment.id', ondelete='SET NULL'), nullable=True),
        sa.Column('recurring_expense_id', sa.Integer(), sa.ForeignKey('recurringexpense.id', ondelete='SET NULL'), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            'current_installment IS NULL OR current_installment >= 1',
            name='ck_txn_installment_positive',
        ),
    )
    op.create_index('ix_txn_user_date', 'transaction', ['user_id', 'occurred_at'])
    op.create_index('ix_txn_installment_id', 'transaction', ['installment_id'])
    op.create_index('ix_txn_deleted_at', 'transaction', ['deleted_at'])

    op.create_table(
        'billpayment',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('origin', sa.String(length=120), nullable=False),
        sa.Column('bill_month', sa.Integer(), nullable=False),
        sa.Column('bill_year', sa.Integer(), nullable=False),
        sa.Column('total_bill_amount', MONEY, nullable=False),
        sa.Column('amount_paid', MONEY, nullable=False),
        sa.Column('amount_carried', MONEY, nullable=False),
        sa.Column('payment_type', bill_payment_type, nullable=False),
        sa.Column('interest_rate', sa.Numeric(9, 4), nullable=True),
        sa.Column('interest_amount', MONEY, nullable=True),
        sa.Column('installment_id', sa.Integer(), sa.ForeignKey('installment.id', ondelete='SET NULL'), nullable=True),
        sa.Column('entry_transaction_id', sa.Integer(), sa.ForeignKey('transaction.id', ondelete='SET NULL'), nullable=True),
        sa.Column('carryover_transaction_id', sa.Integer(), sa.ForeignKey('transaction.id', ondelete='SET NULL'), nullable=True),
        sa.Column('linked_transaction_id', sa.Integer(), sa.ForeignKey('transaction.id', ondelete='SET NULL'), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'origin', 'bill_month', 'bill_year', name='uq_bill_payment_period'),
        sa.UniqueConstraint('linked_transaction_id', name='uq_bill_payment_linked_transaction_id'),
        sa.CheckConstraint('bill_month BETWEEN 1 AND 12', name='ck_bill_payment_month'),
        sa.CheckConstraint('amount_paid < total_bill_amount', name='ck_bill_payment_partial'),
        sa.CheckConstraint('amount_carried >= 0', name='ck_bill_payment_carried_non_negative'),
    )
    op.create_index('ix_bill_payment_user_period', 'billpayment', ['user_id', 'bill_year', 'bill_month'])


def downgrade() -> None:
    op.drop_index('ix_bill_payment_user_period', table_name='billpayment')
    op.drop_table('billpayment')
    op.drop_index('ix_txn_deleted_at', table_name='transaction')
    op.drop_index('ix_txn_installment_id', table_name='transaction')
    op.drop_index('ix_txn_user_date', table_name='transaction')
    op.drop_table('transaction')
    op.drop_table('recurringexpense')
    op.drop_table('installment')
    op.drop_table('categoryrule')
    op.drop_table('category')
    op.drop_table('user')
    bind = op.get_bind()
    for name in ('bill_payment_type', 'entry_kind', 'txn_type'):
        sa.Enum(name=name).drop(bind, checkfirst=True)
