"""
Balance Transaction database model.

Immutable dual-ledger records. Every financial event writes a customer
row and a paired supervisor (house account) row.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, DateTime, Enum, Numeric, JSON, Text,
    CheckConstraint, Index, event, text
)
from sqlalchemy.sql import func
from freight_ledger.app.db.session import Base
from freight_ledger.app.core.exceptions import LedgerImmutableError
from freight_ledger.app.models.ledger_enums import TransactionType, TransactionStatus, enum_values

_REFUND_ONLY = "transaction_type = 'refund'"


class BalanceTransaction(Base):
    """
    Balance Transaction model.

    Sign convention: negative amounts are debits, positive amounts are
    credits or refunds. ``amount`` and ``base_amount`` always share a sign.
    NO updates or deletions allowed; corrections are new entries.
    """
    __tablename__ = "balance_transactions"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    transaction_id = Column(String(100), unique=True, nullable=False, index=True)

    # Ownership and linkage
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey('orders.id'), nullable=True, index=True)

    # Snapshot at write time, never recomputed
    order_number = Column(String(100), nullable=True)
    order_account = Column(String(50), nullable=True)
    company_name = Column(String(255), nullable=True)

    # Financials
    amount = Column(Numeric(12, 2), nullable=False)
    base_amount = Column(Numeric(12, 2), nullable=False)

    transaction_type = Column(
        Enum(TransactionType, name="transaction_type", values_callable=enum_values),
        nullable=False,
        index=True
    )
    status = Column(
        Enum(TransactionStatus, name="transaction_status", values_callable=enum_values),
        default=TransactionStatus.COMPLETED,
        nullable=False
    )
    is_supervisor_transaction = Column(Boolean, default=False, nullable=False, index=True)

    description = Column(Text, nullable=True)
    meta_data = Column("metadata", JSON, nullable=True)

    # Timestamps (Immutable - no updated_at)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        CheckConstraint(
            "(amount < 0 AND base_amount < 0) OR (amount > 0 AND base_amount > 0) "
            "OR (amount = 0 AND base_amount = 0)",
            name="ck_balance_transactions_same_sign"
        ),
        CheckConstraint(
            "(transaction_type = 'debit' AND amount <= 0) OR "
            "(transaction_type IN ('credit', 'refund') AND amount >= 0)",
            name="ck_balance_transactions_type_sign"
        ),
        # One refund per (order, account, ledger side); backs the idempotence check against concurrent writers
        Index(
            "uq_balance_transactions_refund_order_user",
            "order_id", "user_id", "is_supervisor_transaction",
            unique=True,
            postgresql_where=text(_REFUND_ONLY),
            sqlite_where=text(_REFUND_ONLY),
        ),
    )

    def __repr__(self):
        return (
            f"<BalanceTransaction(id={self.id}, transaction_id='{self.transaction_id}', "
            f"type='{self.transaction_type.value}', amount={self.amount})>"
        )


@event.listens_for(BalanceTransaction, "before_update")
def _block_update(mapper, connection, target):
    raise LedgerImmutableError(target.transaction_id)


@event.listens_for(BalanceTransaction, "before_delete")
def _block_delete(mapper, connection, target):
    raise LedgerImmutableError(target.transaction_id)
