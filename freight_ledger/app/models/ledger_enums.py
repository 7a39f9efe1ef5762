"""
Ledger enumerations.

Values are lowercase because they are part of the persisted entry shape.
"""

import enum


class TransactionType(str, enum.Enum):
    """Ledger entry type enumeration."""
    DEBIT = "debit"  # Funds leaving the balance
    CREDIT = "credit"  # Funds entering the balance (top-ups, adjustments)
    REFUND = "refund"  # Reversal of an order debit


class TransactionStatus(str, enum.Enum):
    """Entries are write-once, so only one status is produced."""
    COMPLETED = "completed"


class TopUpStatus(str, enum.Enum):
    """Top-up request review status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def enum_values(enum_cls):
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]
