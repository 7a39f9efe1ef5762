"""
Transaction identifier generation.

IDs are human-auditable and collision-resistant without consulting the
database: ``{PREFIX}-{order reference}-{UTC microsecond timestamp}-{random hex}``.
"""

import re
import secrets
from datetime import datetime, timezone
from typing import Optional


class TransactionPrefix:
    """Context prefixes for transaction identifiers."""
    ORDER = "ORDER"
    ORDER_SUPERVISOR = "ORDER-SUP"
    REFUND = "REFUND"
    REFUND_SUPERVISOR = "REFUND-SUP"
    CREDIT = "CREDIT"
    CREDIT_SUPERVISOR = "CREDIT-SUP"
    ADJUSTMENT = "ADJ"
    ADJUSTMENT_SUPERVISOR = "ADJ-SUP"


_UNSAFE = re.compile(r"[^A-Za-z0-9]+")


def _reference_token(reference: Optional[str]) -> str:
    if not reference:
        return "NA"
    token = _UNSAFE.sub("", str(reference)).upper()
    return token[:40] or "NA"


def generate_transaction_id(prefix: str, reference: Optional[str] = None) -> str:
    """
    Build a new transaction identifier.

    Args:
        prefix: One of the TransactionPrefix values
        reference: Order number (or other reference) embedded for auditability

    Returns:
        Identifier such as ``ORDER-FL1024-20260101T120000123456-9f2c4e1a``
    """
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
    return f"{prefix}-{_reference_token(reference)}-{stamp}-{secrets.token_hex(4)}"
