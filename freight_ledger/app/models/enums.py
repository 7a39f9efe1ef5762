"""
User roles enumeration.

Defines the role types for the freight portal.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Portal staff; the earliest admin doubles as the house (supervisor) account
        CUSTOMER: Shipper placing orders against a prepaid balance (default role)
    """
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
