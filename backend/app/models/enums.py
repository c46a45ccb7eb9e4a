"""
User roles enumeration.

Defines the role types for the print token office.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Office administrator; manages operators and edits/deletes tokens
        OPERATOR: Issues print tokens at the gate (default role)
    """
    ADMIN = "ADMIN"
    OPERATOR = "OPERATOR"
