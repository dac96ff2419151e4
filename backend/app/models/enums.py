"""
User roles enumeration.

Defines the role types for the courier management system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Manages users, assigns agents, edits and deletes parcels
        DELIVERY_AGENT: Picks up and delivers parcels assigned to them
        CUSTOMER: Books parcels and follows their own bookings (default role)
    """
    ADMIN = "admin"
    DELIVERY_AGENT = "delivery_agent"
    CUSTOMER = "customer"
