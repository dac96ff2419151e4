"""
Parcel enumerations: status, size, type and payment method.
"""

import enum


class ParcelStatus(str, enum.Enum):
    """
    Parcel status enumeration.

    Status flow:
        PENDING -> PICKED_UP -> IN_TRANSIT -> DELIVERED
        Any non-terminal status can move to FAILED
        FAILED can be re-opened to PENDING
    """
    PENDING = "pending"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    FAILED = "failed"


class ParcelSize(str, enum.Enum):
    SMALL = "small"  # up to 1kg
    MEDIUM = "medium"  # 1-5kg
    LARGE = "large"  # 5-15kg
    EXTRA_LARGE = "extra_large"  # 15kg+


class ParcelType(str, enum.Enum):
    DOCUMENT = "document"
    PACKAGE = "package"
    FRAGILE = "fragile"
    ELECTRONICS = "electronics"
    FOOD = "food"
    OTHER = "other"


class PaymentMethod(str, enum.Enum):
    COD = "cod"  # Cash on Delivery
    PREPAID = "prepaid"
