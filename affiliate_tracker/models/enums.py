import enum


class CommissionType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class AffiliateStatus(str, enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"


class ConversionStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DecisionAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


class PayoutStatus(str, enum.Enum):
    REQUESTED = "requested"
    PAID = "paid"
