from enum import Enum


class FeeStatus(str, Enum):
    unpaid = "unpaid"
    paid = "paid"


class FeeType(str, Enum):
    MONTHLY = "monthly"
    OCCASIONAL = "occasional"


class StaffRole(str, Enum):
    PRINCIPAL = "PRINCIPAL"
    SPECIAL_TEACHER = "SPECIAL_TEACHER"
    TEACHER = "TEACHER"


class NotificationAudience(str, Enum):
    STAFF = "STAFF"
    STUDENT = "STUDENT"


class NotificationEvent(str, Enum):
    FEE_PUBLISHED = "fee_published"
    NEW_FEE = "new_fee"
    FEE_PAYMENT_UPDATE = "fee_payment_update"
    SETTLEMENT_RECEIPT = "settlement_receipt"
