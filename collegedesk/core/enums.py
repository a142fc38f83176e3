from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    STUDENT = "student"


class FeeTransactionKind(str, Enum):
    CHARGE = "charge"
    PAYMENT = "payment"


class FeePaymentStatus(str, Enum):
    PAID = "Paid"
    PARTIAL = "Partial"
    UNPAID = "Unpaid"


class FeeSortKey(str, Enum):
    DUE = "due"
    STATUS = "status"
