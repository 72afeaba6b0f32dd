"""
Python enums for the claim intake domain.
Values are what the database stores and what the front end sends.
"""

from enum import Enum


class ClaimStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    INCOMPLETE = "incomplete"


class DamageSide(str, Enum):
    LEFT = "ซ้าย"
    RIGHT = "ขวา"
    FRONT = "หน้า"
    BACK = "หลัง"
    UNSPECIFIED = "ไม่ระบุ"


class Severity(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class AnnotationSource(str, Enum):
    MANUAL = "manual"
    MODEL = "model"
    LEGACY = "legacy"


class StepType(str, Enum):
    CORRECTED = "corrected"


class UserRole(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_TRANSITION = "invalid_transition"
    INTERNAL = "internal"
