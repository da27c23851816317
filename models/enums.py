from enum import Enum


class BaseStrEnum(str, Enum):
    """
    Base enum that serializes cleanly to a string
    and provides a .list() method for UI dropdowns.
    """

    def __str__(self):
        return str(self.value)

    @classmethod
    def list(cls):
        return [item.value for item in cls]


# -----------------------------------------------------
# APPROVAL STATUS
# -----------------------------------------------------
class ApprovalStatus(BaseStrEnum):
    """
    Lifecycle of a pending approval record.
    Only `pending` is non-terminal; `blocked` is used by the SMS code
    variant once the attempt budget is spent.
    """

    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    expired = "expired"
    blocked = "blocked"

    @property
    def is_terminal(self) -> bool:
        return self is not ApprovalStatus.pending


# -----------------------------------------------------
# APPROVAL ACTION
# -----------------------------------------------------
class ApprovalAction(BaseStrEnum):
    approve = "approve"
    reject = "reject"

    @property
    def outcome(self) -> ApprovalStatus:
        return ApprovalStatus.approved if self is ApprovalAction.approve else ApprovalStatus.rejected


# -----------------------------------------------------
# USER ROLE
# -----------------------------------------------------
class UserRole(BaseStrEnum):
    teen = "teen"
    parent = "parent"
    neighbor = "neighbor"
    admin = "admin"


# -----------------------------------------------------
# BANK ACCOUNT
# -----------------------------------------------------
class BankAccountType(BaseStrEnum):
    checking = "checking"
    savings = "savings"


class BankVerificationStatus(BaseStrEnum):
    """Micro-deposit verification state of a stored bank account."""

    pending = "pending"
    verified = "verified"
    failed = "failed"
