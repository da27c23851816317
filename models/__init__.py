# -------------------------
# Enums
# -------------------------
from .enums import (
    ApprovalStatus,
    ApprovalAction,
    UserRole,
    BankAccountType,
    BankVerificationStatus,
)

# -------------------------
# Approval records
# -------------------------
from .approval import (
    PendingApprovalRecord,
    ApprovalActionRequest,
    ApprovalDecisionRequest,
    ApprovalActionResult,
    ApprovalStatusRead,
    SideEffectReport,
)

# -------------------------
# Teen signup
# -------------------------
from .signup import (
    PendingTeenSignupCreate,
    PendingTeenSignupRead,
    ResendApprovalEmailRequest,
    EmailSendResponse,
)

# -------------------------
# Parent accounts
# -------------------------
from .parent_account import ParentAccountCreate, ParentAccountRead

# -------------------------
# Bank accounts
# -------------------------
from .bank_account import (
    BankAccountCreate,
    BankAccountRead,
    BankAccountVerifyResponse,
    MicroDepositVerifyRequest,
    OtpApprovalStatus,
)

# -------------------------
# Dashboard approvals
# -------------------------
from .stripe_account_approval import StripeAccountApprovalRead
from .parent_approval import ParentTaskApprovalRead
from .neighbor_application import NeighborApplicationRead

__all__ = [
    # enums
    "ApprovalStatus",
    "ApprovalAction",
    "UserRole",
    "BankAccountType",
    "BankVerificationStatus",

    # approvals
    "PendingApprovalRecord",
    "ApprovalActionRequest",
    "ApprovalDecisionRequest",
    "ApprovalActionResult",
    "ApprovalStatusRead",
    "SideEffectReport",

    # signup
    "PendingTeenSignupCreate",
    "PendingTeenSignupRead",
    "ResendApprovalEmailRequest",
    "EmailSendResponse",

    # parent accounts
    "ParentAccountCreate",
    "ParentAccountRead",

    # bank accounts
    "BankAccountCreate",
    "BankAccountRead",
    "BankAccountVerifyResponse",
    "MicroDepositVerifyRequest",
    "OtpApprovalStatus",

    # dashboard approvals
    "StripeAccountApprovalRead",
    "ParentTaskApprovalRead",
    "NeighborApplicationRead",
]
