# core/errors.py

from typing import Any, Optional

from fastapi import HTTPException


# ============================================================
# Workflow errors
# ============================================================
# Raised by services; main.py renders them as {"detail": ...}
# with the status code carried on the class.
# ============================================================

class ApprovalError(Exception):
    status_code = 500
    default_detail = "Approval workflow error"

    def __init__(self, detail: Any = None, *, headers: Optional[dict] = None):
        self.detail = detail if detail is not None else self.default_detail
        self.headers = headers
        super().__init__(detail if isinstance(detail, str) else self.default_detail)


class ValidationError(ApprovalError):
    """Malformed input, caught before any external call."""
    status_code = 400
    default_detail = "Invalid request"


class PreconditionError(ApprovalError):
    """Role mismatch, approval not yet granted, missing parent, ..."""
    status_code = 403
    default_detail = "Precondition not met"


class NotFoundError(ApprovalError):
    status_code = 404
    default_detail = "Record not found"


class ConflictError(ApprovalError):
    """Record already reached a different terminal state."""
    status_code = 409
    default_detail = "Request already processed"


class ExpiredError(ApprovalError):
    status_code = 410
    default_detail = "This link has expired"


class RateLimitedError(ApprovalError):
    status_code = 429
    default_detail = "Too many requests"

    def __init__(self, detail: Any = None, *, retry_after: Optional[int] = None):
        headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
        super().__init__(detail, headers=headers)
        self.retry_after = retry_after


class ProviderError(ApprovalError):
    """Payment / SMS / email provider unreachable or rejected the call."""
    status_code = 500
    default_detail = "Provider request failed"


class SideEffectTimeoutError(ApprovalError):
    """
    A bounded side effect did not finish in time. The status transition
    that preceded it is already recorded; `detail` says which one.
    """
    status_code = 504
    default_detail = "The request timed out; the outcome is unknown"


# ============================================================
# Supabase error helpers
# ============================================================

def extract_supabase_error(error: Exception) -> str:
    """
    Safely extract readable details from Supabase Python client errors.
    Handles:
      • PostgREST errors
      • GoTrue (Auth) errors
      • Generic Python exceptions
    """

    # Case 1 — Supabase Auth / GoTrue / PostgREST APIError
    if hasattr(error, "message"):
        try:
            return str(error.message)
        except Exception:
            pass

    # Case 2 — Supabase errors with args (common)
    if hasattr(error, "args") and error.args:
        try:
            return str(error.args[0])
        except Exception:
            pass

    # Case 3 — Plain string fallback
    try:
        return str(error)
    except Exception:
        return "Unknown Supabase error"


def supabase_error(error: Exception, message: str = "Supabase error"):
    """
    Convert Supabase / database errors into clean HTTPExceptions.
    Always raises — caller should wrap with try/except.
    """

    detail = extract_supabase_error(error)

    raise HTTPException(
        status_code=500,
        detail=f"{message}: {detail}"
    )


def handle_supabase_error(error: Exception, operation: str = "Database operation", status_code: int = 500) -> HTTPException:
    """
    Handle Supabase errors with consistent formatting.
    Returns HTTPException (doesn't raise) so caller can customize or re-raise.

    Args:
        error: The exception that occurred
        operation: Description of what operation failed (e.g., "Failed to create signup")
        status_code: HTTP status code (default 500)

    Returns:
        HTTPException with standardized error message
    """
    from core.logging_config import logger

    error_detail = extract_supabase_error(error)
    logger.error(f"{operation}: {error_detail}")

    # Provide user-friendly messages for common errors
    error_lower = error_detail.lower()
    if "duplicate" in error_lower or "unique" in error_lower:
        return HTTPException(status_code=400, detail=f"{operation}: Record already exists")
    elif "foreign key" in error_lower or "violates foreign key" in error_lower:
        return HTTPException(status_code=400, detail=f"{operation}: Invalid reference")
    elif "not found" in error_lower or "does not exist" in error_lower:
        return HTTPException(status_code=404, detail=f"{operation}: Resource not found")
    else:
        return HTTPException(status_code=status_code, detail=f"{operation} failed")
