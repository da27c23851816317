# services/approval_actions.py

"""
Server side of an approval decision.

    handler = ApprovalActionHandler(store, on_approve=[...])
    result = handler.handle(token, ApprovalAction.approve)   # emailed link
    result = handler.decide(record, ApprovalAction.reject)   # dashboard, record already authorized

The status write happens first and is authoritative. Follow-up work
(provisioning, confirmation email) runs afterwards, each step bounded by
a timeout; its outcome is reported next to the status but never changes
it.
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, Optional, Sequence, Tuple

from core.config import settings
from core.errors import (
    ConflictError,
    ExpiredError,
    NotFoundError,
    SideEffectTimeoutError,
)
from core.logging_config import logger
from models.approval import (
    ApprovalActionResult,
    PendingApprovalRecord,
    SideEffectReport,
)
from models.enums import ApprovalAction, ApprovalStatus
from services.approval_store import ApprovalStore, stamp


# A side effect gets the updated record and returns extra data for the report
SideEffect = Tuple[str, Callable[[PendingApprovalRecord], Optional[dict]]]

_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="approval-side-effect")


class ApprovalActionHandler:
    def __init__(
        self,
        store: ApprovalStore,
        on_approve: Sequence[SideEffect] = (),
        on_reject: Sequence[SideEffect] = (),
        timeout: Optional[float] = None,
        summarize: Optional[Callable[[PendingApprovalRecord], dict]] = None,
    ):
        self.store = store
        self.on_approve = list(on_approve)
        self.on_reject = list(on_reject)
        self.timeout = timeout if timeout is not None else settings.APPROVAL_SIDE_EFFECT_TIMEOUT_SECONDS
        self.summarize = summarize or _signup_summary

    # -------------------------------------------------
    # Entry points
    # -------------------------------------------------
    def handle(self, token: str, action: ApprovalAction, reason: Optional[str] = None) -> ApprovalActionResult:
        record = self.store.fetch_by_token(token)
        if record is None:
            raise NotFoundError("Invalid or expired approval link")
        return self.decide(record, action, reason)

    def decide(self, record: PendingApprovalRecord, action: ApprovalAction, reason: Optional[str] = None) -> ApprovalActionResult:
        """Apply `action` to a record the caller already located and authorized."""
        outcome = action.outcome

        if record.status != ApprovalStatus.pending:
            return self._already_decided(record, outcome)

        updated = self.store.transition(record, outcome, self._decision_data(outcome, reason))
        if updated is None:
            # Another actor moved it first; answer with whatever they decided
            winner = self.store.fetch_by_id(record.id)
            if winner is None or winner.status == ApprovalStatus.pending:
                raise ConflictError("This request is being processed, please try again")
            return self._already_decided(winner, outcome)

        logger.info(f"{self.store.table.name}/{updated.id} {outcome}")

        effects = self.on_approve if outcome == ApprovalStatus.approved else self.on_reject
        reports = self.run_side_effects(updated, effects)

        result = self._result(updated, side_effects=reports)
        if any(r.timed_out for r in reports):
            raise SideEffectTimeoutError({
                "message": "Your decision was saved, but follow-up steps are still running.",
                **result.model_dump(mode="json"),
            })
        return result

    def _decision_data(self, outcome: ApprovalStatus, reason: Optional[str]) -> dict:
        table = self.store.table
        data = {}
        if outcome == ApprovalStatus.rejected:
            data[table.reason_column] = reason
        if table.decision_timestamps:
            data["approved_at" if outcome == ApprovalStatus.approved else "rejected_at"] = stamp()
        return data

    # -------------------------------------------------
    # Terminal records
    # -------------------------------------------------
    def _already_decided(self, record: PendingApprovalRecord, outcome: ApprovalStatus) -> ApprovalActionResult:
        if record.status == ApprovalStatus.expired:
            raise ExpiredError("This approval link has expired. Ask your teen to send a new request.")

        if record.status == outcome:
            logger.info(f"{self.store.table.name}/{record.id} already {outcome}, nothing to do")
            return self._result(record, already_processed=True)

        raise ConflictError(f"This request has already been {record.status}")

    # -------------------------------------------------
    # Side effects
    # -------------------------------------------------
    def run_side_effects(self, record: PendingApprovalRecord, effects: Sequence[SideEffect]) -> list[SideEffectReport]:
        reports = []
        for name, func in effects:
            future = _executor.submit(func, record)
            try:
                data = future.result(timeout=self.timeout)
                reports.append(SideEffectReport(name=name, success=True, data=data or {}))
            except FutureTimeout:
                logger.error(f"Side effect '{name}' for {record.id} timed out after {self.timeout}s")
                reports.append(SideEffectReport(name=name, success=False, timed_out=True, error="timed out"))
            except Exception as e:
                logger.error(f"Side effect '{name}' for {record.id} failed: {e}")
                reports.append(SideEffectReport(name=name, success=False, error=_public_error(e)))
        return reports

    def _result(self, record: PendingApprovalRecord, **kwargs) -> ApprovalActionResult:
        return ApprovalActionResult(
            status=record.status,
            record_id=record.id,
            **self.summarize(record),
            **kwargs,
        )


def _signup_summary(record: PendingApprovalRecord) -> dict:
    return {"full_name": record.payload.get("full_name"), "parent_email": record.owner_contact}


def _public_error(error: Exception) -> str:
    detail = getattr(error, "detail", None)
    if isinstance(detail, str):
        return detail
    return "failed"
