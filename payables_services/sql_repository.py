"""
SQLAlchemy-backed ``PayablesRepository``.

Every call runs in its own ``session_scope`` and returns frozen domain
records, never ORM instances.  Workflow snapshots are saved with
``UPDATE ... WHERE version = :expected`` and the row count decides between
success and ``OptimisticLockError``.  Payments settle their bill through a
guarded ``UPDATE`` on the balance that was read, so two writers can never
both spend the same balance.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session, sessionmaker

from payables_kernel.db.engine import session_scope
from payables_kernel.domain.approval import ApprovalDecision, ApprovalWorkflow, WorkflowAction
from payables_kernel.domain.records import Bill, Payment, Vendor
from payables_kernel.domain.values import ZERO
from payables_kernel.exceptions import (
    BillNotFoundError,
    ConcurrencyError,
    OptimisticLockError,
    PaymentAlreadyExistsError,
    WorkflowAlreadyExistsError,
    WorkflowNotFoundError,
)
from payables_kernel.logging_config import get_logger
from payables_services.orm import (
    ApprovalWorkflowModel,
    BillModel,
    CashPositionModel,
    PaymentModel,
    VendorModel,
    WorkflowActionModel,
    WorkflowStepModel,
)
from payables_services.repository import (
    BillFilter,
    PaymentFilter,
    apply_payment_to_bill,
)

logger = get_logger("services.sql_repository")

_CASH_ROW_ID = 1
_PAYMENT_ATTEMPTS = 3


class SqlPayablesRepository:
    """
    Payables store on any SQLAlchemy 2.0 database.

    Bills are returned ordered by issue date, then id.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._factory = session_factory

    # -- snapshot loading -------------------------------------------------

    def add_vendor(self, vendor: Vendor) -> None:
        with session_scope(self._factory) as session:
            session.merge(VendorModel.from_dto(vendor))

    def add_bill(self, bill: Bill) -> None:
        with session_scope(self._factory) as session:
            existing = session.get(BillModel, bill.id)
            if existing is not None:
                session.delete(existing)
                session.flush()
            session.add(BillModel.from_dto(bill))

    def set_cash_balance(self, balance: Decimal) -> None:
        with session_scope(self._factory) as session:
            row = session.get(CashPositionModel, _CASH_ROW_ID)
            if row is None:
                session.add(CashPositionModel(id=_CASH_ROW_ID, balance=balance))
            else:
                row.balance = balance

    # -- reads ------------------------------------------------------------

    def get_bills(self, filter: BillFilter | None = None) -> list[Bill]:
        stmt = select(BillModel).order_by(BillModel.issue_date, BillModel.id)
        if filter is not None:
            if filter.vendor_id is not None:
                stmt = stmt.where(BillModel.vendor_id == filter.vendor_id)
            if filter.bill_ids is not None:
                stmt = stmt.where(BillModel.id.in_(filter.bill_ids))
            if filter.statuses is not None:
                stmt = stmt.where(BillModel.status.in_([s.value for s in filter.statuses]))
            if filter.due_on_or_before is not None:
                stmt = stmt.where(BillModel.due_date <= filter.due_on_or_before)
        with session_scope(self._factory) as session:
            bills = [m.to_dto() for m in session.scalars(stmt)]
        if filter is not None and filter.unpaid_only:
            bills = [b for b in bills if b.is_unpaid]
        return bills

    def get_vendors(self) -> list[Vendor]:
        with session_scope(self._factory) as session:
            return [m.to_dto() for m in session.scalars(select(VendorModel).order_by(VendorModel.id))]

    def get_payments(self, filter: PaymentFilter | None = None) -> list[Payment]:
        stmt = select(PaymentModel).order_by(PaymentModel.payment_date, PaymentModel.id)
        if filter is not None:
            if filter.vendor_id is not None:
                stmt = stmt.where(PaymentModel.vendor_id == filter.vendor_id)
            if filter.bill_id is not None:
                stmt = stmt.where(PaymentModel.bill_id == filter.bill_id)
        with session_scope(self._factory) as session:
            return [m.to_dto() for m in session.scalars(stmt)]

    def get_cash_balance(self) -> Decimal:
        with session_scope(self._factory) as session:
            row = session.get(CashPositionModel, _CASH_ROW_ID)
            return row.balance if row is not None else ZERO

    # -- writes -----------------------------------------------------------

    def append_payment(self, payment: Payment) -> Bill | None:
        """Append ``payment`` and return the bill it settles, if any."""
        updated = None
        with session_scope(self._factory) as session:
            if session.get(PaymentModel, payment.id) is not None:
                raise PaymentAlreadyExistsError(payment.id)
            if payment.bill_id is not None:
                updated = self._apply_to_bill(session, payment)
            session.add(PaymentModel.from_dto(payment))

        logger.info("payment_appended", extra={
            "payment_id": payment.id,
            "bill_id": payment.bill_id,
            "vendor_id": payment.vendor_id,
            "amount": str(payment.amount),
        })
        return updated

    def _apply_to_bill(self, session: Session, payment: Payment) -> Bill:
        """
        Validate and write the payment against its bill row.

        The row is read ``FOR UPDATE`` and written back with
        ``UPDATE ... WHERE balance = :read AND status = :read``.  On databases
        that ignore row locks (SQLite) the guarded update alone detects a
        concurrent payment; the row is then re-read and re-validated.
        """
        row = session.get(BillModel, payment.bill_id, with_for_update=True)
        if row is None:
            raise BillNotFoundError(payment.bill_id)

        for _ in range(_PAYMENT_ATTEMPTS):
            current = row.to_dto()
            updated = apply_payment_to_bill(current, payment)
            result = session.execute(
                update(BillModel)
                .where(
                    BillModel.id == current.id,
                    BillModel.balance == current.balance,
                    BillModel.status == current.status.value,
                )
                .values(
                    balance=updated.balance,
                    status=updated.status.value,
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return updated
            logger.warning("bill_balance_conflict", extra={
                "bill_id": current.id,
                "payment_id": payment.id,
                "read_balance": str(current.balance),
            })
            row = session.get(BillModel, payment.bill_id, populate_existing=True)

        raise ConcurrencyError(
            f"Bill {payment.bill_id} changed on every attempt to apply payment {payment.id}"
        )

    def persist_workflow_action(
        self,
        workflow_id: str,
        approver_id: str,
        decision: ApprovalDecision,
        *,
        step_index: int = 0,
        decided_at: datetime | None = None,
        comments: str = "",
    ) -> None:
        action = WorkflowAction(
            workflow_id=workflow_id,
            approver_id=approver_id,
            decision=ApprovalDecision(decision),
            step_index=step_index,
            decided_at=decided_at,
            comments=comments,
        )
        with session_scope(self._factory) as session:
            session.add(WorkflowActionModel.from_dto(action))

    def get_workflow_actions(self, workflow_id: str) -> list[WorkflowAction]:
        stmt = (
            select(WorkflowActionModel)
            .where(WorkflowActionModel.workflow_id == workflow_id)
            .order_by(WorkflowActionModel.id)
        )
        with session_scope(self._factory) as session:
            return [m.to_dto() for m in session.scalars(stmt)]

    def get_workflow(self, workflow_id: str) -> ApprovalWorkflow | None:
        with session_scope(self._factory) as session:
            row = session.get(ApprovalWorkflowModel, workflow_id)
            return row.to_dto() if row is not None else None

    def save_workflow(
        self,
        workflow: ApprovalWorkflow,
        expected_version: int | None,
        action: WorkflowAction | None = None,
    ) -> None:
        """
        Insert when ``expected_version`` is None, else compare-and-swap.

        ``action`` is inserted in the same transaction as the snapshot.
        """
        with session_scope(self._factory) as session:
            if expected_version is None:
                if session.get(ApprovalWorkflowModel, workflow.id) is not None:
                    raise WorkflowAlreadyExistsError(workflow.id)
                session.add(ApprovalWorkflowModel.from_dto(workflow))
                if action is not None:
                    session.add(WorkflowActionModel.from_dto(action))
                return

            risk = workflow.risk_assessment
            result = session.execute(
                update(ApprovalWorkflowModel)
                .where(
                    ApprovalWorkflowModel.id == workflow.id,
                    ApprovalWorkflowModel.version == expected_version,
                )
                .values(
                    current_step=workflow.current_step,
                    status=workflow.status.value,
                    version=workflow.version,
                    escalation_reason=workflow.escalation_reason,
                    fraud_score=risk.fraud_score,
                    duplicate_risk=risk.duplicate_risk,
                    compliance_issues=[i.value for i in risk.compliance_issues],
                    duplicate_bill_ids=list(risk.duplicate_bill_ids),
                    updated_at=func.now(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                actual = session.scalar(
                    select(ApprovalWorkflowModel.version)
                    .where(ApprovalWorkflowModel.id == workflow.id)
                )
                if actual is None:
                    raise WorkflowNotFoundError(workflow.id)
                raise OptimisticLockError(
                    "ApprovalWorkflow", workflow.id, expected_version, actual,
                )

            session.execute(
                delete(WorkflowStepModel)
                .where(WorkflowStepModel.workflow_id == workflow.id)
                .execution_options(synchronize_session=False)
            )
            session.add_all(WorkflowStepModel.from_dtos(workflow))
            if action is not None:
                session.add(WorkflowActionModel.from_dto(action))
