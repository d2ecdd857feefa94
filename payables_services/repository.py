"""
Repository contract and in-memory implementation.

Responsibility
--------------
The engine reads bills, vendors, payments and the cash position through
``PayablesRepository`` and writes only two things back: appended payments
and approval workflow state (versioned snapshots plus an append-only
action log).

Architecture position
---------------------
**Services layer** -- persistence boundary.  ``InMemoryPayablesRepository``
backs tests, the CLI and snapshot evaluation; ``SqlPayablesRepository``
(``payables_services.sql_repository``) backs a database.

Invariants enforced
-------------------
* Payments are append-only and unique by id.
* A payment is applied under the same lock or row lock that reads the
  bill balance, so concurrent payments can never overdraw a bill.
  Disputed bills accept no payments.
* ``save_workflow`` is a compare-and-swap on ``version``: a stale
  ``expected_version`` raises ``OptimisticLockError`` and nothing is written.
* The in-memory store serializes every mutation with one re-entrant lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Protocol, runtime_checkable

from payables_kernel.domain.approval import ApprovalDecision, ApprovalWorkflow, WorkflowAction
from payables_kernel.domain.records import Bill, BillStatus, Payment, Vendor
from payables_kernel.domain.values import ZERO, to_decimal
from payables_kernel.exceptions import (
    BillNotFoundError,
    InvalidPaymentError,
    OptimisticLockError,
    PaymentAlreadyExistsError,
    WorkflowAlreadyExistsError,
    WorkflowNotFoundError,
)
from payables_kernel.logging_config import get_logger

logger = get_logger("services.repository")


@dataclass(frozen=True)
class BillFilter:
    """Bill selection; unset fields do not restrict."""

    vendor_id: str | None = None
    bill_ids: tuple[str, ...] | None = None
    statuses: tuple[BillStatus, ...] | None = None
    unpaid_only: bool = False
    due_on_or_before: date | None = None

    def matches(self, bill: Bill) -> bool:
        if self.vendor_id is not None and bill.vendor_id != self.vendor_id:
            return False
        if self.bill_ids is not None and bill.id not in self.bill_ids:
            return False
        if self.statuses is not None and bill.status not in self.statuses:
            return False
        if self.unpaid_only and not bill.is_unpaid:
            return False
        if self.due_on_or_before is not None and bill.due_date > self.due_on_or_before:
            return False
        return True


@dataclass(frozen=True)
class PaymentFilter:
    vendor_id: str | None = None
    bill_id: str | None = None

    def matches(self, payment: Payment) -> bool:
        if self.vendor_id is not None and payment.vendor_id != self.vendor_id:
            return False
        if self.bill_id is not None and payment.bill_id != self.bill_id:
            return False
        return True


@runtime_checkable
class PayablesRepository(Protocol):
    def get_bills(self, filter: BillFilter | None = None) -> list[Bill]: ...

    def get_vendors(self) -> list[Vendor]: ...

    def get_payments(self, filter: PaymentFilter | None = None) -> list[Payment]: ...

    def get_cash_balance(self) -> Decimal: ...

    def append_payment(self, payment: Payment) -> Bill | None: ...

    def persist_workflow_action(
        self,
        workflow_id: str,
        approver_id: str,
        decision: ApprovalDecision,
        *,
        step_index: int = 0,
        decided_at: datetime | None = None,
        comments: str = "",
    ) -> None: ...

    def get_workflow_actions(self, workflow_id: str) -> list[WorkflowAction]: ...

    def get_workflow(self, workflow_id: str) -> ApprovalWorkflow | None: ...

    def save_workflow(
        self,
        workflow: ApprovalWorkflow,
        expected_version: int | None,
        action: WorkflowAction | None = None,
    ) -> None: ...


def apply_payment_to_bill(bill: Bill, payment: Payment) -> Bill:
    """
    Reduce the bill balance by the payment amount and derive the new status.

    Raises:
        InvalidPaymentError: when the bill is disputed or the amount falls
            outside ``(0, balance]``.
    """
    amount = payment.amount
    if amount <= ZERO:
        raise InvalidPaymentError(payment.id, "amount must be positive")
    if bill.status == BillStatus.DISPUTED:
        raise InvalidPaymentError(payment.id, f"bill {bill.id} is disputed")
    if amount > bill.balance:
        raise InvalidPaymentError(
            payment.id,
            f"amount {amount} exceeds bill balance {bill.balance}",
        )
    balance = bill.balance - amount
    status = BillStatus.PAID if balance == ZERO else BillStatus.PARTIAL
    return replace(bill, balance=balance, status=status)


class InMemoryPayablesRepository:
    """
    Thread-safe in-memory store.

    Iteration order of bills, vendors and payments is insertion order.
    """

    def __init__(
        self,
        vendors: Iterable[Vendor] = (),
        bills: Iterable[Bill] = (),
        payments: Iterable[Payment] = (),
        cash_balance: Decimal | int | str = ZERO,
    ):
        self._lock = threading.RLock()
        self._vendors: dict[str, Vendor] = {v.id: v for v in vendors}
        self._bills: dict[str, Bill] = {b.id: b for b in bills}
        self._payments: dict[str, Payment] = {p.id: p for p in payments}
        self._cash_balance = to_decimal(cash_balance, "cash_balance")
        self._workflows: dict[str, ApprovalWorkflow] = {}
        self._actions: list[WorkflowAction] = []

    # -- snapshot loading -------------------------------------------------

    def add_vendor(self, vendor: Vendor) -> None:
        with self._lock:
            self._vendors[vendor.id] = vendor

    def add_bill(self, bill: Bill) -> None:
        with self._lock:
            self._bills[bill.id] = bill

    def set_cash_balance(self, balance: Decimal) -> None:
        with self._lock:
            self._cash_balance = balance

    # -- reads ------------------------------------------------------------

    def get_bills(self, filter: BillFilter | None = None) -> list[Bill]:
        with self._lock:
            bills = list(self._bills.values())
        if filter is None:
            return bills
        return [b for b in bills if filter.matches(b)]

    def get_vendors(self) -> list[Vendor]:
        with self._lock:
            return list(self._vendors.values())

    def get_payments(self, filter: PaymentFilter | None = None) -> list[Payment]:
        with self._lock:
            payments = list(self._payments.values())
        if filter is None:
            return payments
        return [p for p in payments if filter.matches(p)]

    def get_cash_balance(self) -> Decimal:
        with self._lock:
            return self._cash_balance

    # -- writes -----------------------------------------------------------

    def append_payment(self, payment: Payment) -> Bill | None:
        """Append ``payment`` and return the bill it settles, if any."""
        updated = None
        with self._lock:
            if payment.id in self._payments:
                raise PaymentAlreadyExistsError(payment.id)
            if payment.bill_id is not None:
                bill = self._bills.get(payment.bill_id)
                if bill is None:
                    raise BillNotFoundError(payment.bill_id)
                updated = apply_payment_to_bill(bill, payment)
                self._bills[bill.id] = updated
            self._payments[payment.id] = payment

        logger.info("payment_appended", extra={
            "payment_id": payment.id,
            "bill_id": payment.bill_id,
            "vendor_id": payment.vendor_id,
            "amount": str(payment.amount),
        })
        return updated

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
        with self._lock:
            self._actions.append(action)

    def get_workflow_actions(self, workflow_id: str) -> list[WorkflowAction]:
        with self._lock:
            return [a for a in self._actions if a.workflow_id == workflow_id]

    def get_workflow(self, workflow_id: str) -> ApprovalWorkflow | None:
        with self._lock:
            return self._workflows.get(workflow_id)

    def save_workflow(
        self,
        workflow: ApprovalWorkflow,
        expected_version: int | None,
        action: WorkflowAction | None = None,
    ) -> None:
        """
        Insert when ``expected_version`` is None, else compare-and-swap.

        ``action`` is appended to the action log only when the save succeeds.
        """
        with self._lock:
            current = self._workflows.get(workflow.id)
            if expected_version is None:
                if current is not None:
                    raise WorkflowAlreadyExistsError(workflow.id)
            else:
                if current is None:
                    raise WorkflowNotFoundError(workflow.id)
                if current.version != expected_version:
                    raise OptimisticLockError(
                        "ApprovalWorkflow", workflow.id, expected_version, current.version,
                    )
            self._workflows[workflow.id] = workflow
            if action is not None:
                self._actions.append(action)
