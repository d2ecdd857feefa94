"""
Source records (``payables_kernel.domain.records``).

Responsibility
--------------
Frozen value objects for the externally owned, durable records the engine
reads: bills, vendors with their payment terms, and payments.

Architecture position
---------------------
**Kernel domain layer** -- pure data.  No I/O.  Repositories build these
from whatever store they front; engines only read them.

Invariants enforced
-------------------
* Construction checks only types/shape (amounts are ``Decimal``).  Business
  invariants of a bill (``0 <= balance <= total_amount``, ``balance == 0``
  iff paid, due date not before issue date) are *checked* by
  ``check_bill_integrity`` and reported as ``DataIntegrityError``; they are
  never enforced by mutating the record, because a corrupt bill must still
  be representable so it can be reported.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from payables_kernel.domain.values import ZERO
from payables_kernel.exceptions import DataIntegrityError


class BillStatus(str, Enum):
    OPEN = "open"
    PARTIAL = "partial"
    PAID = "paid"
    DISPUTED = "disputed"


@dataclass(frozen=True)
class LineItem:
    """A single line on a vendor bill."""

    description: str
    amount: Decimal
    quantity: Decimal = Decimal("1")
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class Bill:
    """An obligation owed to a vendor."""

    id: str
    vendor_id: str
    issue_date: date
    due_date: date
    total_amount: Decimal
    balance: Decimal
    status: BillStatus = BillStatus.OPEN
    bill_number: str | None = None
    line_items: tuple[LineItem, ...] = field(default_factory=tuple)
    received_date: date | None = None

    def __post_init__(self) -> None:
        for name in ("total_amount", "balance"):
            if not isinstance(getattr(self, name), Decimal):
                raise TypeError(f"Bill.{name} must be Decimal")
        if not isinstance(self.status, BillStatus):
            object.__setattr__(self, "status", BillStatus(self.status))
        if not isinstance(self.line_items, tuple):
            object.__setattr__(self, "line_items", tuple(self.line_items))

    @property
    def is_unpaid(self) -> bool:
        return self.status != BillStatus.PAID

    def is_overdue(self, as_of: date) -> bool:
        return self.is_unpaid and self.due_date < as_of


@dataclass(frozen=True)
class PaymentTerms:
    """
    Vendor payment terms, e.g. 2/10 net 30.

    Guarantees: a discount is offered only when both ``discount_percent``
    and ``discount_days`` are set.
    """

    standard_days: int = 30
    discount_percent: Decimal | None = None
    discount_days: int | None = None

    def __post_init__(self) -> None:
        if self.standard_days < 0:
            raise ValueError("standard_days cannot be negative")
        if self.discount_percent is not None:
            if not isinstance(self.discount_percent, Decimal):
                raise TypeError("discount_percent must be Decimal")
            if not ZERO <= self.discount_percent <= Decimal("100"):
                raise ValueError("discount_percent must be within [0, 100]")
        if self.discount_days is not None and self.discount_days < 0:
            raise ValueError("discount_days cannot be negative")

    @property
    def offers_discount(self) -> bool:
        return bool(self.discount_percent) and self.discount_days is not None


@dataclass(frozen=True)
class Vendor:
    """A counterparty.  Deactivated, never deleted."""

    id: str
    name: str
    is_active: bool = True
    terms: PaymentTerms = field(default_factory=PaymentTerms)


@dataclass(frozen=True)
class Payment:
    """Money sent to a vendor.  Append-only."""

    id: str
    vendor_id: str
    payment_date: date
    amount: Decimal
    bill_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise TypeError("Payment.amount must be Decimal")


def bill_integrity_violations(bill: Bill) -> list[DataIntegrityError]:
    """Return every invariant the bill breaks (empty when clean)."""
    violations: list[DataIntegrityError] = []

    if bill.total_amount < ZERO:
        violations.append(DataIntegrityError(
            bill.id, "total_amount", "total_amount >= 0", str(bill.total_amount),
        ))
    if bill.balance < ZERO:
        violations.append(DataIntegrityError(
            bill.id, "balance", "balance >= 0", str(bill.balance),
        ))
    if bill.balance > bill.total_amount:
        violations.append(DataIntegrityError(
            bill.id, "balance", "balance <= total_amount",
            f"{bill.balance} > {bill.total_amount}",
        ))
    if (bill.balance == ZERO) != (bill.status == BillStatus.PAID):
        violations.append(DataIntegrityError(
            bill.id, "status", "balance == 0 iff status == paid",
            f"balance={bill.balance}, status={bill.status.value}",
        ))
    if bill.due_date < bill.issue_date:
        violations.append(DataIntegrityError(
            bill.id, "due_date", "due_date >= issue_date",
            f"{bill.due_date.isoformat()} < {bill.issue_date.isoformat()}",
        ))

    return violations


def check_bill_integrity(bill: Bill) -> None:
    """Raise the first integrity violation of ``bill``, if any."""
    violations = bill_integrity_violations(bill)
    if violations:
        raise violations[0]
