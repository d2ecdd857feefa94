"""
Payables metrics.

Portfolio-level AP figures (outstanding, balance-weighted days payable,
turnover, discount opportunities, overdue amount) and small helpers used
by reports: days payable outstanding, vendor risk level and a payment
terms label.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Mapping, Sequence

from payables_engines.payment_optimizer import early_payment_discount
from payables_engines.tracer import traced_engine
from payables_kernel.domain.policies import DiscountAnchor
from payables_kernel.domain.records import Bill, BillStatus, Vendor
from payables_kernel.domain.results import PayableMetrics
from payables_kernel.domain.values import ZERO, decimal_sum
from payables_kernel.exceptions import VendorNotFoundError
from payables_kernel.logging_config import get_logger

logger = get_logger("engines.metrics")


@traced_engine("payable_metrics", "1.0", fingerprint_fields=("as_of",))
def compute_payable_metrics(
    *,
    vendors: Mapping[str, Vendor],
    bills: Sequence[Bill],
    as_of: date,
    discount_anchor: DiscountAnchor = DiscountAnchor.ISSUE_DATE,
) -> PayableMetrics:
    outstanding = [b for b in bills if b.is_unpaid]
    total_outstanding = decimal_sum(b.balance for b in outstanding)

    weighted_days = decimal_sum(
        Decimal((as_of - b.issue_date).days) * b.balance for b in outstanding
    )
    average_days = weighted_days / total_outstanding if total_outstanding > ZERO else ZERO

    paid_total = decimal_sum(b.total_amount for b in bills if b.status == BillStatus.PAID)
    turnover = paid_total / total_outstanding if total_outstanding > ZERO else ZERO

    opportunities = ZERO
    for bill in outstanding:
        vendor = vendors.get(bill.vendor_id)
        if vendor is None:
            raise VendorNotFoundError(bill.vendor_id, bill_id=bill.id)
        discount = early_payment_discount(bill, vendor, as_of, discount_anchor)
        if discount is not None:
            opportunities += discount.savings_amount

    overdue = decimal_sum(b.balance for b in outstanding if b.is_overdue(as_of))

    metrics = PayableMetrics(
        total_outstanding=total_outstanding,
        average_days_payable=average_days,
        turnover_ratio=turnover,
        early_payment_opportunities=opportunities,
        overdue_amount=overdue,
    )
    logger.info("payable_metrics_computed", extra={
        "as_of": as_of.isoformat(),
        "outstanding_bills": len(outstanding),
        "total_outstanding": str(total_outstanding),
        "overdue_amount": str(overdue),
    })
    return metrics


def calculate_dpo(
    total_payables: Decimal,
    total_purchases: Decimal,
    days: int = 365,
) -> Decimal:
    """Days payable outstanding; 0 when there were no purchases."""
    if total_purchases <= ZERO:
        return ZERO
    return total_payables / total_purchases * Decimal(days)


def vendor_risk_level(score: Decimal) -> str:
    if score >= Decimal("0.8"):
        return "low"
    if score >= Decimal("0.6"):
        return "medium"
    return "high"


def format_payment_terms(days: int) -> str:
    """Display label for standard payment terms."""
    if days == 0:
        return "COD"
    if days <= 15 or days == 30:
        return f"Net {days}"
    return f"Net {days} days"
