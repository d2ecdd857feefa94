"""
Bill risk assessment.

Fraud score, duplicate risk and compliance issues for one bill, evaluated
against the vendor master and the other bills in the snapshot.  Pure; the
result is embedded in the bill's approval workflow.
"""

from __future__ import annotations

from typing import Mapping, Sequence

from payables_engines.tracer import traced_engine
from payables_kernel.domain.approval import ComplianceIssue, RiskAssessment
from payables_kernel.domain.policies import RiskPolicy
from payables_kernel.domain.records import Bill, Vendor
from payables_kernel.domain.values import ONE, ZERO
from payables_kernel.logging_config import get_logger

logger = get_logger("engines.risk")


def find_duplicates(
    bill: Bill,
    bills: Sequence[Bill],
    policy: RiskPolicy | None = None,
) -> tuple[str, ...]:
    """
    Ids of other bills from the same vendor that look like ``bill``.

    Both bounds are strict: amounts differing by less than the tolerance,
    issue dates less than the window apart.  The bill itself never matches.
    """
    policy = policy or RiskPolicy()
    matches = []
    for other in bills:
        if other.id == bill.id or other.vendor_id != bill.vendor_id:
            continue
        if abs(other.total_amount - bill.total_amount) >= policy.duplicate_amount_tolerance:
            continue
        if abs((other.issue_date - bill.issue_date).days) >= policy.duplicate_window_days:
            continue
        matches.append(other.id)
    return tuple(matches)


@traced_engine("risk_assessment", "1.0", fingerprint_fields=("bill",))
def assess_risk(
    bill: Bill,
    *,
    vendors: Mapping[str, Vendor],
    bills: Sequence[Bill],
    policy: RiskPolicy | None = None,
) -> RiskAssessment:
    policy = policy or RiskPolicy()
    fraud = ZERO
    issues: list[ComplianceIssue] = []

    if bill.total_amount > policy.large_amount_threshold:
        fraud += policy.large_amount_weight

    vendor = vendors.get(bill.vendor_id)
    if vendor is None or not vendor.is_active:
        fraud += policy.unknown_vendor_weight
        issues.append(ComplianceIssue.VENDOR_NOT_FOUND_OR_INACTIVE)

    duplicates = find_duplicates(bill, bills, policy)
    duplicate_risk = ZERO
    if duplicates:
        duplicate_risk = policy.duplicate_risk_score
        issues.append(ComplianceIssue.POTENTIAL_DUPLICATE)

    if not bill.bill_number or not bill.bill_number.strip():
        issues.append(ComplianceIssue.MISSING_BILL_NUMBER)
    if not bill.line_items:
        issues.append(ComplianceIssue.NO_LINE_ITEMS)

    assessment = RiskAssessment(
        fraud_score=min(ONE, fraud),
        duplicate_risk=min(ONE, duplicate_risk),
        compliance_issues=tuple(issues),
        duplicate_bill_ids=duplicates,
    )

    if not assessment.is_clean:
        logger.info("bill_risk_flagged", extra={
            "bill_id": bill.id,
            "vendor_id": bill.vendor_id,
            "fraud_score": str(assessment.fraud_score),
            "duplicate_risk": str(assessment.duplicate_risk),
            "compliance_issues": [i.value for i in assessment.compliance_issues],
            "duplicate_bill_ids": list(duplicates),
        })
    return assessment
