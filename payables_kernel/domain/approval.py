"""
Approval domain types (``payables_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for bill risk assessment and the multi-tier approval
workflow: lifecycle enumerations, the transition table, approver steps and
the versioned workflow snapshot.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The state
machine itself lives in ``payables_engines.approval``; persistence of
snapshots belongs to the repository.

Invariants enforced
-------------------
* ``WORKFLOW_TRANSITIONS`` lists the only legal status changes; terminal
  statuses have no outgoing edges.
* ``ApprovalWorkflow.version`` increases by exactly one per transition, so
  a compare-and-swap on ``version`` serializes concurrent approvers.
* ``escalated`` is only entered from outside the engine (timeouts etc.).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class WorkflowStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ESCALATED = "escalated"


class ApproverStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


WORKFLOW_TRANSITIONS: dict[WorkflowStatus, frozenset[WorkflowStatus]] = {
    WorkflowStatus.PENDING: frozenset({
        WorkflowStatus.APPROVED,
        WorkflowStatus.REJECTED,
        WorkflowStatus.ESCALATED,
    }),
    WorkflowStatus.ESCALATED: frozenset({
        WorkflowStatus.APPROVED,
        WorkflowStatus.REJECTED,
    }),
    WorkflowStatus.APPROVED: frozenset(),
    WorkflowStatus.REJECTED: frozenset(),
}

TERMINAL_WORKFLOW_STATUSES: frozenset[WorkflowStatus] = frozenset({
    WorkflowStatus.APPROVED,
    WorkflowStatus.REJECTED,
})

OPEN_WORKFLOW_STATUSES: frozenset[WorkflowStatus] = frozenset({
    WorkflowStatus.PENDING,
    WorkflowStatus.ESCALATED,
})


class ComplianceIssue(str, Enum):
    VENDOR_NOT_FOUND_OR_INACTIVE = "Vendor not found or inactive"
    POTENTIAL_DUPLICATE = "Potential duplicate bill detected"
    MISSING_BILL_NUMBER = "Missing bill number"
    NO_LINE_ITEMS = "No line items specified"


@dataclass(frozen=True)
class RiskAssessment:
    """Fraud, duplicate and compliance signals for one bill."""

    fraud_score: Decimal
    duplicate_risk: Decimal
    compliance_issues: tuple[ComplianceIssue, ...] = ()
    duplicate_bill_ids: tuple[str, ...] = ()

    @property
    def is_clean(self) -> bool:
        return (
            self.fraud_score == 0
            and self.duplicate_risk == 0
            and not self.compliance_issues
        )


@dataclass(frozen=True)
class ApproverStep:
    user_id: str
    role: str
    approval_limit: Decimal | None
    status: ApproverStatus = ApproverStatus.PENDING
    decided_at: datetime | None = None
    comments: str = ""


@dataclass(frozen=True)
class ApprovalWorkflow:
    """
    Versioned snapshot of a bill's approval routing.

    ``current_step`` is the 0-based index of the approver expected to act
    next; it equals ``total_steps`` once every approver has acted or the
    workflow was rejected.
    """

    id: str
    bill_id: str
    approvers: tuple[ApproverStep, ...]
    current_step: int
    status: WorkflowStatus
    risk_assessment: RiskAssessment
    version: int = 1
    escalation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def total_steps(self) -> int:
        return len(self.approvers)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_WORKFLOW_STATUSES

    @property
    def current_approver(self) -> ApproverStep | None:
        if self.is_terminal or self.current_step >= self.total_steps:
            return None
        return self.approvers[self.current_step]

    @property
    def roles(self) -> tuple[str, ...]:
        return tuple(step.role for step in self.approvers)


@dataclass(frozen=True)
class WorkflowAction:
    """Append-only log entry of one approver decision."""

    workflow_id: str
    approver_id: str
    decision: ApprovalDecision
    step_index: int
    decided_at: datetime | None = None
    comments: str = ""
    extra: dict[str, str] = field(default_factory=dict)
