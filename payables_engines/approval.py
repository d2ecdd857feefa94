"""
payables_engines.approval -- Pure approval workflow state machine.

Responsibility:
    Decide which approver tiers a bill needs, build its initial workflow,
    and apply approver decisions and escalations as pure transitions that
    return a new, version-bumped workflow snapshot.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payables_kernel domain types.  Persisting the returned
    snapshot (with a compare-and-swap on ``version``) is the caller's job.

Invariants enforced:
    - Tiers are cumulative and keep their configured order; a higher tier
      never removes a lower one.
    - A bill needing no approver starts ``approved`` with zero steps.
    - Only the approver at ``current_step`` may act, and only while the
      workflow is pending or escalated.
    - Every status change is checked against ``WORKFLOW_TRANSITIONS``.
    - Every transition returns ``version + 1``; inputs are never mutated.

Failure modes:
    - WorkflowAlreadyResolvedError when acting on an approved/rejected workflow.
    - ApproverNotCurrentError when the actor does not hold the current step.
    - InvalidWorkflowTransitionError for a status change outside the table.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Mapping, Sequence

from payables_engines.risk import assess_risk
from payables_engines.tracer import traced_engine
from payables_kernel.domain.approval import (
    OPEN_WORKFLOW_STATUSES,
    WORKFLOW_TRANSITIONS,
    ApprovalDecision,
    ApprovalWorkflow,
    ApproverStatus,
    ApproverStep,
    RiskAssessment,
    WorkflowStatus,
)
from payables_kernel.domain.policies import DEFAULT_APPROVAL_TIERS, ApprovalTier, RiskPolicy
from payables_kernel.domain.records import Bill, Vendor
from payables_kernel.exceptions import (
    ApproverNotCurrentError,
    InvalidWorkflowTransitionError,
    WorkflowAlreadyResolvedError,
)
from payables_kernel.logging_config import get_logger

logger = get_logger("engines.approval")


def workflow_id_for(bill_id: str) -> str:
    return f"workflow_{bill_id}"


def required_approvers(
    amount: Decimal,
    fraud_score: Decimal,
    tiers: Sequence[ApprovalTier] = DEFAULT_APPROVAL_TIERS,
) -> tuple[ApprovalTier, ...]:
    """Tiers that apply to the amount and fraud score, in configured order."""
    return tuple(tier for tier in tiers if tier.applies_to(amount, fraud_score))


def _check_transition(
    workflow: ApprovalWorkflow,
    to_status: WorkflowStatus,
) -> None:
    if to_status == workflow.status:
        return
    if to_status not in WORKFLOW_TRANSITIONS[workflow.status]:
        raise InvalidWorkflowTransitionError(
            workflow.id, workflow.status.value, to_status.value,
        )


@traced_engine("approval_workflow", "1.0", fingerprint_fields=("bill",))
def build_workflow(
    bill: Bill,
    *,
    vendors: Mapping[str, Vendor],
    bills: Sequence[Bill],
    tiers: Sequence[ApprovalTier] = DEFAULT_APPROVAL_TIERS,
    risk_policy: RiskPolicy | None = None,
    risk: RiskAssessment | None = None,
    created_at: datetime | None = None,
) -> ApprovalWorkflow:
    """
    Initial workflow for ``bill``.

    ``risk`` may be passed when the caller already assessed the bill.
    """
    if risk is None:
        risk = assess_risk(bill, vendors=vendors, bills=bills, policy=risk_policy)

    approvers = tuple(
        ApproverStep(
            user_id=tier.approver_id,
            role=tier.role,
            approval_limit=tier.approval_limit,
        )
        for tier in required_approvers(bill.total_amount, risk.fraud_score, tiers)
    )
    status = WorkflowStatus.PENDING if approvers else WorkflowStatus.APPROVED

    workflow = ApprovalWorkflow(
        id=workflow_id_for(bill.id),
        bill_id=bill.id,
        approvers=approvers,
        current_step=0,
        status=status,
        risk_assessment=risk,
        version=1,
        created_at=created_at,
        updated_at=created_at,
    )

    logger.info("approval_workflow_built", extra={
        "workflow_id": workflow.id,
        "bill_id": bill.id,
        "total_steps": workflow.total_steps,
        "roles": list(workflow.roles),
        "status": status.value,
    })
    return workflow


def apply_decision(
    workflow: ApprovalWorkflow,
    approver_id: str,
    decision: ApprovalDecision | str,
    *,
    decided_at: datetime | None = None,
    comments: str = "",
) -> ApprovalWorkflow:
    """
    Record one approver decision and return the next workflow snapshot.

    Approve advances ``current_step`` and resolves the workflow as approved
    after the last step.  Reject marks the step rejected, advances past it
    and resolves the workflow as rejected.
    """
    decision = ApprovalDecision(decision)

    if workflow.status not in OPEN_WORKFLOW_STATUSES:
        raise WorkflowAlreadyResolvedError(workflow.id, workflow.status.value)

    current = workflow.current_approver
    if current is None or current.user_id != approver_id:
        raise ApproverNotCurrentError(
            workflow.id,
            approver_id,
            current.user_id if current is not None else None,
            workflow.current_step,
        )

    step_status = (
        ApproverStatus.APPROVED if decision == ApprovalDecision.APPROVE
        else ApproverStatus.REJECTED
    )
    next_step = workflow.current_step + 1

    if decision == ApprovalDecision.REJECT:
        next_status = WorkflowStatus.REJECTED
    elif next_step == workflow.total_steps:
        next_status = WorkflowStatus.APPROVED
    else:
        next_status = workflow.status
    _check_transition(workflow, next_status)

    approvers = list(workflow.approvers)
    approvers[workflow.current_step] = replace(
        current,
        status=step_status,
        decided_at=decided_at,
        comments=comments,
    )

    updated = replace(
        workflow,
        approvers=tuple(approvers),
        current_step=next_step,
        status=next_status,
        version=workflow.version + 1,
        updated_at=decided_at or workflow.updated_at,
    )

    logger.info("approval_decision_applied", extra={
        "workflow_id": workflow.id,
        "approver_id": approver_id,
        "decision": decision.value,
        "step": workflow.current_step,
        "from_status": workflow.status.value,
        "to_status": next_status.value,
        "version": updated.version,
    })
    return updated


def escalate(
    workflow: ApprovalWorkflow,
    reason: str,
    *,
    escalated_at: datetime | None = None,
) -> ApprovalWorkflow:
    """Move a pending workflow to ``escalated`` (timeouts and similar)."""
    if workflow.status not in OPEN_WORKFLOW_STATUSES:
        raise WorkflowAlreadyResolvedError(workflow.id, workflow.status.value)
    if workflow.status == WorkflowStatus.ESCALATED:
        raise InvalidWorkflowTransitionError(
            workflow.id, workflow.status.value, WorkflowStatus.ESCALATED.value,
        )
    _check_transition(workflow, WorkflowStatus.ESCALATED)

    updated = replace(
        workflow,
        status=WorkflowStatus.ESCALATED,
        escalation_reason=reason,
        version=workflow.version + 1,
        updated_at=escalated_at or workflow.updated_at,
    )
    logger.warning("approval_workflow_escalated", extra={
        "workflow_id": workflow.id,
        "reason": reason,
        "step": workflow.current_step,
        "version": updated.version,
    })
    return updated
