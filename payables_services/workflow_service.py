"""
payables_services.workflow_service -- Persisted approval workflows.

Responsibility:
    Submit a bill for payment approval (assess risk, build and store its
    workflow), load workflows, and apply approver decisions and
    escalations against the stored snapshot.

Architecture position:
    Services -- stateful orchestration.  State transitions are computed by
    the pure functions in ``payables_engines.approval``; this module only
    loads, saves and logs.

Invariants enforced:
    - One workflow per bill; submitting twice raises
      ``WorkflowAlreadyExistsError``.
    - Every save after creation is a compare-and-swap on ``version``.
      Two approvers acting on the same snapshot: exactly one succeeds, the
      other gets ``OptimisticLockError``.
    - Every accepted decision is written to the workflow action log in the
      same repository write as the snapshot, so a stale save logs nothing.

Failure modes:
    - WorkflowNotFoundError for an unknown workflow id.
    - OptimisticLockError when ``expected_version`` is stale or another
      writer won the race.
    - WorkflowAlreadyResolvedError / ApproverNotCurrentError /
      InvalidWorkflowTransitionError from the state machine.
"""

from __future__ import annotations

from payables_config.schema import PayablesConfig
from payables_engines.approval import apply_decision, build_workflow, escalate
from payables_kernel.domain.approval import ApprovalDecision, ApprovalWorkflow, WorkflowAction
from payables_kernel.domain.clock import Clock, SystemClock
from payables_kernel.exceptions import (
    BillNotFoundError,
    OptimisticLockError,
    WorkflowNotFoundError,
)
from payables_kernel.logging_config import LogContext, get_logger
from payables_services.repository import PayablesRepository

logger = get_logger("services.workflow")


class ApprovalWorkflowService:
    """
    Approval workflow lifecycle over a ``PayablesRepository``.

    ``expected_version`` lets a caller assert the snapshot it decided on;
    when omitted the currently stored version is used, which still guards
    against a concurrent writer between load and save.
    """

    def __init__(
        self,
        repository: PayablesRepository,
        clock: Clock | None = None,
        config: PayablesConfig | None = None,
    ):
        self._repo = repository
        self._clock = clock or SystemClock()
        self._config = config or PayablesConfig.with_defaults()

    def submit_for_payment(self, bill_id: str) -> ApprovalWorkflow:
        bills = self._repo.get_bills()
        bill = next((b for b in bills if b.id == bill_id), None)
        if bill is None:
            raise BillNotFoundError(bill_id)
        vendors = {v.id: v for v in self._repo.get_vendors()}

        with LogContext.bind(bill_id=bill_id, vendor_id=bill.vendor_id):
            workflow = build_workflow(
                bill,
                vendors=vendors,
                bills=bills,
                tiers=self._config.approval_tiers,
                risk_policy=self._config.risk,
                created_at=self._clock.now(),
            )
            self._repo.save_workflow(workflow, expected_version=None)

            logger.info("bill_submitted_for_payment", extra={
                "workflow_id": workflow.id,
                "status": workflow.status.value,
                "total_steps": workflow.total_steps,
                "fraud_score": str(workflow.risk_assessment.fraud_score),
            })
        return workflow

    def get_workflow(self, workflow_id: str) -> ApprovalWorkflow:
        workflow = self._repo.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    def get_actions(self, workflow_id: str) -> list[WorkflowAction]:
        return self._repo.get_workflow_actions(workflow_id)

    def record_decision(
        self,
        workflow_id: str,
        approver_id: str,
        decision: ApprovalDecision | str,
        expected_version: int | None = None,
        comments: str = "",
    ) -> ApprovalWorkflow:
        decision = ApprovalDecision(decision)
        with LogContext.bind(workflow_id=workflow_id, actor_id=approver_id):
            current = self._load_at(workflow_id, expected_version)
            decided_at = self._clock.now()
            updated = apply_decision(
                current,
                approver_id,
                decision,
                decided_at=decided_at,
                comments=comments,
            )
            action = WorkflowAction(
                workflow_id=workflow_id,
                approver_id=approver_id,
                decision=decision,
                step_index=current.current_step,
                decided_at=decided_at,
                comments=comments,
            )
            self._save(updated, current.version, action)
        return updated

    def escalate(
        self,
        workflow_id: str,
        reason: str,
        expected_version: int | None = None,
    ) -> ApprovalWorkflow:
        with LogContext.bind(workflow_id=workflow_id):
            current = self._load_at(workflow_id, expected_version)
            updated = escalate(current, reason, escalated_at=self._clock.now())
            self._save(updated, current.version)
        return updated

    def _load_at(self, workflow_id: str, expected_version: int | None) -> ApprovalWorkflow:
        current = self.get_workflow(workflow_id)
        if expected_version is not None and current.version != expected_version:
            raise OptimisticLockError(
                "ApprovalWorkflow", workflow_id, expected_version, current.version,
            )
        return current

    def _save(
        self,
        workflow: ApprovalWorkflow,
        expected_version: int,
        action: WorkflowAction | None = None,
    ) -> None:
        try:
            self._repo.save_workflow(workflow, expected_version=expected_version, action=action)
        except OptimisticLockError as exc:
            logger.warning("workflow_version_conflict", extra={
                "expected_version": exc.expected_version,
                "actual_version": exc.actual_version,
            })
            raise
