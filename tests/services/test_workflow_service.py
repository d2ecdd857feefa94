"""
Tests for ApprovalWorkflowService: submission, decisions, escalation and
optimistic concurrency on stored workflow snapshots.
"""

import threading
from datetime import timedelta

import pytest

from payables_kernel.domain.approval import ApprovalDecision, ApproverStatus, WorkflowStatus
from payables_kernel.domain.clock import DeterministicClock
from payables_kernel.exceptions import (
    ApproverNotCurrentError,
    BillNotFoundError,
    OptimisticLockError,
    WorkflowAlreadyExistsError,
    WorkflowAlreadyResolvedError,
    WorkflowNotFoundError,
)
from payables_services import ApprovalWorkflowService, InMemoryPayablesRepository
from tests.factories import AS_OF, make_bill, make_vendor


def seed(repo, amount="75000"):
    repo.add_vendor(make_vendor("V1"))
    repo.add_bill(make_bill("B1", amount=amount))


@pytest.fixture
def service(any_repo, clock):
    seed(any_repo)
    return ApprovalWorkflowService(any_repo, clock)


class TestSubmit:

    def test_submit_persists_workflow(self, service, captured_logs):
        workflow = service.submit_for_payment("B1")
        stored = service.get_workflow(workflow.id)
        assert stored.bill_id == "B1"
        assert stored.roles == ("Department Manager", "CFO", "CEO")
        assert stored.version == 1
        assert stored.status == WorkflowStatus.PENDING

        submitted = [r for r in captured_logs() if r["message"] == "bill_submitted_for_payment"]
        assert submitted[0]["workflow_id"] == workflow.id
        assert submitted[0]["bill_id"] == "B1"
        assert submitted[0]["total_steps"] == 3

    def test_submit_twice(self, service):
        service.submit_for_payment("B1")
        with pytest.raises(WorkflowAlreadyExistsError):
            service.submit_for_payment("B1")

    def test_submit_unknown_bill(self, service):
        with pytest.raises(BillNotFoundError):
            service.submit_for_payment("NOPE")

    def test_small_bill_auto_approved(self, memory_repo, clock):
        seed(memory_repo, amount="500")
        workflow = ApprovalWorkflowService(memory_repo, clock).submit_for_payment("B1")
        assert workflow.status == WorkflowStatus.APPROVED
        assert workflow.approvers == ()

    def test_get_unknown_workflow(self, service):
        with pytest.raises(WorkflowNotFoundError):
            service.get_workflow("workflow_nope")


class TestDecisions:

    def test_full_approval_chain(self, service):
        workflow = service.submit_for_payment("B1")
        for approver_id in ("manager_1", "cfo_1", "ceo_1"):
            workflow = service.record_decision(workflow.id, approver_id, "approve")

        stored = service.get_workflow(workflow.id)
        assert stored.status == WorkflowStatus.APPROVED
        assert stored.version == 4
        assert all(step.status == ApproverStatus.APPROVED for step in stored.approvers)

        actions = service.get_actions(workflow.id)
        assert [(a.approver_id, a.step_index) for a in actions] == [
            ("manager_1", 0), ("cfo_1", 1), ("ceo_1", 2),
        ]

    def test_rejection_is_terminal(self, service):
        workflow = service.submit_for_payment("B1")
        service.record_decision(workflow.id, "manager_1", ApprovalDecision.REJECT, comments="no PO")
        stored = service.get_workflow(workflow.id)
        assert stored.status == WorkflowStatus.REJECTED
        assert service.get_actions(workflow.id)[0].comments == "no PO"

        with pytest.raises(WorkflowAlreadyResolvedError):
            service.record_decision(workflow.id, "cfo_1", "approve")

    def test_wrong_approver(self, service):
        workflow = service.submit_for_payment("B1")
        with pytest.raises(ApproverNotCurrentError):
            service.record_decision(workflow.id, "cfo_1", "approve")
        assert service.get_workflow(workflow.id).version == 1
        assert service.get_actions(workflow.id) == []

    def test_stale_expected_version(self, service):
        workflow = service.submit_for_payment("B1")
        service.record_decision(workflow.id, "manager_1", "approve", expected_version=1)
        with pytest.raises(OptimisticLockError) as exc_info:
            service.record_decision(workflow.id, "cfo_1", "approve", expected_version=1)
        assert exc_info.value.actual_version == 2
        assert service.get_workflow(workflow.id).current_step == 1

    def test_decided_at_from_clock(self, memory_repo):
        seed(memory_repo)
        clock = DeterministicClock(AS_OF)
        service = ApprovalWorkflowService(memory_repo, clock)
        workflow = service.submit_for_payment("B1")
        clock.advance(days=2)
        updated = service.record_decision(workflow.id, "manager_1", "approve")
        assert updated.approvers[0].decided_at.date() == AS_OF + timedelta(days=2)


class TestEscalation:

    def test_escalate_then_approve(self, service):
        workflow = service.submit_for_payment("B1")
        escalated = service.escalate(workflow.id, "approval timeout")
        assert escalated.status == WorkflowStatus.ESCALATED
        assert service.get_workflow(workflow.id).escalation_reason == "approval timeout"

        for approver_id in ("manager_1", "cfo_1", "ceo_1"):
            service.record_decision(workflow.id, approver_id, "approve")
        assert service.get_workflow(workflow.id).status == WorkflowStatus.APPROVED

    def test_escalate_with_stale_version(self, service):
        workflow = service.submit_for_payment("B1")
        service.record_decision(workflow.id, "manager_1", "approve")
        with pytest.raises(OptimisticLockError):
            service.escalate(workflow.id, "timeout", expected_version=1)


class TestConcurrentApprovers:

    def test_one_of_two_racing_writers_wins(self, memory_repo, clock, captured_logs):
        seed(memory_repo)
        service = ApprovalWorkflowService(memory_repo, clock)
        workflow = service.submit_for_payment("B1")

        barrier = threading.Barrier(2)
        outcomes: list[str] = []
        lock = threading.Lock()

        def act(decision):
            barrier.wait()
            try:
                service.record_decision(workflow.id, "manager_1", decision, expected_version=1)
                result = "ok"
            except (OptimisticLockError, WorkflowAlreadyResolvedError):
                result = "conflict"
            with lock:
                outcomes.append(result)

        threads = [
            threading.Thread(target=act, args=(ApprovalDecision.APPROVE,)),
            threading.Thread(target=act, args=(ApprovalDecision.REJECT,)),
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(outcomes) == ["conflict", "ok"]
        stored = memory_repo.get_workflow(workflow.id)
        assert stored.version == 2
        assert len(memory_repo.get_workflow_actions(workflow.id)) == 1
