"""
Payables ORM Models (``payables_services.orm``).

Responsibility
--------------
SQLAlchemy persistence models for the payables store.  Maps the frozen
domain dataclasses to tables and back via ``to_dto`` / ``from_dto``.

Architecture position
---------------------
**Services layer** -- persistence.  Imports from ``payables_kernel.db.base``
and the kernel domain.  Only ``SqlPayablesRepository`` uses these models.

Tables
------
ap_vendors, ap_bills, ap_bill_lines, ap_payments, ap_cash_position,
ap_approval_workflows, ap_workflow_steps, ap_workflow_actions.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payables_kernel.db.base import TrackedBase
from payables_kernel.domain.approval import (
    ApprovalDecision,
    ApprovalWorkflow,
    ApproverStatus,
    ApproverStep,
    ComplianceIssue,
    RiskAssessment,
    WorkflowAction,
    WorkflowStatus,
)
from payables_kernel.domain.records import (
    Bill,
    BillStatus,
    LineItem,
    Payment,
    PaymentTerms,
    Vendor,
)


# ---------------------------------------------------------------------------
# 1. VendorModel
# ---------------------------------------------------------------------------


class VendorModel(TrackedBase):
    """Vendor master row with its payment terms flattened into columns."""

    __tablename__ = "ap_vendors"

    __table_args__ = (
        Index("idx_ap_vendors_is_active", "is_active"),
    )

    id: Mapped[str] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    standard_days: Mapped[int] = mapped_column(default=30)
    discount_percent: Mapped[Decimal | None] = mapped_column(nullable=True)
    discount_days: Mapped[int | None] = mapped_column(nullable=True)

    def to_dto(self) -> Vendor:
        return Vendor(
            id=self.id,
            name=self.name,
            is_active=self.is_active,
            terms=PaymentTerms(
                standard_days=self.standard_days,
                discount_percent=self.discount_percent,
                discount_days=self.discount_days,
            ),
        )

    @classmethod
    def from_dto(cls, dto: Vendor) -> "VendorModel":
        return cls(
            id=dto.id,
            name=dto.name,
            is_active=dto.is_active,
            standard_days=dto.terms.standard_days,
            discount_percent=dto.terms.discount_percent,
            discount_days=dto.terms.discount_days,
        )

    def __repr__(self) -> str:
        return f"<VendorModel {self.id}: {self.name}>"


# ---------------------------------------------------------------------------
# 2. BillModel / BillLineModel
# ---------------------------------------------------------------------------


class BillModel(TrackedBase):
    """
    Vendor bill.

    ``vendor_id`` carries no foreign key: a bill referencing an unknown
    vendor is a risk signal the engine must be able to see.
    """

    __tablename__ = "ap_bills"

    __table_args__ = (
        Index("idx_ap_bills_vendor_id", "vendor_id"),
        Index("idx_ap_bills_status", "status"),
        Index("idx_ap_bills_due_date", "due_date"),
    )

    id: Mapped[str] = mapped_column(primary_key=True)
    vendor_id: Mapped[str] = mapped_column(nullable=False)
    bill_number: Mapped[str | None] = mapped_column(nullable=True)
    issue_date: Mapped[date] = mapped_column(nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    received_date: Mapped[date | None] = mapped_column(nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    balance: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), default=BillStatus.OPEN.value)

    lines: Mapped[list["BillLineModel"]] = relationship(
        back_populates="bill",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BillLineModel.line_number",
    )

    def to_dto(self) -> Bill:
        return Bill(
            id=self.id,
            vendor_id=self.vendor_id,
            issue_date=self.issue_date,
            due_date=self.due_date,
            total_amount=self.total_amount,
            balance=self.balance,
            status=BillStatus(self.status),
            bill_number=self.bill_number,
            line_items=tuple(line.to_dto() for line in self.lines),
            received_date=self.received_date,
        )

    @classmethod
    def from_dto(cls, dto: Bill) -> "BillModel":
        model = cls(
            id=dto.id,
            vendor_id=dto.vendor_id,
            bill_number=dto.bill_number,
            issue_date=dto.issue_date,
            due_date=dto.due_date,
            received_date=dto.received_date,
            total_amount=dto.total_amount,
            balance=dto.balance,
            status=dto.status.value,
        )
        model.lines = [
            BillLineModel.from_dto(item, line_number=i)
            for i, item in enumerate(dto.line_items, start=1)
        ]
        return model

    def __repr__(self) -> str:
        return f"<BillModel {self.id}: {self.balance}/{self.total_amount} {self.status}>"


class BillLineModel(TrackedBase):
    __tablename__ = "ap_bill_lines"

    __table_args__ = (
        UniqueConstraint("bill_id", "line_number", name="uq_ap_bill_lines_bill_line"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    bill_id: Mapped[str] = mapped_column(ForeignKey("ap_bills.id"), nullable=False)
    line_number: Mapped[int] = mapped_column(nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    bill: Mapped["BillModel"] = relationship(back_populates="lines")

    def to_dto(self) -> LineItem:
        return LineItem(
            description=self.description,
            amount=self.amount,
            quantity=self.quantity,
            unit_price=self.unit_price,
        )

    @classmethod
    def from_dto(cls, dto: LineItem, line_number: int) -> "BillLineModel":
        return cls(
            line_number=line_number,
            description=dto.description,
            quantity=dto.quantity,
            unit_price=dto.unit_price,
            amount=dto.amount,
        )


# ---------------------------------------------------------------------------
# 3. PaymentModel / CashPositionModel
# ---------------------------------------------------------------------------


class PaymentModel(TrackedBase):
    """Append-only payment row."""

    __tablename__ = "ap_payments"

    __table_args__ = (
        Index("idx_ap_payments_vendor_id", "vendor_id"),
        Index("idx_ap_payments_bill_id", "bill_id"),
    )

    id: Mapped[str] = mapped_column(primary_key=True)
    vendor_id: Mapped[str] = mapped_column(nullable=False)
    bill_id: Mapped[str | None] = mapped_column(nullable=True)
    payment_date: Mapped[date] = mapped_column(nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)

    def to_dto(self) -> Payment:
        return Payment(
            id=self.id,
            vendor_id=self.vendor_id,
            payment_date=self.payment_date,
            amount=self.amount,
            bill_id=self.bill_id,
        )

    @classmethod
    def from_dto(cls, dto: Payment) -> "PaymentModel":
        return cls(
            id=dto.id,
            vendor_id=dto.vendor_id,
            bill_id=dto.bill_id,
            payment_date=dto.payment_date,
            amount=dto.amount,
        )


class CashPositionModel(TrackedBase):
    """Single-row table holding the current actual cash balance."""

    __tablename__ = "ap_cash_position"

    id: Mapped[int] = mapped_column(primary_key=True)
    balance: Mapped[Decimal] = mapped_column(nullable=False)


# ---------------------------------------------------------------------------
# 4. Approval workflow
# ---------------------------------------------------------------------------


class ApprovalWorkflowModel(TrackedBase):
    """
    Versioned workflow snapshot.

    Guarantees:
        - One workflow per bill (uq_ap_approval_workflows_bill_id).
        - ``version`` is the compare-and-swap token used by the repository.
    """

    __tablename__ = "ap_approval_workflows"

    __table_args__ = (
        UniqueConstraint("bill_id", name="uq_ap_approval_workflows_bill_id"),
        Index("idx_ap_approval_workflows_status", "status"),
    )

    id: Mapped[str] = mapped_column(String(120), primary_key=True)
    bill_id: Mapped[str] = mapped_column(nullable=False)
    current_step: Mapped[int] = mapped_column(nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    version: Mapped[int] = mapped_column(nullable=False, default=1)
    escalation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    fraud_score: Mapped[Decimal] = mapped_column(nullable=False)
    duplicate_risk: Mapped[Decimal] = mapped_column(nullable=False)
    compliance_issues: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    duplicate_bill_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    steps: Mapped[list["WorkflowStepModel"]] = relationship(
        back_populates="workflow",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="WorkflowStepModel.step_index",
    )

    def to_dto(self) -> ApprovalWorkflow:
        return ApprovalWorkflow(
            id=self.id,
            bill_id=self.bill_id,
            approvers=tuple(step.to_dto() for step in self.steps),
            current_step=self.current_step,
            status=WorkflowStatus(self.status),
            risk_assessment=RiskAssessment(
                fraud_score=self.fraud_score,
                duplicate_risk=self.duplicate_risk,
                compliance_issues=tuple(ComplianceIssue(i) for i in self.compliance_issues),
                duplicate_bill_ids=tuple(self.duplicate_bill_ids),
            ),
            version=self.version,
            escalation_reason=self.escalation_reason,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )

    @classmethod
    def from_dto(cls, dto: ApprovalWorkflow) -> "ApprovalWorkflowModel":
        model = cls(
            id=dto.id,
            bill_id=dto.bill_id,
            current_step=dto.current_step,
            status=dto.status.value,
            version=dto.version,
            escalation_reason=dto.escalation_reason,
            fraud_score=dto.risk_assessment.fraud_score,
            duplicate_risk=dto.risk_assessment.duplicate_risk,
            compliance_issues=[i.value for i in dto.risk_assessment.compliance_issues],
            duplicate_bill_ids=list(dto.risk_assessment.duplicate_bill_ids),
        )
        model.steps = WorkflowStepModel.from_dtos(dto)
        return model


class WorkflowStepModel(TrackedBase):
    __tablename__ = "ap_workflow_steps"

    __table_args__ = (
        UniqueConstraint("workflow_id", "step_index", name="uq_ap_workflow_steps_index"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    workflow_id: Mapped[str] = mapped_column(
        String(120), ForeignKey("ap_approval_workflows.id"), nullable=False,
    )
    step_index: Mapped[int] = mapped_column(nullable=False)
    user_id: Mapped[str] = mapped_column(nullable=False)
    role: Mapped[str] = mapped_column(nullable=False)
    approval_limit: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    comments: Mapped[str] = mapped_column(Text, nullable=False, default="")

    workflow: Mapped["ApprovalWorkflowModel"] = relationship(back_populates="steps")

    def to_dto(self) -> ApproverStep:
        return ApproverStep(
            user_id=self.user_id,
            role=self.role,
            approval_limit=self.approval_limit,
            status=ApproverStatus(self.status),
            decided_at=self.decided_at,
            comments=self.comments,
        )

    @classmethod
    def from_dtos(cls, workflow: ApprovalWorkflow) -> list["WorkflowStepModel"]:
        return [
            cls(
                workflow_id=workflow.id,
                step_index=index,
                user_id=step.user_id,
                role=step.role,
                approval_limit=step.approval_limit,
                status=step.status.value,
                decided_at=step.decided_at,
                comments=step.comments,
            )
            for index, step in enumerate(workflow.approvers)
        ]


class WorkflowActionModel(TrackedBase):
    """Append-only log of approver decisions."""

    __tablename__ = "ap_workflow_actions"

    __table_args__ = (
        Index("idx_ap_workflow_actions_workflow_id", "workflow_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    workflow_id: Mapped[str] = mapped_column(String(120), nullable=False)
    approver_id: Mapped[str] = mapped_column(nullable=False)
    decision: Mapped[str] = mapped_column(String(20), nullable=False)
    step_index: Mapped[int] = mapped_column(nullable=False, default=0)
    decided_at: Mapped[datetime | None] = mapped_column(nullable=True)
    comments: Mapped[str] = mapped_column(Text, nullable=False, default="")

    def to_dto(self) -> WorkflowAction:
        return WorkflowAction(
            workflow_id=self.workflow_id,
            approver_id=self.approver_id,
            decision=ApprovalDecision(self.decision),
            step_index=self.step_index,
            decided_at=self.decided_at,
            comments=self.comments,
        )

    @classmethod
    def from_dto(cls, dto: WorkflowAction) -> "WorkflowActionModel":
        return cls(
            workflow_id=dto.workflow_id,
            approver_id=dto.approver_id,
            decision=ApprovalDecision(dto.decision).value,
            step_index=dto.step_index,
            decided_at=dto.decided_at,
            comments=dto.comments,
        )
