"""
Typed exception hierarchy for the payables decision engine.

Every exception carries a machine-readable ``code`` class attribute and
stores its context as attributes, so callers catch by type and render
messages from structured data instead of parsing strings.

    PayablesError (base)
    |
    +-- PayablesInputError
    |   +-- BillNotFoundError
    |   +-- VendorNotFoundError
    |   +-- InvalidHorizonError
    |   +-- InvalidPaymentError
    |   +-- PaymentAlreadyExistsError
    |   +-- SnapshotFormatError
    |
    +-- DataIntegrityError
    |
    +-- WorkflowError
    |   +-- WorkflowNotFoundError
    |   +-- WorkflowAlreadyExistsError
    |   +-- WorkflowAlreadyResolvedError
    |   +-- ApproverNotCurrentError
    |   +-- InvalidWorkflowTransitionError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ConfigurationError

Category     | Code                          | When Raised
-------------|-------------------------------|----------------------------------------
Input        | BILL_NOT_FOUND                | Bill id not in the repository snapshot
             | VENDOR_NOT_FOUND              | Vendor id not in the repository snapshot
             | INVALID_HORIZON               | Negative forecast horizon
             | INVALID_PAYMENT               | Payment amount/vendor does not fit bill
             | PAYMENT_ALREADY_EXISTS        | Payment id appended twice
             | SNAPSHOT_FORMAT_ERROR         | Snapshot document unreadable
-------------|-------------------------------|----------------------------------------
Integrity    | DATA_INTEGRITY_VIOLATION      | Source bill breaks a balance/status rule
-------------|-------------------------------|----------------------------------------
Workflow     | WORKFLOW_NOT_FOUND            | Workflow id unknown
             | WORKFLOW_ALREADY_EXISTS       | Bill already submitted
             | WORKFLOW_ALREADY_RESOLVED     | Action on approved/rejected workflow
             | APPROVER_NOT_CURRENT          | Actor does not hold the current step
             | INVALID_WORKFLOW_TRANSITION   | Status change not in the state machine
-------------|-------------------------------|----------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT      | Workflow version changed underneath
-------------|-------------------------------|----------------------------------------
Config       | CONFIGURATION_ERROR           | Config file unusable
"""


class PayablesError(Exception):
    """Base exception for all payables engine errors."""

    code: str = "PAYABLES_ERROR"


# Input errors


class PayablesInputError(PayablesError):
    """Caller supplied an id or value that does not resolve."""

    code: str = "PAYABLES_INPUT_ERROR"


class BillNotFoundError(PayablesInputError):
    code: str = "BILL_NOT_FOUND"

    def __init__(self, bill_id: str):
        self.bill_id = bill_id
        super().__init__(f"Bill not found: {bill_id}")


class VendorNotFoundError(PayablesInputError):
    code: str = "VENDOR_NOT_FOUND"

    def __init__(self, vendor_id: str, bill_id: str | None = None):
        self.vendor_id = vendor_id
        self.bill_id = bill_id
        if bill_id is None:
            message = f"Vendor not found: {vendor_id}"
        else:
            message = f"Vendor not found: {vendor_id} (referenced by bill {bill_id})"
        super().__init__(message)


class InvalidHorizonError(PayablesInputError):
    code: str = "INVALID_HORIZON"

    def __init__(self, horizon_days: int):
        self.horizon_days = horizon_days
        super().__init__(f"Forecast horizon must be >= 0 days, got {horizon_days}")


class InvalidPaymentError(PayablesInputError):
    """Payment cannot be applied to the referenced bill."""

    code: str = "INVALID_PAYMENT"

    def __init__(self, payment_id: str, reason: str):
        self.payment_id = payment_id
        self.reason = reason
        super().__init__(f"Invalid payment {payment_id}: {reason}")


class PaymentAlreadyExistsError(PayablesInputError):
    code: str = "PAYMENT_ALREADY_EXISTS"

    def __init__(self, payment_id: str):
        self.payment_id = payment_id
        super().__init__(f"Payment already recorded: {payment_id}")


class SnapshotFormatError(PayablesInputError):
    """A snapshot document cannot be read into domain records."""

    code: str = "SNAPSHOT_FORMAT_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid snapshot {source}: {reason}")


# Data integrity


class DataIntegrityError(PayablesError):
    """
    A source record violates an invariant the engine relies on.

    The engine never repairs records it did not create.  Batch operations
    collect these next to their results; single-bill operations raise them.
    """

    code: str = "DATA_INTEGRITY_VIOLATION"

    def __init__(self, bill_id: str, field: str, invariant: str, actual: str):
        self.bill_id = bill_id
        self.field = field
        self.invariant = invariant
        self.actual = actual
        super().__init__(
            f"Bill {bill_id} violates '{invariant}' on field '{field}' (actual: {actual})"
        )


# Workflow errors


class WorkflowError(PayablesError):
    """Base exception for approval workflow errors."""

    code: str = "WORKFLOW_ERROR"


class WorkflowNotFoundError(WorkflowError):
    code: str = "WORKFLOW_NOT_FOUND"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Approval workflow not found: {workflow_id}")


class WorkflowAlreadyExistsError(WorkflowError):
    code: str = "WORKFLOW_ALREADY_EXISTS"

    def __init__(self, workflow_id: str):
        self.workflow_id = workflow_id
        super().__init__(f"Approval workflow already exists: {workflow_id}")


class WorkflowAlreadyResolvedError(WorkflowError):
    code: str = "WORKFLOW_ALREADY_RESOLVED"

    def __init__(self, workflow_id: str, status: str):
        self.workflow_id = workflow_id
        self.status = status
        super().__init__(f"Workflow {workflow_id} is already {status}")


class ApproverNotCurrentError(WorkflowError):
    """The acting approver does not hold the workflow's current step."""

    code: str = "APPROVER_NOT_CURRENT"

    def __init__(
        self,
        workflow_id: str,
        approver_id: str,
        expected_approver_id: str | None,
        current_step: int,
    ):
        self.workflow_id = workflow_id
        self.approver_id = approver_id
        self.expected_approver_id = expected_approver_id
        self.current_step = current_step
        super().__init__(
            f"Approver {approver_id} cannot act on step {current_step} of "
            f"workflow {workflow_id} (expected {expected_approver_id})"
        )


class InvalidWorkflowTransitionError(WorkflowError):
    code: str = "INVALID_WORKFLOW_TRANSITION"

    def __init__(self, workflow_id: str, from_status: str, to_status: str):
        self.workflow_id = workflow_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Workflow {workflow_id} cannot move from {from_status} to {to_status}"
        )


# Concurrency errors


class ConcurrencyError(PayablesError):
    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """A versioned record was modified by another writer."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None,
        actual_version: int | None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )


# Configuration


class ConfigurationError(PayablesError):
    code: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration in {source}: {reason}")
