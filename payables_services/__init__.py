"""
payables_services -- Package init and public API.

Responsibility:
    Stateful orchestration over the pure engines: repository contract and
    implementations, ORM models, the decision facade, the approval
    workflow service, snapshot loading and JSON rendering.  This is the
    only layer that touches storage or reads the clock.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        payables_services/ -> payables_engines/  (allowed)
        payables_services/ -> payables_kernel/   (allowed)
        payables_services/ -> payables_config/   (allowed)
        payables_engines/  -> payables_services/ (FORBIDDEN)
        payables_kernel/   -> payables_services/ (FORBIDDEN)
"""

from payables_kernel.logging_config import get_logger

logger = get_logger("services")

from payables_services.decision_service import PayablesDecisionService
from payables_services.repository import (
    BillFilter,
    InMemoryPayablesRepository,
    PayablesRepository,
    PaymentFilter,
)
from payables_services.serialization import to_jsonable
from payables_services.snapshot import LoadedSnapshot, load_snapshot, snapshot_from_dict
from payables_services.sql_repository import SqlPayablesRepository
from payables_services.workflow_service import ApprovalWorkflowService

__all__ = [
    "ApprovalWorkflowService",
    "BillFilter",
    "InMemoryPayablesRepository",
    "LoadedSnapshot",
    "PayablesDecisionService",
    "PayablesRepository",
    "PaymentFilter",
    "SqlPayablesRepository",
    "load_snapshot",
    "snapshot_from_dict",
    "to_jsonable",
]
