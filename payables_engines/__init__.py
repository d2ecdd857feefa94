"""
Module: payables_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for payables_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payables_kernel (domain, exceptions, logging).
    MUST NOT import payables_services or payables_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      The as-of date and starting cash balance are explicit parameters.
    - Decimal-only arithmetic for amounts, ratios, scores and confidences.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine entry point is traced via ``@traced_engine`` (see
    ``payables_engines.tracer``), emitting PAYABLES_ENGINE_TRACE records
    with engine name, version, input fingerprint and duration.

Usage:
    from payables_engines.vendor_analytics import VendorAnalyzer
    from payables_engines.cash_forecast import CashFlowForecaster
    from payables_engines.payment_optimizer import PaymentOptimizer
    from payables_engines.risk import assess_risk
    from payables_engines.approval import build_workflow, apply_decision
    from payables_engines.recommendations import RecommendationAggregator
"""

from payables_engines.approval import (
    apply_decision,
    build_workflow,
    escalate,
    required_approvers,
    workflow_id_for,
)
from payables_engines.cash_forecast import CashFlowForecaster, find_entry
from payables_engines.metrics import (
    calculate_dpo,
    compute_payable_metrics,
    format_payment_terms,
    vendor_risk_level,
)
from payables_engines.payment_optimizer import PaymentOptimizer, early_payment_discount
from payables_engines.recommendations import RecommendationAggregator
from payables_engines.risk import assess_risk, find_duplicates
from payables_engines.tracer import compute_input_fingerprint, traced_engine
from payables_engines.vendor_analytics import (
    VendorAnalyzer,
    decide_relationship_status,
    payment_adherence,
)

__all__ = [
    "apply_decision",
    "build_workflow",
    "escalate",
    "required_approvers",
    "workflow_id_for",
    "CashFlowForecaster",
    "find_entry",
    "calculate_dpo",
    "compute_payable_metrics",
    "format_payment_terms",
    "vendor_risk_level",
    "PaymentOptimizer",
    "early_payment_discount",
    "RecommendationAggregator",
    "assess_risk",
    "find_duplicates",
    "compute_input_fingerprint",
    "traced_engine",
    "VendorAnalyzer",
    "decide_relationship_status",
    "payment_adherence",
]
