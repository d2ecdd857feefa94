"""
Pure domain layer.

Frozen records, results, policies and provider protocols with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock reads
- I/O
"""

from payables_kernel.domain.approval import (
    OPEN_WORKFLOW_STATUSES,
    TERMINAL_WORKFLOW_STATUSES,
    WORKFLOW_TRANSITIONS,
    ApprovalDecision,
    ApprovalWorkflow,
    ApproverStatus,
    ApproverStep,
    ComplianceIssue,
    RiskAssessment,
    WorkflowAction,
    WorkflowStatus,
)
from payables_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payables_kernel.domain.policies import (
    DEFAULT_APPROVAL_TIERS,
    AnalyticsPolicy,
    ApprovalTier,
    DiscountAnchor,
    ForecastPolicy,
    OptimizerPolicy,
    RecommendationPolicy,
    RiskPolicy,
)
from payables_kernel.domain.providers import (
    ConstantDailyReceipts,
    NeutralScoreProvider,
    NoExpectedReceipts,
    ReceiptsSignal,
    ScheduledReceipts,
    StaticScoreProvider,
    VendorScoreProvider,
    VendorScores,
)
from payables_kernel.domain.records import (
    Bill,
    BillStatus,
    LineItem,
    Payment,
    PaymentTerms,
    Vendor,
    bill_integrity_violations,
    check_bill_integrity,
)
from payables_kernel.domain.results import (
    BatchOptimizationResult,
    CashFlowForecast,
    EarlyPaymentDiscount,
    ForecastResult,
    ForecastRiskFlag,
    MetricsResult,
    PayableMetrics,
    PaymentOptimization,
    PortfolioRecommendation,
    Priority,
    RecommendationKind,
    RecommendationResult,
    RecommendedAction,
    RelationshipStatus,
    StrategyType,
    VendorAnalytics,
    VendorPaymentStrategy,
    VendorPerformanceScore,
)

__all__ = [
    "OPEN_WORKFLOW_STATUSES",
    "TERMINAL_WORKFLOW_STATUSES",
    "WORKFLOW_TRANSITIONS",
    "ApprovalDecision",
    "ApprovalWorkflow",
    "ApproverStatus",
    "ApproverStep",
    "ComplianceIssue",
    "RiskAssessment",
    "WorkflowAction",
    "WorkflowStatus",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "DEFAULT_APPROVAL_TIERS",
    "AnalyticsPolicy",
    "ApprovalTier",
    "DiscountAnchor",
    "ForecastPolicy",
    "OptimizerPolicy",
    "RecommendationPolicy",
    "RiskPolicy",
    "ConstantDailyReceipts",
    "NeutralScoreProvider",
    "NoExpectedReceipts",
    "ReceiptsSignal",
    "ScheduledReceipts",
    "StaticScoreProvider",
    "VendorScoreProvider",
    "VendorScores",
    "Bill",
    "BillStatus",
    "LineItem",
    "Payment",
    "PaymentTerms",
    "Vendor",
    "bill_integrity_violations",
    "check_bill_integrity",
    "BatchOptimizationResult",
    "CashFlowForecast",
    "EarlyPaymentDiscount",
    "ForecastResult",
    "ForecastRiskFlag",
    "MetricsResult",
    "PayableMetrics",
    "PaymentOptimization",
    "PortfolioRecommendation",
    "Priority",
    "RecommendationKind",
    "RecommendationResult",
    "RecommendedAction",
    "RelationshipStatus",
    "StrategyType",
    "VendorAnalytics",
    "VendorPaymentStrategy",
    "VendorPerformanceScore",
]
