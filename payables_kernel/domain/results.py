"""
Result records (``payables_kernel.domain.results``).

Responsibility
--------------
Engine-owned, read-only view models produced by every evaluation:
payment optimizations, vendor scorecards, daily cash-flow forecasts,
vendor payment strategies, portfolio recommendations and payable metrics.

Architecture position
---------------------
**Kernel domain layer** -- pure data, no behaviour beyond derived
properties.  Safe to discard and regenerate; nothing here is
authoritative state.

Invariants enforced
-------------------
* Every categorical field is a closed ``str`` enumeration, so consumers can
  match exhaustively and values still compare equal to their display text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from payables_kernel.exceptions import DataIntegrityError


class RecommendedAction(str, Enum):
    PAY_IMMEDIATELY = "pay_immediately"
    PAY_ON_DUE_DATE = "pay_on_due_date"
    NEGOTIATE_TERMS = "negotiate_terms"
    DELAY_PAYMENT = "delay_payment"


class RelationshipStatus(str, Enum):
    PREFERRED = "preferred"
    STANDARD = "standard"
    REVIEW = "review"
    TERMINATE = "terminate"


class ForecastRiskFlag(str, Enum):
    LOW_CASH_BALANCE = "Low cash balance projected"
    HEAVY_PAYMENT_OBLIGATIONS = "Heavy payment obligations"
    FORECAST_UNCERTAINTY = "Forecast uncertainty increases"


class StrategyType(str, Enum):
    EARLY_PAYMENT = "early_payment"
    ON_TIME = "on_time"
    NEGOTIATE_EXTENSION = "negotiate_extension"
    PARTIAL_PAYMENT = "partial_payment"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort key: lower rank sorts first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class RecommendationKind(str, Enum):
    EARLY_PAYMENT_DISCOUNT = "early_payment_discount"
    OVERDUE = "overdue"
    TERM_NEGOTIATION = "term_negotiation"
    DEFERRAL = "deferral"


# =========================================================================
# Payment optimization
# =========================================================================


@dataclass(frozen=True)
class EarlyPaymentDiscount:
    discount_percent: Decimal
    discount_deadline: date
    savings_amount: Decimal


@dataclass(frozen=True)
class PaymentOptimization:
    """
    Advisory per-bill payment decision.

    ``forecast_available`` is False when the cash forecast had no entry for
    the would-be payment date; ``cash_flow_impact`` is then 0 and must not
    be read as a healthy position.
    """

    bill_id: str
    optimal_payment_date: date
    cash_flow_impact: Decimal
    recommended_action: RecommendedAction
    confidence: Decimal
    days_until_due: int
    early_payment_discount: EarlyPaymentDiscount | None = None
    forecast_available: bool = True

    @property
    def discount_savings(self) -> Decimal:
        if self.early_payment_discount is None:
            return Decimal("0")
        return self.early_payment_discount.savings_amount


# =========================================================================
# Vendor analytics
# =========================================================================


@dataclass(frozen=True)
class VendorAnalytics:
    vendor_id: str
    total_spend_ytd: Decimal
    average_order_value: Decimal
    payment_terms_adherence: Decimal
    quality_score: Decimal
    delivery_performance: Decimal
    price_competitiveness: Decimal
    recommended_relationship_status: RelationshipStatus
    bill_count: int = 0
    scores_defaulted: bool = False

    @property
    def overall_score(self) -> Decimal:
        return (
            self.quality_score + self.delivery_performance + self.price_competitiveness
        ) / Decimal("3")


@dataclass(frozen=True)
class VendorPerformanceScore:
    vendor_id: str
    overall_score: Decimal
    categories: dict[str, Decimal]
    improvement_areas: tuple[str, ...] = ()
    strengths: tuple[str, ...] = ()


# =========================================================================
# Cash flow
# =========================================================================


@dataclass(frozen=True)
class CashFlowForecast:
    forecast_date: date
    expected_payments: Decimal
    expected_receipts: Decimal
    net_cash_flow: Decimal
    cumulative_balance: Decimal
    confidence: Decimal
    risk_factors: tuple[ForecastRiskFlag, ...] = ()


# =========================================================================
# Strategies and recommendations
# =========================================================================


@dataclass(frozen=True)
class VendorPaymentStrategy:
    vendor_id: str
    strategy_type: StrategyType
    reasoning: str
    potential_savings: Decimal
    implementation_steps: tuple[str, ...]
    success_probability: Decimal


@dataclass(frozen=True)
class PortfolioRecommendation:
    priority: Priority
    kind: RecommendationKind
    action: str
    bill_ids: tuple[str, ...]
    potential_savings: Decimal
    cash_flow_impact: Decimal


@dataclass(frozen=True)
class PayableMetrics:
    total_outstanding: Decimal
    average_days_payable: Decimal
    turnover_ratio: Decimal
    early_payment_opportunities: Decimal
    overdue_amount: Decimal


# =========================================================================
# Portfolio wrappers (results + collected integrity violations)
# =========================================================================


@dataclass(frozen=True)
class ForecastResult:
    entries: tuple[CashFlowForecast, ...]
    integrity_errors: tuple[DataIntegrityError, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class BatchOptimizationResult:
    """Optimizations in input order; corrupt bills appear only in ``integrity_errors``."""

    optimizations: tuple[PaymentOptimization, ...]
    integrity_errors: tuple[DataIntegrityError, ...] = field(default_factory=tuple)

    def for_bill(self, bill_id: str) -> PaymentOptimization | None:
        for optimization in self.optimizations:
            if optimization.bill_id == bill_id:
                return optimization
        return None


@dataclass(frozen=True)
class RecommendationResult:
    recommendations: tuple[PortfolioRecommendation, ...]
    integrity_errors: tuple[DataIntegrityError, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class MetricsResult:
    metrics: PayableMetrics
    integrity_errors: tuple[DataIntegrityError, ...] = field(default_factory=tuple)
