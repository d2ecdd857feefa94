"""
Policy value objects (``payables_kernel.domain.policies``).

Responsibility
--------------
Every threshold, weight and default the engines consult, as frozen
dataclasses with validated construction.  ``payables_config`` builds these
from YAML; engines receive them as constructor arguments and never import
the config layer.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Scores and confidences lie in [0, 1]; money thresholds are non-negative.
* Defaults reproduce the documented business rules exactly, so an engine
  built without a policy behaves like one built from ``sets/default.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

_ZERO = Decimal("0")
_ONE = Decimal("1")


def _check_unit(name: str, value: Decimal) -> None:
    if not isinstance(value, Decimal):
        raise TypeError(f"{name} must be Decimal")
    if not _ZERO <= value <= _ONE:
        raise ValueError(f"{name} must be within [0, 1], got {value}")


def _check_non_negative(name: str, value: Decimal) -> None:
    if not isinstance(value, Decimal):
        raise TypeError(f"{name} must be Decimal")
    if value < _ZERO:
        raise ValueError(f"{name} cannot be negative, got {value}")


class DiscountAnchor(str, Enum):
    """Date the early-payment discount window is counted from."""

    ISSUE_DATE = "issue_date"
    RECEIVED_DATE = "received_date"


@dataclass(frozen=True)
class AnalyticsPolicy:
    """Vendor relationship thresholds and neutral defaults."""

    neutral_score: Decimal = Decimal("0.8")
    neutral_adherence: Decimal = Decimal("1.0")
    preferred_min_score: Decimal = Decimal("0.9")
    preferred_min_spend: Decimal = Decimal("10000")
    terminate_below_score: Decimal = Decimal("0.4")
    review_below_score: Decimal = Decimal("0.6")
    review_below_adherence: Decimal = Decimal("0.8")
    improvement_below: Decimal = Decimal("0.7")
    strength_above: Decimal = Decimal("0.9")

    def __post_init__(self) -> None:
        for name in (
            "neutral_score",
            "neutral_adherence",
            "preferred_min_score",
            "terminate_below_score",
            "review_below_score",
            "review_below_adherence",
            "improvement_below",
            "strength_above",
        ):
            _check_unit(name, getattr(self, name))
        _check_non_negative("preferred_min_spend", self.preferred_min_spend)
        if self.terminate_below_score > self.review_below_score:
            raise ValueError("terminate_below_score cannot exceed review_below_score")


@dataclass(frozen=True)
class ForecastPolicy:
    """Confidence decay and risk-flag thresholds of the daily forecast."""

    base_confidence: Decimal = Decimal("0.95")
    daily_confidence_decay: Decimal = Decimal("0.02")
    confidence_floor: Decimal = Decimal("0.30")
    low_balance_threshold: Decimal = Decimal("10000")
    heavy_payment_ratio: Decimal = Decimal("2")
    uncertainty_after_days: int = 15
    uncertainty_below_confidence: Decimal = Decimal("0.7")

    def __post_init__(self) -> None:
        _check_unit("base_confidence", self.base_confidence)
        _check_unit("daily_confidence_decay", self.daily_confidence_decay)
        _check_unit("confidence_floor", self.confidence_floor)
        _check_unit("uncertainty_below_confidence", self.uncertainty_below_confidence)
        _check_non_negative("heavy_payment_ratio", self.heavy_payment_ratio)
        if self.confidence_floor > self.base_confidence:
            raise ValueError("confidence_floor cannot exceed base_confidence")
        if self.uncertainty_after_days < 0:
            raise ValueError("uncertainty_after_days cannot be negative")


@dataclass(frozen=True)
class OptimizerPolicy:
    """Decision thresholds of the per-bill payment optimizer."""

    discount_savings_threshold: Decimal = Decimal("100")
    negative_impact_threshold: Decimal = Decimal("-10000")
    low_quality_threshold: Decimal = Decimal("0.7")
    delay_days: int = 7
    pay_immediately_confidence: Decimal = Decimal("0.9")
    negotiate_confidence: Decimal = Decimal("0.75")
    delay_confidence: Decimal = Decimal("0.65")
    on_due_date_confidence: Decimal = Decimal("0.8")
    forecast_window_days: int = 30
    discount_anchor: DiscountAnchor = DiscountAnchor.ISSUE_DATE

    def __post_init__(self) -> None:
        _check_non_negative("discount_savings_threshold", self.discount_savings_threshold)
        if self.negative_impact_threshold > _ZERO:
            raise ValueError("negative_impact_threshold must be <= 0")
        _check_unit("low_quality_threshold", self.low_quality_threshold)
        for name in (
            "pay_immediately_confidence",
            "negotiate_confidence",
            "delay_confidence",
            "on_due_date_confidence",
        ):
            _check_unit(name, getattr(self, name))
        if self.delay_days < 0:
            raise ValueError("delay_days cannot be negative")
        if self.forecast_window_days < 0:
            raise ValueError("forecast_window_days cannot be negative")
        if not isinstance(self.discount_anchor, DiscountAnchor):
            object.__setattr__(self, "discount_anchor", DiscountAnchor(self.discount_anchor))


@dataclass(frozen=True)
class RiskPolicy:
    """Fraud, duplicate and compliance scoring."""

    large_amount_threshold: Decimal = Decimal("50000")
    large_amount_weight: Decimal = Decimal("0.2")
    unknown_vendor_weight: Decimal = Decimal("0.5")
    duplicate_risk_score: Decimal = Decimal("0.8")
    duplicate_amount_tolerance: Decimal = Decimal("0.01")
    duplicate_window_days: int = 7

    def __post_init__(self) -> None:
        _check_non_negative("large_amount_threshold", self.large_amount_threshold)
        _check_unit("large_amount_weight", self.large_amount_weight)
        _check_unit("unknown_vendor_weight", self.unknown_vendor_weight)
        _check_unit("duplicate_risk_score", self.duplicate_risk_score)
        _check_non_negative("duplicate_amount_tolerance", self.duplicate_amount_tolerance)
        if self.duplicate_window_days < 0:
            raise ValueError("duplicate_window_days cannot be negative")


@dataclass(frozen=True)
class ApprovalTier:
    """
    One approver role and the condition that adds it to a workflow.

    A tier applies when ``amount > amount_above`` or, if set,
    ``fraud_score > fraud_score_above``.  ``approval_limit`` of ``None``
    means unlimited authority.
    """

    role: str
    approver_id: str
    amount_above: Decimal
    approval_limit: Decimal | None = None
    fraud_score_above: Decimal | None = None

    def __post_init__(self) -> None:
        if not self.role or not self.role.strip():
            raise ValueError("role cannot be empty")
        if not self.approver_id or not self.approver_id.strip():
            raise ValueError("approver_id cannot be empty")
        _check_non_negative("amount_above", self.amount_above)
        if self.approval_limit is not None and self.approval_limit <= _ZERO:
            raise ValueError("approval_limit must be positive when set")
        if self.fraud_score_above is not None:
            _check_unit("fraud_score_above", self.fraud_score_above)

    def applies_to(self, amount: Decimal, fraud_score: Decimal) -> bool:
        if amount > self.amount_above:
            return True
        return self.fraud_score_above is not None and fraud_score > self.fraud_score_above


DEFAULT_APPROVAL_TIERS: tuple[ApprovalTier, ...] = (
    ApprovalTier(
        role="Department Manager",
        approver_id="manager_1",
        amount_above=Decimal("1000"),
        approval_limit=Decimal("10000"),
    ),
    ApprovalTier(
        role="CFO",
        approver_id="cfo_1",
        amount_above=Decimal("10000"),
        approval_limit=Decimal("100000"),
        fraud_score_above=Decimal("0.3"),
    ),
    ApprovalTier(
        role="CEO",
        approver_id="ceo_1",
        amount_above=Decimal("50000"),
        approval_limit=None,
    ),
)


@dataclass(frozen=True)
class RecommendationPolicy:
    """Portfolio bucket thresholds and vendor strategy parameters."""

    discount_bucket_min_savings: Decimal = Decimal("50")
    negotiation_min_spend: Decimal = Decimal("25000")
    negotiation_min_adherence: Decimal = Decimal("0.9")
    negotiation_savings_rate: Decimal = Decimal("0.02")
    include_deferral_bucket: bool = True
    early_payment_min_quality: Decimal = Decimal("0.8")
    early_payment_probability: Decimal = Decimal("0.9")
    extension_min_spend: Decimal = Decimal("50000")
    extension_min_adherence: Decimal = Decimal("0.9")
    extension_savings_rate: Decimal = Decimal("0.02")
    extension_probability: Decimal = Decimal("0.75")
    discount_steps: tuple[str, ...] = field(default_factory=lambda: (
        "Review cash flow for early payment feasibility",
        "Process payments before discount deadline",
        "Set up automated early payment for future bills",
    ))
    extension_steps: tuple[str, ...] = field(default_factory=lambda: (
        "Prepare spend analysis and payment history report",
        "Schedule meeting with vendor account manager",
        "Propose extended terms (e.g., Net 45 instead of Net 30)",
    ))

    def __post_init__(self) -> None:
        for name in (
            "discount_bucket_min_savings",
            "negotiation_min_spend",
            "extension_min_spend",
        ):
            _check_non_negative(name, getattr(self, name))
        for name in (
            "negotiation_min_adherence",
            "negotiation_savings_rate",
            "early_payment_min_quality",
            "early_payment_probability",
            "extension_min_adherence",
            "extension_savings_rate",
            "extension_probability",
        ):
            _check_unit(name, getattr(self, name))
        if not isinstance(self.discount_steps, tuple):
            object.__setattr__(self, "discount_steps", tuple(self.discount_steps))
        if not isinstance(self.extension_steps, tuple):
            object.__setattr__(self, "extension_steps", tuple(self.extension_steps))
