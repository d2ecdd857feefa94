"""
Module: payables_engines.recommendations
Responsibility:
    Combine optimizer, forecast and vendor analytics output into prioritized
    portfolio recommendations, and derive per-vendor payment strategies.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Composes ``PaymentOptimizer`` and ``VendorAnalyzer``.

Invariants enforced:
    - Buckets: early-payment discounts (high), overdue bills (high), term
      negotiation (medium), deferral (low).  Empty buckets are not emitted.
    - Ordering is stable: priority rank first, then emission order; bill
      ids keep the order of the input bills.
    - Overdue bucket: savings 0, impact equal to minus the summed balances.

Failure modes:
    - InvalidHorizonError for a negative horizon.
    - VendorNotFoundError when an unpaid bill references an unknown vendor.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Mapping, Sequence

from payables_engines.payment_optimizer import PaymentOptimizer
from payables_engines.tracer import traced_engine
from payables_engines.vendor_analytics import VendorAnalyzer
from payables_kernel.domain.policies import RecommendationPolicy
from payables_kernel.domain.records import Bill, Payment, Vendor
from payables_kernel.domain.results import (
    PortfolioRecommendation,
    Priority,
    RecommendationKind,
    RecommendedAction,
    StrategyType,
    VendorPaymentStrategy,
)
from payables_kernel.domain.values import ZERO, decimal_sum, round_money
from payables_kernel.exceptions import InvalidHorizonError, VendorNotFoundError
from payables_kernel.logging_config import get_logger

logger = get_logger("engines.recommendations")

EARLY_PAYMENT_ACTION = "Take advantage of early payment discounts"
OVERDUE_ACTION = "Pay overdue bills to maintain vendor relationships"
NEGOTIATION_ACTION = "Negotiate extended payment terms with high-volume vendors"
DEFERRAL_ACTION = "Defer payments to vendors with quality concerns"

EARLY_PAYMENT_REASONING = "High-quality vendor offering early payment discounts"
EXTENSION_REASONING = (
    "High spend volume and excellent payment history provide negotiation leverage"
)


class RecommendationAggregator:
    """
    Portfolio-level recommendations and vendor strategies.

    Contract:
        Pure functions over a snapshot; identical input yields identical,
        identically ordered output.
    """

    def __init__(
        self,
        policy: RecommendationPolicy | None = None,
        optimizer: PaymentOptimizer | None = None,
        analyzer: VendorAnalyzer | None = None,
    ):
        self._policy = policy or RecommendationPolicy()
        self._analyzer = analyzer or VendorAnalyzer()
        self._optimizer = optimizer or PaymentOptimizer(analyzer=self._analyzer)

    @property
    def policy(self) -> RecommendationPolicy:
        return self._policy

    @traced_engine(
        "recommendations", "1.0",
        fingerprint_fields=("horizon_days", "as_of", "starting_balance"),
    )
    def recommend(
        self,
        horizon_days: int,
        *,
        vendors: Mapping[str, Vendor],
        bills: Sequence[Bill],
        payments: Sequence[Payment],
        as_of: date,
        starting_balance: Decimal,
    ) -> list[PortfolioRecommendation]:
        if horizon_days < 0:
            raise InvalidHorizonError(horizon_days)

        unpaid = [b for b in bills if b.is_unpaid]
        optimizations = self._optimizer.optimize_many(
            unpaid,
            vendors=vendors,
            bills=bills,
            payments=payments,
            as_of=as_of,
            starting_balance=starting_balance,
            horizon_days=horizon_days,
        )
        by_bill = dict(zip((b.id for b in unpaid), optimizations))
        policy = self._policy
        recommendations: list[PortfolioRecommendation] = []

        discount_bills = [
            b for b in unpaid
            if by_bill[b.id].discount_savings > policy.discount_bucket_min_savings
        ]
        if discount_bills:
            recommendations.append(PortfolioRecommendation(
                priority=Priority.HIGH,
                kind=RecommendationKind.EARLY_PAYMENT_DISCOUNT,
                action=EARLY_PAYMENT_ACTION,
                bill_ids=tuple(b.id for b in discount_bills),
                potential_savings=decimal_sum(by_bill[b.id].discount_savings for b in discount_bills),
                cash_flow_impact=-decimal_sum(b.balance for b in discount_bills),
            ))

        overdue_bills = [b for b in unpaid if b.is_overdue(as_of)]
        if overdue_bills:
            recommendations.append(PortfolioRecommendation(
                priority=Priority.HIGH,
                kind=RecommendationKind.OVERDUE,
                action=OVERDUE_ACTION,
                bill_ids=tuple(b.id for b in overdue_bills),
                potential_savings=ZERO,
                cash_flow_impact=-decimal_sum(b.balance for b in overdue_bills),
            ))

        candidates = set()
        for vendor_id in vendors:
            analytics = self._analyzer.analyze(
                vendor_id, vendors=vendors, bills=bills, payments=payments, as_of=as_of,
            )
            if (
                analytics.total_spend_ytd > policy.negotiation_min_spend
                and analytics.payment_terms_adherence > policy.negotiation_min_adherence
            ):
                candidates.add(vendor_id)
        negotiable = [b for b in unpaid if b.vendor_id in candidates]
        if negotiable:
            recommendations.append(PortfolioRecommendation(
                priority=Priority.MEDIUM,
                kind=RecommendationKind.TERM_NEGOTIATION,
                action=NEGOTIATION_ACTION,
                bill_ids=tuple(b.id for b in negotiable),
                potential_savings=round_money(
                    decimal_sum(b.total_amount for b in negotiable) * policy.negotiation_savings_rate
                ),
                cash_flow_impact=ZERO,
            ))

        if policy.include_deferral_bucket:
            deferred = [
                b for b in unpaid
                if by_bill[b.id].recommended_action == RecommendedAction.DELAY_PAYMENT
            ]
            if deferred:
                recommendations.append(PortfolioRecommendation(
                    priority=Priority.LOW,
                    kind=RecommendationKind.DEFERRAL,
                    action=DEFERRAL_ACTION,
                    bill_ids=tuple(b.id for b in deferred),
                    potential_savings=ZERO,
                    cash_flow_impact=ZERO,
                ))

        # sorted() is stable, so equal priorities keep emission order
        recommendations = sorted(recommendations, key=lambda r: r.priority.rank)

        logger.info("recommendations_generated", extra={
            "as_of": as_of.isoformat(),
            "horizon_days": horizon_days,
            "unpaid_bills": len(unpaid),
            "buckets": [r.kind.value for r in recommendations],
        })
        return recommendations

    @traced_engine("vendor_strategies", "1.0", fingerprint_fields=("vendor_id", "as_of"))
    def payment_strategies(
        self,
        vendor_id: str,
        *,
        vendors: Mapping[str, Vendor],
        bills: Sequence[Bill],
        payments: Sequence[Payment],
        as_of: date,
    ) -> list[VendorPaymentStrategy]:
        """Early-payment and term-extension strategies for one vendor."""
        vendor = vendors.get(vendor_id)
        if vendor is None:
            raise VendorNotFoundError(vendor_id)

        policy = self._policy
        analytics = self._analyzer.analyze(
            vendor_id, vendors=vendors, bills=bills, payments=payments, as_of=as_of,
        )
        strategies: list[VendorPaymentStrategy] = []

        if analytics.quality_score > policy.early_payment_min_quality:
            outstanding = [b for b in bills if b.vendor_id == vendor_id and b.is_unpaid]
            savings = ZERO
            for bill in outstanding:
                discount = self._optimizer.discount_for(bill, vendor, as_of)
                if discount is not None:
                    savings += discount.savings_amount
            if savings > ZERO:
                strategies.append(VendorPaymentStrategy(
                    vendor_id=vendor_id,
                    strategy_type=StrategyType.EARLY_PAYMENT,
                    reasoning=EARLY_PAYMENT_REASONING,
                    potential_savings=savings,
                    implementation_steps=policy.discount_steps,
                    success_probability=policy.early_payment_probability,
                ))

        if (
            analytics.total_spend_ytd > policy.extension_min_spend
            and analytics.payment_terms_adherence > policy.extension_min_adherence
        ):
            strategies.append(VendorPaymentStrategy(
                vendor_id=vendor_id,
                strategy_type=StrategyType.NEGOTIATE_EXTENSION,
                reasoning=EXTENSION_REASONING,
                potential_savings=round_money(
                    analytics.total_spend_ytd * policy.extension_savings_rate
                ),
                implementation_steps=policy.extension_steps,
                success_probability=policy.extension_probability,
            ))

        logger.debug("vendor_strategies_generated", extra={
            "vendor_id": vendor_id,
            "strategies": [s.strategy_type.value for s in strategies],
        })
        return strategies
