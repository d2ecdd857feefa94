"""
Module: payables_engines.payment_optimizer
Responsibility:
    Per-bill decision of *when* and *how* to pay: early-payment discount
    eligibility, projected cash-flow impact on the would-be payment date,
    and the recommended action with its confidence.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Composes ``CashFlowForecaster`` and ``VendorAnalyzer``.

Invariants enforced:
    - Decision order is fixed; the first matching rule wins:
        1. discount savings above the materiality threshold -> pay_immediately
        2. cash-flow impact below the negative threshold    -> negotiate_terms
        3. vendor quality below the low-quality threshold   -> delay_payment
        4. otherwise                                        -> pay_on_due_date
    - Discount eligibility is recomputed on every call from the as-of date.
    - A missing forecast entry yields impact 0 with ``forecast_available``
      False and a warning; it is never reported as a healthy position.
    - Idempotent: identical inputs produce identical optimizations.

Failure modes:
    - VendorNotFoundError when the bill's vendor is unknown.
    - DataIntegrityError when the bill breaks a balance/status invariant.
"""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Mapping, Sequence

from payables_engines.cash_forecast import CashFlowForecaster, find_entry
from payables_engines.tracer import traced_engine
from payables_engines.vendor_analytics import VendorAnalyzer
from payables_kernel.domain.policies import DiscountAnchor, OptimizerPolicy
from payables_kernel.domain.records import Bill, Payment, Vendor, check_bill_integrity
from payables_kernel.domain.results import (
    CashFlowForecast,
    EarlyPaymentDiscount,
    PaymentOptimization,
    RecommendedAction,
)
from payables_kernel.domain.values import HUNDRED, ZERO, round_money
from payables_kernel.exceptions import VendorNotFoundError
from payables_kernel.logging_config import get_logger

logger = get_logger("engines.payment_optimizer")


def discount_anchor_date(bill: Bill, anchor: DiscountAnchor) -> date:
    if anchor == DiscountAnchor.RECEIVED_DATE and bill.received_date is not None:
        return bill.received_date
    return bill.issue_date


def early_payment_discount(
    bill: Bill,
    vendor: Vendor,
    as_of: date,
    anchor: DiscountAnchor = DiscountAnchor.ISSUE_DATE,
) -> EarlyPaymentDiscount | None:
    """
    Discount available when paying ``bill`` on ``as_of``, or None.

    The window closes at the end of ``anchor date + discount_days``.
    Savings are ``total_amount * percent / 100`` rounded to cents.
    """
    terms = vendor.terms
    if not terms.offers_discount:
        return None

    deadline = discount_anchor_date(bill, anchor) + timedelta(days=terms.discount_days)
    if as_of > deadline:
        return None

    savings = round_money(bill.total_amount * terms.discount_percent / HUNDRED)
    return EarlyPaymentDiscount(
        discount_percent=terms.discount_percent,
        discount_deadline=deadline,
        savings_amount=savings,
    )


class PaymentOptimizer:
    """
    Payment timing decisions.

    Contract:
        ``optimize`` evaluates one bill against a portfolio snapshot;
        ``optimize_many`` evaluates several against one shared forecast and
        preserves input order.
    Non-goals:
        - Does not execute payments.
    """

    def __init__(
        self,
        policy: OptimizerPolicy | None = None,
        forecaster: CashFlowForecaster | None = None,
        analyzer: VendorAnalyzer | None = None,
    ):
        self._policy = policy or OptimizerPolicy()
        self._forecaster = forecaster or CashFlowForecaster()
        self._analyzer = analyzer or VendorAnalyzer()

    @property
    def policy(self) -> OptimizerPolicy:
        return self._policy

    def discount_for(self, bill: Bill, vendor: Vendor, as_of: date) -> EarlyPaymentDiscount | None:
        return early_payment_discount(bill, vendor, as_of, self._policy.discount_anchor)

    def project(
        self,
        *,
        bills: Sequence[Bill],
        as_of: date,
        starting_balance: Decimal,
        horizon_days: int | None = None,
    ) -> list[CashFlowForecast]:
        """Forecast consulted for cash-flow impact (the policy window by default)."""
        if horizon_days is None:
            horizon_days = self._policy.forecast_window_days
        return self._forecaster.forecast(
            horizon_days,
            bills=bills,
            as_of=as_of,
            starting_balance=starting_balance,
        )

    @traced_engine(
        "payment_optimizer", "1.0",
        fingerprint_fields=("bill", "as_of", "starting_balance"),
    )
    def optimize(
        self,
        bill: Bill,
        *,
        vendors: Mapping[str, Vendor],
        bills: Sequence[Bill],
        payments: Sequence[Payment],
        as_of: date,
        starting_balance: Decimal,
        forecast: Sequence[CashFlowForecast] | None = None,
    ) -> PaymentOptimization:
        check_bill_integrity(bill)
        vendor = vendors.get(bill.vendor_id)
        if vendor is None:
            raise VendorNotFoundError(bill.vendor_id, bill_id=bill.id)

        if forecast is None:
            forecast = self.project(bills=bills, as_of=as_of, starting_balance=starting_balance)

        days_until_due = (bill.due_date - as_of).days
        discount = self.discount_for(bill, vendor, as_of)

        payment_date = max(as_of, bill.due_date)
        entry = find_entry(forecast, payment_date)
        if entry is None:
            impact = ZERO
            forecast_available = False
            logger.warning("forecast_entry_missing", extra={
                "bill_id": bill.id,
                "payment_date": payment_date.isoformat(),
                "forecast_days": len(forecast),
            })
        else:
            impact = entry.cumulative_balance - bill.balance
            forecast_available = True

        policy = self._policy
        if discount is not None and discount.savings_amount > policy.discount_savings_threshold:
            action = RecommendedAction.PAY_IMMEDIATELY
            optimal_date = discount.discount_deadline
            confidence = policy.pay_immediately_confidence
        elif impact < policy.negative_impact_threshold:
            action = RecommendedAction.NEGOTIATE_TERMS
            optimal_date = bill.due_date
            confidence = policy.negotiate_confidence
        elif self._vendor_quality(bill.vendor_id, vendors, bills, payments, as_of) < policy.low_quality_threshold:
            action = RecommendedAction.DELAY_PAYMENT
            optimal_date = bill.due_date + timedelta(days=policy.delay_days)
            confidence = policy.delay_confidence
        else:
            action = RecommendedAction.PAY_ON_DUE_DATE
            optimal_date = bill.due_date
            confidence = policy.on_due_date_confidence

        logger.debug("bill_optimized", extra={
            "bill_id": bill.id,
            "vendor_id": bill.vendor_id,
            "action": action.value,
            "days_until_due": days_until_due,
            "cash_flow_impact": str(impact),
            "discount_savings": str(discount.savings_amount) if discount else None,
        })

        return PaymentOptimization(
            bill_id=bill.id,
            optimal_payment_date=optimal_date,
            cash_flow_impact=impact,
            recommended_action=action,
            confidence=confidence,
            days_until_due=days_until_due,
            early_payment_discount=discount,
            forecast_available=forecast_available,
        )

    def optimize_many(
        self,
        targets: Sequence[Bill],
        *,
        vendors: Mapping[str, Vendor],
        bills: Sequence[Bill],
        payments: Sequence[Payment],
        as_of: date,
        starting_balance: Decimal,
        horizon_days: int | None = None,
    ) -> list[PaymentOptimization]:
        """Optimize each target in order against one shared forecast."""
        forecast = self.project(
            bills=bills,
            as_of=as_of,
            starting_balance=starting_balance,
            horizon_days=horizon_days,
        )
        return [
            self.optimize(
                bill,
                vendors=vendors,
                bills=bills,
                payments=payments,
                as_of=as_of,
                starting_balance=starting_balance,
                forecast=forecast,
            )
            for bill in targets
        ]

    def _vendor_quality(
        self,
        vendor_id: str,
        vendors: Mapping[str, Vendor],
        bills: Sequence[Bill],
        payments: Sequence[Payment],
        as_of: date,
    ) -> Decimal:
        analytics = self._analyzer.analyze(
            vendor_id, vendors=vendors, bills=bills, payments=payments, as_of=as_of,
        )
        return analytics.quality_score
