"""
Module: payables_engines.vendor_analytics
Responsibility:
    Derive a per-vendor scorecard (year-to-date spend, average order value,
    payment-terms adherence, quality/delivery/price scores) and the
    recommended relationship status from historical bills and payments.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import payables_kernel.domain and payables_kernel.exceptions.

Invariants enforced:
    - Purity: the as-of date is a parameter; no clock access.
    - The relationship status is a pure function of the three scores,
      adherence and YTD spend (``decide_relationship_status``).
    - Missing external scores resolve to the policy's neutral default,
      never to zero, and the result is marked ``scores_defaulted``.

Failure modes:
    - VendorNotFoundError when the vendor id is not in ``vendors``.

Usage:
    from payables_engines.vendor_analytics import VendorAnalyzer

    analyzer = VendorAnalyzer(score_provider=StaticScoreProvider({...}))
    analytics = analyzer.analyze(
        "V1", vendors=vendors, bills=bills, payments=payments, as_of=date(2024, 6, 1),
    )
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Mapping, Sequence

from payables_engines.tracer import traced_engine
from payables_kernel.domain.policies import AnalyticsPolicy
from payables_kernel.domain.providers import NeutralScoreProvider, VendorScoreProvider
from payables_kernel.domain.records import Bill, Payment, Vendor
from payables_kernel.domain.results import (
    RelationshipStatus,
    VendorAnalytics,
    VendorPerformanceScore,
)
from payables_kernel.domain.values import ZERO, clamp_unit, decimal_sum, mean
from payables_kernel.exceptions import VendorNotFoundError
from payables_kernel.logging_config import get_logger

logger = get_logger("engines.vendor_analytics")


def decide_relationship_status(
    quality: Decimal,
    delivery: Decimal,
    price: Decimal,
    adherence: Decimal,
    ytd_spend: Decimal,
    policy: AnalyticsPolicy | None = None,
) -> RelationshipStatus:
    """
    Map scores to a relationship status; the first matching rule wins.

    preferred -> terminate -> review -> standard.
    """
    policy = policy or AnalyticsPolicy()
    overall = mean((quality, delivery, price))

    if overall >= policy.preferred_min_score and ytd_spend >= policy.preferred_min_spend:
        return RelationshipStatus.PREFERRED
    if overall < policy.terminate_below_score:
        return RelationshipStatus.TERMINATE
    if overall < policy.review_below_score or adherence < policy.review_below_adherence:
        return RelationshipStatus.REVIEW
    return RelationshipStatus.STANDARD


def payment_adherence(
    vendor_id: str,
    bills: Sequence[Bill],
    payments: Sequence[Payment],
    default: Decimal = Decimal("1.0"),
) -> Decimal:
    """
    Fraction of the vendor's payments made on or before the bill's due date.

    Payments that reference no bill of this vendor are left out of the
    denominator.  Returns ``default`` when no payment can be matched.
    """
    due_dates = {b.id: b.due_date for b in bills if b.vendor_id == vendor_id}
    matched = 0
    on_time = 0
    for payment in payments:
        if payment.vendor_id != vendor_id or payment.bill_id not in due_dates:
            continue
        matched += 1
        if payment.payment_date <= due_dates[payment.bill_id]:
            on_time += 1
    if matched == 0:
        return default
    return Decimal(on_time) / Decimal(matched)


def ytd_bills(vendor_id: str, bills: Sequence[Bill], as_of: date) -> list[Bill]:
    """Vendor bills issued from 1 January of the as-of year through ``as_of``."""
    year_start = date(as_of.year, 1, 1)
    return [
        b for b in bills
        if b.vendor_id == vendor_id and year_start <= b.issue_date <= as_of
    ]


class VendorAnalyzer:
    """
    Vendor scorecards.

    Contract:
        Pure functions over a snapshot of vendors, bills and payments.
        External scores come from the injected ``VendorScoreProvider``.
    Non-goals:
        - Does not persist scorecards; they are regenerated per call.
    """

    def __init__(
        self,
        policy: AnalyticsPolicy | None = None,
        score_provider: VendorScoreProvider | None = None,
    ):
        self._policy = policy or AnalyticsPolicy()
        self._scores = score_provider or NeutralScoreProvider()

    @property
    def policy(self) -> AnalyticsPolicy:
        return self._policy

    def _resolve_scores(self, vendor_id: str) -> tuple[Decimal, Decimal, Decimal, Decimal, bool]:
        neutral = self._policy.neutral_score
        scores = self._scores.scores_for(vendor_id)
        if scores is None:
            return neutral, neutral, neutral, neutral, True

        defaulted = False
        resolved = []
        for value in (scores.quality, scores.delivery, scores.price, scores.responsiveness):
            if value is None:
                defaulted = True
                resolved.append(neutral)
            else:
                resolved.append(clamp_unit(value))
        quality, delivery, price, responsiveness = resolved
        return quality, delivery, price, responsiveness, defaulted

    @traced_engine("vendor_analytics", "1.0", fingerprint_fields=("vendor_id", "as_of"))
    def analyze(
        self,
        vendor_id: str,
        *,
        vendors: Mapping[str, Vendor],
        bills: Sequence[Bill],
        payments: Sequence[Payment],
        as_of: date,
    ) -> VendorAnalytics:
        if vendor_id not in vendors:
            raise VendorNotFoundError(vendor_id)

        vendor_bills = [b for b in bills if b.vendor_id == vendor_id]
        if not vendor_bills:
            neutral = self._policy.neutral_score
            logger.debug("vendor_analytics_neutral_defaults", extra={
                "vendor_id": vendor_id,
                "reason": "no_bills",
            })
            return VendorAnalytics(
                vendor_id=vendor_id,
                total_spend_ytd=ZERO,
                average_order_value=ZERO,
                payment_terms_adherence=self._policy.neutral_adherence,
                quality_score=neutral,
                delivery_performance=neutral,
                price_competitiveness=neutral,
                recommended_relationship_status=RelationshipStatus.STANDARD,
                bill_count=0,
                scores_defaulted=True,
            )

        year_bills = ytd_bills(vendor_id, vendor_bills, as_of)
        spend = decimal_sum(b.total_amount for b in year_bills)
        average = spend / Decimal(len(year_bills)) if year_bills else ZERO

        adherence = payment_adherence(
            vendor_id, vendor_bills, payments, default=self._policy.neutral_adherence,
        )
        quality, delivery, price, _, defaulted = self._resolve_scores(vendor_id)
        status = decide_relationship_status(
            quality, delivery, price, adherence, spend, self._policy,
        )

        logger.info("vendor_analyzed", extra={
            "vendor_id": vendor_id,
            "bill_count": len(vendor_bills),
            "ytd_spend": str(spend),
            "adherence": str(adherence),
            "status": status.value,
            "scores_defaulted": defaulted,
        })

        return VendorAnalytics(
            vendor_id=vendor_id,
            total_spend_ytd=spend,
            average_order_value=average,
            payment_terms_adherence=adherence,
            quality_score=quality,
            delivery_performance=delivery,
            price_competitiveness=price,
            recommended_relationship_status=status,
            bill_count=len(vendor_bills),
            scores_defaulted=defaulted,
        )

    @traced_engine("vendor_performance", "1.0", fingerprint_fields=("vendor_id", "as_of"))
    def score_performance(
        self,
        vendor_id: str,
        *,
        vendors: Mapping[str, Vendor],
        bills: Sequence[Bill],
        payments: Sequence[Payment],
        as_of: date,
    ) -> VendorPerformanceScore:
        """
        Five-category scorecard with improvement areas and strengths.

        Categories below ``improvement_below`` are improvement areas; those
        above ``strength_above`` are strengths.  Category order is fixed.
        """
        analytics = self.analyze(
            vendor_id, vendors=vendors, bills=bills, payments=payments, as_of=as_of,
        )
        if analytics.bill_count == 0:
            responsiveness = self._policy.neutral_score
        else:
            responsiveness = self._resolve_scores(vendor_id)[3]

        categories = {
            "quality": analytics.quality_score,
            "delivery": analytics.delivery_performance,
            "pricing": analytics.price_competitiveness,
            "payment_terms": analytics.payment_terms_adherence,
            "responsiveness": responsiveness,
        }
        improvement = tuple(
            name for name, score in categories.items()
            if score < self._policy.improvement_below
        )
        strengths = tuple(
            name for name, score in categories.items()
            if score > self._policy.strength_above
        )

        return VendorPerformanceScore(
            vendor_id=vendor_id,
            overall_score=mean(categories.values()),
            categories=categories,
            improvement_areas=improvement,
            strengths=strengths,
        )
