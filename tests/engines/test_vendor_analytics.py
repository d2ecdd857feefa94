"""
Tests for vendor analytics.

Tests cover:
- decide_relationship_status: rule order preferred -> terminate -> review -> standard
- payment_adherence: on-time fraction, unmatched payments, default
- VendorAnalyzer.analyze: YTD window, neutral defaults, external scores
- VendorAnalyzer.score_performance: categories, improvement areas, strengths
"""

from datetime import date
from decimal import Decimal

import pytest

from payables_engines.vendor_analytics import (
    VendorAnalyzer,
    decide_relationship_status,
    payment_adherence,
)
from payables_kernel.domain.providers import StaticScoreProvider, VendorScores
from payables_kernel.domain.results import RelationshipStatus
from payables_kernel.exceptions import VendorNotFoundError
from tests.factories import AS_OF, D, make_bill, make_payment, make_vendor, vendor_map


def scores(quality="0.8", delivery="0.8", price="0.8", responsiveness="0.8") -> VendorScores:
    return VendorScores(
        quality=D(quality) if quality is not None else None,
        delivery=D(delivery) if delivery is not None else None,
        price=D(price) if price is not None else None,
        responsiveness=D(responsiveness) if responsiveness is not None else None,
    )


# =========================================================================
# 1. decide_relationship_status
# =========================================================================


class TestDecideRelationshipStatus:

    def test_high_scores_and_spend_is_preferred(self):
        status = decide_relationship_status(D("0.95"), D("0.95"), D("0.95"), D("1"), D("10000"))
        assert status == RelationshipStatus.PREFERRED

    def test_high_scores_below_spend_is_standard(self):
        status = decide_relationship_status(D("0.95"), D("0.95"), D("0.95"), D("1"), D("9999"))
        assert status == RelationshipStatus.STANDARD

    def test_very_low_scores_terminate(self):
        status = decide_relationship_status(D("0.3"), D("0.3"), D("0.3"), D("1"), D("50000"))
        assert status == RelationshipStatus.TERMINATE

    def test_low_scores_review(self):
        status = decide_relationship_status(D("0.5"), D("0.5"), D("0.5"), D("1"), D("0"))
        assert status == RelationshipStatus.REVIEW

    def test_poor_adherence_review(self):
        status = decide_relationship_status(D("0.8"), D("0.8"), D("0.8"), D("0.7"), D("0"))
        assert status == RelationshipStatus.REVIEW

    def test_preferred_wins_over_poor_adherence(self):
        """First matching rule wins."""
        status = decide_relationship_status(D("0.95"), D("0.95"), D("0.95"), D("0.5"), D("20000"))
        assert status == RelationshipStatus.PREFERRED


# =========================================================================
# 2. payment_adherence
# =========================================================================


class TestPaymentAdherence:

    def test_half_on_time(self):
        bills = [
            make_bill("B1", due_date=date(2024, 3, 10)),
            make_bill("B2", due_date=date(2024, 3, 20)),
        ]
        payments = [
            make_payment("P1", bill_id="B1", payment_date=date(2024, 3, 9)),
            make_payment("P2", bill_id="B2", payment_date=date(2024, 3, 25)),
        ]
        assert payment_adherence("V1", bills, payments) == Decimal("0.5")

    def test_payment_on_due_date_is_on_time(self):
        bills = [make_bill("B1", due_date=date(2024, 3, 10))]
        payments = [make_payment("P1", bill_id="B1", payment_date=date(2024, 3, 10))]
        assert payment_adherence("V1", bills, payments) == Decimal("1")

    def test_unmatched_payments_ignored(self):
        bills = [make_bill("B1", due_date=date(2024, 3, 10))]
        payments = [
            make_payment("P1", bill_id=None),
            make_payment("P2", bill_id="OTHER"),
        ]
        assert payment_adherence("V1", bills, payments, default=D("0.9")) == D("0.9")

    def test_no_payments_returns_default(self):
        assert payment_adherence("V1", [make_bill()], []) == Decimal("1.0")


# =========================================================================
# 3. VendorAnalyzer.analyze
# =========================================================================


class TestAnalyze:

    def test_unknown_vendor_raises(self):
        with pytest.raises(VendorNotFoundError) as exc_info:
            VendorAnalyzer().analyze("NOPE", vendors={}, bills=[], payments=[], as_of=AS_OF)
        assert exc_info.value.vendor_id == "NOPE"
        assert exc_info.value.code == "VENDOR_NOT_FOUND"

    def test_zero_bills_gives_neutral_standard(self):
        analytics = VendorAnalyzer().analyze(
            "V1", vendors=vendor_map(make_vendor()), bills=[], payments=[], as_of=AS_OF,
        )
        assert analytics.total_spend_ytd == Decimal("0")
        assert analytics.average_order_value == Decimal("0")
        assert analytics.payment_terms_adherence == Decimal("1.0")
        assert analytics.quality_score == Decimal("0.8")
        assert analytics.recommended_relationship_status == RelationshipStatus.STANDARD
        assert analytics.scores_defaulted is True
        assert analytics.bill_count == 0

    def test_zero_bills_ignores_provider_scores(self):
        provider = StaticScoreProvider({"V1": scores("0.1", "0.1", "0.1")})
        analytics = VendorAnalyzer(score_provider=provider).analyze(
            "V1", vendors=vendor_map(make_vendor()), bills=[], payments=[], as_of=AS_OF,
        )
        assert analytics.quality_score == Decimal("0.8")
        assert analytics.recommended_relationship_status == RelationshipStatus.STANDARD

    def test_ytd_window_starts_january_first(self):
        bills = [
            make_bill("B0", amount="1000", issue_date=date(2023, 12, 15)),
            make_bill("B1", amount="3000", issue_date=date(2024, 2, 1)),
            make_bill("B2", amount="9000", issue_date=date(2024, 3, 2)),
        ]
        analytics = VendorAnalyzer().analyze(
            "V1", vendors=vendor_map(make_vendor()), bills=bills, payments=[], as_of=AS_OF,
        )
        assert analytics.total_spend_ytd == Decimal("3000")
        assert analytics.average_order_value == Decimal("3000")
        assert analytics.bill_count == 3

    def test_external_scores_drive_status(self):
        provider = StaticScoreProvider({"V1": scores("0.95", "0.95", "0.95", "0.95")})
        bills = [make_bill("B1", amount="12000", issue_date=date(2024, 2, 1))]
        analytics = VendorAnalyzer(score_provider=provider).analyze(
            "V1", vendors=vendor_map(make_vendor()), bills=bills, payments=[], as_of=AS_OF,
        )
        assert analytics.quality_score == Decimal("0.95")
        assert analytics.recommended_relationship_status == RelationshipStatus.PREFERRED
        assert analytics.scores_defaulted is False

    def test_partial_scores_fill_neutral(self):
        provider = StaticScoreProvider({"V1": scores("0.5", None, None, None)})
        analytics = VendorAnalyzer(score_provider=provider).analyze(
            "V1", vendors=vendor_map(make_vendor()), bills=[make_bill()], payments=[], as_of=AS_OF,
        )
        assert analytics.quality_score == Decimal("0.5")
        assert analytics.delivery_performance == Decimal("0.8")
        assert analytics.scores_defaulted is True

    def test_scores_clamped_to_unit_interval(self):
        provider = StaticScoreProvider({"V1": scores("1.5", "-0.2", "0.8", "0.8")})
        analytics = VendorAnalyzer(score_provider=provider).analyze(
            "V1", vendors=vendor_map(make_vendor()), bills=[make_bill()], payments=[], as_of=AS_OF,
        )
        assert analytics.quality_score == Decimal("1")
        assert analytics.delivery_performance == Decimal("0")

    def test_analysis_logged(self, captured_logs):
        VendorAnalyzer().analyze(
            "V1", vendors=vendor_map(make_vendor()), bills=[make_bill()], payments=[], as_of=AS_OF,
        )
        records = [r for r in captured_logs() if r["message"] == "vendor_analyzed"]
        assert len(records) == 1
        assert records[0]["vendor_id"] == "V1"
        assert records[0]["status"] == "standard"


# =========================================================================
# 4. VendorAnalyzer.score_performance
# =========================================================================


class TestScorePerformance:

    def test_categories_and_areas(self):
        provider = StaticScoreProvider({"V1": scores("0.95", "0.6", "0.85", "0.92")})
        result = VendorAnalyzer(score_provider=provider).score_performance(
            "V1", vendors=vendor_map(make_vendor()), bills=[make_bill()], payments=[], as_of=AS_OF,
        )
        assert list(result.categories) == [
            "quality", "delivery", "pricing", "payment_terms", "responsiveness",
        ]
        assert result.categories["payment_terms"] == Decimal("1.0")
        assert result.improvement_areas == ("delivery",)
        assert result.strengths == ("quality", "payment_terms", "responsiveness")
        assert result.overall_score == Decimal("0.864")

    def test_neutral_vendor_has_no_improvement_areas(self):
        result = VendorAnalyzer().score_performance(
            "V1", vendors=vendor_map(make_vendor()), bills=[], payments=[], as_of=AS_OF,
        )
        assert result.improvement_areas == ()
        assert result.strengths == ("payment_terms",)
