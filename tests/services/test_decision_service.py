"""
Tests for PayablesDecisionService.

Tests cover:
- Snapshot-level integrity filtering for portfolio operations
- Single-bill operations on corrupt or unknown bills
- Defaults: clock date, repository cash position, configured horizon
- record_payment validation
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from payables_config import PayablesConfig
from payables_kernel.domain.clock import DeterministicClock
from payables_kernel.domain.policies import RecommendationPolicy
from payables_kernel.domain.providers import StaticScoreProvider, VendorScores
from payables_kernel.domain.records import BillStatus
from payables_kernel.domain.results import RecommendationKind, RecommendedAction
from payables_kernel.exceptions import (
    BillNotFoundError,
    DataIntegrityError,
    InvalidPaymentError,
    PaymentAlreadyExistsError,
    VendorNotFoundError,
)
from payables_services import InMemoryPayablesRepository, PayablesDecisionService
from payables_services.repository import BillFilter
from tests.factories import AS_OF, D, make_bill, make_payment, make_vendor


def day(offset: int):
    return AS_OF + timedelta(days=offset)


def build_service(bills=(), vendors=None, cash="10000", config=None, **kwargs):
    repo = InMemoryPayablesRepository(
        vendors=vendors if vendors is not None else [make_vendor("V1")],
        bills=bills,
        cash_balance=D(cash),
    )
    service = PayablesDecisionService(repo, DeterministicClock(AS_OF), config, **kwargs)
    return service, repo


def corrupt_bill(bill_id="BAD"):
    # balance above total
    return make_bill(bill_id, amount="1000", balance="1500", due_date=day(1))


class TestIntegrityFiltering:

    def test_forecast_excludes_corrupt_bill(self, captured_logs):
        service, _ = build_service([
            corrupt_bill(),
            make_bill("B1", amount="500", due_date=day(2)),
        ])
        result = service.forecast(3)

        assert result.entries[1].expected_payments == Decimal("0")
        assert result.entries[2].expected_payments == Decimal("500")
        assert [e.bill_id for e in result.integrity_errors] == ["BAD"]
        assert result.integrity_errors[0].invariant == "balance <= total_amount"

        warnings = [r for r in captured_logs() if r["message"] == "bill_integrity_violations"]
        assert warnings and warnings[0]["bill_ids"] == ["BAD"]

    def test_optimize_corrupt_bill_raises(self):
        service, _ = build_service([corrupt_bill()])
        with pytest.raises(DataIntegrityError) as exc_info:
            service.optimize("BAD")
        assert exc_info.value.bill_id == "BAD"

    def test_optimize_many_skips_corrupt_bill(self):
        service, _ = build_service([
            corrupt_bill(),
            make_bill("B1", amount="500", due_date=day(10)),
        ])
        result = service.optimize_many()
        assert [o.bill_id for o in result.optimizations] == ["B1"]
        assert result.for_bill("BAD") is None
        assert {e.bill_id for e in result.integrity_errors} == {"BAD"}

    def test_optimize_many_reports_only_requested_errors(self):
        service, _ = build_service([
            corrupt_bill("BAD"),
            make_bill("B1", amount="500", due_date=day(10)),
        ])
        result = service.optimize_many(["B1"])
        assert [o.bill_id for o in result.optimizations] == ["B1"]
        assert result.integrity_errors == ()

    def test_recommend_and_metrics_carry_errors(self):
        service, _ = build_service([corrupt_bill(), make_bill("B1", amount="500")])
        assert {e.bill_id for e in service.recommend().integrity_errors} == {"BAD"}
        metrics = service.payable_metrics()
        assert metrics.metrics.total_outstanding == Decimal("500")
        assert {e.bill_id for e in metrics.integrity_errors} == {"BAD"}

    def test_clean_snapshot_has_no_errors(self):
        service, _ = build_service([make_bill("B1")])
        assert service.forecast(5).integrity_errors == ()


class TestLookups:

    def test_unknown_bill(self):
        service, _ = build_service([make_bill("B1")])
        with pytest.raises(BillNotFoundError):
            service.optimize("NOPE")
        with pytest.raises(BillNotFoundError):
            service.assess_risk("NOPE")
        with pytest.raises(BillNotFoundError):
            service.optimize_many(["B1", "NOPE"])

    def test_unknown_vendor(self):
        service, _ = build_service([make_bill("B1")])
        with pytest.raises(VendorNotFoundError):
            service.analyze_vendor("V9")

    def test_build_workflow_not_persisted(self):
        service, repo = build_service([make_bill("B1", amount="75000")])
        workflow = service.build_workflow("B1")
        assert workflow.roles == ("Department Manager", "CFO", "CEO")
        assert workflow.created_at.date() == AS_OF
        assert repo.get_workflow(workflow.id) is None


class TestDefaults:

    def test_forecast_uses_configured_horizon_and_cash(self):
        service, _ = build_service(cash="12345")
        entries = service.forecast().entries
        assert len(entries) == 31
        assert entries[0].forecast_date == AS_OF
        assert entries[0].cumulative_balance == Decimal("12345")

    def test_custom_default_horizon(self):
        service, _ = build_service(config=PayablesConfig(default_horizon_days=10))
        assert len(service.forecast().entries) == 11

    def test_explicit_arguments_override_defaults(self):
        service, _ = build_service(cash="100")
        entries = service.forecast(2, as_of=day(5), starting_balance=D("999")).entries
        assert entries[0].forecast_date == day(5)
        assert entries[0].cumulative_balance == Decimal("999")

    def test_config_reaches_aggregator(self):
        bills = [
            make_bill("B1", amount="500", due_date=day(20)),
        ]
        scores = StaticScoreProvider({"V1": VendorScores(quality=D("0.5"))})
        service, _ = build_service(bills, score_provider=scores)
        kinds = [r.kind for r in service.recommend().recommendations]
        assert kinds == [RecommendationKind.DEFERRAL]

        config = PayablesConfig(recommendations=RecommendationPolicy(include_deferral_bucket=False))
        service, _ = build_service(bills, score_provider=scores, config=config)
        assert service.recommend().recommendations == ()

    def test_discount_flows_through_service(self):
        vendor = make_vendor("V1", discount_percent="2", discount_days=10)
        service, _ = build_service(
            [make_bill("B1", amount="10000")], vendors=[vendor], cash="50000",
        )
        optimization = service.optimize("B1")
        assert optimization.recommended_action == RecommendedAction.PAY_IMMEDIATELY
        assert optimization.discount_savings == Decimal("200.00")
        assert service.payable_metrics().metrics.early_payment_opportunities == Decimal("200.00")


class TestRecordPayment:

    def _service(self):
        return build_service(
            [make_bill("B1", amount="1000")],
            vendors=[make_vendor("V1"), make_vendor("V2")],
        )

    def test_partial_payment(self, captured_logs):
        service, repo = self._service()
        service.record_payment(make_payment("P1", bill_id="B1", amount="400"))
        bill = repo.get_bills(BillFilter(bill_ids=("B1",)))[0]
        assert bill.balance == Decimal("600")
        assert bill.status == BillStatus.PARTIAL

        recorded = [r for r in captured_logs() if r["message"] == "payment_recorded"]
        assert recorded[0]["remaining_balance"] == "600"
        assert recorded[0]["status"] == "partial"

    def test_full_payment_marks_paid(self):
        service, repo = self._service()
        service.record_payment(make_payment("P1", bill_id="B1", amount="1000"))
        assert repo.get_bills(BillFilter(bill_ids=("B1",)))[0].status == BillStatus.PAID

    def test_requires_bill_reference(self):
        service, _ = self._service()
        with pytest.raises(InvalidPaymentError) as exc_info:
            service.record_payment(make_payment("P1", bill_id=None))
        assert exc_info.value.reason == "payment must reference a bill"

    def test_unknown_bill(self):
        service, _ = self._service()
        with pytest.raises(BillNotFoundError):
            service.record_payment(make_payment("P1", bill_id="NOPE"))

    def test_unknown_vendor(self):
        service, _ = self._service()
        with pytest.raises(VendorNotFoundError):
            service.record_payment(make_payment("P1", vendor_id="V9", bill_id="B1"))

    def test_vendor_mismatch(self):
        service, _ = self._service()
        with pytest.raises(InvalidPaymentError):
            service.record_payment(make_payment("P1", vendor_id="V2", bill_id="B1"))

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_amount(self, amount):
        service, repo = self._service()
        with pytest.raises(InvalidPaymentError) as exc_info:
            service.record_payment(make_payment("P1", bill_id="B1", amount=amount))
        assert exc_info.value.reason == "amount must be positive"
        assert repo.get_payments() == []

    def test_overpayment(self):
        service, repo = self._service()
        with pytest.raises(InvalidPaymentError):
            service.record_payment(make_payment("P1", bill_id="B1", amount="1000.01"))
        assert repo.get_bills()[0].balance == Decimal("1000")

    def test_disputed_bill_rejected(self):
        service, repo = build_service(
            [make_bill("B1", amount="1000", status=BillStatus.DISPUTED)],
            vendors=[make_vendor("V1")],
        )
        with pytest.raises(InvalidPaymentError) as exc_info:
            service.record_payment(make_payment("P1", bill_id="B1", amount="1000"))
        assert exc_info.value.reason == "bill B1 is disputed"
        assert repo.get_bills()[0].status == BillStatus.DISPUTED
        assert repo.get_payments() == []

    def test_duplicate_payment_id(self):
        service, _ = self._service()
        service.record_payment(make_payment("P1", bill_id="B1", amount="100"))
        with pytest.raises(PaymentAlreadyExistsError):
            service.record_payment(make_payment("P1", bill_id="B1", amount="100"))

    def test_cash_position_unchanged(self):
        service, repo = self._service()
        service.record_payment(make_payment("P1", bill_id="B1", amount="100"))
        assert repo.get_cash_balance() == Decimal("10000")
