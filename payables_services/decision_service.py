"""
payables_services.decision_service -- Facade over the decision engines.

Responsibility:
    Read a consistent snapshot (vendors, bills, payments, cash position)
    from a ``PayablesRepository``, run the pure engines against it with the
    active ``PayablesConfig`` and return their results.  Also the single
    validated write path for recording a payment.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Composes VendorAnalyzer, CashFlowForecaster, PaymentOptimizer and
    RecommendationAggregator, all built from one config.  Obtains "today"
    from an injected ``Clock``; engines never see the system time.

Invariants enforced:
    - Portfolio operations (forecast, optimize_many, recommend,
      payable_metrics) exclude bills that break an integrity invariant and
      return the violations next to the results.  Records are never repaired.
    - Single-bill operations (optimize) raise ``DataIntegrityError``.
    - ``record_payment`` appends only after the bill exists, the vendor
      matches and ``0 < amount <= balance``.

Failure modes:
    - BillNotFoundError / VendorNotFoundError for ids that do not resolve.
    - InvalidHorizonError for a negative horizon.
    - InvalidPaymentError from record_payment validation.
    - PaymentAlreadyExistsError from the repository on a duplicate id.

Usage:
    service = PayablesDecisionService(repo, DeterministicClock(date(2024, 3, 1)))
    result = service.recommend(horizon_days=30)
    for rec in result.recommendations:
        print(rec.priority, rec.action)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Sequence

from payables_config.schema import PayablesConfig
from payables_engines.approval import build_workflow
from payables_engines.cash_forecast import CashFlowForecaster
from payables_engines.metrics import compute_payable_metrics
from payables_engines.payment_optimizer import PaymentOptimizer
from payables_engines.recommendations import RecommendationAggregator
from payables_engines.risk import assess_risk
from payables_engines.vendor_analytics import VendorAnalyzer
from payables_kernel.domain.approval import ApprovalWorkflow, RiskAssessment
from payables_kernel.domain.clock import Clock, SystemClock
from payables_kernel.domain.providers import ReceiptsSignal, VendorScoreProvider
from payables_kernel.domain.records import (
    Bill,
    Payment,
    Vendor,
    bill_integrity_violations,
)
from payables_kernel.domain.results import (
    BatchOptimizationResult,
    ForecastResult,
    MetricsResult,
    PaymentOptimization,
    RecommendationResult,
    VendorAnalytics,
    VendorPaymentStrategy,
    VendorPerformanceScore,
)
from payables_kernel.exceptions import (
    BillNotFoundError,
    DataIntegrityError,
    InvalidPaymentError,
    VendorNotFoundError,
)
from payables_kernel.logging_config import LogContext, get_logger
from payables_services.repository import BillFilter, PayablesRepository

logger = get_logger("services.decision")


@dataclass(frozen=True)
class _Snapshot:
    vendors: dict[str, Vendor]
    bills: tuple[Bill, ...]
    clean_bills: tuple[Bill, ...]
    payments: tuple[Payment, ...]
    integrity_errors: tuple[DataIntegrityError, ...]

    def bill(self, bill_id: str) -> Bill:
        for bill in self.bills:
            if bill.id == bill_id:
                return bill
        raise BillNotFoundError(bill_id)


class PayablesDecisionService:
    """
    Read-mostly decision facade.

    Contract:
        Every call reads a fresh snapshot from the repository.  ``as_of``
        defaults to ``clock.today()`` and ``starting_balance`` to the
        repository cash balance.
    Non-goals:
        - Does not execute payments against a bank.
        - Does not cache results between calls.
    """

    def __init__(
        self,
        repository: PayablesRepository,
        clock: Clock | None = None,
        config: PayablesConfig | None = None,
        score_provider: VendorScoreProvider | None = None,
        receipts: ReceiptsSignal | None = None,
    ):
        self._repo = repository
        self._clock = clock or SystemClock()
        self._config = config or PayablesConfig.with_defaults()

        self._analyzer = VendorAnalyzer(self._config.analytics, score_provider)
        self._forecaster = CashFlowForecaster(self._config.forecast, receipts)
        self._optimizer = PaymentOptimizer(
            self._config.optimizer, self._forecaster, self._analyzer,
        )
        self._aggregator = RecommendationAggregator(
            self._config.recommendations, self._optimizer, self._analyzer,
        )

    @property
    def repository(self) -> PayablesRepository:
        return self._repo

    @property
    def config(self) -> PayablesConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    # -- snapshot ---------------------------------------------------------

    def _snapshot(self) -> _Snapshot:
        vendors = {v.id: v for v in self._repo.get_vendors()}
        bills = tuple(self._repo.get_bills())
        payments = tuple(self._repo.get_payments())

        clean: list[Bill] = []
        errors: list[DataIntegrityError] = []
        for bill in bills:
            violations = bill_integrity_violations(bill)
            if violations:
                errors.extend(violations)
            else:
                clean.append(bill)

        if errors:
            logger.warning("bill_integrity_violations", extra={
                "violations": len(errors),
                "bill_ids": sorted({e.bill_id for e in errors}),
            })
        return _Snapshot(vendors, bills, tuple(clean), payments, tuple(errors))

    def _as_of(self, as_of: date | None) -> date:
        return as_of if as_of is not None else self._clock.today()

    def _balance(self, starting_balance: Decimal | None) -> Decimal:
        if starting_balance is not None:
            return starting_balance
        return self._repo.get_cash_balance()

    def _horizon(self, horizon_days: int | None) -> int:
        return self._config.default_horizon_days if horizon_days is None else horizon_days

    # -- vendor analytics -------------------------------------------------

    def analyze_vendor(self, vendor_id: str, as_of: date | None = None) -> VendorAnalytics:
        snap = self._snapshot()
        with LogContext.bind(vendor_id=vendor_id):
            return self._analyzer.analyze(
                vendor_id,
                vendors=snap.vendors,
                bills=snap.clean_bills,
                payments=snap.payments,
                as_of=self._as_of(as_of),
            )

    def score_vendor_performance(
        self,
        vendor_id: str,
        as_of: date | None = None,
    ) -> VendorPerformanceScore:
        snap = self._snapshot()
        with LogContext.bind(vendor_id=vendor_id):
            return self._analyzer.score_performance(
                vendor_id,
                vendors=snap.vendors,
                bills=snap.clean_bills,
                payments=snap.payments,
                as_of=self._as_of(as_of),
            )

    def vendor_payment_strategies(
        self,
        vendor_id: str,
        as_of: date | None = None,
    ) -> list[VendorPaymentStrategy]:
        snap = self._snapshot()
        with LogContext.bind(vendor_id=vendor_id):
            return self._aggregator.payment_strategies(
                vendor_id,
                vendors=snap.vendors,
                bills=snap.clean_bills,
                payments=snap.payments,
                as_of=self._as_of(as_of),
            )

    # -- cash flow --------------------------------------------------------

    def forecast(
        self,
        horizon_days: int | None = None,
        *,
        as_of: date | None = None,
        starting_balance: Decimal | None = None,
    ) -> ForecastResult:
        snap = self._snapshot()
        entries = self._forecaster.forecast(
            self._horizon(horizon_days),
            bills=snap.clean_bills,
            as_of=self._as_of(as_of),
            starting_balance=self._balance(starting_balance),
        )
        return ForecastResult(entries=tuple(entries), integrity_errors=snap.integrity_errors)

    # -- payment optimization ---------------------------------------------

    def optimize(
        self,
        bill_id: str,
        *,
        as_of: date | None = None,
        starting_balance: Decimal | None = None,
    ) -> PaymentOptimization:
        """Optimize one bill; raises ``DataIntegrityError`` if it is corrupt."""
        snap = self._snapshot()
        bill = snap.bill(bill_id)
        with LogContext.bind(bill_id=bill_id, vendor_id=bill.vendor_id):
            return self._optimizer.optimize(
                bill,
                vendors=snap.vendors,
                bills=snap.clean_bills,
                payments=snap.payments,
                as_of=self._as_of(as_of),
                starting_balance=self._balance(starting_balance),
            )

    def optimize_many(
        self,
        bill_ids: Sequence[str] | None = None,
        *,
        as_of: date | None = None,
        starting_balance: Decimal | None = None,
        horizon_days: int | None = None,
    ) -> BatchOptimizationResult:
        """
        Optimize several bills against one shared forecast.

        Without ``bill_ids`` every unpaid bill is optimized.  Corrupt bills
        are reported in ``integrity_errors`` and skipped.
        """
        snap = self._snapshot()
        if bill_ids is None:
            requested = [b for b in snap.bills if b.is_unpaid]
        else:
            requested = [snap.bill(bill_id) for bill_id in bill_ids]

        corrupt = {e.bill_id for e in snap.integrity_errors}
        targets = [b for b in requested if b.id not in corrupt]
        errors = tuple(
            e for e in snap.integrity_errors
            if e.bill_id in {b.id for b in requested}
        )

        optimizations = self._optimizer.optimize_many(
            targets,
            vendors=snap.vendors,
            bills=snap.clean_bills,
            payments=snap.payments,
            as_of=self._as_of(as_of),
            starting_balance=self._balance(starting_balance),
            horizon_days=horizon_days,
        )
        logger.info("bills_optimized", extra={
            "optimized": len(optimizations),
            "skipped": len(requested) - len(targets),
        })
        return BatchOptimizationResult(
            optimizations=tuple(optimizations),
            integrity_errors=errors,
        )

    # -- risk and approval ------------------------------------------------

    def assess_risk(self, bill_id: str) -> RiskAssessment:
        snap = self._snapshot()
        bill = snap.bill(bill_id)
        with LogContext.bind(bill_id=bill_id, vendor_id=bill.vendor_id):
            return assess_risk(
                bill,
                vendors=snap.vendors,
                bills=snap.bills,
                policy=self._config.risk,
            )

    def build_workflow(self, bill_id: str) -> ApprovalWorkflow:
        """Initial approval workflow for the bill (not persisted)."""
        snap = self._snapshot()
        bill = snap.bill(bill_id)
        with LogContext.bind(bill_id=bill_id, vendor_id=bill.vendor_id):
            return build_workflow(
                bill,
                vendors=snap.vendors,
                bills=snap.bills,
                tiers=self._config.approval_tiers,
                risk_policy=self._config.risk,
                created_at=self._clock.now(),
            )

    # -- portfolio --------------------------------------------------------

    def recommend(
        self,
        horizon_days: int | None = None,
        *,
        as_of: date | None = None,
        starting_balance: Decimal | None = None,
    ) -> RecommendationResult:
        snap = self._snapshot()
        recommendations = self._aggregator.recommend(
            self._horizon(horizon_days),
            vendors=snap.vendors,
            bills=snap.clean_bills,
            payments=snap.payments,
            as_of=self._as_of(as_of),
            starting_balance=self._balance(starting_balance),
        )
        return RecommendationResult(
            recommendations=tuple(recommendations),
            integrity_errors=snap.integrity_errors,
        )

    def payable_metrics(self, as_of: date | None = None) -> MetricsResult:
        snap = self._snapshot()
        metrics = compute_payable_metrics(
            vendors=snap.vendors,
            bills=snap.clean_bills,
            as_of=self._as_of(as_of),
            discount_anchor=self._config.discount_anchor,
        )
        return MetricsResult(metrics=metrics, integrity_errors=snap.integrity_errors)

    # -- writes -----------------------------------------------------------

    def record_payment(self, payment: Payment) -> Payment:
        """
        Validate and append a payment against its bill.

        Raises:
            InvalidPaymentError: no bill reference or a vendor mismatch.  The
                repository raises it too, while holding the bill, for an
                amount outside ``(0, balance]`` or a disputed bill.
            BillNotFoundError: the referenced bill does not exist.
            VendorNotFoundError: the payment's vendor is unknown.
        """
        with LogContext.bind(bill_id=payment.bill_id, vendor_id=payment.vendor_id):
            if payment.bill_id is None:
                raise InvalidPaymentError(payment.id, "payment must reference a bill")

            matches = self._repo.get_bills(BillFilter(bill_ids=(payment.bill_id,)))
            if not matches:
                raise BillNotFoundError(payment.bill_id)
            bill = matches[0]

            vendor_ids = {v.id for v in self._repo.get_vendors()}
            if payment.vendor_id not in vendor_ids:
                raise VendorNotFoundError(payment.vendor_id)
            if bill.vendor_id != payment.vendor_id:
                raise InvalidPaymentError(
                    payment.id,
                    f"vendor {payment.vendor_id} does not match bill vendor {bill.vendor_id}",
                )

            settled = self._repo.append_payment(payment)

        logger.info("payment_recorded", extra={
            "payment_id": payment.id,
            "bill_id": payment.bill_id,
            "amount": str(payment.amount),
            "remaining_balance": str(settled.balance),
            "status": settled.status.value,
        })
        return payment
