#!/usr/bin/env python3
"""
Payables decision report for a snapshot file.

Loads a YAML/JSON snapshot, runs the decision engines against it and
prints one JSON document with the requested sections.

Usage:
    python3 scripts/payables_report.py snapshot.yaml
    python3 scripts/payables_report.py snapshot.yaml --as-of 2024-03-01 --horizon 45
    python3 scripts/payables_report.py snapshot.yaml --section recommendations --section metrics
    python3 scripts/payables_report.py snapshot.yaml --config my_policies.yaml
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

# ---------------------------------------------------------------------------
# Project root on sys.path
# ---------------------------------------------------------------------------
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from payables_config import get_active_config  # noqa: E402
from payables_kernel.domain.clock import DeterministicClock, SystemClock  # noqa: E402
from payables_kernel.exceptions import PayablesError  # noqa: E402
from payables_kernel.logging_config import configure_logging  # noqa: E402
from payables_services import PayablesDecisionService, load_snapshot, to_jsonable  # noqa: E402
from payables_services.serialization import error_to_dict  # noqa: E402

SECTIONS = ("forecast", "optimizations", "recommendations", "metrics", "vendors", "approvals")


def build_report(service: PayablesDecisionService, sections, horizon: int | None) -> dict:
    report: dict = {
        "as_of": service.clock.today().isoformat(),
        "config_id": service.config.config_id,
    }
    vendor_ids = [v.id for v in service.repository.get_vendors()]
    bills = service.repository.get_bills()

    if "forecast" in sections:
        report["forecast"] = to_jsonable(service.forecast(horizon))
    if "optimizations" in sections:
        report["optimizations"] = to_jsonable(service.optimize_many(horizon_days=horizon))
    if "recommendations" in sections:
        report["recommendations"] = to_jsonable(service.recommend(horizon))
    if "metrics" in sections:
        report["metrics"] = to_jsonable(service.payable_metrics())
    if "vendors" in sections:
        report["vendors"] = {
            vendor_id: {
                "analytics": to_jsonable(service.analyze_vendor(vendor_id)),
                "performance": to_jsonable(service.score_vendor_performance(vendor_id)),
                "strategies": to_jsonable(service.vendor_payment_strategies(vendor_id)),
            }
            for vendor_id in vendor_ids
        }
    if "approvals" in sections:
        report["approvals"] = {
            bill.id: to_jsonable(service.build_workflow(bill.id))
            for bill in bills
            if bill.is_unpaid
        }
    return report


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Accounts-payable decision report")
    parser.add_argument("snapshot", type=Path, help="YAML or JSON snapshot file")
    parser.add_argument("--as-of", type=date.fromisoformat, default=None,
                        help="Evaluation date (default: snapshot as_of, else today)")
    parser.add_argument("--horizon", type=int, default=None,
                        help="Forecast horizon in days (default: config)")
    parser.add_argument("--config", type=Path, default=None,
                        help="Policy configuration YAML (default: bundled set)")
    parser.add_argument("--section", action="append", choices=SECTIONS,
                        help="Report section to include (repeatable; default: all)")
    parser.add_argument("--verbose", action="store_true",
                        help="Emit structured JSON logs to stderr")
    args = parser.parse_args(argv)

    configure_logging(level=logging.INFO if args.verbose else logging.WARNING)

    try:
        config = get_active_config(args.config)
        snapshot = load_snapshot(args.snapshot)
        as_of = args.as_of or snapshot.as_of
        clock = DeterministicClock(as_of) if as_of is not None else SystemClock()
        service = PayablesDecisionService(
            snapshot.repository,
            clock,
            config,
            score_provider=snapshot.score_provider,
            receipts=snapshot.receipts,
        )
        report = build_report(service, args.section or SECTIONS, args.horizon)
    except PayablesError as exc:
        print(json.dumps({"error": error_to_dict(exc)}, indent=2), file=sys.stderr)
        return 1

    print(json.dumps(report, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
