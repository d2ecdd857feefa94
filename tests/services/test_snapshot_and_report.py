"""
Tests for snapshot loading, JSON rendering and the report script.
"""

import importlib.util
import json
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from payables_kernel.domain.providers import (
    ConstantDailyReceipts,
    NoExpectedReceipts,
    ScheduledReceipts,
)
from payables_kernel.domain.records import BillStatus
from payables_kernel.domain.results import RecommendedAction
from payables_kernel.exceptions import BillNotFoundError, SnapshotFormatError
from payables_services import load_snapshot, snapshot_from_dict, to_jsonable
from payables_services.serialization import dumps, error_to_dict
from tests.factories import AS_OF, make_bill

REPORT_SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "payables_report.py"


def snapshot_doc():
    return {
        "as_of": "2024-03-01",
        "cash_balance": "50000",
        "vendors": [
            {
                "id": "V1",
                "name": "Acme Supplies",
                "terms": {"standard_days": 30, "discount_percent": "2", "discount_days": 10},
                "scores": {"quality": "0.92", "delivery": "0.9", "price": "0.88"},
            },
            {"id": "V2", "name": "Bolt Freight"},
        ],
        "bills": [
            {
                "id": "B1",
                "vendor_id": "V1",
                "bill_number": "INV-001",
                "issue_date": "2024-02-25",
                "due_date": "2024-03-26",
                "total_amount": "12000",
                "line_items": [{"description": "Widgets", "amount": "12000"}],
            },
            {
                "id": "B2",
                "vendor_id": "V2",
                "bill_number": "INV-002",
                "issue_date": "2024-01-10",
                "due_date": "2024-02-09",
                "total_amount": 800.5,
                "balance": 300.25,
                "status": "partial",
            },
        ],
        "payments": [
            {"id": "P1", "vendor_id": "V2", "bill_id": "B2",
             "payment_date": "2024-02-01", "amount": "500.25"},
        ],
        "receipts": [
            {"date": "2024-03-05", "amount": "4000"},
            {"date": "2024-03-05", "amount": "1000"},
        ],
    }


def load_report_module():
    spec = importlib.util.spec_from_file_location("payables_report", REPORT_SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestSnapshotFromDict:

    def test_records(self):
        snapshot = snapshot_from_dict(snapshot_doc())
        repo = snapshot.repository
        assert snapshot.as_of == AS_OF
        assert repo.get_cash_balance() == Decimal("50000")

        bills = {b.id: b for b in repo.get_bills()}
        assert bills["B1"].balance == Decimal("12000")
        assert bills["B1"].status == BillStatus.OPEN
        assert bills["B1"].line_items[0].quantity == Decimal("1")
        assert bills["B2"].total_amount == Decimal("800.5")
        assert bills["B2"].balance == Decimal("300.25")
        assert bills["B2"].status == BillStatus.PARTIAL

        vendors = {v.id: v for v in repo.get_vendors()}
        assert vendors["V1"].terms.discount_percent == Decimal("2")
        assert vendors["V2"].terms.offers_discount is False
        assert vendors["V2"].terms.standard_days == 30
        assert [p.amount for p in repo.get_payments()] == [Decimal("500.25")]

    def test_scores_and_receipts(self):
        snapshot = snapshot_from_dict(snapshot_doc())
        assert snapshot.score_provider.scores_for("V1").quality == Decimal("0.92")
        assert snapshot.score_provider.scores_for("V2") is None
        assert isinstance(snapshot.receipts, ScheduledReceipts)
        assert snapshot.receipts.expected_receipts(date(2024, 3, 5)) == Decimal("5000")
        assert snapshot.receipts.expected_receipts(date(2024, 3, 6)) == Decimal("0")

    def test_daily_receipts(self):
        doc = snapshot_doc()
        doc["daily_receipts"] = "250"
        receipts = snapshot_from_dict(doc).receipts
        assert isinstance(receipts, ConstantDailyReceipts)
        assert receipts.expected_receipts(date(2024, 3, 9)) == Decimal("250")

    def test_empty_document(self):
        snapshot = snapshot_from_dict({})
        assert snapshot.repository.get_bills() == []
        assert snapshot.as_of is None
        assert isinstance(snapshot.receipts, NoExpectedReceipts)

    def test_missing_key(self):
        doc = snapshot_doc()
        del doc["bills"][0]["due_date"]
        with pytest.raises(SnapshotFormatError) as exc_info:
            snapshot_from_dict(doc, source="mem")
        assert exc_info.value.source == "mem"
        assert "due_date" in exc_info.value.reason

    @pytest.mark.parametrize("field,value", [
        ("total_amount", "twelve"),
        ("issue_date", "yesterday"),
        ("status", "void"),
        ("total_amount", True),
    ])
    def test_bad_values(self, field, value):
        doc = snapshot_doc()
        doc["bills"][0][field] = value
        with pytest.raises(SnapshotFormatError):
            snapshot_from_dict(doc)

    def test_logs_counts(self, captured_logs):
        snapshot_from_dict(snapshot_doc(), source="mem")
        loaded = [r for r in captured_logs() if r["message"] == "snapshot_loaded"]
        assert loaded[0]["bills"] == 2
        assert loaded[0]["scored_vendors"] == 1


class TestLoadSnapshot:

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "snapshot.yaml"
        path.write_text(yaml.safe_dump(snapshot_doc()))
        snapshot = load_snapshot(path)
        assert {b.id for b in snapshot.repository.get_bills()} == {"B1", "B2"}

    def test_yaml_native_dates(self, tmp_path):
        path = tmp_path / "snapshot.yml"
        path.write_text(
            "as_of: 2024-03-01\n"
            "bills:\n"
            "  - {id: B1, vendor_id: V1, issue_date: 2024-02-01, due_date: 2024-03-02,"
            " total_amount: '10'}\n"
        )
        snapshot = load_snapshot(path)
        assert snapshot.as_of == AS_OF
        assert snapshot.repository.get_bills()[0].due_date == date(2024, 3, 2)

    def test_json_file(self, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps(snapshot_doc()))
        assert load_snapshot(path).repository.get_cash_balance() == Decimal("50000")

    def test_missing_file(self, tmp_path):
        with pytest.raises(SnapshotFormatError) as exc_info:
            load_snapshot(tmp_path / "absent.yaml")
        assert exc_info.value.reason == "file not found"

    def test_unparseable(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(SnapshotFormatError):
            load_snapshot(path)

    def test_top_level_list(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(SnapshotFormatError) as exc_info:
            load_snapshot(path)
        assert exc_info.value.reason == "top level must be a mapping"


class TestSerialization:

    def test_records_render_as_plain_json(self):
        rendered = to_jsonable(make_bill("B1", amount="12.50"))
        assert rendered["total_amount"] == "12.50"
        assert rendered["issue_date"] == "2024-03-01"
        assert rendered["status"] == "open"
        assert rendered["line_items"][0]["amount"] == "12.50"
        json.dumps(rendered)

    def test_enum_and_containers(self):
        value = {"action": RecommendedAction.PAY_IMMEDIATELY, "ids": ("B1", "B2")}
        assert to_jsonable(value) == {"action": "pay_immediately", "ids": ["B1", "B2"]}

    def test_error_rendering(self):
        rendered = error_to_dict(BillNotFoundError("B9"))
        assert rendered["code"] == "BILL_NOT_FOUND"
        assert rendered["bill_id"] == "B9"
        assert "B9" in rendered["message"]

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            to_jsonable(object())

    def test_dumps(self):
        assert json.loads(dumps({"amount": Decimal("1.10")}, indent=None)) == {"amount": "1.10"}


class TestReportScript:

    def _write(self, tmp_path):
        path = tmp_path / "snapshot.yaml"
        path.write_text(yaml.safe_dump(snapshot_doc()))
        return path

    def test_full_report(self, tmp_path, capsys):
        report_module = load_report_module()
        assert report_module.main([str(self._write(tmp_path)), "--horizon", "10"]) == 0

        report = json.loads(capsys.readouterr().out)
        assert report["as_of"] == "2024-03-01"
        assert report["config_id"] == "default"
        assert len(report["forecast"]["entries"]) == 11
        assert report["forecast"]["entries"][4]["expected_receipts"] == "5000"
        assert set(report["vendors"]) == {"V1", "V2"}
        assert set(report["approvals"]) == {"B1", "B2"}
        assert [a["user_id"] for a in report["approvals"]["B1"]["approvers"]] == ["manager_1", "cfo_1"]
        assert report["approvals"]["B2"]["status"] == "approved"

        optimizations = {o["bill_id"]: o for o in report["optimizations"]["optimizations"]}
        assert optimizations["B1"]["recommended_action"] == "pay_immediately"
        assert optimizations["B1"]["early_payment_discount"]["savings_amount"] == "240.00"

    def test_selected_sections_and_as_of(self, tmp_path, capsys):
        report_module = load_report_module()
        code = report_module.main([
            str(self._write(tmp_path)),
            "--as-of", "2024-03-10",
            "--section", "metrics",
        ])
        assert code == 0
        report = json.loads(capsys.readouterr().out)
        assert set(report) == {"as_of", "config_id", "metrics"}
        assert report["as_of"] == "2024-03-10"
        assert report["metrics"]["metrics"]["overdue_amount"] == "300.25"

    def test_bad_snapshot_exits_nonzero(self, tmp_path, capsys):
        report_module = load_report_module()
        assert report_module.main([str(tmp_path / "absent.yaml")]) == 1
        error = json.loads(capsys.readouterr().err)["error"]
        assert error["code"] == "SNAPSHOT_FORMAT_ERROR"
