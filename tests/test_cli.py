import importlib
import json

import pytest

import main.M00_run_cli as cli
import processes.P07_module_configs as configs
from processes.P05_error_types import ConfigurationError
from processes.P06_class_items import FeeModel, PaymentDirection
from processes.P08_report_store import SqliteReportStore


FRANCHISEES = {
    "franchisees": [
        {
            "id": "fr-1",
            "name": "Wing Shack Co - Loughton",
            "location": "Wing Shack Co - Loughton",
            "brands": ["Wing Shack"],
            "fee_config": {"model": "flat-percentage", "percentage_rate": "6", "direct_rate": "10"},
        },
        {
            "id": "fr-4",
            "name": "SMSH BN Hackney",
            "fee_config": {"model": "Fixed Monthly", "monthly_fee": 250, "payment_direction": "pay-them"},
        },
    ]
}


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "AUTO_CREATE_DATA_FOLDERS", False)
    config = tmp_path / "franchisees.json"
    config.write_text(json.dumps(FRANCHISEES), encoding="utf-8")
    db = tmp_path / "franchise.sqlite3"
    return tmp_path, ["--db", str(db), "--config", str(config)]


def test_load_franchisees(workspace):
    tmp_path, _ = workspace
    franchisees = cli.load_franchisees(tmp_path / "franchisees.json")

    assert franchisees["fr-4"].fee_config.model is FeeModel.FIXED_MONTHLY
    assert franchisees["fr-4"].fee_config.payment_direction is PaymentDirection.PAY_THEM
    assert franchisees["fr-1"].fee_config.direct_rate == 10


def test_load_franchisees_accepts_a_plain_list(tmp_path):
    path = tmp_path / "list.json"
    path.write_text(json.dumps(FRANCHISEES["franchisees"]), encoding="utf-8")
    assert set(cli.load_franchisees(path)) == {"fr-1", "fr-4"}


def test_bad_config_is_a_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        cli.load_franchisees(tmp_path / "missing.json")

    path = tmp_path / "bad.json"
    path.write_text(json.dumps([{"name": "no id"}]), encoding="utf-8")
    with pytest.raises(ConfigurationError):
        cli.load_franchisees(path)


def test_ingest_then_status_then_statement(workspace, capsys):
    tmp_path, options = workspace
    statement = tmp_path / "JE_20250205.txt"
    statement.write_text("Total sales £500.00", encoding="utf-8")

    assert cli.main(options + ["ingest", "--franchisee", "fr-1", "--platform", "justeat",
                               "--brand", "Wing Shack", str(statement)]) == 0
    invoice = SqliteReportStore(tmp_path / "franchise.sqlite3").list_invoices("fr-1")[0]
    assert str(invoice.fee_amount) == "30.00"

    assert cli.main(options + ["status", "--invoice", invoice.invoice_number, "sent"]) == 0
    assert cli.main(options + ["status", "--invoice", invoice.invoice_number, "processing"]) == 0
    assert cli.main(options + ["status", "--invoice", invoice.invoice_number, "sent"]) == 1

    assert cli.main(options + ["statement", "--franchisee", "fr-1", "--invoice", invoice.id]) == 0
    out = capsys.readouterr().out
    assert "Amount due: £30.00" in out


def test_unreadable_file_does_not_stop_the_rest_of_the_upload(workspace, capsys):
    tmp_path, options = workspace
    bad = tmp_path / "bad.pdf"
    bad.write_bytes(b"not a pdf")
    good = tmp_path / "JE_20250205.txt"
    good.write_text("Total sales £500.00", encoding="utf-8")

    assert cli.main(options + ["ingest", "--franchisee", "fr-1", "--platform", "justeat",
                               "--brand", "Wing Shack", str(bad), str(good)]) == 1

    out = capsys.readouterr().out
    assert "❌ bad.pdf: Could not read the PDF" in out
    assert "📄 JE_20250205.txt: £500.00" in out
    invoices = SqliteReportStore(tmp_path / "franchise.sqlite3").list_invoices("fr-1")
    assert [str(i.total_gross_revenue) for i in invoices] == ["500.00"]


def test_unknown_franchisee_returns_an_error(workspace, capsys):
    _, options = workspace
    assert cli.main(options + ["monthly", "--franchisee", "nobody"]) == 1
    assert "Franchisee not found" in capsys.readouterr().out


def test_monthly_and_backfill(workspace, capsys):
    _, options = workspace
    assert cli.main(options + ["monthly", "--franchisee", "fr-4", "--month", "2024-12"]) == 0
    assert cli.main(options + ["backfill", "--franchisee", "fr-4", "--start-month", "2024-11",
                               "--arrears", "300"]) == 0
    out = capsys.readouterr().out
    assert "(skipped)" in out
    assert "Backfill complete" in out


def test_unreadable_statement_prints_the_operator_message(workspace, capsys):
    tmp_path, options = workspace
    bad = tmp_path / "statement.pdf"
    bad.write_bytes(b"not a pdf")
    assert cli.main(options + ["parse", "--platform", "deliveroo", str(bad)]) == 1
    assert "Could not read the PDF" in capsys.readouterr().out


def test_debug_logging_is_switched_from_the_environment(monkeypatch):
    assert configs.LOG_FORMAT == "%(asctime)s | %(levelname)-8s | %(message)s"
    assert configs.LOG_DATETIME_FORMAT == "%Y-%m-%d %H:%M:%S"

    monkeypatch.setenv("FRANCHISE_DEBUG", "1")
    try:
        assert importlib.reload(configs).ENABLE_DEBUG_LOGGING is True
    finally:
        monkeypatch.delenv("FRANCHISE_DEBUG")
        importlib.reload(configs)
    assert configs.ENABLE_DEBUG_LOGGING is False
