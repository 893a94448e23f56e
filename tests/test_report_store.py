import sqlite3
from datetime import date, datetime
from decimal import Decimal

import pytest

from processes.P05_error_types import RecordNotFoundError
from processes.P06_class_items import (
    BillingPeriod, Invoice, InvoiceStatus, Platform, RevenueReport, SourceKind,
)
from processes.P08_report_store import SqliteReportStore, format_invoice_number


WEEK = BillingPeriod(date(2025, 2, 3), date(2025, 2, 9))


def make_report(amount, platform=Platform.DELIVEROO, brand="Wing Shack", franchise_id="fr-1"):
    return RevenueReport(
        franchise_id=franchise_id,
        brand=brand,
        platform=platform,
        period_start=WEEK.start,
        period_end=WEEK.end,
        gross_revenue=Decimal(amount),
        source_kind=SourceKind.CSV,
        source_path="statement.csv",
        uploaded_at=datetime(2025, 2, 10, 9, 0),
    )


def make_invoice(invoice_id, number, brand="Wing Shack", franchise_id="fr-1", period=WEEK):
    return Invoice(
        id=invoice_id,
        invoice_number=number,
        franchise_id=franchise_id,
        brand=brand,
        period_start=period.start,
        period_end=period.end,
        total_gross_revenue=Decimal("1234.56"),
        fee_percentage=Decimal("6.67"),
        fee_amount=Decimal("82.35"),
        created_at=datetime(2025, 2, 10, 9, 0),
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request, memory_store, sqlite_store):
    return memory_store if request.param == "memory" else sqlite_store


def test_format_invoice_number():
    assert format_invoice_number(2025, 7) == "HT-2025-0007"


def test_replace_report_keeps_one_row_per_key(store):
    store.replace_report(make_report("100.00"))
    store.replace_report(make_report("250.00"))
    store.replace_report(make_report("10.00", platform=Platform.JUSTEAT))

    reports = store.list_reports("fr-1", brand="Wing Shack", period=WEEK)
    assert [(r.platform, r.gross_revenue) for r in reports] == [
        (Platform.DELIVEROO, Decimal("250.00")),
        (Platform.JUSTEAT, Decimal("10.00")),
    ]
    assert store.list_reports("fr-1", platforms=[Platform.JUSTEAT])[0].gross_revenue == Decimal("10.00")


def test_invoice_round_trip_and_update(store):
    store.save_invoice(make_invoice("inv-1", "HT-2025-0001"))

    fetched = store.get_invoice("inv-1")
    assert fetched.total_gross_revenue == Decimal("1234.56")
    assert fetched.fee_percentage == Decimal("6.67")
    assert fetched.status is InvoiceStatus.DRAFT

    fetched.status = InvoiceStatus.SENT
    fetched.fee_amount = Decimal("80.00")
    store.save_invoice(fetched)

    again = store.find_invoice("fr-1", "Wing Shack", WEEK)
    assert again.id == "inv-1"
    assert again.status is InvoiceStatus.SENT
    assert again.fee_amount == Decimal("80.00")


def test_all_brands_invoice_is_found_by_none(store):
    store.save_invoice(make_invoice("inv-1", "HT-2025-0001", brand=None))
    assert store.find_invoice("fr-1", None, WEEK).brand is None
    assert store.find_invoice("fr-1", "Wing Shack", WEEK) is None


def test_one_invoice_per_brand_and_period(store):
    store.save_invoice(make_invoice("inv-1", "HT-2025-0001"))
    with pytest.raises(sqlite3.IntegrityError):
        store.save_invoice(make_invoice("inv-2", "HT-2025-0002"))


def test_next_invoice_number_continues_the_year(store):
    assert store.next_invoice_number(2025) == "HT-2025-0001"
    store.save_invoice(make_invoice("inv-1", "HT-2025-0001"))
    store.save_invoice(make_invoice("inv-2", "HT-2025-0009", brand="SMSH BN"))
    store.save_invoice(make_invoice("inv-3", "HT-2024-0041", brand="Eggs n Stuff"))
    assert store.next_invoice_number(2025) == "HT-2025-0010"
    assert store.next_invoice_number(2024) == "HT-2024-0042"


def test_failed_transaction_rolls_back(store):
    store.replace_report(make_report("100.00"))
    with pytest.raises(RuntimeError):
        with store.transaction():
            store.replace_report(make_report("999.00"))
            store.save_invoice(make_invoice("inv-1", "HT-2025-0001"))
            raise RuntimeError("boom")

    assert store.list_reports("fr-1")[0].gross_revenue == Decimal("100.00")
    assert store.list_invoices() == []


def test_missing_invoice(store):
    with pytest.raises(RecordNotFoundError):
        store.get_invoice("nope")
    with pytest.raises(RecordNotFoundError):
        store.delete_invoice("nope")


def test_delete_franchise_only_touches_that_franchise(store):
    store.replace_report(make_report("1.00"))
    store.replace_report(make_report("2.00", platform=Platform.UBEREATS))
    store.replace_report(make_report("3.00", franchise_id="fr-9"))
    store.save_invoice(make_invoice("inv-1", "HT-2025-0001"))
    store.save_invoice(make_invoice("inv-9", "HT-2025-0002", franchise_id="fr-9"))

    assert store.delete_franchise("fr-1") == (2, 1)
    assert store.list_reports("fr-1") == []
    assert [i.id for i in store.list_invoices()] == ["inv-9"]


def test_sqlite_store_persists_between_instances(tmp_path):
    path = tmp_path / "db" / "franchise.sqlite3"
    SqliteReportStore(path).replace_report(make_report("42.10"))
    assert SqliteReportStore(path).list_reports("fr-1")[0].gross_revenue == Decimal("42.10")
