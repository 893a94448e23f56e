from datetime import date, datetime
from decimal import Decimal

import pytest

from main.M06_monthly_invoices import MonthlyInvoiceService
from processes.P05_error_types import ConfigurationError, UploadValidationError
from processes.P06_class_items import ArrearsWaiverSchedule, BillingPeriod


TODAY = date(2025, 2, 10)


@pytest.fixture
def service(memory_store, clock):
    return MonthlyInvoiceService(memory_store, clock=clock)


def test_default_month_is_the_last_full_month(service, monthly_franchisee):
    invoice, created = service.create_monthly_invoice(monthly_franchisee, today=TODAY)

    assert created
    assert invoice.period == BillingPeriod(date(2025, 1, 1), date(2025, 1, 31))
    assert invoice.brand is None
    assert invoice.fee_amount == Decimal("250.00")
    assert invoice.total_gross_revenue == Decimal("0.00")
    assert invoice.invoice_number == "HT-2025-0001"


def test_existing_month_is_returned_not_duplicated(service, monthly_franchisee, memory_store):
    first, _ = service.create_monthly_invoice(monthly_franchisee, month="2024-12")
    again, created = service.create_monthly_invoice(monthly_franchisee, month="2024-12")

    assert not created
    assert again.id == first.id
    assert len(memory_store.list_invoices(monthly_franchisee.id)) == 1


@pytest.mark.parametrize("month", ["2025-13", "December", "12/2024"])
def test_malformed_month(service, monthly_franchisee, month):
    with pytest.raises(UploadValidationError, match="yyyy-MM"):
        service.create_monthly_invoice(monthly_franchisee, month=month)


def test_percentage_franchisees_have_no_monthly_invoice(service, flat_franchisee):
    with pytest.raises(ConfigurationError):
        service.create_monthly_invoice(flat_franchisee, today=TODAY)


def test_backfill_waives_arrears_month_by_month(service, monthly_franchisee):
    result = service.backfill_monthly_invoices(
        monthly_franchisee, "2024-11", ArrearsWaiverSchedule(Decimal("600")), today=TODAY,
    )

    assert [m.month for m in result.months] == ["2024-11", "2024-12", "2025-01"]
    assert [m.waived_amount for m in result.months] == [Decimal("250.00"), Decimal("250.00"), Decimal("100.00")]
    assert [m.balance_after for m in result.months] == [Decimal("350.00"), Decimal("100.00"), Decimal("0.00")]
    assert result.created_count == 3
    assert result.remaining_arrears == Decimal("0.00")
    assert result.months[0].invoice.created_at == datetime(2024, 11, 30, 12, 0)
    assert result.months[0].invoice.invoice_number == "HT-2024-0001"
    assert result.months[2].invoice.invoice_number == "HT-2025-0001"
    assert all(m.invoice.fee_amount == Decimal("250.00") for m in result.months)


def test_backfill_respects_the_monthly_cap(service, monthly_franchisee):
    result = service.backfill_monthly_invoices(
        monthly_franchisee, "2024-12", ArrearsWaiverSchedule(Decimal("1000"), monthly_cap=Decimal("100")), today=TODAY,
    )
    assert [m.waived_amount for m in result.months] == [Decimal("100.00"), Decimal("100.00")]
    assert result.remaining_arrears == Decimal("800.00")


def test_backfill_skips_existing_months_but_still_waives(service, monthly_franchisee):
    existing, _ = service.create_monthly_invoice(monthly_franchisee, month="2024-12")

    result = service.backfill_monthly_invoices(
        monthly_franchisee, "2024-11", ArrearsWaiverSchedule(Decimal("300")), today=TODAY,
    )

    assert result.created_count == 2
    assert result.skipped_count == 1
    assert result.months[1].invoice.id == existing.id
    assert result.months[1].waived_amount == Decimal("50.00")
    assert result.remaining_arrears == Decimal("0.00")


def test_future_start_month_moves_back_a_year(service, monthly_franchisee):
    result = service.backfill_monthly_invoices(
        monthly_franchisee, "2025-06", ArrearsWaiverSchedule(Decimal("0")), today=TODAY,
    )
    assert result.adjusted_start_month == "2024-06"
    assert len(result.months) == 8
    assert all(m.waived_amount == Decimal("0.00") for m in result.months)


def test_start_month_too_far_ahead(service, monthly_franchisee):
    with pytest.raises(UploadValidationError, match="last full month"):
        service.backfill_monthly_invoices(
            monthly_franchisee, "2026-06", ArrearsWaiverSchedule(Decimal("0")), today=TODAY,
        )


def test_negative_arrears_are_rejected(service, monthly_franchisee):
    with pytest.raises(UploadValidationError):
        service.backfill_monthly_invoices(
            monthly_franchisee, "2024-11", ArrearsWaiverSchedule(Decimal("-1")), today=TODAY,
        )
