from datetime import date, datetime, timedelta

import pytest

from processes.P02_period_resolver import (
    direct_platform_period_for_aggregator_week,
    infer_period_from_text,
    last_full_month,
    month_period,
    parse_flexible_date,
    parse_month_selector,
    payout_date_for_sales_period,
    payout_date_from_fulfillment,
    period_from_filename,
    periods_overlap,
    resolve_calendar_week,
    sales_period_end_for_fulfillment,
    sales_period_for_payout,
)
from processes.P04_static_lists import TEXT_PERIOD_PATTERNS
from processes.P06_class_items import BillingPeriod


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-01-14", date(2024, 1, 14)),
        ("2024-01-14T10:30:00", date(2024, 1, 14)),
        ("14/01/2024", date(2024, 1, 14)),
        ("14-01-24", date(2024, 1, 14)),
        ("20240114", date(2024, 1, 14)),
        ("14 Jan 2024", date(2024, 1, 14)),
        ("14 January 2024", date(2024, 1, 14)),
        ("14th Jan 2024", date(2024, 1, 14)),
        ("Jan 14, 2024", date(2024, 1, 14)),
        ("Sunday 14 January 2024", date(2024, 1, 14)),
        (datetime(2024, 1, 14, 18, 0), date(2024, 1, 14)),
        (date(2024, 1, 14), date(2024, 1, 14)),
    ],
)
def test_parse_flexible_date_shapes(value, expected):
    assert parse_flexible_date(value) == expected


def test_ambiguous_numeric_dates_are_day_first():
    assert parse_flexible_date("03/04/2024") == date(2024, 4, 3)


@pytest.mark.parametrize("value", ["31/02/2024", "2024-13-01", "not a date", "", None, float("nan")])
def test_unreadable_dates_return_none(value):
    assert parse_flexible_date(value) is None


def test_calendar_week_is_monday_to_sunday_and_idempotent():
    for offset in range(14):
        day = date(2025, 2, 1) + timedelta(days=offset)
        week = resolve_calendar_week(day)
        assert week.start.weekday() == 0
        assert week.end.weekday() == 6
        assert week.contains(day)
        assert resolve_calendar_week(week.start) == week
        assert resolve_calendar_week(week.end) == week


def test_sales_period_end_is_next_monday():
    assert sales_period_end_for_fulfillment(date(2025, 2, 5)) == date(2025, 2, 10)   # Wed
    assert sales_period_end_for_fulfillment(date(2025, 2, 10)) == date(2025, 2, 10)  # Mon
    assert sales_period_end_for_fulfillment(date(2025, 2, 11)) == date(2025, 2, 17)  # Tue


def test_payout_round_trip_contains_fulfillment_date():
    for offset in range(21):
        fulfilled = date(2025, 1, 27) + timedelta(days=offset)
        payout = payout_date_from_fulfillment(fulfilled)
        period = sales_period_for_payout(payout)
        assert payout.weekday() == 0
        assert period.start.weekday() == 1      # Tuesday
        assert period.end.weekday() == 0        # Monday
        assert period.contains(fulfilled)
        assert payout_date_for_sales_period(period) == payout


def test_direct_period_for_aggregator_week():
    # Aggregator week Mon 3 – Sun 9 Feb 2025 shows the Slerp sales paid on Mon 10 Feb
    period = direct_platform_period_for_aggregator_week(date(2025, 2, 9))
    assert period == BillingPeriod(date(2025, 1, 28), date(2025, 2, 3))
    assert period.end == date(2025, 2, 9) - timedelta(days=6)
    assert payout_date_for_sales_period(period) == date(2025, 2, 10)


def test_months():
    assert month_period(2024, 2) == BillingPeriod(date(2024, 2, 1), date(2024, 2, 29))
    assert last_full_month(date(2025, 1, 15)) == BillingPeriod(date(2024, 12, 1), date(2024, 12, 31))
    assert parse_month_selector("2025-06") == BillingPeriod(date(2025, 6, 1), date(2025, 6, 30))
    assert parse_month_selector("2025-13") is None
    assert parse_month_selector("June") is None


def test_periods_overlap():
    a = BillingPeriod(date(2025, 2, 3), date(2025, 2, 9))
    assert periods_overlap(a, BillingPeriod(date(2025, 2, 9), date(2025, 2, 15)))
    assert not periods_overlap(a, BillingPeriod(date(2025, 2, 10), date(2025, 2, 16)))


def test_period_from_filename():
    assert period_from_filename("SVAYA_LIMITED_20250205_statement.pdf") == BillingPeriod(
        date(2025, 2, 3), date(2025, 2, 9)
    )
    assert period_from_filename("statement.pdf") is None
    assert period_from_filename("order_99999999.pdf") is None


def test_infer_period_prefers_labelled_phrase_over_bare_date():
    text = "Invoice 01/01/2025\nWeek ending: 9 February 2025\nTotal sales £10.00"
    assert infer_period_from_text(text, TEXT_PERIOD_PATTERNS) == BillingPeriod(date(2025, 2, 3), date(2025, 2, 9))


def test_infer_period_bare_date_only_near_the_top():
    assert infer_period_from_text("Invoice 05/02/2025", TEXT_PERIOD_PATTERNS) == BillingPeriod(
        date(2025, 2, 3), date(2025, 2, 9)
    )
    deep = "x" * 2500 + " 05/02/2025"
    assert infer_period_from_text(deep, TEXT_PERIOD_PATTERNS) is None
