from datetime import date
from decimal import Decimal

import pandas as pd
import pytest

from main.M02_process_direct_sales import (
    find_column, location_matches, parse_direct_sales_file, parse_direct_sales_frame, preview_direct_sales,
)
from processes.P05_error_types import UnrecognizedFormatError
from processes.P06_class_items import BillingPeriod, FeeConfiguration, FeeModel


COLUMNS = ["Fulfillment date", "Location name", "Product total after discounts (GMV)", "Status"]
ROWS = [
    ("05/02/2025", "Loughton", "£100.00", "Fulfilled"),
    ("06/02/2025", "Loughton", "50.50", "fulfilled"),
    ("06/02/2025", "Luton", "80", "fulfilled"),
    ("07/02/2025", "Loughton", "20", "cancelled"),
    ("11/02/2025", "Loughton", "0", "fulfilled"),
    ("bad", "Loughton", "10", "fulfilled"),
    ("11/02/2025", "Loughton", "30", "fulfilled"),
]


@pytest.fixture
def orders():
    return pd.DataFrame(ROWS, columns=COLUMNS)


def test_orders_grouped_by_payout_monday(orders):
    weeks, errors = parse_direct_sales_frame(orders)

    assert errors == []
    assert [(w.location, w.payout_date, w.gross_revenue, w.order_count) for w in weeks] == [
        ("Loughton", date(2025, 2, 17), Decimal("150.50"), 2),
        ("Loughton", date(2025, 2, 24), Decimal("30.00"), 1),
    ]
    assert weeks[0].period == BillingPeriod(date(2025, 2, 4), date(2025, 2, 10))


def test_missing_columns_are_reported():
    weeks, errors = parse_direct_sales_frame(pd.DataFrame({"Date": ["05/02/2025"], "Amount": ["1"]}))
    assert weeks == []
    assert "Could not find required columns" in errors[0]


def test_empty_sheet():
    assert parse_direct_sales_frame(pd.DataFrame()) == ([], ["Sheet is empty"])


def test_find_column_ignores_trailing_stars():
    assert find_column(["Order", "Location Name*"], "location name") == "Location Name*"
    assert find_column(["Order"], "location name") is None


@pytest.mark.parametrize(
    "franchisee_location, file_location, expected",
    [
        ("Wing Shack Co - Loughton", "Loughton", True),
        ("Wing Shack Co - Loughton", "loughton high road", True),
        ("Wing Shack Co - Loughton", "Luton", False),
        ("", "Loughton", False),
    ],
)
def test_location_matches(franchisee_location, file_location, expected):
    assert location_matches(franchisee_location, file_location) is expected


def test_preview_applies_the_direct_rate(orders):
    weeks, _ = parse_direct_sales_frame(orders)
    config = FeeConfiguration(FeeModel.FLAT_PERCENTAGE, direct_rate=Decimal("10"))

    preview = preview_direct_sales(weeks, "Wing Shack Co - Loughton", config)

    assert len(preview) == 2
    assert preview.iloc[0]["fee_amount"] == Decimal("15.05")
    assert preview.iloc[0]["week_start"] == date(2025, 2, 4)


def test_parse_csv_file(tmp_path, orders):
    path = tmp_path / "slerp.csv"
    orders.to_csv(path, index=False)
    weeks, errors = parse_direct_sales_file(path)
    assert errors == []
    assert len(weeks) == 2


def test_unsupported_spreadsheet_type(tmp_path):
    with pytest.raises(UnrecognizedFormatError):
        parse_direct_sales_file(tmp_path / "slerp.pdf")
