from datetime import date
from decimal import Decimal

from main.M02_process_csv import TabularExtractor, infer_period_from_frame, read_statement_frame
from processes.P06_class_items import BillingPeriod, Confidence, Platform, SourceKind


def parse(csv_text, platform):
    return TabularExtractor().parse(csv_text, platform)


def test_uber_sales_plus_offers_is_high_confidence():
    csv_text = (
        "Order Date,Sales (incl. VAT),Offers on items (incl. VAT)\n"
        "03/02/2025,£100.00,-£10.00\n"
        "04/02/2025,£50.50,£0.00\n"
    )
    result = parse(csv_text, Platform.UBEREATS)

    assert result.gross_revenue == Decimal("140.50")
    assert result.confidence is Confidence.HIGH
    assert result.matched_rule == "Sales (incl. VAT) + Offers on items (incl. VAT)"
    assert result.period == BillingPeriod(date(2025, 2, 3), date(2025, 2, 9))
    assert result.row_count == 2
    assert result.source_kind is SourceKind.CSV


def test_uber_sales_without_offers_is_medium():
    csv_text = "Sales (incl. VAT)\n100.00\n50.50\n"
    result = parse(csv_text, "Uber Eats")
    assert result.gross_revenue == Decimal("150.50")
    assert result.confidence is Confidence.MEDIUM


def test_exact_header_match_is_high():
    csv_text = "Restaurant,Gross Revenue\nA,\"1,000.00\"\nB,250.25\n"
    result = parse(csv_text, Platform.DELIVEROO)
    assert result.gross_revenue == Decimal("1250.25")
    assert result.confidence is Confidence.HIGH
    assert result.matched_rule == "Gross Revenue"


def test_partial_header_match_is_medium():
    csv_text = "Order ID,Total Sales (GBP)\n1001,12.00\n1002,8.00\n"
    result = parse(csv_text, Platform.JUSTEAT)
    assert result.gross_revenue == Decimal("20.00")
    assert result.confidence is Confidence.MEDIUM
    assert result.matched_rule == "Total Sales (GBP)"
    assert result.period is None


def test_numeric_column_fallback_is_low():
    csv_text = "Ref,Amount\nA1,12.50\nA2,7.50\n"
    result = parse(csv_text, Platform.JUSTEAT)
    assert result.gross_revenue == Decimal("20.00")
    assert result.confidence is Confidence.LOW
    assert result.matched_rule == "Amount"


def test_no_revenue_column_returns_zero_low():
    csv_text = "Ref,Note\nA1,hello\nA2,world\n"
    result = parse(csv_text, Platform.JUSTEAT)
    assert result.gross_revenue == Decimal("0.00")
    assert result.confidence is Confidence.LOW
    assert result.matched_rule is None


def test_week_ending_column_uses_latest_date():
    csv_text = "Week Ending,Total\n02/02/2025,100\n09/02/2025,200\n"
    result = parse(csv_text, Platform.DELIVEROO)
    assert result.gross_revenue == Decimal("300.00")
    assert result.period == BillingPeriod(date(2025, 2, 3), date(2025, 2, 9))


def test_empty_csv_is_a_no_match():
    result = parse("", Platform.DELIVEROO)
    assert result.gross_revenue == Decimal("0.00")
    assert result.confidence is Confidence.LOW
    assert result.row_count == 0


def test_bytes_with_bom_are_read():
    df = read_statement_frame(b"\xef\xbb\xbfTotal\n5.00\n")
    assert list(df.columns) == ["Total"]


def test_frame_without_date_columns_has_no_period():
    df = read_statement_frame("Total\n5.00\n")
    assert infer_period_from_frame(df) is None
