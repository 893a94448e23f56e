from decimal import Decimal

import pytest

from main.M03_allocate_brands import allocate_brand_breakdown, allocations_for_row, breakdown_for_result
from main.M04_fee_rules import compute_direct_platform_fee, compute_fee
from processes.P05_error_types import ConfigurationError, UploadValidationError
from processes.P06_class_items import (
    Confidence, FeeConfiguration, FeeModel, ParseResult, Platform, UploadRow,
)


# ----------------------------------------------------------------------------------------------------
# Brand allocation
# ----------------------------------------------------------------------------------------------------

def test_every_known_brand_gets_an_allocation():
    allocations = allocate_brand_breakdown({"Wing Shack": Decimal("100.005"), "Pop-up": Decimal("5")})

    assert [(a.brand, a.amount) for a in allocations] == [
        ("Wing Shack", Decimal("100.01")),
        ("SMSH BN", Decimal("0.00")),
        ("Eggs n Stuff", Decimal("0.00")),
        ("Pop-up", Decimal("5.00")),
    ]


def test_breakdown_only_for_deliveroo():
    result = ParseResult(Decimal("50.00"), Confidence.HIGH, "Total sales")
    assert breakdown_for_result(result, Platform.JUSTEAT) is None

    single = breakdown_for_result(result, Platform.DELIVEROO)
    assert single["Wing Shack"] == Decimal("50.00")
    assert single["SMSH BN"] == Decimal("0.00")


def test_operator_override_feeds_the_single_brand_allocation():
    result = ParseResult(Decimal("50.00"), Confidence.LOW)
    row = UploadRow(Platform.DELIVEROO, result, revenue_override=Decimal("75"))
    amounts = {a.brand: a.amount for a in allocations_for_row(row, None)}
    assert amounts["Wing Shack"] == Decimal("75.00")


def test_operator_override_replaces_a_single_brand_breakdown():
    breakdown = {"Wing Shack": Decimal("0.00"), "SMSH BN": Decimal("500.00"), "Eggs n Stuff": Decimal("0.00")}
    result = ParseResult(Decimal("500.00"), Confidence.HIGH, "Total Order Value", brand_breakdown=breakdown)
    row = UploadRow(Platform.DELIVEROO, result, revenue_override=Decimal("520"))

    amounts = {a.brand: a.amount for a in allocations_for_row(row, None)}
    assert amounts == {"Wing Shack": Decimal("0.00"), "SMSH BN": Decimal("520.00"), "Eggs n Stuff": Decimal("0.00")}


def test_operator_override_on_a_multi_brand_statement_is_rejected():
    breakdown = {"Wing Shack": Decimal("300.00"), "SMSH BN": Decimal("200.00")}
    result = ParseResult(Decimal("500.00"), Confidence.HIGH, "Total Order Value", brand_breakdown=breakdown)
    row = UploadRow(Platform.DELIVEROO, result, revenue_override=Decimal("520"))

    with pytest.raises(UploadValidationError, match="Wing Shack, SMSH BN"):
        allocations_for_row(row, None)


def test_non_deliveroo_row_needs_a_brand():
    row = UploadRow(Platform.UBEREATS, ParseResult(Decimal("10"), Confidence.HIGH), brand="  ")
    with pytest.raises(UploadValidationError, match="Uber Eats"):
        allocations_for_row(row, None)


# ----------------------------------------------------------------------------------------------------
# Fee engine
# ----------------------------------------------------------------------------------------------------

def test_per_platform_fee_and_blended_percentage():
    config = FeeConfiguration(
        FeeModel.PER_PLATFORM_PERCENTAGE, deliveroo_rate=Decimal("6"), ubereats_rate=Decimal("8"),
    )
    result = compute_fee(config, {"deliveroo": 1000, Platform.UBEREATS: Decimal("500")})

    assert result.total_gross == Decimal("1500.00")
    assert result.fee_amount == Decimal("100.00")
    assert result.effective_percentage == Decimal("6.67")
    assert result.platform_fees == {Platform.DELIVEROO: Decimal("60.00"), Platform.UBEREATS: Decimal("40.00")}


def test_missing_per_platform_rate_is_zero():
    config = FeeConfiguration(FeeModel.PER_PLATFORM_PERCENTAGE, deliveroo_rate=Decimal("6"))
    assert compute_fee(config, {"justeat": 200}).fee_amount == Decimal("0.00")


def test_flat_fee_rounds_half_up():
    config = FeeConfiguration(FeeModel.FLAT_PERCENTAGE, percentage_rate=Decimal("6"))
    result = compute_fee(config, {"deliveroo": Decimal("850.37")})
    assert result.fee_amount == Decimal("51.02")
    assert result.effective_percentage == Decimal("6.00")


def test_flat_rate_defaults_when_unset():
    result = compute_fee(FeeConfiguration(FeeModel.FLAT_PERCENTAGE), {"deliveroo": 100})
    assert result.fee_amount == Decimal("6.00")


def test_zero_gross_reports_the_nominal_rate():
    config = FeeConfiguration(FeeModel.FLAT_PERCENTAGE, percentage_rate=Decimal("7.5"))
    result = compute_fee(config, {})
    assert result.fee_amount == Decimal("0.00")
    assert result.effective_percentage == Decimal("7.50")


def test_direct_platform_sales_never_enter_the_fee():
    config = FeeConfiguration(FeeModel.FLAT_PERCENTAGE, percentage_rate=Decimal("6"), direct_rate=Decimal("10"))
    result = compute_fee(config, {"deliveroo": 100, "slerp": 900})
    assert result.total_gross == Decimal("100.00")
    assert result.fee_amount == Decimal("6.00")
    assert compute_direct_platform_fee(config, Decimal("123.45")) == Decimal("12.35")


def test_fixed_monthly_fee():
    config = FeeConfiguration(FeeModel.FIXED_MONTHLY, monthly_fee=Decimal("250"))
    result = compute_fee(config, {"deliveroo": 5000})
    assert result.fee_amount == Decimal("250.00")
    assert result.total_gross == Decimal("0.00")
    assert result.effective_percentage == Decimal("0.00")


@pytest.mark.parametrize("monthly_fee", [None, Decimal("0"), Decimal("-5")])
def test_fixed_monthly_requires_a_positive_fee(monthly_fee):
    with pytest.raises(ConfigurationError):
        compute_fee(FeeConfiguration(FeeModel.FIXED_MONTHLY, monthly_fee=monthly_fee), {})
