# ====================================================================================================
# M03_allocate_brands.py
# ----------------------------------------------------------------------------------------------------
# Step 3 – Split statement revenue across brands
# ----------------------------------------------------------------------------------------------------
# Purpose:
#   - Expand a Deliveroo per-brand breakdown into one allocation per known brand.
#   - Give single-brand Deliveroo statements the same shape (whole total under the default brand).
#   - Turn any other upload row into a single (brand, amount) allocation.
#
# Notes:
#   - The full known-brand set is always returned, unmatched brands at 0.00, so reconciliation
#     replaces a stale figure with an explicit zero instead of leaving it behind.
#   - Amounts are rounded half-up to 2 decimal places.
# ----------------------------------------------------------------------------------------------------
# Author:        Gerry Pidgeon
# Created:       2025-11-05
# Project:       Franchise Fee Reconciliation
# ====================================================================================================


# ====================================================================================================
# 1. SYSTEM IMPORTS
# ----------------------------------------------------------------------------------------------------
# Add parent directory to sys.path so this module can import other "processes" packages.
# ====================================================================================================
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))
sys.dont_write_bytecode = True


# ====================================================================================================
# 2. PROJECT IMPORTS
# ----------------------------------------------------------------------------------------------------
# All standard and third-party packages are centrally imported in P00_set_packages.py
# ====================================================================================================
from processes.P00_set_packages import *
from processes.P03_shared_functions import round_money
from processes.P05_error_types import UploadValidationError
from processes.P06_class_items import BillingPeriod, BrandAllocation, ParseResult, Platform, UploadRow
from processes.P07_module_configs import KNOWN_BRANDS, DEFAULT_BRAND


# ====================================================================================================
# 3. ALLOCATION
# ====================================================================================================

def allocate_brand_breakdown(breakdown: Dict[str, Decimal], period: Optional[BillingPeriod] = None,
                             known_brands: Optional[List[str]] = None) -> List[BrandAllocation]:
    """
    One allocation per brand: every known brand first (missing ones at 0.00), then any extra
    brands named in the breakdown.

    Args:
        breakdown (dict[str, Decimal]): Brand → amount, possibly with explicit zeros.
        period (BillingPeriod | None): Accounting week the allocations belong to.
        known_brands (list[str] | None): Defaults to KNOWN_BRANDS.

    Returns:
        list[BrandAllocation]: Stable order, amounts rounded to pence.
    """
    known = list(known_brands) if known_brands is not None else list(KNOWN_BRANDS)
    extras = [brand for brand in breakdown if brand not in known]
    return [
        BrandAllocation(brand, round_money(breakdown.get(brand, Decimal("0"))), period)
        for brand in known + extras
    ]


def breakdown_for_result(result: ParseResult, platform: Platform,
                         revenue: Optional[Decimal] = None) -> Optional[Dict[str, Decimal]]:
    """
    The per-brand map for a Deliveroo result (None for the other platforms).

    A result without a breakdown (e.g. a CSV export) is treated as a single-brand statement.
    An operator-corrected `revenue` replaces the figure of the one brand that sold that week.

    Raises:
        UploadValidationError: A corrected figure was given for a statement covering several brands.
    """
    if Platform.parse(platform) is not Platform.DELIVEROO:
        return None
    if result.brand_breakdown:
        breakdown = dict(result.brand_breakdown)
        if revenue is None:
            return breakdown
        selling = [brand for brand, amount in breakdown.items() if amount]
        if len(selling) > 1:
            raise UploadValidationError(
                f"This Deliveroo statement covers {', '.join(selling)}. "
                "Correct each brand's figure by hand instead of the statement total."
            )
        breakdown[selling[0] if selling else DEFAULT_BRAND] = round_money(revenue)
        return breakdown

    total = result.gross_revenue if revenue is None else revenue
    breakdown = {brand: Decimal("0.00") for brand in KNOWN_BRANDS}
    breakdown[DEFAULT_BRAND] = round_money(total)
    return breakdown


def allocations_for_row(row: UploadRow, period: Optional[BillingPeriod]) -> List[BrandAllocation]:
    """
    Allocations for one upload row.

    Raises:
        UploadValidationError: When a non-Deliveroo row has no brand.
    """
    breakdown = breakdown_for_result(row.result, row.platform, row.revenue_override)
    if breakdown is not None:
        return allocate_brand_breakdown(breakdown, period)

    brand = (row.brand or "").strip()
    if not brand:
        raise UploadValidationError(f"Please select a brand for {row.platform.label}.")
    return [BrandAllocation(brand, round_money(row.gross_revenue), period)]
