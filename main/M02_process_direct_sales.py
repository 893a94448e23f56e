# ====================================================================================================
# M02_process_direct_sales.py
# ----------------------------------------------------------------------------------------------------
# Step 2d – Parse direct-platform (Slerp) order spreadsheets into pay weeks
# ----------------------------------------------------------------------------------------------------
# Purpose:
#   - Read the "Completed orders" sheet exported from Slerp (.xlsx / .xls, or a CSV copy).
#   - Keep fulfilled orders with positive GMV, drop excluded locations.
#   - Group GMV by (location, payout Monday) and attach the Tuesday → Monday sales period.
#   - Match spreadsheet locations to a franchisee and preview the direct-platform fee.
#
# Inputs:
#   • Columns: Fulfillment date, Location name, Product total after discounts (GMV), Status (optional)
# Outputs:
#   • list[DirectSalesWeek] sorted by payout date, then location
#   • list[str] of errors (missing columns, empty sheet)
#
# Notes:
#   - Fulfillment dates are day-first (DD/MM/YYYY).
#   - The payout / sales-period offset comes from P02_period_resolver only.
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
from processes.P02_period_resolver import parse_flexible_date, payout_date_from_fulfillment, sales_period_for_payout
from processes.P03_shared_functions import parse_money, round_money
from processes.P04_static_lists import (
    DIRECT_DATE_COLUMN, DIRECT_LOCATION_COLUMN, DIRECT_GMV_COLUMN, DIRECT_STATUS_COLUMN,
)
from processes.P05_error_types import ExtractionError, UnrecognizedFormatError
from processes.P06_class_items import DirectSalesWeek, FeeConfiguration, Platform
from processes.P07_module_configs import EXCLUDED_DIRECT_LOCATIONS, DIRECT_FULFILLED_STATUS
from main.M04_fee_rules import compute_direct_platform_fee

logger = logging.getLogger(__name__)


# ====================================================================================================
# 3. HELPERS
# ====================================================================================================

def _normalise_header(header) -> str:
    return re.sub(r"\*+$", "", str(header or "").strip().lower())


def find_column(columns, candidate: str):
    """First column whose normalised name contains the candidate (or vice versa)."""
    for column in columns:
        normalised = _normalise_header(column)
        if normalised and (candidate in normalised or normalised in candidate):
            return column
    return None


def location_matches(franchisee_location: str, file_location: str) -> bool:
    """
    Match a spreadsheet location ("Loughton") to a franchisee location ("Wing Shack Co - Loughton").

    Returns:
        bool: True if either contains the other, or the part after " - " matches.
    """
    a = (franchisee_location or "").strip().lower()
    b = (file_location or "").strip().lower()
    if not a or not b:
        return False
    if a in b or b in a:
        return True
    suffix = a.split(" - ")[-1].strip() if " - " in a else ""
    return bool(suffix) and (suffix == b or suffix in b)


# ====================================================================================================
# 4. CORE PARSER
# ====================================================================================================

def parse_direct_sales_frame(df: pd.DataFrame) -> Tuple[List[DirectSalesWeek], List[str]]:
    """
    Group completed direct-platform orders into pay weeks.

    Args:
        df (pd.DataFrame): The first sheet of the Slerp export.

    Returns:
        tuple[list[DirectSalesWeek], list[str]]: Pay weeks and any errors found.
    """
    if df is None or df.empty:
        return [], ["Sheet is empty"]

    # ------------------------------------------------------------------------------------------------
    # STEP 1: Locate columns
    # ------------------------------------------------------------------------------------------------
    date_col = find_column(df.columns, DIRECT_DATE_COLUMN)
    location_col = find_column(df.columns, DIRECT_LOCATION_COLUMN)
    gmv_col = find_column(df.columns, DIRECT_GMV_COLUMN)
    status_col = find_column(df.columns, DIRECT_STATUS_COLUMN)

    if date_col is None or location_col is None or gmv_col is None:
        return [], [
            "Could not find required columns: Fulfillment date, Location name, "
            "Product total after discounts (GMV)."
        ]

    # ------------------------------------------------------------------------------------------------
    # STEP 2: Filter rows (fulfilled, not excluded, positive GMV, readable date)
    # ------------------------------------------------------------------------------------------------
    work = pd.DataFrame({
        "location": df[location_col].astype(str).str.strip(),
        "fulfilled_on": df[date_col].map(parse_flexible_date),
        "gmv": df[gmv_col].map(parse_money),
    })
    if status_col is not None:
        work["status"] = df[status_col].astype(str).str.strip().str.lower()
        work = work[work["status"] == DIRECT_FULFILLED_STATUS]

    excluded = [loc.lower() for loc in EXCLUDED_DIRECT_LOCATIONS]
    work = work[~work["location"].str.lower().isin(excluded)]
    work = work[work["fulfilled_on"].notna()]
    work = work[work["gmv"].map(lambda v: v > 0).astype(bool)]

    if work.empty:
        logger.info("No qualifying direct-platform orders found")
        return [], []

    # ------------------------------------------------------------------------------------------------
    # STEP 3: Group by (location, payout Monday)
    # ------------------------------------------------------------------------------------------------
    work["payout_date"] = work["fulfilled_on"].map(payout_date_from_fulfillment)
    weeks = []
    for (location, payout), group in work.groupby(["location", "payout_date"], sort=False):
        gross = round_money(sum(group["gmv"], Decimal("0")))
        weeks.append(DirectSalesWeek(
            location=location,
            payout_date=payout,
            period=sales_period_for_payout(payout),
            gross_revenue=gross,
            order_count=len(group),
        ))

    weeks.sort(key=lambda w: (w.payout_date, w.location))
    logger.info("Direct-platform pay weeks: %d", len(weeks))
    return weeks, []


def parse_direct_sales_file(path: Path) -> Tuple[List[DirectSalesWeek], List[str]]:
    """
    Read a Slerp export from disk and group it into pay weeks.

    Raises:
        UnrecognizedFormatError: If the file is not .xlsx / .xls / .csv.
        ExtractionError: If the workbook cannot be opened.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in (".xlsx", ".xls", ".csv"):
        raise UnrecognizedFormatError("Please upload an Excel file (.xlsx or .xls)")

    try:
        if suffix == ".csv":
            df = pd.read_csv(path, dtype=str, keep_default_na=False)
        else:
            # First sheet only; dates are parsed day-first by parse_flexible_date
            df = pd.read_excel(path, sheet_name=0, dtype=object)
    except Exception as exc:
        raise ExtractionError("Could not read the spreadsheet.", detail=str(exc)) from exc

    return parse_direct_sales_frame(df)


# ====================================================================================================
# 5. FEE PREVIEW
# ====================================================================================================

def preview_direct_sales(weeks: List[DirectSalesWeek], franchisee_location: str,
                         fee_config: FeeConfiguration) -> pd.DataFrame:
    """
    Pay weeks for one franchisee's location, with the informational direct-platform fee.

    Returns:
        pd.DataFrame: location, payout_date, week_start, week_end, gross_revenue,
                      fee_percentage, fee_amount.
    """
    rate = fee_config.rate_for(Platform.SLERP)
    rows = [
        {
            "location": w.location,
            "payout_date": w.payout_date,
            "week_start": w.period.start,
            "week_end": w.period.end,
            "gross_revenue": w.gross_revenue,
            "fee_percentage": rate,
            "fee_amount": compute_direct_platform_fee(fee_config, w.gross_revenue),
        }
        for w in weeks
        if location_matches(franchisee_location, w.location)
    ]
    return pd.DataFrame(rows, columns=[
        "location", "payout_date", "week_start", "week_end", "gross_revenue", "fee_percentage", "fee_amount",
    ])
