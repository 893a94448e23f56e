# ====================================================================================================
# P04_static_lists.py
# ----------------------------------------------------------------------------------------------------
# Contains static header lists, brand patterns and regex rule cascades used across the project.
#
# Purpose:
#   - Define the platform-specific CSV header names that hold gross revenue.
#   - Define the header names that hold statement dates (and which of them mark a period end).
#   - Define the Deliveroo brand patterns and the ordered PDF / HTML rule cascades.
#   - Keep every "how does this platform word it" detail in one place.
#
# Usage:
#   from processes.P04_static_lists import REVENUE_COLUMN_PATTERNS, TEXT_REVENUE_RULES
#
# Notes:
#   - All CSV header patterns are lowercase; headers are lowercased + trimmed before comparison.
#   - Rule lists are ordered: the first rule that matches wins.
#
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
sys.dont_write_bytecode = True  # Prevents __pycache__ folders from being created


# ====================================================================================================
# 2. PROJECT IMPORTS
# ----------------------------------------------------------------------------------------------------
# Bring in standard libraries and settings from the central import hub.
# ====================================================================================================
from processes.P00_set_packages import *
from processes.P06_class_items import Platform, Confidence, TextRule


# ====================================================================================================
# 3. CSV HEADER LISTS
# ----------------------------------------------------------------------------------------------------
# Exact match → high confidence, substring match (either direction) → medium confidence.
# ====================================================================================================

REVENUE_COLUMN_PATTERNS = {
    Platform.DELIVEROO: [
        "total", "gross", "gross total", "gross revenue", "order total",
        "total (incl. vat)", "total inc vat", "total sales", "net revenue",
        "gross order value", "subtotal",
    ],
    Platform.UBEREATS: [
        "sales (incl. vat)", "sales (incl vat)", "total sales",
        "gross revenue", "gross sales", "order total",
        "gross order value", "total amount", "gross fare", "item subtotal",
    ],
    Platform.JUSTEAT: [
        "total", "gross", "gross total", "gross revenue", "order total",
        "total sales", "total order value", "subtotal", "net total",
        "gross order value",
    ],
    Platform.SLERP: [],  # Slerp arrives as a spreadsheet, see M02_process_direct_sales
}

# --- Uber Eats: gross = sales + offers on items (offers are negative in the export) ---
UBER_SALES_COLUMN_ALIASES = ["sales (incl. vat)", "sales (incl vat)"]
UBER_OFFERS_COLUMN = "offers on items (incl. vat)"
UBER_COMBINED_COLUMN_LABEL = "Sales (incl. VAT) + Offers on items (incl. VAT)"

# --- Date columns, in priority order ---
DATE_COLUMN_PATTERNS = [
    "week ending",
    "week end",
    "period end",
    "statement date",
    "period",
    "order date",
    "date",
    "week",
    "period start",
    "period end date",
]

# Columns naming the END of a period. The latest date in such a column represents the file.
PERIOD_END_PATTERNS = ["week ending", "week end", "period end", "statement date", "period end date"]


# ====================================================================================================
# 4. DATE TOKENS + PERIOD PHRASES
# ----------------------------------------------------------------------------------------------------
# Shared date fragments used to build the labelled period patterns below.
# ====================================================================================================

ISO_DATE = r"\d{4}-\d{2}-\d{2}"
NUMERIC_DATE = r"\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}"
NATURAL_DATE = r"\d{1,2}(?:st|nd|rd|th)?\s+[A-Za-z]{3,9}\.?,?\s+\d{4}"
MONTH_FIRST_DATE = r"[A-Za-z]{3,9}\.?\s+\d{1,2}(?:st|nd|rd|th)?,?\s+\d{4}"
ANY_DATE = rf"(?:{ISO_DATE}|{NUMERIC_DATE}|{NATURAL_DATE}|{MONTH_FIRST_DATE})"
WEEKDAY_PREFIX = r"(?:(?:Mon|Tue|Tues|Wed|Thu|Thur|Thurs|Fri|Sat|Sun)[a-z]*,?\s+)?"


def _labelled(label: str) -> "re.Pattern":
    return re.compile(rf"{label}[:\s]+{WEEKDAY_PREFIX}({ANY_DATE})", re.IGNORECASE)


DATE_RANGE_PATTERN = re.compile(rf"({ANY_DATE})\s*(?:[-–—]|to)\s*{WEEKDAY_PREFIX}{ANY_DATE}", re.IGNORECASE)

# PDF-extracted text: ordered labelled phrases, each capturing one date.
TEXT_PERIOD_PATTERNS = [
    ("week ending", _labelled(r"week\s+ending")),
    ("period ending", _labelled(r"period\s+ending")),
    ("statement period", _labelled(r"statement\s+period")),
    ("for the period", _labelled(r"for\s+the\s+period")),
    ("week/period end", _labelled(r"(?:week|period)\s+end")),
    ("date range", DATE_RANGE_PATTERN),
    ("statement date", _labelled(r"statement\s+date")),
    ("payment date", _labelled(r"payment\s+date")),
    ("billing period", _labelled(r"billing\s+period")),
    ("statement for", _labelled(r"statement\s+for")),
    ("week/period of", _labelled(r"(?:week|period)\s+of")),
]

# HTML statements use a shorter list of phrasings.
HTML_PERIOD_PATTERNS = [
    ("week/period ending", _labelled(r"(?:week|period)\s+ending")),
    ("statement/payment date", _labelled(r"(?:statement|payment)\s+(?:date|period)")),
    ("for the period", _labelled(r"for\s+(?:the\s+)?period")),
    ("week/period of", _labelled(r"(?:week|period)\s+of")),
    ("date range", DATE_RANGE_PATTERN),
]

# Last resort: a bare day/month/year near the top of the document.
STANDALONE_DATE_PATTERN = re.compile(r"\b(\d{1,2}[/\-]\d{1,2}[/\-]\d{4})\b")

# File names such as "SVAYA_LIMITED_20260202_statement.pdf".
FILENAME_DATE_PATTERN = re.compile(r"(\d{4})(\d{2})(\d{2})")


# ====================================================================================================
# 5. DELIVEROO BRANDS (Site Breakdown)
# ----------------------------------------------------------------------------------------------------
# One Deliveroo statement may list several storefronts. Only these brands are billed;
# other brands trading from the same site (e.g. partner kitchens) are ignored.
# ====================================================================================================

DELIVEROO_BRAND_PATTERNS = [
    ("Eggs n Stuff", r"Eggs\s+[nN]\s+Stuff"),
    ("SMSH BN", r"Smash\s+Bun\s*\(\s*EC\s*\)|SMSH\s+BN"),
    ("Wing Shack", r"Wing\s+Shack(?:\s+Co\s*[-–]\s*Bethnal\s+Green\s*\(\s*EC\s*\))?"),
]

TOTAL_ORDER_VALUE_LABEL = "Total Order Value"
BRAND_ROW_TEMPLATE = r"({brand})\s+Total\s+Order\s+Value\s+[^£\d]*(?:£)?([\d,]+\.?\d*)"
BRAND_LOOKAHEAD_AMOUNT = re.compile(r"Total\s+Order\s+Value[\s\S]*?(?:£|\b)([\d,]+\.\d{2})\b")


# ====================================================================================================
# 6. FREE-TEXT (PDF) RULE CASCADES
# ----------------------------------------------------------------------------------------------------
# Exact stated totals are high confidence. Anything that is really a payout after commission
# is low confidence and flagged for manual checking.
# ====================================================================================================

AMOUNT = r"([\d,]+\.?\d*)"

TEXT_REVENUE_RULES = {
    Platform.DELIVEROO: [
        TextRule("Total Order Value", re.compile(rf"Total\s+Order\s+Value[^£]*£{AMOUNT}", re.I), Confidence.HIGH),
    ],
    Platform.UBEREATS: [
        TextRule("Sales (incl. VAT)", re.compile(rf"Sales\s*\(incl\.?\s*VAT\)[\s:]*£{AMOUNT}", re.I), Confidence.HIGH),
        TextRule(
            "Total amount payable (this is fees, not gross revenue - PLEASE VERIFY)",
            re.compile(rf"Total\s+amount\s+payable[\s\t]*£{AMOUNT}", re.I),
            Confidence.LOW,
        ),
        TextRule(
            "Total net amount (this is fees, not gross revenue - PLEASE VERIFY)",
            re.compile(rf"Total\s+net\s+amount[\s\t]*£{AMOUNT}", re.I),
            Confidence.LOW,
        ),
    ],
    Platform.JUSTEAT: [
        TextRule("Total sales", re.compile(rf"Total\s+sales[\s\t]*£{AMOUNT}", re.I), Confidence.HIGH),
        TextRule("Gross Order Value", re.compile(rf"Gross\s+Order\s+Value\s+of\s+£{AMOUNT}", re.I), Confidence.HIGH),
    ],
    Platform.SLERP: [],
}

# Uber Eats tax invoices show the marketplace fee (commission on gross), not the gross itself.
# The last £ figure on the fee line is the net fee.
UBER_MARKETPLACE_FEE_PATTERN = re.compile(r"Marketplace\s+Fee[\s\S]*?£[\d,.]+[\s\S]*?£([\d,]+\.?\d*)", re.I)
UBER_COMMISSION_RATE_PATTERN = re.compile(
    r"(\d{1,2}(?:\.\d+)?)\s*%\s*(?:marketplace\s+fee|commission)|(?:marketplace\s+fee|commission)\s*(?:rate)?[\s:@(]*(\d{1,2}(?:\.\d+)?)\s*%",
    re.I,
)


# ====================================================================================================
# 7. HTML RULE CASCADES
# ----------------------------------------------------------------------------------------------------
# Just Eat sends statements as HTML (often saved with a .doc extension).
# ====================================================================================================

HTML_REVENUE_RULES = {
    Platform.JUSTEAT: [
        TextRule("Total sales", re.compile(rf"Total\s+sales\s*£{AMOUNT}", re.I), Confidence.HIGH),
        TextRule("Total sales this period", re.compile(rf"Total\s+sales\s+this\s+period[\s\S]*?£{AMOUNT}", re.I), Confidence.HIGH),
        TextRule("Gross Order Value", re.compile(rf"Gross\s+Order\s+Value\s+of\s+£{AMOUNT}", re.I), Confidence.HIGH),
        # cash, card, total columns at the foot of the orders table
        TextRule("Orders table total", re.compile(rf"£[\d,]+\.?\d*\s+£{AMOUNT}\s+£{AMOUNT}\s*$", re.M), Confidence.MEDIUM, group=2),
        TextRule("Card orders total", re.compile(rf"card\s+orders\s+totalling\s+£{AMOUNT}", re.I), Confidence.MEDIUM),
    ],
}

HTML_GENERIC_RULES = [
    TextRule("Total sales/revenue", re.compile(rf"total\s+(?:sales|revenue|gross)[\s:]*£{AMOUNT}", re.I), Confidence.MEDIUM),
]


# ====================================================================================================
# 8. DIRECT PLATFORM (SLERP) SPREADSHEET COLUMNS
# ====================================================================================================

DIRECT_DATE_COLUMN = "fulfillment date"
DIRECT_LOCATION_COLUMN = "location name"
DIRECT_GMV_COLUMN = "product total after discounts (gmv)"
DIRECT_STATUS_COLUMN = "status"
DIRECT_REQUIRED_COLUMNS = [DIRECT_DATE_COLUMN, DIRECT_LOCATION_COLUMN, DIRECT_GMV_COLUMN]


# ====================================================================================================
# 9. FILE SHAPES
# ====================================================================================================

CSV_EXTENSIONS = {".csv"}
PDF_EXTENSIONS = {".pdf"}
TEXT_EXTENSIONS = {".txt"}
HTML_EXTENSIONS = {".html", ".htm", ".doc", ".docx"}
SPREADSHEET_EXTENSIONS = {".xlsx", ".xls"}
HTML_SIGNATURES = (b"<!doctype", b"<html")
