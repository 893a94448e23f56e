# ====================================================================================================
# P02_period_resolver.py
# ----------------------------------------------------------------------------------------------------
# Date parsing and billing-period arithmetic shared by every extractor and the reconciliation step.
#
# Purpose:
#   - Parse the many date spellings found on statements (ISO, DD/MM/YYYY, YYYYMMDD, "14 Jan 2024").
#   - Map any date to the Monday–Sunday week used by the aggregator platforms.
#   - Hold the direct-platform (Slerp) pay-cycle offset in ONE place:
#       sales run Tuesday → Monday, and are paid the Monday one week after the period ends.
#   - Infer a statement's week from its text or its file name.
#
# Usage:
#   from processes.P02_period_resolver import parse_flexible_date, resolve_calendar_week
#
# Example:
#   >>> parse_flexible_date("03/04/2024")          # day-first, always
#   datetime.date(2024, 4, 3)
#   >>> resolve_calendar_week(date(2024, 1, 10))
#   BillingPeriod(start=datetime.date(2024, 1, 8), end=datetime.date(2024, 1, 14))
#
# Notes:
#   - Ambiguous numeric dates are read day-first (UK statements). This is policy, not a guess.
#   - Nothing in this module raises on bad input; unparseable dates come back as None.
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
from processes.P04_static_lists import FILENAME_DATE_PATTERN, STANDALONE_DATE_PATTERN
from processes.P06_class_items import BillingPeriod
from processes.P07_module_configs import DAY_FIRST_DATES, MONTH_SELECTOR_FORMAT, PERIOD_SCAN_LIMIT

logger = logging.getLogger(__name__)


# ====================================================================================================
# 3. FLEXIBLE DATE PARSING
# ----------------------------------------------------------------------------------------------------
# Tries each known shape in turn. Components are range-checked by date() itself.
# ====================================================================================================

ISO_PREFIX_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})")
DAY_FIRST_RE = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{4}|\d{2})(?:[\sT].*)?$")
COMPACT_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
ORDINAL_RE = re.compile(r"(\d{1,2})(st|nd|rd|th)\b", re.IGNORECASE)
WEEKDAY_RE = re.compile(r"^(mon|tue|tues|wed|thu|thur|thurs|fri|sat|sun)[a-z]*\.?,?\s+", re.IGNORECASE)

NATURAL_FORMATS = [
    "%d %b %Y",      # 14 Jan 2024
    "%d %B %Y",      # 14 January 2024
    "%b %d %Y",      # Jan 14 2024
    "%B %d %Y",      # January 14 2024
    "%d %b %y",      # 14 Jan 24
    "%d %B %y",      # 14 January 24
]


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _expand_year(year_text: str) -> int:
    year = int(year_text)
    return year if year > 99 else int("20" + f"{year:02d}")


def parse_flexible_date(value) -> Optional[date]:
    """
    Parse a statement date in any of the supported shapes.

    Args:
        value: A date/datetime/Timestamp, or text such as "2024-01-14", "14/01/2024",
               "14-01-24", "20240114", "14 Jan 2024", "14th January 2024", "Jan 14, 2024".

    Returns:
        date | None: The parsed date, or None when the value cannot be read.

    Notes:
        - DD/MM vs MM/DD is always resolved day-first.
        - Two-digit years are read as 20YY.
        - Time suffixes ("2024-01-14T10:30:00", "14/01/2024 10:30") are ignored.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return None if pd.isna(value) else value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        if isinstance(value, float) and np.isnan(value):
            return None
        value = str(value)

    text = value.strip()
    if not text:
        return None

    # --- ISO (time part ignored) ---
    m = ISO_PREFIX_RE.match(text)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    # --- DD/MM/YYYY, DD-MM-YYYY, DD.MM.YY ---
    m = DAY_FIRST_RE.match(text)
    if m:
        first, second = int(m.group(1)), int(m.group(2))
        day, month = (first, second) if DAY_FIRST_DATES else (second, first)
        return _safe_date(_expand_year(m.group(3)), month, day)

    # --- YYYYMMDD ---
    m = COMPACT_RE.match(text)
    if m:
        return _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    # --- Natural language ("Sunday 14th January, 2024") ---
    cleaned = WEEKDAY_RE.sub("", text)
    cleaned = ORDINAL_RE.sub(r"\1", cleaned)
    cleaned = cleaned.replace(",", " ").replace(".", " ")
    cleaned = re.sub(r"\bSept\b", "Sep", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    for fmt in NATURAL_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue

    logger.debug("Unparseable date: %r", value)
    return None


# ====================================================================================================
# 4. CALENDAR WEEKS (AGGREGATOR PLATFORMS)
# ====================================================================================================

def resolve_calendar_week(any_date: date) -> BillingPeriod:
    """Return the Monday–Sunday week containing `any_date`."""
    week_start = any_date - timedelta(days=any_date.weekday())
    return BillingPeriod(week_start, week_start + timedelta(days=6))


def periods_overlap(first: BillingPeriod, second: BillingPeriod) -> bool:
    """Overlap exists unless one range ends entirely before the other begins."""
    return not (first.end < second.start or first.start > second.end)


# ====================================================================================================
# 5. DIRECT PLATFORM PAY CYCLE (SLERP)
# ----------------------------------------------------------------------------------------------------
# Sales period: Tuesday → Monday.  Payout: the Monday one week after the sales period ends.
# Call sites must use these functions instead of adding or subtracting 7 days themselves.
# ====================================================================================================

PAYOUT_OFFSET = timedelta(days=7)


def sales_period_end_for_fulfillment(fulfilled: date) -> date:
    """The Monday that closes the sales period containing `fulfilled` (same day if Monday)."""
    return fulfilled + timedelta(days=(0 - fulfilled.weekday()) % 7)


def payout_date_from_fulfillment(fulfilled: date) -> date:
    """The payout Monday for an order fulfilled on `fulfilled`."""
    return sales_period_end_for_fulfillment(fulfilled) + PAYOUT_OFFSET


def sales_period_for_payout(payout_monday: date) -> BillingPeriod:
    """The Tuesday → Monday sales window paid out on `payout_monday`: [monday − 13, monday − 7]."""
    period_end = payout_monday - PAYOUT_OFFSET
    return BillingPeriod(period_end - timedelta(days=6), period_end)


def payout_date_for_sales_period(period: BillingPeriod) -> date:
    """The Monday a Tuesday → Monday sales period is paid out."""
    return period.end + PAYOUT_OFFSET


def direct_platform_period_for_aggregator_week(aggregator_week_end: date) -> BillingPeriod:
    """
    The direct-platform sales period shown on an aggregator invoice.

    Args:
        aggregator_week_end (date): The Sunday that ends the aggregator week.

    Returns:
        BillingPeriod: The sales period paid on the Monday after that Sunday
                       (so its end is aggregator_week_end − 6 days).
    """
    payout_anchor = aggregator_week_end + timedelta(days=1)
    return sales_period_for_payout(payout_anchor)


# ====================================================================================================
# 6. MONTHS (FIXED-MONTHLY INVOICES)
# ====================================================================================================

def month_period(year: int, month: int) -> BillingPeriod:
    last_day = calendar.monthrange(year, month)[1]
    return BillingPeriod(date(year, month, 1), date(year, month, last_day))


def last_full_month(today: Optional[date] = None) -> BillingPeriod:
    """The most recent calendar month that has fully ended."""
    today = today or date.today()
    first_of_this_month = today.replace(day=1)
    previous = first_of_this_month - timedelta(days=1)
    return month_period(previous.year, previous.month)


def parse_month_selector(value: str) -> Optional[BillingPeriod]:
    """Parse a "YYYY-MM" month selector. Returns None when malformed."""
    try:
        parsed = datetime.strptime((value or "").strip(), MONTH_SELECTOR_FORMAT)
    except ValueError:
        return None
    return month_period(parsed.year, parsed.month)


def next_month(period: BillingPeriod) -> BillingPeriod:
    following = period.end + timedelta(days=1)
    return month_period(following.year, following.month)


# ====================================================================================================
# 7. PERIOD INFERENCE FROM TEXT + FILE NAMES
# ====================================================================================================

def infer_period_from_text(text: str, patterns: Iterable) -> Optional[BillingPeriod]:
    """
    Find the statement week from labelled phrases, falling back to a bare date near the top.

    Args:
        text (str): Extracted statement text.
        patterns (Iterable[tuple[str, re.Pattern]]): Ordered (name, pattern) pairs; group 1 is a date.

    Returns:
        BillingPeriod | None: The Monday–Sunday week containing the first date found.
    """
    if not text:
        return None

    for name, pattern in patterns:
        for m in pattern.finditer(text):
            found = parse_flexible_date(m.group(1))
            if found:
                logger.debug("Period from '%s' phrase: %s", name, found)
                return resolve_calendar_week(found)

    # Bare dates deeper in the body are usually order dates, not the statement date
    head = text[:PERIOD_SCAN_LIMIT]
    for m in STANDALONE_DATE_PATTERN.finditer(head):
        found = parse_flexible_date(m.group(1))
        if found:
            return resolve_calendar_week(found)
    return None


def period_from_filename(file_name: str) -> Optional[BillingPeriod]:
    """Week containing the first YYYYMMDD run in a file name, e.g. "ACME_20260202_statement.pdf"."""
    for m in FILENAME_DATE_PATTERN.finditer(Path(str(file_name)).name):
        found = _safe_date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
        if found:
            return resolve_calendar_week(found)
    return None


# ====================================================================================================
# 8. MODULE TEST (STANDALONE EXECUTION)
# ----------------------------------------------------------------------------------------------------
# Allows this module to be executed directly for quick verification.
# ====================================================================================================
if __name__ == "__main__":
    for sample in ["2024-01-14", "03/04/2024", "20240114", "14 Jan 2024", "Sunday 14th January 2024"]:
        print(f"{sample!r:30} → {parse_flexible_date(sample)}")
    fulfilled = date(2025, 2, 5)
    payout = payout_date_from_fulfillment(fulfilled)
    print(f"Fulfilled {fulfilled} → payout {payout} → sales period {sales_period_for_payout(payout)}")
