# ====================================================================================================
# M02_process_csv.py
# ----------------------------------------------------------------------------------------------------
# Step 2a – Read gross revenue from CSV statement exports
# ----------------------------------------------------------------------------------------------------
# Purpose:
#   - Load a platform CSV export into a DataFrame (all cells kept as text).
#   - Pick the column holding gross revenue by header name, falling back to the first
#     mostly-numeric column, and sum it.
#   - Infer the statement week from date / period columns.
#
# Notes:
#   - Exact header match → high confidence, partial match → medium, numeric fallback → low.
#   - Uber Eats gross = "Sales (incl. VAT)" + "Offers on items (incl. VAT)". With only the
#     sales column the figure is partial and is returned as medium confidence.
#   - For period-END columns ("week ending", "statement date") the latest date wins so that
#     every row of a multi-day export lands in the same week.
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
from processes.P02_period_resolver import parse_flexible_date, resolve_calendar_week
from processes.P03_shared_functions import parse_money, round_money, looks_numeric
from processes.P04_static_lists import (
    REVENUE_COLUMN_PATTERNS, UBER_SALES_COLUMN_ALIASES, UBER_OFFERS_COLUMN, UBER_COMBINED_COLUMN_LABEL,
    DATE_COLUMN_PATTERNS, PERIOD_END_PATTERNS,
)
from processes.P06_class_items import (
    Platform, Confidence, SourceKind, ParseResult, BillingPeriod, RevenueExtractor,
)
from processes.P07_module_configs import NUMERIC_COLUMN_SHARE, RAW_TEXT_SNIPPET_LENGTH

logger = logging.getLogger(__name__)


# ====================================================================================================
# 3. LOADING
# ====================================================================================================

def read_statement_frame(raw) -> Optional[pd.DataFrame]:
    """
    Load CSV content into a DataFrame with every cell as a string.

    Args:
        raw (str | bytes | Path | pd.DataFrame): CSV text, raw bytes, a file path, or an
            already-loaded frame.

    Returns:
        pd.DataFrame | None: The frame, or None when the CSV cannot be parsed at all.
    """
    if isinstance(raw, pd.DataFrame):
        return raw.astype(str)

    if isinstance(raw, Path):
        raw = raw.read_bytes()
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8-sig", errors="replace")

    try:
        return pd.read_csv(
            io.StringIO(raw),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as exc:
        logger.warning("CSV could not be parsed: %s", exc)
        return None


def _normalised_headers(df: pd.DataFrame) -> List[Tuple[str, str]]:
    """(lowercased + trimmed header, original header) pairs, skipping blank headers."""
    pairs = []
    for column in df.columns:
        normalised = str(column).lower().strip()
        if normalised and not normalised.startswith("unnamed:"):
            pairs.append((normalised, column))
    return pairs


def _sum_column(df: pd.DataFrame, column) -> Decimal:
    total = sum((parse_money(value) for value in df[column]), Decimal("0"))
    return round_money(total)


# ====================================================================================================
# 4. PERIOD INFERENCE
# ====================================================================================================

def infer_period_from_frame(df: pd.DataFrame) -> Optional[BillingPeriod]:
    """
    Find the statement week from the first date-like column.

    Returns:
        BillingPeriod | None: Week of the latest date (period-end columns) or of the first
        parseable date (any other date column).
    """
    if df is None or df.empty:
        return None

    headers = _normalised_headers(df)
    date_column = None
    use_max_date = False

    # Patterns are tried in priority order; the first header that matches wins
    for pattern in DATE_COLUMN_PATTERNS:
        for normalised, original in headers:
            if pattern in normalised or normalised in pattern:
                date_column = original
                use_max_date = any(p in normalised or normalised in p for p in PERIOD_END_PATTERNS)
                break
        if date_column is not None:
            break

    if date_column is None:
        return None

    dates = [d for d in (parse_flexible_date(v) for v in df[date_column]) if d]
    if not dates:
        return None

    chosen = max(dates) if use_max_date else dates[0]
    logger.debug("CSV period from column %r (%s): %s", date_column, "max" if use_max_date else "first", chosen)
    return resolve_calendar_week(chosen)


# ====================================================================================================
# 5. TABULAR EXTRACTOR
# ====================================================================================================

class TabularExtractor(RevenueExtractor):
    """Gross revenue from CSV exports, one handler per platform."""
    source_kind = SourceKind.CSV

    def handlers(self) -> Dict[Platform, Callable]:
        return {
            Platform.DELIVEROO: self._parse_by_header,
            Platform.UBEREATS: self._parse_ubereats,
            Platform.JUSTEAT: self._parse_by_header,
            Platform.SLERP: self._parse_by_header,
        }

    def parse(self, raw, platform) -> ParseResult:
        platform = Platform.parse(platform)
        snippet = raw[:RAW_TEXT_SNIPPET_LENGTH] if isinstance(raw, str) else ""

        df = read_statement_frame(raw)
        if df is None:
            return ParseResult.no_match(raw_text=snippet, source_kind=self.source_kind, row_count=0)

        result = self.handler_for(platform)(df, platform)
        result.period = infer_period_from_frame(df)
        result.row_count = len(df)
        result.raw_text = snippet
        result.source_kind = self.source_kind

        logger.info(
            "CSV %s: £%s (%s, column=%r, rows=%d)",
            platform.label, result.gross_revenue, result.confidence.value, result.matched_rule, len(df),
        )
        return result

    # ------------------------------------------------------------------------------------------------
    # Uber Eats – two columns make up the gross
    # ------------------------------------------------------------------------------------------------
    def _parse_ubereats(self, df: pd.DataFrame, platform: Platform) -> ParseResult:
        lookup = {normalised: original for normalised, original in _normalised_headers(df)}
        sales_column = next((lookup[a] for a in UBER_SALES_COLUMN_ALIASES if a in lookup), None)
        offers_column = lookup.get(UBER_OFFERS_COLUMN)

        if sales_column is not None and offers_column is not None:
            gross = round_money(_sum_column(df, sales_column) + _sum_column(df, offers_column))
            return ParseResult(gross, Confidence.HIGH, UBER_COMBINED_COLUMN_LABEL)

        # Partial figure: offers not deducted, so never better than medium
        if sales_column is not None:
            return ParseResult(_sum_column(df, sales_column), Confidence.MEDIUM, str(sales_column))

        return self._parse_by_header(df, platform)

    # ------------------------------------------------------------------------------------------------
    # Everyone else – header patterns, then the numeric fallback
    # ------------------------------------------------------------------------------------------------
    def _parse_by_header(self, df: pd.DataFrame, platform: Platform) -> ParseResult:
        column, confidence = self.find_revenue_column(df, REVENUE_COLUMN_PATTERNS.get(platform, []))
        if column is None:
            return ParseResult.no_match(source_kind=self.source_kind)
        return ParseResult(_sum_column(df, column), confidence, str(column))

    @staticmethod
    def find_revenue_column(df: pd.DataFrame, patterns: List[str]):
        """
        Choose the revenue column.

        Returns:
            tuple[str | None, Confidence]: The column and how sure we are about it.
        """
        headers = _normalised_headers(df)

        # STEP 1: exact header match
        for normalised, original in headers:
            if normalised in patterns:
                return original, Confidence.HIGH

        # STEP 2: substring match in either direction
        for normalised, original in headers:
            if any(pattern in normalised or normalised in pattern for pattern in patterns):
                return original, Confidence.MEDIUM

        # STEP 3: first column where most values look like money
        for _, original in headers:
            numeric_share = np.mean([looks_numeric(v) for v in df[original]]) if len(df) else 0.0
            if numeric_share > NUMERIC_COLUMN_SHARE:
                return original, Confidence.LOW

        return None, Confidence.LOW
