# ====================================================================================================
# M02_process_pdfs.py
# ----------------------------------------------------------------------------------------------------
# Step 2b – Read gross revenue from PDF statements (via their extracted text)
# ----------------------------------------------------------------------------------------------------
# Purpose:
#   - Extract plain text from statement PDFs (pdfplumber first, pdfminer.six as fallback).
#   - Apply the ordered regex rule cascade for each platform; the first match wins.
#   - Scan Deliveroo statements for each brand's "Total Order Value" row (Site Breakdown).
#   - Infer the statement week from labelled period phrases.
#
# Notes:
#   - Deliveroo: never use "Total payable"; that is the payout after commission.
#   - Uber Eats tax invoices only show fees. Gross is reverse-estimated from the marketplace fee
#     and always returned as LOW confidence with a "PLEASE VERIFY" rule name.
#   - No match is not an error: a zero, low-confidence result is returned for the operator.
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
from processes.P02_period_resolver import infer_period_from_text
from processes.P03_shared_functions import parse_money, round_money, to_decimal, first_matching_rule
from processes.P04_static_lists import (
    TEXT_PERIOD_PATTERNS, TEXT_REVENUE_RULES, DELIVEROO_BRAND_PATTERNS, BRAND_ROW_TEMPLATE,
    BRAND_LOOKAHEAD_AMOUNT, TOTAL_ORDER_VALUE_LABEL, UBER_MARKETPLACE_FEE_PATTERN,
    UBER_COMMISSION_RATE_PATTERN,
)
from processes.P05_error_types import ExtractionError
from processes.P06_class_items import Platform, Confidence, SourceKind, ParseResult, RevenueExtractor
from processes.P07_module_configs import (
    DEFAULT_BRAND, BRAND_LOOKAHEAD_CHARS, ASSUMED_MARKETPLACE_COMMISSION, RAW_TEXT_SNIPPET_LENGTH,
)

logger = logging.getLogger(__name__)

PDF_READ_FAILED_MESSAGE = (
    "Could not read the PDF. Re-download the statement from the platform's partner portal, "
    "or upload its CSV export instead."
)


# ====================================================================================================
# 3. PDF TEXT EXTRACTION
# ====================================================================================================

def extract_pdf_text(data: bytes) -> str:
    """
    Extract the full text of a PDF, page by page.

    Args:
        data (bytes): Raw PDF bytes.

    Returns:
        str: Page texts joined by newlines (may be empty for scanned, image-only PDFs).

    Raises:
        ExtractionError: If neither pdfplumber nor pdfminer.six can open the document.

    Notes:
        - pdfplumber keeps table rows on one line, which the brand-row regex relies on.
        - pdfminer.six's `extract_text()` is used only when pdfplumber fails.
    """
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
        return "\n".join(pages).strip()
    except Exception as plumber_exc:
        logger.warning("pdfplumber failed (%s); trying pdfminer.six", plumber_exc)
        try:
            return (extract_text(io.BytesIO(data)) or "").strip()
        except Exception as miner_exc:
            raise ExtractionError(
                PDF_READ_FAILED_MESSAGE,
                detail=f"PDF failed: {miner_exc} (pdfplumber: {plumber_exc})",
            ) from miner_exc


# ====================================================================================================
# 4. DELIVEROO BRAND SCAN (Site Breakdown)
# ====================================================================================================

def scan_brand_totals(text: str, brand_patterns=DELIVEROO_BRAND_PATTERNS):
    """
    Look for each known brand's "Total Order Value" anywhere in the document.

    Args:
        text (str): Full statement text (page order does not matter).
        brand_patterns (list[tuple[str, str]]): (brand key, regex) pairs.

    Returns:
        tuple[bool, dict[str, Decimal]]: Whether any brand row was found, and the per-brand
        amounts (every known brand present, 0.00 when not found).

    Notes:
        - First the "<brand> Total Order Value £x" row layout is tried.
        - Otherwise the first "Total Order Value ... x.xx" within a short window after the brand
          name is used (statements that put the label on the following line).
    """
    found_any = False
    breakdown: Dict[str, Decimal] = {}

    for brand_key, brand_regex in brand_patterns:
        amount = Decimal("0")
        row_found = False

        row_match = re.search(BRAND_ROW_TEMPLATE.format(brand=brand_regex), text, re.IGNORECASE)
        if row_match and row_match.group(2):
            amount = parse_money(row_match.group(2))
            row_found = True
        elif TOTAL_ORDER_VALUE_LABEL in text:
            brand_match = re.search(brand_regex, text, re.IGNORECASE)
            if brand_match:
                window = text[brand_match.end():brand_match.start() + BRAND_LOOKAHEAD_CHARS]
                amount_match = BRAND_LOOKAHEAD_AMOUNT.search(window)
                if amount_match:
                    amount = parse_money(amount_match.group(1))
                    row_found = True

        if row_found:
            found_any = True
            logger.debug("Deliveroo brand %s: £%s", brand_key, amount)
        breakdown[brand_key] = round_money(amount)

    return found_any, breakdown


# ====================================================================================================
# 5. FREE-TEXT EXTRACTOR
# ====================================================================================================

class FreeTextExtractor(RevenueExtractor):
    """Gross revenue from PDF-extracted text, one rule cascade per platform."""
    source_kind = SourceKind.EXTRACTED_TEXT

    def handlers(self) -> Dict[Platform, Callable]:
        return {
            Platform.DELIVEROO: self._parse_deliveroo,
            Platform.UBEREATS: self._parse_ubereats,
            Platform.JUSTEAT: self._parse_rules,
            Platform.SLERP: self._parse_rules,
        }

    def parse(self, raw, platform) -> ParseResult:
        platform = Platform.parse(platform)
        text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else (raw or "")

        result = self.handler_for(platform)(text, platform)
        result.period = infer_period_from_text(text, TEXT_PERIOD_PATTERNS)
        result.raw_text = text[:RAW_TEXT_SNIPPET_LENGTH]
        result.source_kind = self.source_kind

        logger.info(
            "Text %s: £%s (%s, rule=%r)",
            platform.label, result.gross_revenue, result.confidence.value, result.matched_rule,
        )
        return result

    # ------------------------------------------------------------------------------------------------
    # Generic cascade (Just Eat, and anything without special handling)
    # ------------------------------------------------------------------------------------------------
    def _parse_rules(self, text: str, platform: Platform, rules=None) -> ParseResult:
        rules = TEXT_REVENUE_RULES.get(platform, []) if rules is None else rules
        rule, m = first_matching_rule(text, rules)
        if rule is None:
            return ParseResult.no_match(source_kind=self.source_kind)
        return ParseResult(round_money(parse_money(m.group(rule.group))), rule.confidence, rule.name)

    # ------------------------------------------------------------------------------------------------
    # Deliveroo – per-brand rows first, then the document's first Total Order Value
    # ------------------------------------------------------------------------------------------------
    def _parse_deliveroo(self, text: str, platform: Platform) -> ParseResult:
        found_any, breakdown = scan_brand_totals(text)
        if found_any:
            gross = round_money(sum(breakdown.values(), Decimal("0")))
            return ParseResult(
                gross, Confidence.HIGH, "Known brands only (per-brand Total Order Value)",
                brand_breakdown=breakdown,
            )

        result = self._parse_rules(text, platform)
        if result.matched_rule:
            # Single-brand statement: the whole total belongs to the default brand
            result.brand_breakdown = {brand: Decimal("0.00") for brand in breakdown}
            result.brand_breakdown[DEFAULT_BRAND] = result.gross_revenue
        return result

    # ------------------------------------------------------------------------------------------------
    # Uber Eats – stated sales, else estimate from the marketplace fee, else fee totals
    # ------------------------------------------------------------------------------------------------
    def _parse_ubereats(self, text: str, platform: Platform) -> ParseResult:
        rules = TEXT_REVENUE_RULES[platform]
        stated = self._parse_rules(text, platform, rules[:1])
        if stated.matched_rule:
            return stated

        fee_match = UBER_MARKETPLACE_FEE_PATTERN.search(text)
        if fee_match and parse_money(fee_match.group(1)) > 0:
            fee = parse_money(fee_match.group(1))
            rate, stated_rate = self.commission_rate(text)
            gross = round_money(fee / rate)
            basis = "stated" if stated_rate else "assumed"
            return ParseResult(
                gross,
                Confidence.LOW,
                f"Estimated from Marketplace Fee £{fee} ({basis} {round_money(rate * 100)}% rate - PLEASE VERIFY)",
            )

        return self._parse_rules(text, platform, rules[1:])

    @staticmethod
    def commission_rate(text: str) -> Tuple[Decimal, bool]:
        """
        Commission rate printed on the invoice, or the assumed default.

        Returns:
            tuple[Decimal, bool]: (rate as a fraction, whether it came from the document)
        """
        m = UBER_COMMISSION_RATE_PATTERN.search(text)
        if m:
            percent = to_decimal(m.group(1) or m.group(2))
            if percent is not None and Decimal("0") < percent < Decimal("100"):
                return percent / Decimal("100"), True
        return ASSUMED_MARKETPLACE_COMMISSION, False
