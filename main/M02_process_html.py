# ====================================================================================================
# M02_process_html.py
# ----------------------------------------------------------------------------------------------------
# Step 2c – Read gross revenue from HTML statements (Just Eat often saves these as .doc)
# ----------------------------------------------------------------------------------------------------
# Purpose:
#   - Flatten HTML statements to plain text with BeautifulSoup (styles/scripts removed,
#     entities decoded, whitespace collapsed).
#   - Apply the platform's ordered rule cascade (primary → secondary → fallback phrases).
#   - Infer the statement week from the flattened text.
#
# Notes:
#   - Routing to this extractor is decided by sniffing the content, not the extension
#     (see M01_statement_intake.is_html_content).
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
from processes.P03_shared_functions import parse_money, round_money, collapse_whitespace, first_matching_rule
from processes.P04_static_lists import HTML_PERIOD_PATTERNS, HTML_REVENUE_RULES, HTML_GENERIC_RULES
from processes.P06_class_items import Platform, SourceKind, ParseResult, RevenueExtractor
from processes.P07_module_configs import RAW_TEXT_SNIPPET_LENGTH

logger = logging.getLogger(__name__)


# ====================================================================================================
# 3. HTML → TEXT
# ====================================================================================================

def html_to_text(markup) -> str:
    """
    Strip an HTML document down to single-spaced plain text.

    Args:
        markup (str | bytes): The HTML document.

    Returns:
        str: Visible text, with table cells separated by spaces and entities such as
             &pound; and &nbsp; decoded.
    """
    if isinstance(markup, bytes):
        markup = markup.decode("utf-8", errors="replace")

    soup = BeautifulSoup(markup or "", "html.parser")
    for tag in soup(["style", "script"]):
        tag.decompose()

    # get_text decodes entities; unescape again for double-encoded exports (&amp;pound;)
    text = html.unescape(soup.get_text(" "))
    return collapse_whitespace(text)


# ====================================================================================================
# 4. HTML EXTRACTOR
# ====================================================================================================

class HtmlExtractor(RevenueExtractor):
    """Gross revenue from HTML statements, one rule list per platform."""
    source_kind = SourceKind.EXTRACTED_TEXT

    def handlers(self) -> Dict[Platform, Callable]:
        return {
            Platform.DELIVEROO: partial(self._parse_rules, rules=HTML_GENERIC_RULES),
            Platform.UBEREATS: partial(self._parse_rules, rules=HTML_GENERIC_RULES),
            Platform.JUSTEAT: partial(self._parse_rules, rules=HTML_REVENUE_RULES[Platform.JUSTEAT]),
            Platform.SLERP: partial(self._parse_rules, rules=HTML_GENERIC_RULES),
        }

    def parse(self, raw, platform) -> ParseResult:
        platform = Platform.parse(platform)
        text = html_to_text(raw)

        result = self.handler_for(platform)(text)
        result.period = infer_period_from_text(text, HTML_PERIOD_PATTERNS)
        result.raw_text = text[:RAW_TEXT_SNIPPET_LENGTH]
        result.source_kind = self.source_kind

        logger.info(
            "HTML %s: £%s (%s, rule=%r)",
            platform.label, result.gross_revenue, result.confidence.value, result.matched_rule,
        )
        return result

    def _parse_rules(self, text: str, rules) -> ParseResult:
        rule, m = first_matching_rule(text, rules)
        if rule is None:
            return ParseResult.no_match(source_kind=self.source_kind)
        return ParseResult(round_money(parse_money(m.group(rule.group))), rule.confidence, rule.name)
