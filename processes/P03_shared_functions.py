# ====================================================================================================
# P03_shared_functions.py
# ----------------------------------------------------------------------------------------------------
# Shared helper functions used across multiple modules (e.g., extractors, fee engine, reconciliation).
#
# Purpose:
#   - Centralize money handling (parsing statement amounts, half-up rounding to pence).
#   - Provide the regex rule-cascade primitive shared by the PDF and HTML extractors.
#   - Provide per-key locks so two uploads for the same period never interleave.
#
# Usage:
#   from processes.P03_shared_functions import round_money, parse_money, first_matching_rule
#
# Example:
#   >>> round_money(Decimal("51.0222"))
#   Decimal('51.02')
#
#   >>> parse_money("£1,234.50")
#   Decimal('1234.50')
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
from processes.P07_module_configs import MONEY_QUANTUM


# ====================================================================================================
# 3. MONEY HELPERS
# ----------------------------------------------------------------------------------------------------
# All money in the project is Decimal, rounded half-up to 2 decimal places.
# ====================================================================================================

CURRENCY_STRIP_RE = re.compile(r"[£$€,\s]")
LEADING_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?")
NUMERIC_SHAPE_RE = re.compile(r"^-?[£$€]?\s*-?\d")


def to_decimal(value, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Convert ints, floats, strings or Decimals to Decimal.

    Returns `default` for None, empty strings, NaN and anything that does not parse.
    """
    if value is None:
        return default
    if isinstance(value, Decimal):
        return default if not value.is_finite() else value
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return default
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return default
    return result if result.is_finite() else default


def round_money(value) -> Decimal:
    """
    Round a money value half-up to 2 decimal places.

    Args:
        value (Decimal | float | int | str): The amount to round.

    Returns:
        Decimal: The rounded amount (0.00 when the value cannot be read).
    """
    amount = to_decimal(value, Decimal("0"))
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def parse_money(value) -> Decimal:
    """
    Parse a statement cell or regex capture into a Decimal amount.

    Args:
        value: Raw cell text such as "£1,234.56", " 12.00 ", "€5" or a number.

    Returns:
        Decimal: The amount, or Decimal("0") when nothing numeric is found.

    Notes:
        - Currency symbols (£ $ €), thousands separators and whitespace are stripped.
        - Only the leading number is read, so "12.50 GBP" gives 12.50.
    """
    if value is None:
        return Decimal("0")
    if isinstance(value, (int, float, Decimal)):
        return to_decimal(value, Decimal("0"))

    cleaned = CURRENCY_STRIP_RE.sub("", str(value))
    m = LEADING_NUMBER_RE.match(cleaned)
    if not m:
        return Decimal("0")
    return to_decimal(m.group(0), Decimal("0"))


def looks_numeric(value) -> bool:
    """True when a cell looks like a number or a currency amount (e.g. "£12.30", "45")."""
    if value is None:
        return False
    return bool(NUMERIC_SHAPE_RE.match(str(value).strip()))


# ====================================================================================================
# 4. TEXT RULE CASCADE
# ----------------------------------------------------------------------------------------------------
# PDF and HTML extractors keep ordered lists of regex rules. The first rule that matches wins.
# ====================================================================================================

def collapse_whitespace(text: str) -> str:
    """Replace runs of whitespace with single spaces and trim."""
    return re.sub(r"\s+", " ", text or "").strip()


def first_matching_rule(text: str, rules: Iterable):
    """
    Run an ordered rule list against text and return the first hit.

    Args:
        text (str): Statement text to search.
        rules (Iterable[TextRule]): Rules with `pattern` (compiled regex) and `group` attributes.

    Returns:
        tuple[TextRule, re.Match] | tuple[None, None]: The winning rule and its match.
    """
    for rule in rules:
        m = rule.pattern.search(text or "")
        if m and m.group(rule.group):
            return rule, m
    return None, None


# ====================================================================================================
# 5. PER-KEY LOCKS
# ----------------------------------------------------------------------------------------------------
# Serialises report replacement + invoice recomputation for one (franchise, brand, period) key.
# ====================================================================================================

class KeyedLocks:
    """
    Lazily created lock per key. Different keys never block each other.

    An entry lives only while some thread holds or waits on it, so a long-running
    process does not keep one lock for every week it has ever seen.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[tuple, list] = {}     # key → [lock, holders + waiters]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[key]

    @contextmanager
    def hold_all(self, keys):
        """Hold several keys together, always acquired in the same order."""
        ordered = sorted(set(keys), key=repr)
        if not ordered:
            yield
            return
        with self.hold(ordered[0]):
            with self.hold_all(ordered[1:]):
                yield
