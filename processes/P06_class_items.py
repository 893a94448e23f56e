# ====================================================================================================
# P06_class_items.py
# ----------------------------------------------------------------------------------------------------
# Contains shared data classes and structured objects used throughout the
# Franchise Fee Reconciliation process.
#
# Purpose:
#   - Define the closed sets the workflow branches on (platforms, confidence tiers, statuses,
#     fee models, payment direction).
#   - Provide the data models passed between modules: parse results, revenue reports, invoices,
#     fee configuration, upload batches and the invoice statement view.
#
# Usage:
#   from processes.P06_class_items import Platform, ParseResult, RevenueReport, Invoice
#
# Example:
#   >>> Platform.parse("Uber Eats")
#   <Platform.UBEREATS: 'ubereats'>
#   >>> Platform.SLERP.is_aggregator
#   False
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
# Bring in standard libraries and settings from the centralized import hub.
# ====================================================================================================
from processes.P00_set_packages import *
from processes.P03_shared_functions import to_decimal
from processes.P07_module_configs import DEFAULT_FEE_RATE


def _normalise_key(value) -> str:
    """Lower-case and drop everything but letters/digits ("Uber Eats" → "ubereats")."""
    return re.sub(r"[^a-z0-9]", "", str(value).lower())


# ====================================================================================================
# 3. ENUMERATIONS
# ----------------------------------------------------------------------------------------------------
# Closed sets. Extractors and the fee engine dispatch on these instead of free strings.
# ====================================================================================================

class Platform(str, Enum):
    DELIVEROO = "deliveroo"
    UBEREATS = "ubereats"
    JUSTEAT = "justeat"
    SLERP = "slerp"

    @property
    def is_aggregator(self) -> bool:
        """Aggregators bill Monday–Sunday weeks; Slerp is the direct-order platform."""
        return self is not Platform.SLERP

    @property
    def label(self) -> str:
        return PLATFORM_LABELS[self]

    @classmethod
    def parse(cls, value) -> "Platform":
        if isinstance(value, cls):
            return value
        key = _normalise_key(value)
        for platform in cls:
            if key in (platform.value, _normalise_key(PLATFORM_LABELS[platform])):
                return platform
        raise ValueError(f"Unknown platform: {value!r}")


PLATFORM_LABELS = {
    Platform.DELIVEROO: "Deliveroo",
    Platform.UBEREATS: "Uber Eats",
    Platform.JUSTEAT: "Just Eat",
    Platform.SLERP: "Slerp",
}

AGGREGATOR_PLATFORMS = (Platform.DELIVEROO, Platform.UBEREATS, Platform.JUSTEAT)


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SourceKind(str, Enum):
    CSV = "csv"
    EXTRACTED_TEXT = "extracted-text"
    SPREADSHEET = "spreadsheet"
    MANUAL = "manual"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PROCESSING = "processing"
    PAID = "paid"

    @property
    def rank(self) -> int:
        return list(InvoiceStatus).index(self)


class FeeModel(str, Enum):
    FLAT_PERCENTAGE = "flat-percentage"
    PER_PLATFORM_PERCENTAGE = "per-platform-percentage"
    FIXED_MONTHLY = "fixed-monthly"

    @classmethod
    def parse(cls, value) -> "FeeModel":
        if isinstance(value, cls):
            return value
        key = _normalise_key(value)
        aliases = {
            "flatpercentage": cls.FLAT_PERCENTAGE,
            "percentage": cls.FLAT_PERCENTAGE,
            "perplatformpercentage": cls.PER_PLATFORM_PERCENTAGE,
            "percentageperplatform": cls.PER_PLATFORM_PERCENTAGE,
            "fixedmonthly": cls.FIXED_MONTHLY,
            "monthlyfixed": cls.FIXED_MONTHLY,
        }
        if key not in aliases:
            raise ValueError(f"Unknown fee model: {value!r}")
        return aliases[key]


class PaymentDirection(str, Enum):
    COLLECT_FEES = "collect-fees"
    PAY_THEM = "pay-them"

    @classmethod
    def parse(cls, value) -> "PaymentDirection":
        if isinstance(value, cls):
            return value
        key = _normalise_key(value)
        if key in ("collectfees", "collect"):
            return cls.COLLECT_FEES
        if key in ("paythem", "pay"):
            return cls.PAY_THEM
        raise ValueError(f"Unknown payment direction: {value!r}")


# ====================================================================================================
# 4. PERIODS & PARSE RESULTS
# ====================================================================================================

@dataclass(frozen=True)
class BillingPeriod:
    """Inclusive (start, end) date pair an invoice or report is anchored to."""
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def overlaps(self, other: "BillingPeriod") -> bool:
        return not (self.end < other.start or self.start > other.end)

    def __str__(self) -> str:
        return f"{self.start.isoformat()} → {self.end.isoformat()}"


@dataclass(frozen=True)
class TextRule:
    """One regex rule in an extractor cascade. `group` is the capture holding the amount."""
    name: str
    pattern: "re.Pattern"
    confidence: "Confidence"
    group: int = 1


@dataclass
class ParseResult:
    """What an extractor read from one statement. Transient: shown to the operator, never stored."""
    gross_revenue: Decimal
    confidence: Confidence
    matched_rule: Optional[str] = None
    period: Optional[BillingPeriod] = None
    brand_breakdown: Optional[Dict[str, Decimal]] = None
    row_count: Optional[int] = None
    raw_text: str = ""
    source_kind: SourceKind = SourceKind.EXTRACTED_TEXT

    @classmethod
    def no_match(cls, raw_text: str = "", source_kind: SourceKind = SourceKind.EXTRACTED_TEXT,
                 row_count: Optional[int] = None) -> "ParseResult":
        return cls(
            gross_revenue=Decimal("0.00"),
            confidence=Confidence.LOW,
            matched_rule=None,
            raw_text=raw_text,
            source_kind=source_kind,
            row_count=row_count,
        )


# ====================================================================================================
# 5. FRANCHISEE CONFIGURATION
# ====================================================================================================

@dataclass
class FeeConfiguration:
    """
    Fee model plus rates for one franchisee (read-only input to reconciliation).

    Notes:
        - Rates are percentages (6 means 6 %).
        - A missing flat rate falls back to DEFAULT_FEE_RATE; missing per-platform rates are 0.
    """
    model: FeeModel = FeeModel.FLAT_PERCENTAGE
    percentage_rate: Optional[Decimal] = None
    deliveroo_rate: Optional[Decimal] = None
    ubereats_rate: Optional[Decimal] = None
    justeat_rate: Optional[Decimal] = None
    direct_rate: Optional[Decimal] = None
    monthly_fee: Optional[Decimal] = None
    payment_direction: PaymentDirection = PaymentDirection.COLLECT_FEES

    def rate_for(self, platform: Platform) -> Decimal:
        platform = Platform.parse(platform)
        if platform is Platform.SLERP:
            return self.direct_rate if self.direct_rate is not None else Decimal("0")
        if self.model is FeeModel.PER_PLATFORM_PERCENTAGE:
            rate = {
                Platform.DELIVEROO: self.deliveroo_rate,
                Platform.UBEREATS: self.ubereats_rate,
                Platform.JUSTEAT: self.justeat_rate,
            }[platform]
            return rate if rate is not None else Decimal("0")
        return self.nominal_rate

    @property
    def nominal_rate(self) -> Decimal:
        if self.model is FeeModel.FIXED_MONTHLY:
            return Decimal("0")
        return self.percentage_rate if self.percentage_rate is not None else DEFAULT_FEE_RATE

    @property
    def is_percentage_model(self) -> bool:
        return self.model is not FeeModel.FIXED_MONTHLY

    @classmethod
    def from_dict(cls, data: Dict) -> "FeeConfiguration":
        return cls(
            model=FeeModel.parse(data.get("model", FeeModel.FLAT_PERCENTAGE)),
            percentage_rate=to_decimal(data.get("percentage_rate")),
            deliveroo_rate=to_decimal(data.get("deliveroo_rate")),
            ubereats_rate=to_decimal(data.get("ubereats_rate")),
            justeat_rate=to_decimal(data.get("justeat_rate")),
            direct_rate=to_decimal(data.get("direct_rate")),
            monthly_fee=to_decimal(data.get("monthly_fee")),
            payment_direction=PaymentDirection.parse(data.get("payment_direction", "collect-fees")),
        )


@dataclass
class Franchisee:
    id: str
    name: str
    location: str = ""
    brands: List[str] = field(default_factory=list)
    fee_config: FeeConfiguration = field(default_factory=FeeConfiguration)

    @classmethod
    def from_dict(cls, data: Dict) -> "Franchisee":
        return cls(
            id=str(data["id"]),
            name=data.get("name", str(data["id"])),
            location=data.get("location", ""),
            brands=list(data.get("brands", [])),
            fee_config=FeeConfiguration.from_dict(data.get("fee_config", {})),
        )


# ====================================================================================================
# 6. STORED RECORDS
# ====================================================================================================

@dataclass
class RevenueReport:
    """One platform's revenue for one brand for one period. Replaced, never merged."""
    franchise_id: str
    brand: str
    platform: Platform
    period_start: date
    period_end: date
    gross_revenue: Decimal
    source_kind: SourceKind
    source_path: Optional[str] = None
    uploaded_at: datetime = field(default_factory=datetime.now)
    id: Optional[str] = None

    @property
    def period(self) -> BillingPeriod:
        return BillingPeriod(self.period_start, self.period_end)

    @property
    def key(self) -> tuple:
        return (self.franchise_id, self.brand or "", self.platform.value, self.period_start, self.period_end)


@dataclass
class Invoice:
    id: str
    invoice_number: str
    franchise_id: str
    brand: Optional[str]
    period_start: date
    period_end: date
    total_gross_revenue: Decimal
    fee_percentage: Decimal
    fee_amount: Decimal
    status: InvoiceStatus = InvoiceStatus.DRAFT
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def period(self) -> BillingPeriod:
        return BillingPeriod(self.period_start, self.period_end)

    @property
    def is_draft(self) -> bool:
        return self.status is InvoiceStatus.DRAFT


# ====================================================================================================
# 7. FEE ENGINE + ALLOCATION RESULTS
# ====================================================================================================

@dataclass
class FeeResult:
    total_gross: Decimal
    fee_amount: Decimal
    effective_percentage: Decimal
    platform_fees: Dict[Platform, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class BrandAllocation:
    brand: str
    amount: Decimal
    period: Optional[BillingPeriod] = None


@dataclass
class DirectSalesWeek:
    """Direct-platform GMV for one location, grouped by the Monday it is paid out."""
    location: str
    payout_date: date
    period: BillingPeriod
    gross_revenue: Decimal
    order_count: int = 0


@dataclass
class ArrearsWaiverSchedule:
    """
    Historical debt written off against new monthly fees.

    Args:
        initial_arrears (Decimal): Balance outstanding when the backfill starts.
        monthly_cap (Decimal | None): Most that may be waived in one month (None = the monthly fee).
    """
    initial_arrears: Decimal
    monthly_cap: Optional[Decimal] = None


@dataclass
class BackfillMonth:
    month: str                      # "YYYY-MM"
    invoice: Invoice
    created: bool
    fee_amount: Decimal
    waived_amount: Decimal
    balance_after: Decimal


@dataclass
class BackfillResult:
    months: List[BackfillMonth] = field(default_factory=list)
    starting_arrears: Decimal = Decimal("0.00")
    adjusted_start_month: Optional[str] = None      # Set when the start month was moved back a year

    @property
    def created_count(self) -> int:
        return sum(1 for m in self.months if m.created)

    @property
    def skipped_count(self) -> int:
        return sum(1 for m in self.months if not m.created)

    @property
    def remaining_arrears(self) -> Decimal:
        return self.months[-1].balance_after if self.months else self.starting_arrears


# ====================================================================================================
# 8. UPLOAD BATCH (builder for one operator upload session)
# ====================================================================================================

@dataclass
class UploadRow:
    platform: Platform
    result: ParseResult
    brand: Optional[str] = None
    period: Optional[BillingPeriod] = None
    source_path: Optional[str] = None
    revenue_override: Optional[Decimal] = None   # operator-corrected figure

    @property
    def gross_revenue(self) -> Decimal:
        return self.revenue_override if self.revenue_override is not None else self.result.gross_revenue


class UploadBatch:
    """
    Rows accumulated during one upload session, handed to the reconciliation service in one go.

    Args:
        franchise_id (str): Franchisee the statements belong to.
        period (BillingPeriod | None): Week chosen for the session. Rows without their own period
            use it, then fall back to the period inferred by the extractor.

    Example:
        >>> batch = UploadBatch("fr-1", week).add(Platform.JUSTEAT, result, brand="Wing Shack")
    """

    def __init__(self, franchise_id: str, period: Optional[BillingPeriod] = None):
        self.franchise_id = franchise_id
        self.period = period
        self.rows: List[UploadRow] = []

    def add(self, platform, result: ParseResult, brand: Optional[str] = None,
            period: Optional[BillingPeriod] = None, source_path: Optional[str] = None,
            revenue_override: Optional[Decimal] = None) -> "UploadBatch":
        self.rows.append(UploadRow(Platform.parse(platform), result, brand, period, source_path, revenue_override))
        return self

    def period_for(self, row: UploadRow) -> Optional[BillingPeriod]:
        return row.period or self.period or row.result.period

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)


@dataclass
class RowOutcome:
    index: int
    platform: Platform
    ok: bool
    reports: List[RevenueReport] = field(default_factory=list)
    error: Optional[str] = None


@dataclass
class BatchOutcome:
    rows: List[RowOutcome] = field(default_factory=list)
    invoices: List[Invoice] = field(default_factory=list)

    @property
    def succeeded(self) -> List[RowOutcome]:
        return [r for r in self.rows if r.ok]

    @property
    def failed(self) -> List[RowOutcome]:
        return [r for r in self.rows if not r.ok]


# ====================================================================================================
# 9. INVOICE STATEMENT VIEW (consumed by PDF / email collaborators)
# ====================================================================================================

@dataclass
class StatementLine:
    platform: Platform
    brand: str
    gross_revenue: Decimal
    fee_rate: Decimal
    fee_amount: Decimal


@dataclass
class DirectPlatformBlock:
    period: BillingPeriod
    payout_date: date
    gross_revenue: Decimal
    fee_amount: Decimal


@dataclass
class InvoiceStatement:
    invoice: Invoice
    lines: List[StatementLine]
    direct_block: Optional[DirectPlatformBlock]
    payment_direction: PaymentDirection
    payable_amount: Decimal

    @property
    def payable_label(self) -> str:
        if self.payment_direction is PaymentDirection.PAY_THEM:
            return "Amount we pay you"
        return "Amount due"

    def to_frame(self) -> "pd.DataFrame":
        """Line items as a DataFrame (one row per platform/brand)."""
        return pd.DataFrame(
            [
                {
                    "platform": line.platform.label,
                    "brand": line.brand,
                    "gross_revenue": float(line.gross_revenue),
                    "fee_rate": float(line.fee_rate),
                    "fee_amount": float(line.fee_amount),
                }
                for line in self.lines
            ],
            columns=["platform", "brand", "gross_revenue", "fee_rate", "fee_amount"],
        )


# ====================================================================================================
# 10. EXTRACTOR INTERFACE
# ----------------------------------------------------------------------------------------------------
# Every statement shape (CSV, PDF text, HTML) implements parse(raw, platform) → ParseResult and
# dispatches to one handler per Platform.
# ====================================================================================================

class RevenueExtractor:
    """Base class for the statement extractors."""
    source_kind: SourceKind = SourceKind.EXTRACTED_TEXT

    def handlers(self) -> Dict[Platform, Callable]:
        raise NotImplementedError

    def parse(self, raw, platform) -> ParseResult:
        raise NotImplementedError

    def handler_for(self, platform) -> Callable:
        return self.handlers()[Platform.parse(platform)]
